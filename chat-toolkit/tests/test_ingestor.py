import asyncio
import io
import time

import docx
import pymupdf  # type: ignore[import-untyped]
import pytest
from fakes import b64

from chat_toolkit.attachments.base import Attachment, decode_payload
from chat_toolkit.attachments.extractors import ExtractedDocument, summarize
from chat_toolkit.attachments.ingestor import AttachmentIngestor

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def make_docx(*paragraphs: str) -> bytes:
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def make_pdf(text: str) -> bytes:
    document = pymupdf.open()
    page = document.new_page()
    page.insert_text((72, 72), text)
    data = document.tobytes()
    document.close()
    return data


async def test_plain_text_is_extracted_and_described():
    attachment = Attachment(name="notes.txt", mime_type="text/plain", payload=b64("First point. Second point."))

    text = await AttachmentIngestor().extract(attachment)

    assert text == "First point. Second point."
    assert attachment.extracted_text == text
    assert attachment.word_count == 4
    assert attachment.summary == "First point. Second point."


async def test_data_url_payload_is_accepted():
    attachment = Attachment(name="a.txt", type="text/plain", content=f"data:text/plain;base64,{b64('hi there')}")

    assert await AttachmentIngestor().extract(attachment) == "hi there"


async def test_word_document_paragraphs_are_joined():
    attachment = Attachment(name="report.docx", mime_type=DOCX_MIME, payload=b64(make_docx("Quarterly report", "Revenue grew")))

    text = await AttachmentIngestor().extract(attachment)

    assert "Quarterly report\nRevenue grew" in text


async def test_pdf_text_is_extracted():
    attachment = Attachment(name="scan.pdf", mime_type="application/pdf", payload=b64(make_pdf("Invoice number 42")))

    text = await AttachmentIngestor().extract(attachment)

    assert "Invoice number 42" in text


async def test_second_extraction_is_a_cache_hit():
    calls = []

    def counting_extractor(data: bytes) -> ExtractedDocument:
        calls.append(data)
        return ExtractedDocument(text=data.decode(), file_type="Text File")

    ingestor = AttachmentIngestor(extractors=[(("text",), "Text", counting_extractor)])
    attachment = Attachment(name="a.txt", mime_type="text/plain", payload=b64("same bytes"))

    first = await ingestor.extract(attachment)
    second = await ingestor.extract(attachment)

    assert first == second == "same bytes"
    assert len(calls) == 1


async def test_concurrent_callers_share_one_extraction():
    calls = []

    def slow_extractor(data: bytes) -> ExtractedDocument:
        calls.append(data)
        time.sleep(0.05)
        return ExtractedDocument(text="done", file_type="Text File")

    ingestor = AttachmentIngestor(extractors=[(("text",), "Text", slow_extractor)])
    attachment = Attachment(name="a.txt", mime_type="text/plain", payload=b64("x"))

    results = await asyncio.gather(*(ingestor.extract(attachment) for _ in range(3)))

    assert results == ["done", "done", "done"]
    assert len(calls) == 1


async def test_unsupported_type_degrades_to_error_text():
    attachment = Attachment(name="song.mp3", mime_type="audio/mpeg", payload=b64("ID3"))

    text = await AttachmentIngestor().extract(attachment)

    assert text == "[Error processing file song.mp3: Unsupported file type: audio/mpeg]"
    assert attachment.extracted_text == text


async def test_missing_payload_degrades_to_error_text():
    attachment = Attachment(name="empty.txt", mime_type="text/plain")

    text = await AttachmentIngestor().extract(attachment)

    assert text.startswith("[Error processing file empty.txt: Missing required file properties")


async def test_parser_error_degrades_to_error_text():
    attachment = Attachment(name="broken.pdf", mime_type="application/pdf", payload=b64("not a pdf at all"))

    text = await AttachmentIngestor().extract(attachment)

    assert text.startswith("[Error processing file broken.pdf:")


async def test_slow_extractor_times_out():
    def stuck_extractor(data: bytes) -> ExtractedDocument:
        time.sleep(0.5)
        return ExtractedDocument(text="too late", file_type="PDF")

    ingestor = AttachmentIngestor(timeout=0.05, extractors=[(("pdf",), "PDF", stuck_extractor)])
    attachment = Attachment(name="big.pdf", mime_type="application/pdf", payload=b64("%PDF"))

    text = await ingestor.extract(attachment)

    assert text == "[Error processing file big.pdf: PDF parsing timeout after 0.05 seconds]"


def test_payload_that_is_not_base64_is_read_as_text():
    assert decode_payload("plain text, not base64!") == b"plain text, not base64!"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("", "No content available for summary"),
        ("One. Two. Three. Four.", "One. Two."),
        ("x" * 250, "x" * 200 + "..."),
    ],
)
def test_summary(text, expected):
    assert summarize(text) == expected

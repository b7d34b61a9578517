"""
Format-specific text extractors.

Each extractor is a plain synchronous function from raw bytes to an
'ExtractedDocument'. They are CPU-bound library calls, so 'AttachmentIngestor'
runs them in a worker thread under a timeout.
"""

import io
import re
from collections.abc import Callable
from dataclasses import dataclass

import docx
import pymupdf  # type: ignore[import-untyped]
import pymupdf4llm  # type: ignore[import-untyped]

SUMMARY_CHARS = 200
NO_SUMMARY = "No content available for summary"


@dataclass
class ExtractedDocument:
    text: str
    file_type: str
    pages: int | None = None


def count_words(text: str) -> int:
    return len(text.split())


def summarize(text: str) -> str:
    """First two sentences, or the first 200 characters when the text has no more than two."""
    trimmed = text.strip()
    if not trimmed:
        return NO_SUMMARY

    sentences = [s for s in re.split(r"[.!?]+", trimmed) if s.strip()]
    if len(sentences) <= 2:
        return trimmed[:SUMMARY_CHARS] + ("..." if len(trimmed) > SUMMARY_CHARS else "")
    return ". ".join(s.strip() for s in sentences[:2]) + "."


def extract_pdf(data: bytes) -> ExtractedDocument:
    with pymupdf.open(stream=data, filetype="pdf") as document:
        markdown: str = pymupdf4llm.to_markdown(document)  # type: ignore[assignment]
        pages = document.page_count
    text = markdown.strip() or "[No text content found in PDF - document may be image-based or encrypted]"
    return ExtractedDocument(text=text, file_type="PDF", pages=pages)


def extract_word(data: bytes) -> ExtractedDocument:
    document = docx.Document(io.BytesIO(data))
    lines = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            lines.append("\t".join(cell.text for cell in row.cells))
    text = "\n".join(lines).strip() or "[No text content found in Word document]"
    return ExtractedDocument(text=text, file_type="Word Document")


def extract_plain_text(data: bytes) -> ExtractedDocument:
    text = data.decode("utf-8", errors="replace").strip() or "[No text content found in file]"
    return ExtractedDocument(text=text, file_type="Text File")


Extractor = Callable[[bytes], ExtractedDocument]

# Checked in order against the lowercased MIME type.
EXTRACTORS: list[tuple[tuple[str, ...], str, Extractor]] = [
    (("pdf",), "PDF", extract_pdf),
    (("word", "document", "officedocument"), "Word", extract_word),
    (("text", "plain"), "Text", extract_plain_text),
]

"""
Attachment text extraction with per-attachment memoization.

'AttachmentIngestor.extract' is the only way the pipeline reads document
content. It never raises for a bad attachment: invalid input, unsupported
types, parser errors and timeouts all degrade to an inline
'[Error processing file <name>: <reason>]' string, so one broken file does not
fail the whole turn. Whatever text is produced, including that error string,
is cached on the attachment and returned by every later call.
"""

import asyncio

from loguru import logger

from chat_toolkit.attachments.base import Attachment, decode_payload
from chat_toolkit.attachments.extractors import (
    EXTRACTORS,
    ExtractedDocument,
    Extractor,
    count_words,
    summarize,
)
from chat_toolkit.exceptions import (
    AttachmentError,
    ExtractionFailed,
    ExtractionTimeout,
    InvalidAttachment,
    UnsupportedAttachmentType,
)

DEFAULT_EXTRACTION_TIMEOUT = 30.0


class AttachmentIngestor:
    """
    Extracts plain text from document attachments.

    Attributes:
        timeout: Upper bound in seconds for a single extractor run.
        extractors: '(mime markers, kind, extractor)' triples checked in order
            against the lowercased MIME type. Defaults to PDF, Word, plain text.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
        extractors: list[tuple[tuple[str, ...], str, Extractor]] | None = None,
    ) -> None:
        self.timeout = timeout
        self.extractors = extractors if extractors is not None else EXTRACTORS

    async def extract(self, attachment: Attachment) -> str:
        if attachment.extracted_text is not None:
            logger.debug(f"Using cached extracted text for {attachment.name!r}")
            return attachment.extracted_text

        async with attachment.extraction_lock:
            if attachment.extracted_text is not None:
                logger.debug(f"Using cached extracted text for {attachment.name!r}")
                return attachment.extracted_text

            try:
                extracted = await self._extract(attachment)
            except AttachmentError as exc:
                logger.warning(f"Error processing file {attachment.name!r}: {exc}")
                attachment.extracted_text = f"[Error processing file {attachment.name}: {exc}]"
                return attachment.extracted_text

            attachment.extracted_text = extracted.text
            attachment.word_count = count_words(extracted.text)
            attachment.summary = summarize(extracted.text)
            logger.info(
                f"Extracted {attachment.name!r} ({extracted.file_type}): "
                f"words={attachment.word_count} pages={extracted.pages}"
            )
            return attachment.extracted_text

    def _select(self, mime_type: str) -> tuple[str, Extractor]:
        lowered = mime_type.lower()
        for markers, kind, extractor in self.extractors:
            if any(marker in lowered for marker in markers):
                return kind, extractor
        raise UnsupportedAttachmentType(f"Unsupported file type: {mime_type}")

    async def _extract(self, attachment: Attachment) -> ExtractedDocument:
        if not attachment.name or not attachment.mime_type or not attachment.payload:
            raise InvalidAttachment(
                "Missing required file properties: "
                f"name={bool(attachment.name)}, type={bool(attachment.mime_type)}, "
                f"content={bool(attachment.payload)}"
            )

        kind, extractor = self._select(attachment.mime_type)
        data = decode_payload(attachment.payload)
        if not data:
            raise InvalidAttachment(f"File content is empty. File: {attachment.name}")

        try:
            return await asyncio.wait_for(asyncio.to_thread(_run_extractor, extractor, data), self.timeout)
        except TimeoutError as exc:
            raise ExtractionTimeout(f"{kind} parsing timeout after {self.timeout:g} seconds") from exc


def _run_extractor(extractor: Extractor, data: bytes) -> ExtractedDocument:
    try:
        return extractor(data)
    except Exception as exc:
        raise ExtractionFailed(f"{type(exc).__name__}: {exc}") from exc

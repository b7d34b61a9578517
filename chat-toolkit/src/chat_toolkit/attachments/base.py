"""
Attachment data model.

An 'Attachment' arrives with an inline payload (base64 or a 'data:' URL), is
uploaded once to object storage and text-extracted once (documents only).
After that it is referenced by its remote URL: 'payload' and the extraction
results are excluded from serialization, so the persisted record only keeps

    {name, type, size, remoteUrl, remoteDeletionHandle, uploadedAt}

'extracted_text' is memoized per instance. 'extraction_lock' lets concurrent
callers within one request agree on a single extraction.
"""

import asyncio
import base64
import binascii

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel


class Attachment(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    mime_type: str = Field(
        default="",
        validation_alias=AliasChoices("type", "mimeType", "mime_type"),
        serialization_alias="type",
    )
    size: int = 0
    payload: str | None = Field(
        default=None,
        validation_alias=AliasChoices("payload", "content"),
        exclude=True,
    )
    remote_url: str | None = None
    remote_deletion_handle: str | None = None
    uploaded_at: int | None = None

    extracted_text: str | None = Field(default=None, exclude=True)
    summary: str | None = Field(default=None, exclude=True)
    word_count: int | None = Field(default=None, exclude=True)

    _extraction_lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def is_uploaded(self) -> bool:
        return bool(self.remote_url)

    @property
    def extraction_lock(self) -> asyncio.Lock:
        return self._extraction_lock

    def inline_data_url(self) -> str | None:
        """The payload as a 'data:' URL, wrapping a bare base64 payload if needed."""
        if not self.payload:
            return None
        if self.payload.startswith("data:"):
            return self.payload
        return f"data:{self.mime_type or 'application/octet-stream'};base64,{self.payload}"


def strip_data_url(payload: str) -> str:
    if payload.startswith("data:"):
        _, _, data = payload.partition(",")
        return data
    return payload


def decode_payload(payload: str) -> bytes:
    """Decode an inline payload to raw bytes.

    Payloads that are not valid base64 are taken to be UTF-8 text, which is how
    some clients send plain-text files.
    """
    data = strip_data_url(payload).strip()
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return data.encode("utf-8")

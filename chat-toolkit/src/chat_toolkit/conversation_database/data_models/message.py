"""
Message data model.

A 'Message' is one turn of a conversation as it is stored: its 'content' is
always a non-empty display string. Segment lists produced while assembling a
model request are flattened on the way in by 'flatten_content', and empty or
malformed content is replaced by a sentinel placeholder. Sentinels are for
display only; 'ContentNormalizer' never forwards them to the model as user text.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chat_toolkit.attachments.base import Attachment
from chat_toolkit.llms.base import ImageSegment, Roles, TextSegment
from chat_toolkit.utils.time import get_current_timestamp

EMPTY_MESSAGE = "[Empty message]"
EMPTY_MESSAGE_WITH_FILES = "[Empty message with files]"
INVALID_MESSAGE = "[Invalid message content]"
EMPTY_RESPONSE = "[Empty response]"
FILE_UPLOADED = "[File uploaded]"

SENTINELS = frozenset({EMPTY_MESSAGE, EMPTY_MESSAGE_WITH_FILES, INVALID_MESSAGE, EMPTY_RESPONSE, FILE_UPLOADED})


def _segment_text(segment: Any) -> str:
    if isinstance(segment, TextSegment):
        return segment.text
    if isinstance(segment, ImageSegment):
        return "[Image]"
    if isinstance(segment, dict):
        if segment.get("type") == "text":
            return str(segment.get("text") or "")
        if segment.get("type") == "image":
            return "[Image]"
    return ""


def flatten_content(content: Any) -> str:
    """Collapse any content shape into the non-empty display string that is stored."""
    if isinstance(content, str):
        return content if content.strip() else EMPTY_MESSAGE
    if isinstance(content, list):
        return " ".join(_segment_text(segment) for segment in content).strip() or EMPTY_MESSAGE
    return INVALID_MESSAGE


class Message(BaseModel):
    """
    A single turn within a conversation.

    'files' is only ever populated on user messages. Once persisted, each file
    is reduced to its remote reference (see 'Attachment').
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    role: Roles
    content: str
    timestamp: int = Field(default_factory=get_current_timestamp)
    files: list[Attachment] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def _normalize_content(cls, value: Any) -> str:
        return flatten_content(value)

    @property
    def is_placeholder(self) -> bool:
        return self.content in SENTINELS

"""
Core LLM abstractions and message data models.

All concrete LLM backends ('OpenAILLM', 'LocalLLM') implement the 'LLM' ABC.
The shared message format ('LLMMessage') is backend-agnostic so the pipeline
never needs to know which provider is in use.

'LLMMessage.content' is either a plain string or a list of content segments
('TextSegment', 'ImageSegment'). The segment form exists only while a request
is being assembled: stored messages always hold a flat string, see
'chat_toolkit.conversation_database.data_models.message.flatten_content'.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class Roles(StrEnum):
    """Conversation roles as used by the OpenAI chat completions API."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class TextSegment(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageSegment(BaseModel):
    """An image reference: a remote URL or an inline 'data:' URL."""

    type: Literal["image"] = "image"
    image: str


ContentSegment = Annotated[TextSegment | ImageSegment, Field(discriminator="type")]


class LLMMessage(BaseModel):
    """A single message in a conversation sent to or received from an LLM."""

    content: str | list[ContentSegment] = ""
    role: Roles = Roles.ASSISTANT

    @property
    def has_images(self) -> bool:
        return isinstance(self.content, list) and any(isinstance(s, ImageSegment) for s in self.content)


class LLM(ABC):
    """
    Abstract base class for language model backends.

    Concrete implementations adapt a specific API client to a common interface.
    'max_tokens' caps the length of the reply; 'None' leaves the provider default.
    Implementations raise 'ModelProviderError' for any provider-side failure.
    """

    model_name: str

    @abstractmethod
    async def generate(self, conversation: list[LLMMessage], max_tokens: int | None = None) -> LLMMessage:
        """Return a single complete response for the given conversation."""
        pass

    @abstractmethod
    def generate_stream(
        self, conversation: list[LLMMessage], max_tokens: int | None = None
    ) -> AsyncGenerator[LLMMessage, None]:
        """Yield response deltas as they arrive from the model."""
        pass

"""
Model invocation in blocking and streaming mode.

'ModelInvoker' holds one 'LLM' per 'ModelVariant' and exposes both call styles
behind the same result contract:

    'complete'        - returns the full reply text; a blank reply becomes
                        '[Empty response]'.
    'stream_complete' - async generator of 'StreamEvent's: zero or more
                        'StreamDelta's, then exactly one terminal event
                        ('StreamCompleted' or 'StreamFailed').

A stream moves through IDLE -> OPENED -> EMITTING* -> COMPLETED | FAILED -> CLOSED.
Persistence runs inside the stream, through the 'finalize' callback, before the
terminal event is yielded, so a client that sees 'done: true' with a message
knows the reply is stored. 'fullContent' is always the concatenation of the
deltas; only the stored message turns a blank reply into '[Empty response]'.
If storing fails, the terminal event is a 'StreamFailed' with reason
'persistence' that still carries the reply text.

Events serialize to the wire frames with 'StreamEvent.to_frame()'.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from enum import StrEnum
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chat_toolkit.conversation_database.data_models.conversation import Conversation
from chat_toolkit.conversation_database.data_models.message import EMPTY_RESPONSE, Message
from chat_toolkit.exceptions import ModelProviderError, PersistenceError
from chat_toolkit.llms.base import LLM, LLMMessage
from chat_toolkit.pipeline.assembler import ModelSelection, ModelVariant


class StreamState(StrEnum):
    IDLE = "idle"
    OPENED = "opened"
    EMITTING = "emitting"
    COMPLETED = "completed"
    FAILED = "failed"
    CLOSED = "closed"


_TRANSITIONS: dict[StreamState, set[StreamState]] = {
    StreamState.IDLE: {StreamState.OPENED},
    StreamState.OPENED: {StreamState.EMITTING, StreamState.COMPLETED, StreamState.FAILED},
    StreamState.EMITTING: {StreamState.EMITTING, StreamState.COMPLETED, StreamState.FAILED},
    StreamState.COMPLETED: {StreamState.CLOSED},
    StreamState.FAILED: {StreamState.CLOSED},
    StreamState.CLOSED: set(),
}


class StreamStateMachine:
    def __init__(self) -> None:
        self.state = StreamState.IDLE

    def advance(self, target: StreamState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal stream transition {self.state} -> {target}")
        if target != self.state:
            logger.debug(f"Stream state {self.state} -> {target}")
        self.state = target


class FailureReason(StrEnum):
    MODEL = "model"
    PERSISTENCE = "persistence"


class StreamEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    done: bool = False

    def to_frame(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StreamDelta(StreamEvent):
    content: str
    full_content: str
    done: Literal[False] = False


class StreamCompleted(StreamEvent):
    content: Literal[""] = ""
    full_content: str
    done: Literal[True] = True
    message: Message
    updated_conversation: Conversation | None = Field(default=None, serialization_alias="updatedChat")


class StreamFailed(StreamEvent):
    error: str
    done: Literal[True] = True
    reason: FailureReason = FailureReason.MODEL
    full_content: str | None = None


Finalizer = Callable[[str], Awaitable[tuple[Message, Conversation | None]]]


class ModelInvoker:
    def __init__(self, llms: dict[ModelVariant, LLM]) -> None:
        if ModelVariant.TEXT not in llms:
            raise ValueError("A text model is required")
        self.llms = llms

    def _llm_for(self, selection: ModelSelection) -> LLM:
        llm = self.llms.get(selection.variant) or self.llms[ModelVariant.TEXT]
        logger.debug(f"Using {llm.model_name} for the {selection.variant} variant")
        return llm

    async def complete(self, messages: list[LLMMessage], selection: ModelSelection) -> str:
        llm = self._llm_for(selection)
        try:
            reply = await llm.generate(messages, max_tokens=selection.max_tokens)
        except ModelProviderError:
            raise
        except Exception as exc:
            raise ModelProviderError(str(exc)) from exc

        text = reply.content if isinstance(reply.content, str) else ""
        return text if text.strip() else EMPTY_RESPONSE

    async def stream_complete(
        self, messages: list[LLMMessage], selection: ModelSelection, finalize: Finalizer
    ) -> AsyncGenerator[StreamEvent, None]:
        machine = StreamStateMachine()
        llm = self._llm_for(selection)
        full_content = ""

        machine.advance(StreamState.OPENED)
        try:
            async for chunk in llm.generate_stream(messages, max_tokens=selection.max_tokens):
                delta = chunk.content if isinstance(chunk.content, str) else ""
                if not delta:
                    continue
                machine.advance(StreamState.EMITTING)
                full_content += delta
                yield StreamDelta(content=delta, full_content=full_content)
        except Exception as exc:
            logger.error(f"Model stream failed after {len(full_content)} characters: {exc}")
            machine.advance(StreamState.FAILED)
            yield StreamFailed(
                error=f"Streaming error. Details: {exc}",
                reason=FailureReason.MODEL,
                full_content=full_content or None,
            )
            machine.advance(StreamState.CLOSED)
            return

        final_text = full_content if full_content.strip() else EMPTY_RESPONSE
        try:
            message, updated_conversation = await finalize(final_text)
        except PersistenceError as exc:
            logger.error(f"Reply generated but not saved: {exc}")
            machine.advance(StreamState.FAILED)
            yield StreamFailed(error=str(exc), reason=FailureReason.PERSISTENCE, full_content=full_content)
            machine.advance(StreamState.CLOSED)
            return

        machine.advance(StreamState.COMPLETED)
        yield StreamCompleted(full_content=full_content, message=message, updated_conversation=updated_conversation)
        machine.advance(StreamState.CLOSED)

"""
Builds the final model request for a turn.

'ConversationAssembler.assemble' normalizes the whole history, adds the memory
preamble to the newest user message only and decides which model variant
serves the turn. A turn whose newest message carries an image goes to the
vision variant with a bounded reply length; everything else goes to the text
variant with the provider default.
"""

from enum import StrEnum

from loguru import logger
from pydantic import BaseModel

from chat_toolkit.conversation_database.data_models.message import Message
from chat_toolkit.llms.base import LLMMessage, Roles, TextSegment
from chat_toolkit.pipeline.normalizer import ContentNormalizer

DEFAULT_VISION_MAX_TOKENS = 1000


class ModelVariant(StrEnum):
    TEXT = "text"
    VISION = "vision"


class ModelSelection(BaseModel):
    variant: ModelVariant = ModelVariant.TEXT
    max_tokens: int | None = None


class AssembledConversation(BaseModel):
    messages: list[LLMMessage]
    selection: ModelSelection


class ConversationAssembler:
    """
    Attributes:
        normalizer: Converts each stored message to model content.
        system_prompt: Optional instruction placed before the history.
        vision_max_tokens: Reply cap used whenever the vision variant is selected.
    """

    def __init__(
        self,
        normalizer: ContentNormalizer | None = None,
        system_prompt: str | None = None,
        vision_max_tokens: int = DEFAULT_VISION_MAX_TOKENS,
    ) -> None:
        self.normalizer = normalizer or ContentNormalizer()
        self.system_prompt = system_prompt
        self.vision_max_tokens = vision_max_tokens

    def select_model(self, messages: list[Message]) -> ModelSelection:
        newest = messages[-1] if messages else None
        if newest is not None and any(attachment.is_image for attachment in newest.files):
            return ModelSelection(variant=ModelVariant.VISION, max_tokens=self.vision_max_tokens)
        return ModelSelection(variant=ModelVariant.TEXT)

    def assemble(self, messages: list[Message], preamble: str = "") -> AssembledConversation:
        llm_messages = self.normalizer.to_llm_messages(messages)
        if preamble and llm_messages and llm_messages[-1].role == Roles.USER:
            llm_messages[-1] = _with_preamble(llm_messages[-1], preamble)

        if self.system_prompt:
            llm_messages.insert(0, LLMMessage(role=Roles.SYSTEM, content=self.system_prompt))

        selection = self.select_model(messages)
        logger.info(
            f"Assembled {len(llm_messages)} message(s) for the {selection.variant} model "
            f"(max_tokens={selection.max_tokens}, memory={'yes' if preamble else 'no'})"
        )
        return AssembledConversation(messages=llm_messages, selection=selection)


def _with_preamble(message: LLMMessage, preamble: str) -> LLMMessage:
    if isinstance(message.content, str):
        return message.model_copy(update={"content": preamble + message.content})

    segments = list(message.content)
    for i, segment in enumerate(segments):
        if isinstance(segment, TextSegment):
            segments[i] = TextSegment(text=preamble + segment.text)
            break
    else:
        segments.insert(0, TextSegment(text=preamble))
    return message.model_copy(update={"content": segments})

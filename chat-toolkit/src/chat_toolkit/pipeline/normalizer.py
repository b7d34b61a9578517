"""
Stored messages to model-ready content.

'ContentNormalizer.normalize' is the one place where the stored string form of
a message turns into what the model sees. Only user messages with files become
a segment list:

    - free text: the message content, unless it is a display placeholder
    - one '\\n\\n[<name> Content]\\n<text>' block per extracted document
    - one 'ImageSegment' per image, remote URL first, inline payload second

The reverse direction, segment list to stored string, is 'flatten_content'.
"""

from loguru import logger

from chat_toolkit.conversation_database.data_models.message import FILE_UPLOADED, SENTINELS, Message
from chat_toolkit.llms.base import ContentSegment, ImageSegment, LLMMessage, Roles, TextSegment


class ContentNormalizer:
    def normalize(self, message: Message) -> str | list[ContentSegment]:
        if message.role != Roles.USER or not message.files:
            return message.content

        free_text = "" if message.content in SENTINELS else message.content
        for attachment in message.files:
            if not attachment.is_image and attachment.extracted_text:
                free_text += f"\n\n[{attachment.name} Content]\n{attachment.extracted_text}"

        segments: list[ContentSegment] = []
        if free_text.strip():
            segments.append(TextSegment(text=free_text))

        for attachment in message.files:
            if not attachment.is_image:
                continue
            image = attachment.remote_url or attachment.inline_data_url()
            if image is None:
                logger.debug(f"Skipping image {attachment.name!r} without a remote URL or payload")
                continue
            segments.append(ImageSegment(image=image))

        if not segments:
            segments.append(TextSegment(text=FILE_UPLOADED))
        return segments

    def to_llm_messages(self, messages: list[Message]) -> list[LLMMessage]:
        return [LLMMessage(role=message.role, content=self.normalize(message)) for message in messages]

"""
Chat controller (Facade).

'ChatController' is the single entry point for application logic. It holds the
injected collaborators and runs one pipeline per submission:

    1. load the conversation (owner check) and start the memory search
    2. upload and extract every attachment concurrently; if the submission fails
       before the user message is stored, this submission's uploads are deleted
    3. commit the user message (append, or edit-truncate)
    4. join the memory preamble and assemble the model request
    5. invoke the model, commit the assistant message, schedule memory write-back

The two public entry points for a submission are:

    'process_submission' - blocking, returns a 'TurnResult'.
    'open_stream'        - runs steps 1-4 eagerly, so validation and upload
                           errors raise before any frame is produced, then
                           returns an async iterator of 'StreamEvent's fed by a
                           background producer through a 'ResponseChannel'.

If the consumer of a stream goes away early, the producer keeps running and
persists the full reply when 'persist_on_disconnect' is set; otherwise it is
cancelled.

The remaining methods manage conversations and memories for a user.
"""

import asyncio
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from loguru import logger
from pydantic import AliasChoices, BaseModel, Field, model_validator

from chat_toolkit.attachments.base import Attachment
from chat_toolkit.attachments.ingestor import AttachmentIngestor
from chat_toolkit.attachments.uploader import RemoteStorageUploader
from chat_toolkit.conversation_database.data_models.conversation import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    ConversationDatabase,
)
from chat_toolkit.conversation_database.data_models.message import EMPTY_MESSAGE_WITH_FILES, Message
from chat_toolkit.exceptions import ConversationNotFound, InvalidSubmission, PersistenceError
from chat_toolkit.llms.base import Roles
from chat_toolkit.memory.augmenter import MemoryAugmenter
from chat_toolkit.memory.base import MemoryService, MemorySnippet
from chat_toolkit.pipeline.assembler import AssembledConversation, ConversationAssembler
from chat_toolkit.pipeline.channel import ResponseChannel
from chat_toolkit.pipeline.invoker import ModelInvoker, StreamEvent, StreamFailed
from chat_toolkit.pipeline.persistence import PersistenceCoordinator
from chat_toolkit.storage.base import ObjectStorage
from chat_toolkit.utils.database import generate_uid
from chat_toolkit.utils.time import get_current_timestamp


class SubmissionInput(BaseModel):
    conversation_id: str = Field(validation_alias=AliasChoices("chatId", "conversationId", "conversation_id"))
    prompt: str = Field(default="", validation_alias=AliasChoices("prompt", "promptText"))
    attachments: list[Attachment] = Field(default_factory=list, validation_alias=AliasChoices("files", "attachments"))
    is_edit: bool = Field(default=False, validation_alias=AliasChoices("isEdit", "is_edit"))
    edit_index: int | None = Field(default=None, validation_alias=AliasChoices("editIndex", "edit_index"))
    stream: bool = Field(default=False, validation_alias=AliasChoices("stream", "streamRequested"))

    @model_validator(mode="after")
    def _check_edit(self) -> "SubmissionInput":
        if self.is_edit and self.edit_index is None:
            raise ValueError("editIndex is required when isEdit is set")
        return self


class TurnResult(BaseModel):
    message: Message
    updated_conversation: Conversation | None = None


@dataclass
class PreparedTurn:
    conversation: Conversation
    user_message: Message
    assembled: AssembledConversation
    is_edit: bool


def display_content(prompt: str, attachments: list[Attachment]) -> str:
    """The user message as stored: trimmed prompt plus a chip per document."""
    parts = [prompt.strip()]
    chips = [f"[File: {attachment.name}]" for attachment in attachments if not attachment.is_image]
    if chips:
        parts.append(", ".join(chips))
    return "\n\n".join(part for part in parts if part) or EMPTY_MESSAGE_WITH_FILES


class ChatController:
    def __init__(
        self,
        conversation_db: ConversationDatabase,
        ingestor: AttachmentIngestor,
        uploader: RemoteStorageUploader,
        augmenter: MemoryAugmenter,
        assembler: ConversationAssembler,
        invoker: ModelInvoker,
        persistence: PersistenceCoordinator,
        storage: ObjectStorage,
        memory_service: MemoryService,
        persist_on_disconnect: bool = True,
    ):
        self.conversation_db = conversation_db
        self.ingestor = ingestor
        self.uploader = uploader
        self.augmenter = augmenter
        self.assembler = assembler
        self.invoker = invoker
        self.persistence = persistence
        self.storage = storage
        self.memory_service = memory_service
        self.persist_on_disconnect = persist_on_disconnect
        self._producers: set[asyncio.Task[None]] = set()

    async def _process_attachment(self, attachment: Attachment) -> None:
        jobs = [self.uploader.upload(attachment)]
        if not attachment.is_image and attachment.payload:
            jobs.append(self.ingestor.extract(attachment))
        await asyncio.gather(*jobs)

    async def _prepare(self, submission: SubmissionInput, user_id: str) -> PreparedTurn:
        if not submission.prompt.strip() and not submission.attachments:
            raise InvalidSubmission("Prompt is required")

        conversation = await self.get_conversation(submission.conversation_id, user_id)
        fresh = [attachment for attachment in submission.attachments if not attachment.is_uploaded]
        memory_task = asyncio.create_task(self.augmenter.augment(submission.prompt, user_id))
        try:
            results = await asyncio.gather(
                *(self._process_attachment(a) for a in submission.attachments), return_exceptions=True
            )
            failures = [result for result in results if isinstance(result, BaseException)]
            if failures:
                raise failures[0]
            if submission.attachments:
                logger.info(f"Processed {len(submission.attachments)} attachment(s) for conversation {conversation.id}")

            user_message = Message(
                role=Roles.USER,
                content=display_content(submission.prompt, submission.attachments),
                files=submission.attachments,
            )
            await self.persistence.commit_user_turn(
                conversation,
                user_message,
                is_edit=submission.is_edit,
                edit_index=submission.edit_index,
                prompt=submission.prompt,
            )
        except Exception:
            memory_task.cancel()
            await self._delete_stored_files(
                [a.remote_deletion_handle for a in fresh if a.remote_deletion_handle]
            )
            raise
        except BaseException:
            memory_task.cancel()
            raise

        preamble = await memory_task
        assembled = self.assembler.assemble(conversation.messages, preamble)
        return PreparedTurn(
            conversation=conversation,
            user_message=user_message,
            assembled=assembled,
            is_edit=submission.is_edit,
        )

    async def _finalize(
        self, prepared: PreparedTurn, user_id: str, text: str
    ) -> tuple[Message, Conversation | None]:
        assistant_message = Message(role=Roles.ASSISTANT, content=text)
        saved = await self.persistence.commit_assistant_turn(prepared.conversation, assistant_message)
        self.persistence.schedule_memory_write(prepared.user_message, assistant_message, user_id)
        return assistant_message, saved if prepared.is_edit else None

    async def process_submission(self, submission: SubmissionInput, user_id: str) -> TurnResult:
        prepared = await self._prepare(submission, user_id)
        text = await self.invoker.complete(prepared.assembled.messages, prepared.assembled.selection)
        try:
            message, updated_conversation = await self._finalize(prepared, user_id, text)
        except PersistenceError as exc:
            logger.error(f"Reply generated but not saved: {exc}")
            exc.full_content = text
            raise
        return TurnResult(message=message, updated_conversation=updated_conversation)

    async def open_stream(self, submission: SubmissionInput, user_id: str) -> AsyncGenerator[StreamEvent, None]:
        prepared = await self._prepare(submission, user_id)
        channel: ResponseChannel[StreamEvent] = ResponseChannel()
        producer = asyncio.create_task(self._produce(prepared, user_id, channel))
        self._producers.add(producer)
        producer.add_done_callback(self._producers.discard)
        return self._consume(channel, producer)

    async def _produce(self, prepared: PreparedTurn, user_id: str, channel: ResponseChannel[StreamEvent]) -> None:
        async def finalize(text: str) -> tuple[Message, Conversation | None]:
            return await self._finalize(prepared, user_id, text)

        terminal_sent = False
        try:
            async for event in self.invoker.stream_complete(
                prepared.assembled.messages, prepared.assembled.selection, finalize
            ):
                await channel.send(event)
                terminal_sent = event.done
        except Exception as exc:
            logger.exception(f"Stream producer for conversation {prepared.conversation.id} failed")
            if not terminal_sent:
                await channel.send(StreamFailed(error=str(exc)))
        finally:
            await channel.close()

    async def _consume(
        self, channel: ResponseChannel[StreamEvent], producer: asyncio.Task[None]
    ) -> AsyncGenerator[StreamEvent, None]:
        finished = False
        try:
            async for event in channel:
                yield event
            finished = True
        finally:
            if not finished and not producer.done():
                channel.detach()
                if self.persist_on_disconnect:
                    logger.info("Client disconnected mid-stream, finishing the reply in the background")
                else:
                    logger.info("Client disconnected mid-stream, cancelling the reply")
                    producer.cancel()

    async def _delete_stored_files(self, handles: list[str]) -> None:
        """Best-effort removal from object storage; failures are only logged."""
        for handle in handles:
            try:
                await self.storage.delete(handle)
            except Exception as exc:
                logger.warning(f"Failed to delete stored file {handle}: {exc}")

    async def drain(self) -> None:
        """Wait for detached stream producers and pending memory writes."""
        if self._producers:
            await asyncio.gather(*self._producers, return_exceptions=True)
        await self.persistence.drain()

    async def create_conversation(self, user_id: str) -> Conversation:
        now = get_current_timestamp()
        conversation = await self.conversation_db.create_conversation(
            Conversation(
                id=generate_uid(),
                user_id=user_id,
                name=DEFAULT_CONVERSATION_TITLE,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        return await self.conversation_db.get_conversations_by_user_id(user_id)

    async def get_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self.conversation_db.get_conversation_by_id(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            raise ConversationNotFound(conversation_id)
        return conversation

    async def rename_conversation(self, conversation_id: str, user_id: str, name: str) -> Conversation:
        if not name.strip():
            raise InvalidSubmission("Name is required")
        conversation = await self.get_conversation(conversation_id, user_id)
        conversation.name = name.strip()
        conversation.updated_at = get_current_timestamp()
        return await self.conversation_db.update_conversation(conversation)

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        conversation = await self.get_conversation(conversation_id, user_id)
        handles = [
            attachment.remote_deletion_handle
            for message in conversation.messages
            for attachment in message.files
            if attachment.remote_deletion_handle
        ]
        await self._delete_stored_files(handles)

        deleted = await self.conversation_db.delete_conversation(conversation_id)
        logger.info(f"Deleted conversation {conversation_id} and {len(handles)} stored file(s)")
        return deleted

    async def list_memories(self, user_id: str) -> list[MemorySnippet]:
        return await self.memory_service.get_all(user_id)

    async def delete_memory(self, memory_id: str, user_id: str) -> bool:
        return await self.memory_service.delete(memory_id, user_id)

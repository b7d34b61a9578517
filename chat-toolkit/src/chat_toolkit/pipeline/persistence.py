"""
Writes both sides of a turn and keeps long-term memory in sync.

'PersistenceCoordinator' is the only component that mutates a conversation's
message list. A plain submission appends the user message; an edit truncates
the history to 'edit_index + 1' and replaces the message at 'edit_index', so
every later turn is discarded and regenerated. A failed write leaves the
in-memory conversation as it was and raises 'PersistenceError'.

Memory write-back is a side channel: 'schedule_memory_write' starts it as a
background task that logs failures and never affects the turn's result.
"""

import asyncio

from loguru import logger

from chat_toolkit.conversation_database.data_models.conversation import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    ConversationDatabase,
)
from chat_toolkit.conversation_database.data_models.message import Message
from chat_toolkit.exceptions import InvalidEditIndex, PersistenceError
from chat_toolkit.llms.base import Roles
from chat_toolkit.memory.base import MemoryEntry, MemoryService
from chat_toolkit.utils.time import get_current_timestamp

TITLE_WORDS = 2


def derive_title(prompt: str | None) -> str | None:
    words = (prompt or "").split()
    return " ".join(words[:TITLE_WORDS]) if words else None


class PersistenceCoordinator:
    def __init__(self, conversation_db: ConversationDatabase, memory_service: MemoryService | None = None) -> None:
        self.conversation_db = conversation_db
        self.memory_service = memory_service
        self._background: set[asyncio.Task[None]] = set()

    async def _write(self, conversation: Conversation, previous: list[Message], previous_name: str) -> Conversation:
        try:
            return await self.conversation_db.update_conversation(conversation)
        except Exception as exc:
            conversation.messages = previous
            conversation.name = previous_name
            logger.exception(f"Failed to save conversation {conversation.id}")
            raise PersistenceError(f"Failed to save conversation {conversation.id}: {exc}") from exc

    async def commit_user_turn(
        self,
        conversation: Conversation,
        message: Message,
        is_edit: bool = False,
        edit_index: int | None = None,
        prompt: str | None = None,
    ) -> Conversation:
        previous = list(conversation.messages)
        previous_name = conversation.name

        if is_edit:
            if edit_index is None or not 0 <= edit_index < len(previous):
                raise InvalidEditIndex(f"Edit index {edit_index} is out of range for {len(previous)} message(s)")
            if previous[edit_index].role != Roles.USER:
                raise InvalidEditIndex(f"Message at index {edit_index} is not a user message")
            messages = previous[: edit_index + 1]
            messages[edit_index] = message
            logger.info(
                f"Editing message {edit_index} of conversation {conversation.id}, "
                f"discarding {len(previous) - edit_index - 1} later message(s)"
            )
        else:
            messages = previous + [message]

        conversation.messages = messages
        if conversation.name == DEFAULT_CONVERSATION_TITLE:
            conversation.name = derive_title(prompt) or conversation.name
        conversation.updated_at = get_current_timestamp()

        saved = await self._write(conversation, previous, previous_name)
        logger.info(f"Saved user message to conversation {conversation.id} ({len(messages)} message(s))")
        return saved

    async def commit_assistant_turn(self, conversation: Conversation, message: Message) -> Conversation:
        previous = list(conversation.messages)
        conversation.messages = previous + [message]
        conversation.updated_at = get_current_timestamp()

        saved = await self._write(conversation, previous, conversation.name)
        logger.info(f"Saved assistant message to conversation {conversation.id}")
        return saved

    async def write_memory(self, user_message: Message, assistant_message: Message, user_id: str) -> None:
        if self.memory_service is None:
            return
        entries = [
            MemoryEntry(role=Roles.USER, content=user_message.content),
            MemoryEntry(role=Roles.ASSISTANT, content=assistant_message.content),
        ]
        try:
            await self.memory_service.add(entries, user_id)
        except Exception as exc:
            logger.warning(f"Memory write-back failed for user {user_id}: {exc}")
            return
        logger.debug(f"Memory write-back stored {len(entries)} entries for user {user_id}")

    def schedule_memory_write(self, user_message: Message, assistant_message: Message, user_id: str) -> asyncio.Task[None]:
        task = asyncio.create_task(self.write_memory(user_message, assistant_message, user_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for pending memory writes, e.g. on shutdown."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

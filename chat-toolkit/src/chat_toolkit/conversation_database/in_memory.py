"""
In-memory conversation store.

Records are kept in their serialized form and re-validated on read, the way a
document database round-trips them. Fields excluded from serialization (inline
attachment payloads, extracted text) are therefore gone after a save, exactly
as they would be in production.
"""

from typing import Any

from chat_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase


class InMemoryConversationDatabase(ConversationDatabase):
    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        if conversation.id in self.records:
            raise ValueError(f"Conversation with id {conversation.id} already exists")
        self.records[conversation.id] = conversation.model_dump(by_alias=True)
        return Conversation.model_validate(self.records[conversation.id])

    async def get_conversations_by_user_id(self, user_id: str) -> list[Conversation]:
        conversations = [
            Conversation.model_validate(record) for record in self.records.values() if record["userId"] == user_id
        ]
        return sorted(conversations, key=lambda c: c.updated_at, reverse=True)

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        record = self.records.get(conversation_id)
        return Conversation.model_validate(record) if record is not None else None

    async def update_conversation(self, conversation: Conversation) -> Conversation:
        if conversation.id not in self.records:
            raise ValueError(f"Conversation with id {conversation.id} not found")
        self.records[conversation.id] = conversation.model_dump(by_alias=True)
        return Conversation.model_validate(self.records[conversation.id])

    async def delete_conversation(self, conversation_id: str) -> bool:
        return self.records.pop(conversation_id, None) is not None

"""
Conversation data model and storage interface.

The 'ConversationDatabase' ABC is the pluggable document store for conversation
records. A record embeds its ordered messages, so a single
'update_conversation' call persists a whole turn (or an edit-truncate) at once.
Records serialize with camelCase keys:

    {id, userId, name, messages: [...], createdAt, updatedAt}

Concrete implementation: 'InMemoryConversationDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chat_toolkit.conversation_database.data_models.message import Message

DEFAULT_CONVERSATION_TITLE = "New Chat"


class Conversation(BaseModel):
    """A single conversation owned by a user."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    name: str = DEFAULT_CONVERSATION_TITLE
    messages: list[Message] = Field(default_factory=list)
    created_at: int
    updated_at: int


class ConversationDatabase(ABC):
    """Abstract repository for 'Conversation' records."""

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        pass

    @abstractmethod
    async def get_conversations_by_user_id(self, user_id: str) -> list[Conversation]:
        pass

    @abstractmethod
    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        pass

    @abstractmethod
    async def update_conversation(self, conversation: Conversation) -> Conversation:
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        pass

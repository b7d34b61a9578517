"""
Long-term memory service abstractions.

A 'MemoryService' stores role/content pairs tagged by user and returns ranked
'MemorySnippet's for a query. Implementations raise 'MemoryServiceError' on
failure; callers in the pipeline treat memory as best-effort and never let
those errors reach the user.

Concrete implementations: 'Mem0MemoryService', 'InMemoryMemoryService'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from chat_toolkit.llms.base import Roles


class MemorySnippet(BaseModel):
    """A remembered fact returned for a query, with its relevance score."""

    id: str | None = None
    text: str
    score: float | None = None


class MemoryEntry(BaseModel):
    """A role/content pair sent to the memory service for one user."""

    role: Roles
    content: str


class MemoryService(ABC):
    @abstractmethod
    async def search(self, query: str, user_id: str) -> list[MemorySnippet]:
        """Return snippets relevant to 'query', best match first."""
        pass

    @abstractmethod
    async def add(self, entries: list[MemoryEntry], user_id: str) -> None:
        pass

    @abstractmethod
    async def get_all(self, user_id: str) -> list[MemorySnippet]:
        pass

    @abstractmethod
    async def delete(self, memory_id: str, user_id: str) -> bool:
        pass

"""
Memory service backed by the mem0 platform.

mem0 extracts facts from the role/content pairs it is given and answers
searches with ranked memories. Depending on the API version the client returns
either a bare list or a '{"results": [...]}' envelope; both are accepted. The
memory body is read from 'memory', falling back to 'text' and 'content'.
"""

from typing import Any

from loguru import logger
from mem0 import AsyncMemoryClient  # type: ignore[import-untyped]

from chat_toolkit.exceptions import MemoryServiceError
from chat_toolkit.memory.base import MemoryEntry, MemoryService, MemorySnippet


def _unwrap_results(response: Any) -> list[dict[str, Any]]:
    if isinstance(response, dict):
        response = response.get("results", [])
    if not isinstance(response, list):
        return []
    return [item for item in response if isinstance(item, dict)]


def _to_snippet(item: dict[str, Any]) -> MemorySnippet:
    text = item.get("memory") or item.get("text") or item.get("content") or ""
    return MemorySnippet(id=item.get("id"), text=str(text), score=item.get("score"))


class Mem0MemoryService(MemoryService):
    def __init__(self, api_key: str, client: AsyncMemoryClient | None = None) -> None:
        self.client = client or AsyncMemoryClient(api_key=api_key)

    async def search(self, query: str, user_id: str) -> list[MemorySnippet]:
        try:
            response = await self.client.search(query, user_id=user_id)
        except Exception as exc:
            raise MemoryServiceError(f"mem0 search failed: {exc}") from exc
        return [_to_snippet(item) for item in _unwrap_results(response)]

    async def add(self, entries: list[MemoryEntry], user_id: str) -> None:
        messages = [{"role": entry.role.value, "content": entry.content} for entry in entries]
        try:
            result = await self.client.add(messages, user_id=user_id)
        except Exception as exc:
            raise MemoryServiceError(f"mem0 add failed: {exc}") from exc
        logger.debug(f"mem0 add for user {user_id}: {result}")

    async def get_all(self, user_id: str) -> list[MemorySnippet]:
        try:
            response = await self.client.get_all(user_id=user_id)
        except Exception as exc:
            raise MemoryServiceError(f"mem0 get_all failed: {exc}") from exc
        return [_to_snippet(item) for item in _unwrap_results(response)]

    async def delete(self, memory_id: str, user_id: str) -> bool:
        # mem0 memory ids are global; ownership is checked by listing first.
        owned = {snippet.id for snippet in await self.get_all(user_id)}
        if memory_id not in owned:
            return False
        try:
            await self.client.delete(memory_id)
        except Exception as exc:
            raise MemoryServiceError(f"mem0 delete failed: {exc}") from exc
        return True

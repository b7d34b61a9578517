"""
Memory-augmented preamble for the newest user message.

'MemoryAugmenter.augment' is strictly best-effort: a slow, failing or empty
memory service yields an empty preamble and the request continues unchanged.
"""

import asyncio

from loguru import logger

from chat_toolkit.memory.base import MemoryService

PREAMBLE_TEMPLATE = (
    "Based on our previous conversations, here's what I remember about you:\n"
    "{snippets}\n\n"
    "Now, regarding your current question:\n"
)
DEFAULT_MEMORY_TIMEOUT = 5.0


class MemoryAugmenter:
    def __init__(self, memory_service: MemoryService, timeout: float = DEFAULT_MEMORY_TIMEOUT) -> None:
        self.memory_service = memory_service
        self.timeout = timeout

    async def augment(self, query_text: str, user_id: str) -> str:
        if not query_text.strip():
            return ""

        try:
            snippets = await asyncio.wait_for(self.memory_service.search(query_text, user_id), self.timeout)
        except TimeoutError:
            logger.warning(f"Memory search timed out after {self.timeout:g}s for user {user_id}")
            return ""
        except Exception as exc:
            logger.warning(f"Memory search failed for user {user_id}: {exc}")
            return ""

        bodies = [snippet.text for snippet in snippets if snippet.text.strip()]
        logger.debug(f"Memory search returned {len(bodies)} snippet(s) for user {user_id}")
        if not bodies:
            return ""
        return PREAMBLE_TEMPLATE.format(snippets="\n".join(bodies))

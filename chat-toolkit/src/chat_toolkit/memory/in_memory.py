"""
Process-local memory service ranked with BM25.

Every stored entry is one memory. Search tokenises with a lowercase
word-boundary regex, keeps only memories that share at least one term with the
query and orders them by BM25 Okapi score. The index is rebuilt per search,
which is fine for the per-user corpus sizes this is meant for (development,
tests, single-user installs).
"""

import re
from collections import defaultdict

from rank_bm25 import BM25Okapi  # type: ignore[import-untyped]

from chat_toolkit.llms.base import Roles
from chat_toolkit.memory.base import MemoryEntry, MemoryService, MemorySnippet
from chat_toolkit.utils.database import generate_uid


class InMemoryMemoryService(MemoryService):
    """
    Attributes:
        top_k: Maximum number of snippets returned per search.
        roles: Roles whose content is remembered. Assistant replies are left out
            by default so the memory reflects what the user said about themselves.
    """

    def __init__(self, top_k: int = 5, roles: tuple[Roles, ...] = (Roles.USER,)) -> None:
        self.top_k = top_k
        self.roles = roles
        self._memories: dict[str, list[MemorySnippet]] = defaultdict(list)

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        return re.findall(r"\b\w+\b", text.lower())

    async def search(self, query: str, user_id: str) -> list[MemorySnippet]:
        corpus = self._memories.get(user_id, [])
        query_terms = self._tokenize(query)
        if not corpus or not query_terms:
            return []

        tokenized = [self._tokenize(memory.text) for memory in corpus]
        scores: list[float] = BM25Okapi(tokenized).get_scores(query_terms).tolist()
        wanted = set(query_terms)
        candidates = [i for i, tokens in enumerate(tokenized) if wanted.intersection(tokens)]
        ranked = sorted(candidates, key=lambda i: scores[i], reverse=True)[: self.top_k]
        return [corpus[i].model_copy(update={"score": scores[i]}) for i in ranked]

    async def add(self, entries: list[MemoryEntry], user_id: str) -> None:
        for entry in entries:
            if entry.role in self.roles and self._tokenize(entry.content):
                self._memories[user_id].append(MemorySnippet(id=generate_uid(), text=entry.content))

    async def get_all(self, user_id: str) -> list[MemorySnippet]:
        return list(self._memories.get(user_id, []))

    async def delete(self, memory_id: str, user_id: str) -> bool:
        memories = self._memories.get(user_id, [])
        remaining = [memory for memory in memories if memory.id != memory_id]
        if len(remaining) == len(memories):
            return False
        self._memories[user_id] = remaining
        return True

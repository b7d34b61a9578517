from collections.abc import Callable
from typing import Any

import pytest
from fakes import FlakyConversationDatabase, ScriptedLLM

from chat_toolkit.attachments.ingestor import AttachmentIngestor
from chat_toolkit.attachments.uploader import RemoteStorageUploader
from chat_toolkit.conversation_database.controller import ChatController
from chat_toolkit.memory.augmenter import MemoryAugmenter
from chat_toolkit.memory.base import MemoryService
from chat_toolkit.memory.in_memory import InMemoryMemoryService
from chat_toolkit.pipeline.assembler import ConversationAssembler, ModelVariant
from chat_toolkit.pipeline.invoker import ModelInvoker
from chat_toolkit.pipeline.persistence import PersistenceCoordinator
from chat_toolkit.storage.base import ObjectStorage
from chat_toolkit.storage.in_memory import InMemoryObjectStorage


@pytest.fixture
def conversation_db() -> FlakyConversationDatabase:
    return FlakyConversationDatabase()


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def memory_service() -> InMemoryMemoryService:
    return InMemoryMemoryService()


@pytest.fixture
def text_llm() -> ScriptedLLM:
    return ScriptedLLM(model_name="text-model")


@pytest.fixture
def vision_llm() -> ScriptedLLM:
    return ScriptedLLM(chunks=["I see", " a cat"], model_name="vision-model")


@pytest.fixture
def make_controller(
    conversation_db: FlakyConversationDatabase,
    storage: InMemoryObjectStorage,
    memory_service: InMemoryMemoryService,
    text_llm: ScriptedLLM,
    vision_llm: ScriptedLLM,
) -> Callable[..., ChatController]:
    def factory(
        storage_backend: ObjectStorage | None = None,
        memory_backend: MemoryService | None = None,
        ingestor: AttachmentIngestor | None = None,
        memory_timeout: float = 1.0,
        **kwargs: Any,
    ) -> ChatController:
        object_storage = storage_backend or storage
        memory = memory_backend or memory_service
        return ChatController(
            conversation_db=conversation_db,
            ingestor=ingestor or AttachmentIngestor(),
            uploader=RemoteStorageUploader(object_storage),
            augmenter=MemoryAugmenter(memory, timeout=memory_timeout),
            assembler=ConversationAssembler(),
            invoker=ModelInvoker({ModelVariant.TEXT: text_llm, ModelVariant.VISION: vision_llm}),
            persistence=PersistenceCoordinator(conversation_db, memory),
            storage=object_storage,
            memory_service=memory,
            **kwargs,
        )

    return factory

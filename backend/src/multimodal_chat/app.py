"""
Service wiring.

Builds every collaborator from 'Settings' once at start-up and hands them to a
single 'ChatController'. Backends are chosen by name:

    LLM_BACKEND      'openai' | 'local'
    MEMORY_BACKEND   'mem0'   | 'in_memory'
    STORAGE_BACKEND  's3'     | 'in_memory'

Conversations are kept in 'InMemoryConversationDatabase'; a persistent store
plugs in through the 'ConversationDatabase' interface.
"""

import sys

from fastapi import FastAPI
from loguru import logger

from chat_toolkit.api.auth.base import HeaderAuthProvider
from chat_toolkit.api.routes import create_app
from chat_toolkit.attachments.ingestor import AttachmentIngestor
from chat_toolkit.attachments.uploader import RemoteStorageUploader
from chat_toolkit.conversation_database.controller import ChatController
from chat_toolkit.conversation_database.in_memory import InMemoryConversationDatabase
from chat_toolkit.llms.base import LLM
from chat_toolkit.llms.local_llm import LocalLLM
from chat_toolkit.llms.openai import OpenAILLM
from chat_toolkit.memory.augmenter import MemoryAugmenter
from chat_toolkit.memory.base import MemoryService
from chat_toolkit.memory.in_memory import InMemoryMemoryService
from chat_toolkit.memory.mem0 import Mem0MemoryService
from chat_toolkit.pipeline.assembler import ConversationAssembler, ModelVariant
from chat_toolkit.pipeline.invoker import ModelInvoker
from chat_toolkit.pipeline.persistence import PersistenceCoordinator
from chat_toolkit.storage.base import ObjectStorage
from chat_toolkit.storage.in_memory import InMemoryObjectStorage
from chat_toolkit.storage.s3 import S3ObjectStorage

from multimodal_chat.config import Settings, _get_secret


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def build_llm(backend: str, model_name: str, settings: Settings) -> LLM:
    """Instantiate the LLM for the requested backend.

    For 'openai', the key is loaded from /secrets/OPENAI_API_KEY or the OPENAI_API_KEY env var.
    For 'local', LOCAL_LLM_API_KEY is optional.
    """
    backend = backend.lower().strip()
    match backend:
        case "openai":
            logger.info(f"LLM backend: OpenAI ({model_name})")
            return OpenAILLM(model_name=model_name, openai_api_key=_get_secret("OPENAI_API_KEY"))
        case "local":
            logger.info(f"LLM backend: local server at {settings.local_llm_base_url} ({model_name})")
            try:
                api_key = _get_secret("LOCAL_LLM_API_KEY")
            except ValueError:
                api_key = "not-needed"
            return LocalLLM(model_name=model_name, base_url=settings.local_llm_base_url, api_key=api_key)
        case _:
            raise ValueError(f"Unsupported backend {backend!r}. Choose 'openai' or 'local'.")


def build_memory(settings: Settings) -> MemoryService:
    match settings.memory_backend.lower().strip():
        case "mem0":
            logger.info("Memory backend: mem0")
            return Mem0MemoryService(api_key=_get_secret("MEM0AI_KEY"))
        case "in_memory":
            logger.info("Memory backend: in-memory BM25")
            return InMemoryMemoryService()
        case other:
            raise ValueError(f"Unsupported memory backend {other!r}. Choose 'mem0' or 'in_memory'.")


def build_storage(settings: Settings) -> ObjectStorage:
    match settings.storage_backend.lower().strip():
        case "s3":
            if not settings.s3_bucket_name:
                raise ValueError("S3_BUCKET_NAME is required for the 's3' storage backend")
            logger.info(f"Storage backend: S3 bucket {settings.s3_bucket_name}")
            return S3ObjectStorage(
                bucket_name=settings.s3_bucket_name,
                region=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
                public_base_url=settings.s3_public_base_url,
            )
        case "in_memory":
            logger.info("Storage backend: in-memory")
            return InMemoryObjectStorage()
        case other:
            raise ValueError(f"Unsupported storage backend {other!r}. Choose 's3' or 'in_memory'.")


def build_controller(settings: Settings) -> ChatController:
    conversation_db = InMemoryConversationDatabase()
    storage = build_storage(settings)
    memory_service = build_memory(settings)
    invoker = ModelInvoker(
        {
            ModelVariant.TEXT: build_llm(settings.llm_backend, settings.text_model, settings),
            ModelVariant.VISION: build_llm(settings.llm_backend, settings.vision_model, settings),
        }
    )
    return ChatController(
        conversation_db=conversation_db,
        ingestor=AttachmentIngestor(timeout=settings.extraction_timeout),
        uploader=RemoteStorageUploader(storage),
        augmenter=MemoryAugmenter(memory_service, timeout=settings.memory_timeout),
        assembler=ConversationAssembler(
            system_prompt=settings.system_prompt,
            vision_max_tokens=settings.vision_max_tokens,
        ),
        invoker=invoker,
        persistence=PersistenceCoordinator(conversation_db, memory_service),
        storage=storage,
        memory_service=memory_service,
        persist_on_disconnect=settings.persist_on_disconnect,
    )


def create_application(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    controller = build_controller(settings)
    app = create_app(controller, HeaderAuthProvider(header_name=settings.user_id_header))
    app.state.controller = controller
    return app

"""
HTTP surface of the chat pipeline.

'create_app' binds a 'ChatController' and an 'AuthProvider' to a FastAPI
application. Every route resolves the authenticated user id first and only
ever touches that user's conversations and memories.

'/api/chat/ai' answers either with newline-delimited JSON frames
('application/x-ndjson') when the submission asks for a stream, or with a
single '{success, data}' envelope. Validation and upload errors are reported
as '{success: false, error}' before any frame is written. A reply that was
generated but could not be saved comes back with status 500 as
'{success: false, error, reason: "persistence", fullContent}'.
"""

import json
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from chat_toolkit.api.auth.base import AuthProvider
from chat_toolkit.conversation_database.controller import ChatController, SubmissionInput
from chat_toolkit.exceptions import ChatPipelineError, ConversationNotFound, PersistenceError
from chat_toolkit.pipeline.invoker import FailureReason, StreamEvent


class ConversationRef(BaseModel):
    chat_id: str = Field(alias="chatId")


class RenameInput(ConversationRef):
    name: str


class MemoryRef(BaseModel):
    memory_id: str = Field(alias="memoryId")


def _failure(error: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


def _error_status(exc: ChatPipelineError) -> int:
    if isinstance(exc, ConversationNotFound):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_400_BAD_REQUEST


async def _ndjson(events: AsyncGenerator[StreamEvent, None]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield json.dumps(event.to_frame()) + "\n"
    finally:
        await events.aclose()


def create_app(controller: ChatController, auth_provider: AuthProvider) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await controller.drain()

    app = FastAPI(title="Multimodal chat", lifespan=lifespan)
    auth_provider.bind_to_app(app)
    current_user = Depends(auth_provider.get_current_user_id)

    @app.exception_handler(ChatPipelineError)
    async def pipeline_error_handler(request: Request, exc: ChatPipelineError) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        return _failure(str(exc), _error_status(exc))

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} could not save: {exc}")
        body: dict[str, Any] = {"success": False, "error": str(exc), "reason": FailureReason.PERSISTENCE.value}
        if exc.full_content is not None:
            body["fullContent"] = exc.full_content
        return JSONResponse(body, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.post("/api/chat/ai", response_model=None)
    async def submit(request: Request, user_id: str = current_user) -> Any:
        try:
            submission = SubmissionInput.model_validate(await request.json())
        except (ValidationError, ValueError) as exc:
            return _failure(f"Invalid request: {exc}")

        if submission.stream:
            events = await controller.open_stream(submission, user_id)
            return StreamingResponse(_ndjson(events), media_type="application/x-ndjson")

        result = await controller.process_submission(submission, user_id)
        body: dict[str, Any] = {"success": True, "data": result.message.model_dump(mode="json", by_alias=True)}
        if result.updated_conversation is not None:
            body["updatedChat"] = result.updated_conversation.model_dump(mode="json", by_alias=True)
        return body

    @app.post("/api/chat/create")
    async def create_chat(user_id: str = current_user) -> dict[str, Any]:
        conversation = await controller.create_conversation(user_id)
        return {"success": True, "data": conversation.model_dump(mode="json", by_alias=True)}

    @app.get("/api/chat/get")
    async def list_chats(user_id: str = current_user) -> dict[str, Any]:
        conversations = await controller.list_conversations(user_id)
        return {"success": True, "data": [c.model_dump(mode="json", by_alias=True) for c in conversations]}

    @app.post("/api/chat/rename")
    async def rename_chat(body: RenameInput, user_id: str = current_user) -> dict[str, Any]:
        conversation = await controller.rename_conversation(body.chat_id, user_id, body.name)
        return {"success": True, "data": conversation.model_dump(mode="json", by_alias=True)}

    @app.post("/api/chat/delete")
    async def delete_chat(body: ConversationRef, user_id: str = current_user) -> dict[str, Any]:
        await controller.delete_conversation(body.chat_id, user_id)
        return {"success": True, "message": "Chat deleted"}

    @app.get("/api/memories")
    async def list_memories(user_id: str = current_user) -> dict[str, Any]:
        memories = await controller.list_memories(user_id)
        return {"success": True, "data": [memory.model_dump(mode="json") for memory in memories]}

    @app.delete("/api/memories", response_model=None)
    async def delete_memory(body: MemoryRef, user_id: str = current_user) -> Any:
        if not await controller.delete_memory(body.memory_id, user_id):
            return _failure("Memory not found", status.HTTP_404_NOT_FOUND)
        return {"success": True, "message": "Memory deleted"}

    return app

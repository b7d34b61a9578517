"""
OpenAI chat completions backend.

Segment lists are mapped to the multi-part content format of the chat
completions API: 'TextSegment' becomes a 'text' part and 'ImageSegment' an
'image_url' part (remote URLs and 'data:' URLs are both accepted by the API).
"""

from collections.abc import AsyncGenerator
from typing import Any

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from chat_toolkit.exceptions import ModelProviderError
from chat_toolkit.llms.base import LLM, ImageSegment, LLMMessage, Roles


def _to_openai_message(message: LLMMessage) -> dict[str, Any]:
    if isinstance(message.content, str):
        return {"role": message.role.value, "content": message.content}

    parts: list[dict[str, Any]] = []
    for segment in message.content:
        if isinstance(segment, ImageSegment):
            parts.append({"type": "image_url", "image_url": {"url": segment.image}})
        else:
            parts.append({"type": "text", "text": segment.text})
    return {"role": message.role.value, "content": parts}


class OpenAILLM(LLM):
    def __init__(
        self,
        model_name: str = "gpt-4o",
        temperature: float | None = None,
        seed: int | None = None,
        openai_api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.model_name = model_name
        self.temperature = temperature
        self.seed = seed
        self.client = AsyncOpenAI(api_key=openai_api_key, base_url=base_url)

    def _request_kwargs(self, conversation: list[LLMMessage], max_tokens: int | None) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": [_to_openai_message(message) for message in conversation],
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if self.seed is not None:
            kwargs["seed"] = self.seed
        return kwargs

    async def generate(self, conversation: list[LLMMessage], max_tokens: int | None = None) -> LLMMessage:
        try:
            completion = await self.client.chat.completions.create(**self._request_kwargs(conversation, max_tokens))
        except OpenAIError as exc:
            logger.error(f"{self.model_name} completion failed: {exc}")
            raise ModelProviderError(str(exc)) from exc

        content = completion.choices[0].message.content if completion.choices else None
        return LLMMessage(role=Roles.ASSISTANT, content=content or "")

    async def generate_stream(
        self, conversation: list[LLMMessage], max_tokens: int | None = None
    ) -> AsyncGenerator[LLMMessage, None]:
        try:
            stream = await self.client.chat.completions.create(
                **self._request_kwargs(conversation, max_tokens), stream=True
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield LLMMessage(role=Roles.ASSISTANT, content=delta)
        except OpenAIError as exc:
            logger.error(f"{self.model_name} stream failed: {exc}")
            raise ModelProviderError(str(exc)) from exc

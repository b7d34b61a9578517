"""
Backend for self-hosted OpenAI-compatible servers (vLLM, LM Studio, llama.cpp).

Vision support depends on the served model; the pipeline routes image turns to
whichever LLM is registered for the vision variant.
"""

from chat_toolkit.llms.openai import OpenAILLM


class LocalLLM(OpenAILLM):
    def __init__(
        self,
        model_name: str,
        base_url: str,
        api_key: str = "not-needed",
        temperature: float | None = None,
        seed: int | None = None,
    ) -> None:
        super().__init__(
            model_name=model_name,
            temperature=temperature,
            seed=seed,
            openai_api_key=api_key,
            base_url=base_url,
        )

"""
Service configuration.

'Settings.from_env' reads every tunable from environment variables. Secrets are
not part of 'Settings'; they are loaded on demand with '_get_secret', which
checks a mounted secret file before the environment.
"""

import os
from pathlib import Path

from pydantic import BaseModel

SECRETS_DIR = Path("/secrets")


def _get_secret(name: str) -> str:
    """Load a secret from a mounted secret file or an environment variable.

    Checks in order:
    1. /secrets/<name> - mounted secret file
    2. <name> environment variable

    Raises ValueError if neither is available.
    """
    secret_file = SECRETS_DIR / name
    if secret_file.exists():
        return secret_file.read_text().strip()
    key = os.environ.get(name, "")
    if not key:
        raise ValueError(
            f"{name} not found. Either:\n"
            f"  - Mount it as a secret file at {secret_file}, or\n"
            f"  - Set the {name} environment variable."
        )
    return key


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_optional(name: str) -> str | None:
    return os.environ.get(name) or None


class Settings(BaseModel):
    llm_backend: str = "openai"
    text_model: str = "gpt-4o"
    vision_model: str = "gpt-4o"
    vision_max_tokens: int = 1000
    local_llm_base_url: str = "http://localhost:8000/v1"
    system_prompt: str | None = None

    memory_backend: str = "mem0"
    memory_timeout: float = 5.0

    storage_backend: str = "s3"
    s3_bucket_name: str | None = None
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    s3_public_base_url: str | None = None

    extraction_timeout: float = 30.0
    persist_on_disconnect: bool = True
    user_id_header: str = "X-User-Id"

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            llm_backend=os.environ.get("LLM_BACKEND", defaults.llm_backend),
            text_model=os.environ.get("TEXT_MODEL", defaults.text_model),
            vision_model=os.environ.get("VISION_MODEL", defaults.vision_model),
            vision_max_tokens=int(os.environ.get("VISION_MAX_TOKENS", defaults.vision_max_tokens)),
            local_llm_base_url=os.environ.get("LOCAL_LLM_BASE_URL", defaults.local_llm_base_url),
            system_prompt=_env_optional("SYSTEM_PROMPT"),
            memory_backend=os.environ.get("MEMORY_BACKEND", defaults.memory_backend),
            memory_timeout=float(os.environ.get("MEMORY_TIMEOUT", defaults.memory_timeout)),
            storage_backend=os.environ.get("STORAGE_BACKEND", defaults.storage_backend),
            s3_bucket_name=_env_optional("S3_BUCKET_NAME"),
            s3_region=os.environ.get("S3_REGION", defaults.s3_region),
            s3_endpoint_url=_env_optional("S3_ENDPOINT_URL"),
            s3_public_base_url=_env_optional("S3_PUBLIC_BASE_URL"),
            extraction_timeout=float(os.environ.get("EXTRACTION_TIMEOUT", defaults.extraction_timeout)),
            persist_on_disconnect=_env_bool("PERSIST_ON_DISCONNECT", defaults.persist_on_disconnect),
            user_id_header=os.environ.get("USER_ID_HEADER", defaults.user_id_header),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level).upper(),
            host=os.environ.get("HOST", defaults.host),
            port=int(os.environ.get("PORT", defaults.port)),
        )

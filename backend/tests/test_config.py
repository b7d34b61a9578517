import pytest
from fastapi.testclient import TestClient

from chat_toolkit.llms.local_llm import LocalLLM
from chat_toolkit.memory.in_memory import InMemoryMemoryService
from chat_toolkit.pipeline.assembler import ModelVariant
from chat_toolkit.storage.in_memory import InMemoryObjectStorage
from multimodal_chat import app as app_module
from multimodal_chat import config
from multimodal_chat.config import Settings


@pytest.fixture
def local_settings() -> Settings:
    return Settings(
        llm_backend="local",
        text_model="llama-3.1-8b",
        vision_model="llava",
        memory_backend="in_memory",
        storage_backend="in_memory",
        persist_on_disconnect=False,
    )


def test_defaults_without_environment(monkeypatch):
    for name in ["LLM_BACKEND", "VISION_MAX_TOKENS", "PERSIST_ON_DISCONNECT", "S3_BUCKET_NAME", "LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.llm_backend == "openai"
    assert settings.vision_max_tokens == 1000
    assert settings.persist_on_disconnect is True
    assert settings.s3_bucket_name is None
    assert settings.extraction_timeout == 30.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LLM_BACKEND", "local")
    monkeypatch.setenv("VISION_MAX_TOKENS", "512")
    monkeypatch.setenv("PERSIST_ON_DISCONNECT", "false")
    monkeypatch.setenv("S3_BUCKET_NAME", "chat-uploads")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.llm_backend == "local"
    assert settings.vision_max_tokens == 512
    assert settings.persist_on_disconnect is False
    assert settings.s3_bucket_name == "chat-uploads"
    assert settings.log_level == "DEBUG"


def test_secret_file_wins_over_environment(monkeypatch, tmp_path):
    (tmp_path / "MEM0AI_KEY").write_text("from-file\n")
    monkeypatch.setattr(config, "SECRETS_DIR", tmp_path)
    monkeypatch.setenv("MEM0AI_KEY", "from-env")

    assert config._get_secret("MEM0AI_KEY") == "from-file"


def test_missing_secret_raises(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "SECRETS_DIR", tmp_path)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="OPENAI_API_KEY not found"):
        config._get_secret("OPENAI_API_KEY")


def test_build_controller_from_settings(local_settings, monkeypatch, tmp_path):
    monkeypatch.setattr(config, "SECRETS_DIR", tmp_path)
    monkeypatch.delenv("LOCAL_LLM_API_KEY", raising=False)

    controller = app_module.build_controller(local_settings)

    assert isinstance(controller.storage, InMemoryObjectStorage)
    assert isinstance(controller.memory_service, InMemoryMemoryService)
    assert isinstance(controller.invoker.llms[ModelVariant.VISION], LocalLLM)
    assert controller.invoker.llms[ModelVariant.VISION].model_name == "llava"
    assert controller.persist_on_disconnect is False


@pytest.mark.parametrize(
    "overrides",
    [{"llm_backend": "ollama"}, {"memory_backend": "redis"}, {"storage_backend": "s3", "s3_bucket_name": None}],
)
def test_unsupported_backends_are_rejected(local_settings, overrides):
    with pytest.raises(ValueError):
        app_module.build_controller(local_settings.model_copy(update=overrides))


def test_application_serves_chat_routes(local_settings):
    app = app_module.create_application(local_settings)

    with TestClient(app) as client:
        response = client.post("/api/chat/create", headers={"X-User-Id": "user-1"})

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "New Chat"

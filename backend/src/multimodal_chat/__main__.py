"""Run the chat service: 'python -m multimodal_chat'."""

import uvicorn

from multimodal_chat.config import Settings


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        "multimodal_chat.app:create_application",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

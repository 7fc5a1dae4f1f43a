"""Run the gateway: ``python -m chat_gateway``."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import uvicorn

from chat_gateway.app import create_app
from chat_gateway.config import get_settings

_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s - %(message)s"


def configure_logging(level: str = "info", log_path: str = "") -> None:
    """Console handler always, file handler when ``log_path`` is set."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(_LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_path:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        root.info("Logging to file: %s", path)


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_path)
    logging.getLogger(__name__).info(
        "Starting chat gateway on %s:%d (backend %s)",
        settings.gateway_host,
        settings.gateway_port,
        settings.llm_backend.value,
    )
    uvicorn.run(
        create_app(settings),
        host=settings.gateway_host,
        port=settings.gateway_port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()

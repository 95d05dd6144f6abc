"""Command that starts the rendering service."""

from __future__ import annotations

import argparse
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Sequence

import uvicorn

from .app import AppState, create_app
from .renderer import RenderError, RenderingEngine
from .settings import get_config

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "app.log"
DEFAULT_LOG_DIR = "./logs"


def configure_logging(log_dir: str | Path = DEFAULT_LOG_DIR) -> logging.Handler:
    """Send debug-level logs to a daily rotated file in ``log_dir``."""
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(directory / LOG_FILE_NAME, when="midnight", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    return handler


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the chart rendering API.")
    parser.add_argument(
        "--log-dir", default=DEFAULT_LOG_DIR, help="directory for the daily log files"
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Start the rendering service with configuration from the environment."""
    args = _parse_args(argv)
    configure_logging(args.log_dir)
    logger.info("Initializing Rendering Service...")

    config = get_config()
    logger.info("run with config: %r", config)

    try:
        engine = RenderingEngine()
    except RenderError as exc:
        raise SystemExit(f"Failed to initialize rendering engine: {exc}") from exc

    state = AppState(engine=engine)
    logger.info("Rendering engine initialized successfully")

    app = create_app(state, config)
    logger.info("run server on %s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
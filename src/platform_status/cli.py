from __future__ import annotations

import logging

import structlog
from dotenv import load_dotenv

from .app import build_application
from .config import BotSettings


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level, logging.INFO)
        ),
    )


def main() -> None:
    """Entry point for launching the Telegram bot."""

    load_dotenv()
    settings = BotSettings.from_env()
    configure_logging(settings.log_level)
    application = build_application(settings)
    application.run_polling()

"""
structlog setup for Shelflife.

Every event carries the app name, and anything that looks like an
upstream API key (Sonarr, Radarr, Overseerr, Tautulli or our own
X-API-Key) is masked before it reaches a renderer.
"""

import logging
import sys

import structlog

from shelflife.config import settings

REDACTED = "***"
SECRET_KEYS = frozenset({"api_key", "apikey", "x_api_key", "x-api-key", "token"})

# Libraries that log every request or statement at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite")


def add_app_name(logger, method_name, event_dict):
    event_dict.setdefault("app", settings.APP_NAME)
    return event_dict


def redact_secrets(logger, method_name, event_dict):
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def build_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_name,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging() -> None:
    """Route structlog and stdlib logging through one stdout handler."""

    renderer = structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *build_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[structlog.stdlib.add_log_level, add_app_name],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DB_ECHO else logging.WARNING)

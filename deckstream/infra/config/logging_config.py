"""
Structlog configuration and helpers.

Model output and backend error bodies can be arbitrarily long, so every
string value in an event is clipped before rendering.
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional

import structlog

MAX_FIELD_CHARS = 500

_NOISY_LOGGERS = ("httpx", "httpcore")


def clip_long_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Structlog processor: shorten oversized string fields."""
    for key, value in event_dict.items():
        if key != "exception" and isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
            event_dict[key] = f"{value[:MAX_FIELD_CHARS]}... [{len(value)} chars]"
    return event_dict


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    settings: Optional[Any] = None,
) -> None:
    """Configure structlog for the engine.

    Args:
        log_level: Log level name (e.g., "INFO"). Defaults from settings.
        log_format: "json" or "console". Defaults from settings.
        settings: Settings instance; loaded from the environment when omitted.
    """
    if settings is None:
        from deckstream.infra.config.settings import get_settings

        settings = get_settings()

    level_name = (log_level or settings.log_level or "INFO").upper()
    fmt = (log_format or settings.log_format or "json").lower()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(level=level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    renderer = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            clip_long_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:  # type: ignore[name-defined]
    """Get a structlog logger bound with a name."""
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


def bind_context(**kwargs) -> None:
    """Bind correlation ids (project_id, item_id) for the current task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop correlation ids once a queue item finishes."""
    structlog.contextvars.clear_contextvars()

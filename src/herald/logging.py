"""Structured logging for Herald, built on structlog.

The API and the heartbeat monitor each call configure_logging() once at
startup. Deployments log JSON lines; local runs use the console renderer.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

_configured = False


def _processor_chain(format: str) -> list[Processor]:
    chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if format.lower() == "json":
        chain += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return chain


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Route structlog and stdlib logging to stdout.

    Args:
        level: Standard level name. Unknown names fall back to INFO.
        format: "json" for machine-readable lines, anything else ("text")
            for the human-friendly console renderer.

    Example:
        ```python
        configure_logging(level="DEBUG", format="text")
        get_logger(__name__).info("Monitor started", source="hubspot_webhook")
        ```
    """
    global _configured

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level, force=True)

    structlog.configure(
        processors=_processor_chain(format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, applying default configuration on first use."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: object) -> None:
    """Attach key/value pairs to every log line emitted by the current task.

    Values live in contextvars, so concurrent deliveries do not see each
    other's subscription_id or event_type.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


@contextmanager
def log_context(**kwargs: object) -> Iterator[None]:
    """Scoped bind_context(); the keys are removed again on exit.

    Example:
        ```python
        with log_context(source="hubspot_webhook"):
            logger.info("Checking heartbeat")
        ```
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


logger = get_logger("herald")

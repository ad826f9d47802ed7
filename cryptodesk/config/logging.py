"""Structured logging для cryptodesk.

Модулі пишуть через stdlib ``logging.getLogger(__name__)`` з dotted event
names і ``extra={...}``:

    logger.warning("loader.slice_failed", extra={"slice": "news", "error": "..."})

setup_logging() пропускає ці records через structlog: JSON для log
aggregation, кольоровий console renderer для розробки. Поки view змонтований,
його view_id / user_id додаються до кожного рядка через contextvars.
"""

import logging
import sys
from typing import Any, Mapping

import structlog
from structlog.typing import EventDict, Processor

from cryptodesk import __version__

from .settings import Settings, get_settings

SERVICE_NAME = "cryptodesk"
SERVICE_VERSION = __version__

REDACTED = "[REDACTED]"

# Keys whose values never reach log output (matched case-insensitively)
SENSITIVE_KEYS = frozenset({
    "password",
    "secret",
    "api_key",
    "token",
    "authorization",
    "private_key",
    "seed_phrase",
    "wallet_address",
})

# Chatty libraries: only warnings and above
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    return value


def filter_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """structlog processor: redact sensitive keys, including nested dicts."""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact(value)
    return event_dict


def _service_context(environment: str) -> Processor:
    context = {"service": SERVICE_NAME, "version": SERVICE_VERSION, "environment": environment}

    def add_service_context(
        logger: logging.Logger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        for key, value in context.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_context


def _pre_chain(settings: Settings) -> list[Processor]:
    """Processors shared by structlog loggers and stdlib records."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        # stdlib extra={...} becomes event keys
        structlog.stdlib.ExtraAdder(),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_context(settings.environment),
        filter_sensitive_data,
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_format == "json":
        # ConsoleRenderer pretty-prints exc_info itself
        processors.append(structlog.processors.format_exc_info)
    return processors


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog + stdlib logging. Call once when the host app starts.

    Replaces root handlers with a single stdout handler, so calling it twice
    does not duplicate output.

    Args:
        settings: Settings to use (defaults to get_settings()).
    """
    settings = settings or get_settings()
    pre_chain = _pre_chain(settings)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(settings.log_format),
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if settings.debug else getattr(logging, settings.log_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# ============================================================================
# VIEW CONTEXT
# ============================================================================


def bind_view_context(view_id: str, user_id: str | None = None, **extra: Any) -> None:
    """Attach view_id / user_id to every log line until clear_view_context().

    Called by CryptoAggregator.start() when it was given a view_id.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(view_id=view_id, user_id=user_id, **extra)


def clear_view_context() -> None:
    structlog.contextvars.clear_contextvars()

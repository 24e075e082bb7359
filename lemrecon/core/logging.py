import logging
import os
import sys
from typing import Any

import structlog

SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def wants_json(log_format: str | None = None) -> bool:
    """JSON output when LOG_FORMAT=json (or the older JSON_LOGS=true)."""
    if log_format is not None:
        return log_format.lower() == "json"
    return (
        os.getenv("LOG_FORMAT", "text").lower() == "json"
        or os.getenv("JSON_LOGS", "false").lower() == "true"
    )


def renderer_for(json_logs: bool) -> Any:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structured logging for lemrecon.

    Service modules log through ``logging.getLogger(__name__)``; those records
    are rendered by the same structlog processors as ``structlog.get_logger()``
    calls, so reconciliation, dispute and billing events carry the bound
    actor and request id.
    """
    renderer = renderer_for(wants_json(log_format))

    structlog.configure(
        processors=SHARED_PROCESSORS + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=SHARED_PROCESSORS,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    logging.basicConfig(
        handlers=[handler],
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
    )


def bind_actor(actor: str, **context: Any) -> None:
    """Attach the operator name (and any request context) to every log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(actor=actor, **context)

import logging
import sys

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars

QUIET_LOGGERS = ("LiteLLM", "httpx", "aiosqlite")

# Shared by structlog loggers and stdlib records coming from uvicorn
_pre_chain = [
    merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="%H:%M:%S"),
]


def _render_chain(json_logs: bool) -> list:
    if json_logs:
        # exc_info becomes a rendered "exception" field
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    structlog.configure(
        processors=[*_pre_chain, *_render_chain(json_logs)],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None):
    return structlog.get_logger(name or "rolo")


def uvicorn_log_config(json_logs: bool = False) -> dict:
    """``logging.config`` dict that sends uvicorn's records through the structlog renderer."""
    formatter = {
        "()": structlog.stdlib.ProcessorFormatter,
        "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, *_render_chain(json_logs)],
        "foreign_pre_chain": _pre_chain,
    }
    handler = {"formatter": "structlog", "class": "logging.StreamHandler", "stream": "ext://sys.stderr"}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"structlog": formatter},
        "handlers": {"default": handler},
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"level": "INFO"},
            "uvicorn.access": {"handlers": ["default"], "level": "INFO", "propagate": False},
        },
    }


def request_context(request_id: str, **fields):
    """Bind ``request_id`` (and any extra fields) to every log line emitted inside the block."""
    return bound_contextvars(request_id=request_id, **fields)

"""structlog setup for the pulsefeed data jobs.

Each job is a short scheduled process: one console script run, one log
stream. ``job_context`` tags every line of a run with the job name, and
``redact_secrets`` masks API keys that end up in an event (request headers,
settings dumps) before anything is rendered.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

REDACTED = "***"

# lower-cased event keys whose values are credentials
SECRET_KEYS = frozenset({"api_key", "x-api-key", "x-cg-pro-api-key", "coingecko_api_key", "moralis_api_key"})


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if str(k).lower() in SECRET_KEYS else _redact(v) for k, v in value.items()}
    return value


def redact_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Mask credential values, including inside nested dicts such as headers."""
    return {k: REDACTED if k.lower() in SECRET_KEYS else _redact(v) for k, v in event_dict.items()}


@contextmanager
def job_context(job: str) -> Iterator[None]:
    """Bind ``job`` to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(job=job):
        yield


def setup_logging(log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one handler on stderr.

    LOG_FORMAT picks the renderer: "json" for the scheduled workflow runs,
    where the CI runner collects the output, and "console" (default) when a
    job is run by hand.
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # aiohttp logs every connection hiccup at INFO
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

"""Structured logging for the gateway.

Every log line is a structlog event dict rendered as JSON (production) or
colored key/value pairs (development). Request-scoped fields live in
structlog's contextvars:

- ``request_id``: bound by the HTTP middleware for the whole request
- ``endpoint``, ``user_id``, ``input_hash``: bound while an agent request is
  being admitted, via ``agent_log_context``

An SSE body is iterated after the route handler has returned, so
``carry_log_context`` snapshots those fields when the stream is built and
re-binds them around each step of the stream. Cache writes, execution-log
writes and upstream retries logged from inside the stream keep the ids of
the request that opened it.

Usage:
    from jobscout.core.logging import agent_log_context, get_logger

    logger = get_logger(__name__)

    with agent_log_context(endpoint="research", user_id="u1"):
        logger.info("agent_stream_request")
"""

import logging
import sys
from collections.abc import AsyncIterator
from typing import Any, TypeVar

import structlog
from structlog.contextvars import (
    bind_contextvars,
    bound_contextvars,
    clear_contextvars,
    get_contextvars,
)
from structlog.types import EventDict, Processor, WrappedLogger

from jobscout.config import Settings

SERVICE_NAME = "jobscout-gateway"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite")

T = TypeVar("T")


class ServiceFields:
    """Processor stamping every event with the service and its environment."""

    def __init__(self, environment: str) -> None:
        self.environment = environment

    def __call__(
        self, logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("env", self.environment)
        return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog and stdlib logging through one renderer.

    Args:
        settings: Application settings. If None, uses default settings.
    """
    if settings is None:
        from jobscout.config import get_settings

        settings = get_settings()

    log_level = getattr(logging, settings.log_level.value, logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        ServiceFields(settings.app_env.value),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: Processor
    if settings.use_json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically with ``__name__``."""
    return structlog.get_logger(name)


# =============================================================================
# Request context
# =============================================================================


def bind_request_id(request_id: str) -> None:
    """Attach the request id to every log line for the rest of the request."""
    bind_contextvars(request_id=request_id)


def current_request_id() -> str | None:
    return get_contextvars().get("request_id")


def clear_request_context() -> None:
    """Drop every request-scoped field."""
    clear_contextvars()


def agent_log_context(
    *,
    endpoint: str,
    user_id: str,
    input_hash: str | None = None,
) -> bound_contextvars:
    """Bind the agent request identity for the duration of a ``with`` block.

    ``input_hash`` is left out until the request has been fingerprinted.
    """
    fields: dict[str, Any] = {"endpoint": endpoint, "user_id": user_id}
    if input_hash is not None:
        fields["input_hash"] = input_hash
    return bound_contextvars(**fields)


def carry_log_context(messages: AsyncIterator[T], **fields: Any) -> AsyncIterator[T]:
    """Re-bind the current log context around each step of ``messages``.

    The context is captured now, not when iteration starts. Extra ``fields``
    are added on top of it.
    """
    context = {**get_contextvars(), **fields}
    return _rebound(messages, context)


async def _rebound(
    messages: AsyncIterator[T], context: dict[str, Any]
) -> AsyncIterator[T]:
    try:
        while True:
            with bound_contextvars(**context):
                try:
                    message = await anext(messages)
                except StopAsyncIteration:
                    return
            yield message
    finally:
        aclose = getattr(messages, "aclose", None)
        if aclose is not None:
            with bound_contextvars(**context):
                await aclose()

"""Structured logging configuration for the deep research engine."""

import logging
import sys
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any

import structlog


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_logs: If True, output JSON logs; otherwise, use colored console output.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )

    if json_logs:
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=[*_shared_processors(), *renderers],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name (typically the module role).

    Returns:
        A configured structured logger.
    """
    return structlog.get_logger(name)


@contextmanager
def research_context(**fields: Any):
    """Bind fields to every log line emitted inside the block.

    Context variables are copied into each asyncio task at creation, so
    values bound inside a branch do not leak into its siblings.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def preview(text: str, limit: int = 80) -> str:
    """Shorten text for log output."""
    return text[:limit] + "..." if len(text) > limit else text


@contextmanager
def log_duration(logger: Any, event: str, **extra_fields):
    """Context manager to log the duration of an operation.

    Args:
        logger: The logger instance to use.
        event: The event name to log.
        **extra_fields: Additional fields to include in the log.

    Yields:
        A dict that can be updated with additional fields before the end log.
    """
    start_time = time.perf_counter()
    logger.info(event, status="started", **extra_fields)

    result_fields: dict = {}
    try:
        yield result_fields
    except BaseException as e:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.error(
            event,
            status="failed",
            duration_ms=round(duration_ms, 2),
            error=str(e),
            error_type=type(e).__name__,
            **extra_fields,
        )
        raise
    duration_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        event,
        status="completed",
        duration_ms=round(duration_ms, 2),
        **extra_fields,
        **result_fields,
    )


def _call_context(args: tuple) -> dict:
    # First string positional argument is treated as the prompt
    for arg in args:
        if isinstance(arg, str):
            return {"prompt_preview": preview(arg, 100), "prompt_length": len(arg)}
    return {}


def log_llm_call(func):
    """Decorator to log async LLM API calls with timing.

    Logs the start, completion, and any errors during LLM invocations.
    """
    logger = get_logger("llm")

    @wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        logger.debug(
            "llm_call", status="started", function=func.__name__, **_call_context(args)
        )
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "llm_call",
                status="failed",
                function=func.__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        response_context = {
            "duration_ms": round((time.perf_counter() - start_time) * 1000, 2)
        }
        if isinstance(result, str):
            response_context["response_length"] = len(result)
        elif hasattr(result, "content"):
            response_context["response_length"] = len(str(result.content))
        logger.debug(
            "llm_call", status="completed", function=func.__name__, **response_context
        )
        return result

    return wrapper

# src/splitloop/core/logging.py
"""Structured logging for splitloop.

configure_logging() routes structlog events and stdlib log records through
one ProcessorFormatter, so foreach events and plain logging.getLogger()
diagnostics (plugin discovery) come out in the same format.

Iteration context:
    A foreach stage binds context through structlog.contextvars while it
    runs, so every event logged during an iteration carries it, including
    events logged by inner stages that know nothing about splitting:

    foreach_message_id  id of the message being split by the innermost stage
    iteration           1-based position of the current sub-message; nested
                        foreach stages extend it as a dotted path ("2.1")

    Context is restored when a scope exits, so it never leaks between
    messages or from an inner stage to its owner.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

FOREACH_MESSAGE_ID_KEY = "foreach_message_id"
ITERATION_KEY = "iteration"

# Plugin manager internals; never made less restrictive than the root level.
_QUIET_LOGGERS: tuple[str, ...] = ("pluggy",)


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove the _record and _from_structlog keys ProcessorFormatter adds."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def _shared_processors() -> list[Any]:
    """Processors applied to structlog events and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_processors(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_bookkeeping,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [_drop_formatter_bookkeeping, structlog.dev.ConsoleRenderer(colors=False)]


def configure_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Configure structlog and stdlib logging.

    Replaces any handlers on the root logger with a single stdout handler.
    Safe to call repeatedly; loggers are not cached.

    Args:
        json_output: Emit one JSON object per line instead of console text
        level: Root log level name (DEBUG, INFO, WARNING, ERROR)
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_render_processors(json_output), foreign_pre_chain=shared))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound structlog logger (typically for __name__)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def foreach_scope(message_id: str) -> Iterator[None]:
    """Tag events logged inside the block with the message being split."""
    with structlog.contextvars.bound_contextvars(**{FOREACH_MESSAGE_ID_KEY: message_id}):
        yield


@contextmanager
def iteration_scope(ordinal: int) -> Iterator[None]:
    """Tag events logged inside the block with the sub-message position.

    Inside an enclosing iteration the position is appended to the outer
    one, so the third element of the second outer element logs as "2.3".
    """
    outer = structlog.contextvars.get_contextvars().get(ITERATION_KEY)
    path = f"{outer}.{ordinal}" if outer is not None else str(ordinal)
    with structlog.contextvars.bound_contextvars(**{ITERATION_KEY: path}):
        yield

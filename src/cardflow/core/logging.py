# src/cardflow/core/logging.py
"""Structured logging for cardflow workers.

structlog and stdlib logging share one processor chain (via
ProcessorFormatter), so a bridge written against ``logging.getLogger``
and the engine's own structlog loggers render identically, JSON or console.

Inside ``WorkerCycle.run()`` the cycle id and worker type are bound as
context variables, so every record emitted during a cycle carries them,
including records from per-card tasks and third-party libraries.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.stdlib import ProcessorFormatter

if TYPE_CHECKING:
    from cardflow.core.config import LoggingSettings

# Kept at WARNING or above even when cardflow runs at DEBUG
_NOISY_LOGGERS: tuple[str, ...] = (
    "asyncio",
    "urllib3",
    "urllib3.connectionpool",
    "httpx",
    "httpcore",
    "opentelemetry",
)


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the keys ProcessorFormatter adds to every record it formats."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def _pre_chain() -> list[Any]:
    """Processors every record passes through, whatever logger made it."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_chain(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_bookkeeping,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        _drop_formatter_bookkeeping,
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog and stdlib logging to stdout through one chain.

    Replaces any handlers already on the root logger, so calling this
    again (e.g. from tests) reconfigures cleanly.

    Args:
        json_output: Emit one JSON object per line instead of console text
        level: Root log level name (DEBUG, INFO, WARNING, ERROR)
    """
    log_level = logging.getLevelNamesMapping()[level.upper()]
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Cached loggers would survive reconfiguration
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_render_chain(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # Never make noisy loggers less restrictive than the root level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))


def configure_from_settings(settings: "LoggingSettings") -> None:
    """configure_logging() driven by the ``logging`` section of CardflowSettings."""
    configure_logging(json_output=settings.json_output, level=settings.level)


@contextmanager
def cycle_log_context(cycle_id: str, worker_type: str) -> Iterator[None]:
    """Bind cycle identity to every record logged inside the block.

    Uses contextvars, so concurrent cycles in one event loop don't see
    each other's ids.
    """
    with structlog.contextvars.bound_contextvars(cycle_id=cycle_id, worker_type=worker_type):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

# src/cardflow/core/__init__.py
"""Core infrastructure: configuration, logging and the event bus."""

from cardflow.core.config import (
    CardflowSettings,
    ConcurrencySettings,
    LoggingSettings,
    RetrySettings,
    load_settings,
    resolve_config,
)
from cardflow.core.events import EventBus, EventBusProtocol, NullEventBus
from cardflow.core.logging import configure_from_settings, configure_logging, cycle_log_context, get_logger

__all__ = [
    "CardflowSettings",
    "ConcurrencySettings",
    "EventBus",
    "EventBusProtocol",
    "LoggingSettings",
    "NullEventBus",
    "RetrySettings",
    "configure_from_settings",
    "configure_logging",
    "cycle_log_context",
    "get_logger",
    "load_settings",
    "resolve_config",
]

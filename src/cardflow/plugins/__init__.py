# src/cardflow/plugins/__init__.py
"""Plugin surface: translator registry and pluggy hooks."""

from cardflow.plugins.hookspecs import ENTRYPOINT_GROUP, hookimpl, hookspec
from cardflow.plugins.translators import Translator, TranslatorRegistry

__all__ = [
    "ENTRYPOINT_GROUP",
    "Translator",
    "TranslatorRegistry",
    "hookimpl",
    "hookspec",
]

# src/cardflow/plugins/translators.py
"""TranslatorRegistry: keyed transformations to external output formats.

Callers should check ``has()`` first and record a structured card error
when a key is missing; ``run()`` still raises a typed error for unknown
keys regardless:

    if not registry.has(key):
        return TaskResult.error(card, f"Translator not found: {key}")
    card.data["translated_output"] = await registry.run(key, engagement)

Translators come from explicit ``register()`` calls or from pluggy plugins
(``register_plugin()`` / ``load_entrypoints()``).
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

import pluggy
import structlog

from cardflow.contracts.errors import TranslationFailedError, TranslatorNotFoundError
from cardflow.engine.processor import is_async_callable
from cardflow.plugins.hookspecs import ENTRYPOINT_GROUP, PROJECT_NAME, CardflowTranslatorSpec

slog = structlog.get_logger(__name__)

type Translator = Callable[[Any], Any | Awaitable[Any]]


class TranslatorRegistry:
    """Mapping from translator key to a sync or async transform."""

    def __init__(self) -> None:
        self._translators: dict[str, Translator] = {}
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(CardflowTranslatorSpec)
        self._plugin_keys: set[str] = set()

    def has(self, key: str) -> bool:
        """Pure lookup, no side effects."""
        return key in self._translators

    def register(self, key: str, translator: Translator) -> None:
        """Insert or replace the translator under ``key``."""
        if not isinstance(key, str) or not key:
            raise ValueError(f"Translator key must be a non-empty string, got {key!r}")
        if not callable(translator):
            raise TypeError(f"Translator '{key}' must be callable, got {type(translator).__name__}")
        if key in self._translators:
            slog.debug("Replacing translator", key=key)
        self._translators[key] = translator

    def unregister(self, key: str) -> None:
        """Remove a translator.

        Raises:
            TranslatorNotFoundError: If no translator is registered under key
        """
        if key not in self._translators:
            raise TranslatorNotFoundError(key)
        del self._translators[key]

    def keys(self) -> list[str]:
        return sorted(self._translators)

    def __len__(self) -> int:
        return len(self._translators)

    def __contains__(self, key: object) -> bool:
        return key in self._translators

    async def run(self, key: str, value: Any) -> Any:
        """Run the translator under ``key`` on ``value``.

        Raises:
            TranslatorNotFoundError: If key is not registered
            TranslationFailedError: If the translator raised (original chained)
        """
        translator = self._translators.get(key)
        if translator is None:
            raise TranslatorNotFoundError(key)
        try:
            if is_async_callable(translator):
                result = translator(value)
            else:
                result = await asyncio.to_thread(translator, value)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise TranslationFailedError(key, e) from e
        return result

    def register_plugin(self, plugin: object) -> None:
        """Register a pluggy plugin implementing ``cardflow_get_translators``.

        Only the new plugin's translators are added, so earlier explicit
        ``register()`` replacements stay in place.

        Raises:
            ValueError: If another plugin already provides one of its keys
        """
        self._pm.register(plugin)
        self._adopt(plugin)

    def load_entrypoints(self, group: str = ENTRYPOINT_GROUP) -> int:
        """Load plugins advertised by installed distributions.

        Returns:
            Number of plugins loaded
        """
        known = set(self._pm.get_plugins())
        loaded = self._pm.load_setuptools_entrypoints(group)
        for plugin in self._pm.get_plugins() - known:
            self._adopt(plugin)
        slog.info("Loaded translator plugins", group=group, plugins=loaded, translators=len(self))
        return loaded

    def _adopt(self, plugin: object) -> None:
        provided: dict[str, Translator] = {}
        for impl in self._pm.hook.cardflow_get_translators.get_hookimpls():
            if impl.plugin is plugin:
                provided.update(impl.function())

        clashes = sorted(provided.keys() & self._plugin_keys)
        if clashes:
            self._pm.unregister(plugin)
            raise ValueError(f"Duplicate translator key from plugins: {', '.join(repr(k) for k in clashes)}")

        for key, translator in provided.items():
            self.register(key, translator)
        self._plugin_keys.update(provided)

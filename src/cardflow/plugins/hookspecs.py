# src/cardflow/plugins/hookspecs.py
"""pluggy hook specifications for cardflow plugins.

Plugins implement these hooks to contribute translators.

Usage (implementing a plugin):
    from cardflow.plugins.hookspecs import hookimpl

    class CxmlPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def cardflow_get_translators(self):
            return {"cxml": engagement_to_cxml}

Installed distributions can expose such a plugin under the
``cardflow.translators`` entry-point group.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from cardflow.plugins.translators import Translator

# Project name for pluggy
PROJECT_NAME = "cardflow"

# Entry-point group scanned by TranslatorRegistry.load_entrypoints()
ENTRYPOINT_GROUP = "cardflow.translators"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class CardflowTranslatorSpec:
    """Hook specifications for translator plugins."""

    @hookspec
    def cardflow_get_translators(self) -> dict[str, "Translator"]:  # type: ignore[empty-body]
        """Return translators keyed by translator key.

        Returns:
            Mapping of key to a sync or async callable taking one input
        """

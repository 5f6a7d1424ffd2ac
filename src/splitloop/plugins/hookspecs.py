# src/splitloop/plugins/hookspecs.py
"""pluggy hook specifications for splitloop plugins.

Plugins implement these hooks to register themselves with the registry.

Usage (implementing a plugin):
    from splitloop.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def splitloop_get_transformers(self):
            return [MyTransformer]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from splitloop.plugins.base import BaseTransformer

# Project name for pluggy
PROJECT_NAME = "splitloop"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class SplitloopTransformerSpec:
    """Hook specifications for transformer plugins."""

    @hookspec
    def splitloop_get_transformers(self) -> list[type["BaseTransformer"]]:  # type: ignore[empty-body]
        """Return transformer classes (not instances)."""

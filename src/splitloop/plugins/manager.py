# src/splitloop/plugins/manager.py
"""Transformer registry: discovery, registration, and lookup.

Uses pluggy for hook-based plugin registration. Transformers are stored as
classes and instantiated on lookup.
"""

from typing import Any

import pluggy

from splitloop.contracts.enums import Representation
from splitloop.contracts.errors import TransformerNotFoundError
from splitloop.plugins.base import BaseTransformer
from splitloop.plugins.hookspecs import PROJECT_NAME, SplitloopTransformerSpec


class TransformerRegistry:
    """Capability registry for payload transformers.

    Usage:
        registry = TransformerRegistry()
        registry.register_builtin_plugins()

        to_document = registry.lookup(Representation.XML_STRING, Representation.XML_DOCUMENT)
        document = to_document.transform("<a/>")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(SplitloopTransformerSpec)

        # Caches - map name and (source, target) pair to transformer class
        self._by_name: dict[str, type[BaseTransformer]] = {}
        self._by_pair: dict[tuple[Representation, Representation], type[BaseTransformer]] = {}

    @classmethod
    def with_builtins(cls) -> "TransformerRegistry":
        """Create a registry with all built-in transformers registered."""
        registry = cls()
        registry.register_builtin_plugins()
        return registry

    def register_builtin_plugins(self) -> None:
        """Discover and register all built-in transformers.

        Call this once at startup to make built-in transformers available.
        """
        from splitloop.plugins.discovery import create_dynamic_hookimpl, discover_transformers

        self.register(create_dynamic_hookimpl(discover_transformers()))

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods

        Raises:
            ValueError: If the plugin introduces a duplicate name or pair
        """
        self._pm.register(plugin)
        try:
            self._refresh_caches()
        except ValueError:
            # Keep the registry consistent with its caches
            self._pm.unregister(plugin)
            raise

    def _refresh_caches(self) -> None:
        """Refresh caches from hooks.

        Raises:
            ValueError: If two transformers share a name or a (source, target) pair
        """
        new_by_name: dict[str, type[BaseTransformer]] = {}
        new_by_pair: dict[tuple[Representation, Representation], type[BaseTransformer]] = {}

        for transformers in self._pm.hook.splitloop_get_transformers():
            for cls in transformers:
                name = cls.name
                if name in new_by_name:
                    raise ValueError(f"Duplicate transformer name: '{name}'. Already registered by {new_by_name[name].__name__}")
                pair = (Representation(cls.source), Representation(cls.target))
                if pair in new_by_pair:
                    raise ValueError(
                        f"Duplicate transformer for {pair[0]} -> {pair[1]}: "
                        f"{cls.__name__} conflicts with {new_by_pair[pair].__name__}"
                    )
                new_by_name[name] = cls
                new_by_pair[pair] = cls

        self._by_name = new_by_name
        self._by_pair = new_by_pair

    def get_transformers(self) -> list[type[BaseTransformer]]:
        """Get all registered transformer classes."""
        return list(self._by_name.values())

    def get_transformer_by_name(self, name: str) -> type[BaseTransformer] | None:
        """Get transformer class by name."""
        return self._by_name.get(name)

    def lookup(self, source: Representation, target: Representation) -> BaseTransformer:
        """Return a transformer converting source to target.

        Raises:
            TransformerNotFoundError: If no transformer is registered for the pair
        """
        try:
            cls = self._by_pair[(source, target)]
        except KeyError:
            raise TransformerNotFoundError(source, target) from None
        return cls()

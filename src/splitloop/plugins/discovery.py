"""Dynamic transformer discovery by folder scanning.

Scans the built-in transformer package for classes that:
1. Inherit from BaseTransformer
2. Have a `name` class attribute
3. Are not abstract
"""

import importlib
import inspect
import logging
from pathlib import Path
from typing import Any

from splitloop.plugins.hookspecs import hookimpl

logger = logging.getLogger(__name__)

TRANSFORMERS_PACKAGE = "splitloop.plugins.transformers"


def discover_transformers(directory: Path | None = None, package: str = TRANSFORMERS_PACKAGE) -> list[type]:
    """Discover transformer classes in a package directory.

    Scans all .py files in the directory (non-recursive), importing each as a
    submodule of package so discovered classes keep their import identity.

    Args:
        directory: Directory to scan (default: the built-in transformers)
        package: Dotted package name the directory corresponds to

    Returns:
        Discovered transformer classes, sorted by file then class name
    """
    from splitloop.plugins.base import BaseTransformer

    if directory is None:
        directory = Path(__file__).parent / "transformers"

    discovered: list[type] = []
    if not directory.exists():
        logger.warning("Transformer directory does not exist: %s", directory)
        return discovered

    for py_file in sorted(directory.glob("*.py")):
        if py_file.name == "__init__.py":
            continue

        # Transformer modules are system code: import errors are bugs, let them propagate
        module = importlib.import_module(f"{package}.{py_file.stem}")
        for name, obj in inspect.getmembers(module, inspect.isclass):
            if obj.__module__ != module.__name__:
                continue
            if not issubclass(obj, BaseTransformer) or obj is BaseTransformer:
                continue
            if inspect.isabstract(obj):
                continue
            if not getattr(obj, "name", None):
                logger.warning(
                    "Class %s in %s inherits from BaseTransformer but has no/empty 'name' attribute - skipping",
                    name,
                    py_file,
                )
                continue
            discovered.append(obj)

    return discovered


def create_dynamic_hookimpl(transformers: list[type]) -> Any:
    """Wrap discovered classes in an object implementing the transformer hook."""

    class _BuiltinTransformers:
        @hookimpl
        def splitloop_get_transformers(self) -> list[type]:
            return list(transformers)

    return _BuiltinTransformers()

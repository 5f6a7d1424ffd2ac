"""Transformer plugins: payload conversions between representations.

Transformers register through pluggy hooks and are looked up by their
(source, target) representation pair.
"""

from splitloop.plugins.base import BaseTransformer
from splitloop.plugins.hookspecs import hookimpl
from splitloop.plugins.manager import TransformerRegistry

__all__ = [
    "BaseTransformer",
    "TransformerRegistry",
    "hookimpl",
]

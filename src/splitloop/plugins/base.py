# src/splitloop/plugins/base.py
"""Base class for transformer implementations.

Transformers MUST subclass BaseTransformer. Discovery uses issubclass()
checks against it, and the registry keys transformers by their declared
source and target representations.
"""

from abc import ABC, abstractmethod
from typing import Any

from splitloop.contracts.enums import Representation


class BaseTransformer(ABC):
    """Converts a payload from one representation to another.

    Subclasses declare:
        name: Unique registry name
        source: Representation accepted by transform()
        target: Representation produced by transform()

    Example:
        class UpperCase(BaseTransformer):
            name = "upper"
            source = Representation.XML_STRING
            target = Representation.XML_STRING

            def transform(self, value: Any) -> Any:
                return value.upper()
    """

    name: str
    source: Representation
    target: Representation
    plugin_version: str = "0.0.0"

    @abstractmethod
    def transform(self, value: Any) -> Any:
        """Convert value to the target representation.

        Raises:
            TransformerError: If value cannot be converted
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source} -> {self.target})"

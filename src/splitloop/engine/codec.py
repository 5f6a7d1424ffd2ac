# src/splitloop/engine/codec.py
"""Payload codecs: reversible payload conversion around an iteration.

Structural queries need a navigable element tree, but callers hand in XML
text and expect XML text back. XmlDocumentCodec parses the payload before
the split and serialises the (possibly modified) tree once the whole
iteration is done - never per sub-message.

The codec is resolved once, at initialisation. Stages without a structural
expression get NullCodec, so no transformer lookup happens and no XML
transformers need to be registered.
"""

from typing import TYPE_CHECKING, Protocol

from splitloop.contracts.enums import Representation
from splitloop.contracts.message import Message
from splitloop.plugins.base import BaseTransformer
from splitloop.plugins.manager import TransformerRegistry

if TYPE_CHECKING:
    from splitloop.engine.expression_parser import CompiledExpression


class PayloadCodec(Protocol):
    """Reversible payload conversion."""

    def needs_encode(self, message: Message) -> bool: ...

    def encode(self, message: Message) -> None: ...

    def decode(self, message: Message) -> None: ...


class NullCodec:
    """Codec that never converts anything."""

    def needs_encode(self, message: Message) -> bool:
        return False

    def encode(self, message: Message) -> None:
        pass

    def decode(self, message: Message) -> None:
        pass

    def __repr__(self) -> str:
        return "NullCodec()"


NULL_CODEC = NullCodec()


class XmlDocumentCodec:
    """Converts XML text payloads to element trees and back.

    Only text payloads are encoded; a payload that is already a document
    passes through untouched.
    """

    def __init__(self, to_document: BaseTransformer, to_string: BaseTransformer) -> None:
        self._to_document = to_document
        self._to_string = to_string

    def needs_encode(self, message: Message) -> bool:
        return isinstance(message.payload, str)

    def encode(self, message: Message) -> None:
        """Replace the text payload with a document.

        Raises:
            TransformerError: If the payload is not well-formed XML
        """
        message.payload = self._to_document.transform(message.payload)

    def decode(self, message: Message) -> None:
        """Replace the document payload with text.

        Raises:
            TransformerError: If the payload is no longer a document
        """
        message.payload = self._to_string.transform(message.payload)

    def __repr__(self) -> str:
        return f"XmlDocumentCodec({self._to_document!r}, {self._to_string!r})"


def resolve_codec(expression: "CompiledExpression | None", registry: TransformerRegistry | None = None) -> PayloadCodec:
    """Pick the codec a selection expression needs.

    Args:
        expression: Compiled selection expression, or None
        registry: Transformer registry; defaults to one holding the built-ins

    Raises:
        TransformerNotFoundError: If a structural expression is configured but
            the XML text <-> document pair is not registered
    """
    if expression is None or not expression.is_structural:
        return NULL_CODEC
    if registry is None:
        registry = TransformerRegistry.with_builtins()
    return XmlDocumentCodec(
        to_document=registry.lookup(Representation.XML_STRING, Representation.XML_DOCUMENT),
        to_string=registry.lookup(Representation.XML_DOCUMENT, Representation.XML_STRING),
    )

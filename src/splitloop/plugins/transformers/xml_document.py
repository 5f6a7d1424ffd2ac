"""XML transformers: text <-> ElementTree document.

Uses the standard library ElementTree. Parsed documents are
xml.etree.ElementTree.ElementTree instances; serialisation emits the root
element without an XML declaration.
"""

import xml.etree.ElementTree as ET
from typing import Any

from splitloop.contracts.enums import Representation
from splitloop.contracts.errors import TransformerError
from splitloop.plugins.base import BaseTransformer


class XmlStringToDocument(BaseTransformer):
    """Parse XML text (str or bytes) into an ElementTree document."""

    name = "xml_to_document"
    source = Representation.XML_STRING
    target = Representation.XML_DOCUMENT
    plugin_version = "1.0.0"

    def transform(self, value: Any) -> ET.ElementTree:
        if not isinstance(value, str | bytes):
            raise TransformerError(f"{self.name} expects str or bytes, got {type(value).__name__}")
        try:
            return ET.ElementTree(ET.fromstring(value))
        except ET.ParseError as e:
            raise TransformerError(f"{self.name}: payload is not well-formed XML: {e}") from e


class DocumentToXmlString(BaseTransformer):
    """Serialise an ElementTree document (or element) back to XML text."""

    name = "document_to_xml"
    source = Representation.XML_DOCUMENT
    target = Representation.XML_STRING
    plugin_version = "1.0.0"

    def transform(self, value: Any) -> str:
        if isinstance(value, ET.ElementTree):
            root = value.getroot()
        elif isinstance(value, ET.Element):
            root = value
        else:
            raise TransformerError(f"{self.name} expects an ElementTree document, got {type(value).__name__}")
        if root is None:
            raise TransformerError(f"{self.name}: document has no root element")
        return ET.tostring(root, encoding="unicode")

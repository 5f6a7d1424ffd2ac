# tests/engine/test_codec.py
"""Tests for payload codec selection and conversion."""

import xml.etree.ElementTree as ET

import pytest

from splitloop.contracts import Message, TransformerError, TransformerNotFoundError
from splitloop.engine.codec import NULL_CODEC, XmlDocumentCodec, resolve_codec
from splitloop.engine.expression_parser import ExpressionParser, XPathQuery
from splitloop.plugins.manager import TransformerRegistry


class TestResolveCodec:
    def test_no_expression_gets_null_codec(self) -> None:
        assert resolve_codec(None) is NULL_CODEC

    def test_value_expression_gets_null_codec_without_lookup(self) -> None:
        # An empty registry would fail any lookup
        assert resolve_codec(ExpressionParser("payload"), TransformerRegistry()) is NULL_CODEC

    def test_structural_expression_gets_xml_codec(self, registry: TransformerRegistry) -> None:
        assert isinstance(resolve_codec(XPathQuery("xpath://b"), registry), XmlDocumentCodec)

    def test_structural_expression_defaults_to_builtin_transformers(self) -> None:
        assert isinstance(resolve_codec(XPathQuery("xpath://b")), XmlDocumentCodec)

    def test_missing_transformer_pair(self) -> None:
        with pytest.raises(TransformerNotFoundError) as exc_info:
            resolve_codec(XPathQuery("xpath://b"), TransformerRegistry())
        assert exc_info.value.source == "xml_string"
        assert exc_info.value.target == "xml_document"


class TestNullCodec:
    def test_never_converts(self) -> None:
        message = Message(payload="<a/>")
        assert NULL_CODEC.needs_encode(message) is False
        NULL_CODEC.encode(message)
        NULL_CODEC.decode(message)
        assert message.payload == "<a/>"


class TestXmlDocumentCodec:
    @pytest.fixture
    def codec(self, registry: TransformerRegistry) -> XmlDocumentCodec:
        codec = resolve_codec(XPathQuery("xpath://b"), registry)
        assert isinstance(codec, XmlDocumentCodec)
        return codec

    def test_needs_encode_only_for_text(self, codec: XmlDocumentCodec) -> None:
        assert codec.needs_encode(Message(payload="<a/>")) is True
        assert codec.needs_encode(Message(payload=ET.ElementTree(ET.fromstring("<a/>")))) is False
        assert codec.needs_encode(Message(payload=[1])) is False

    def test_encode_then_decode(self, codec: XmlDocumentCodec) -> None:
        message = Message(payload="<a><b/><b/></a>")

        codec.encode(message)
        assert isinstance(message.payload, ET.ElementTree)
        assert message.payload.getroot().tag == "a"

        codec.decode(message)
        assert isinstance(message.payload, str)
        assert ET.canonicalize(message.payload) == ET.canonicalize("<a><b/><b/></a>")

    def test_encode_failure_leaves_payload(self, codec: XmlDocumentCodec) -> None:
        message = Message(payload="<a><b></a>")
        with pytest.raises(TransformerError, match="not well-formed"):
            codec.encode(message)
        assert message.payload == "<a><b></a>"

    def test_decode_failure(self, codec: XmlDocumentCodec) -> None:
        with pytest.raises(TransformerError):
            codec.decode(Message(payload=["not", "a", "document"]))

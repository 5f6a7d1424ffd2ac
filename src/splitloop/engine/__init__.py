# src/splitloop/engine/__init__.py
"""Foreach engine: split strategies, chains, codecs, and the ForeachStage.

Example:
    from splitloop.contracts import Message
    from splitloop.engine import ForeachStage

    stage = ForeachStage({"collection": "payload['items']"}, [handle_item])
    stage.initialise()
    stage.process(Message(payload={"items": [1, 2, 3]}))
"""

from splitloop.engine.chain import ChainBuilder, MessageProcessorChain
from splitloop.engine.codec import NULL_CODEC, NullCodec, PayloadCodec, XmlDocumentCodec, resolve_codec
from splitloop.engine.expression_parser import (
    ExpressionEvaluationError,
    ExpressionParser,
    ExpressionSecurityError,
    ExpressionSyntaxError,
    XPathQuery,
    compile_expression,
)
from splitloop.engine.foreach import ForeachStage
from splitloop.engine.splitters import (
    MAP_ENTRY_KEY,
    CollectionMapSplitter,
    ExpressionSplitter,
    MessageSequenceSplitter,
    create_splitter,
)

__all__ = [
    "MAP_ENTRY_KEY",
    "NULL_CODEC",
    "ChainBuilder",
    "CollectionMapSplitter",
    "ExpressionEvaluationError",
    "ExpressionParser",
    "ExpressionSecurityError",
    "ExpressionSplitter",
    "ExpressionSyntaxError",
    "ForeachStage",
    "MessageProcessorChain",
    "MessageSequenceSplitter",
    "NullCodec",
    "PayloadCodec",
    "XPathQuery",
    "XmlDocumentCodec",
    "compile_expression",
    "create_splitter",
    "resolve_codec",
]

# src/splitloop/engine/splitters.py
"""Split strategies: one message in, an ordered sequence of sub-messages out.

The set of strategies is closed and tagged by SplitKind:

- CollectionMapSplitter (COLLECTION_MAP): splits the payload itself. Ordered
  collections yield one sub-message per element, mappings one per entry
  (value as payload, key in the MAP_ENTRY_KEY property), anything else a
  single sub-message.
- ExpressionSplitter (EXPRESSION / STRUCTURAL): evaluates a selection
  expression against the message and splits the result. Structural queries
  are rewritten to their branch form so they yield every matching element.

create_splitter() picks the strategy once, from settings.

Every splitter is also an intercepting stage. process() splits the message,
numbers each sub-message (1-based) in the counter property, and routes it to
the listener - the rest of the iteration chain - strictly in order. A
failure on any sub-message stops the iteration and propagates.

Splits are single-pass iterators. To iterate again, call split() again.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from itertools import islice
from typing import Any, ClassVar

import structlog

from splitloop.contracts.enums import SplitKind
from splitloop.contracts.errors import ConfigurationError
from splitloop.contracts.message import Message
from splitloop.contracts.stage import Stage
from splitloop.core.config import COUNTER_PROPERTY, ForeachSettings
from splitloop.core.logging import iteration_scope
from splitloop.engine.expression_parser import CompiledExpression, XPathQuery, compile_expression

slog = structlog.get_logger(__name__)

# Property carrying the key of the mapping entry a sub-message was split from
MAP_ENTRY_KEY = "key"

# Iterables that are values, not collections
_SCALAR_TYPES = (str, bytes, bytearray)


def _elements(value: Any) -> Iterable[Any]:
    """View a value as a sequence of elements.

    None has no elements; strings, mappings and non-iterables are a single
    element; any other iterable is its own element sequence.
    """
    if value is None:
        return ()
    if isinstance(value, _SCALAR_TYPES) or isinstance(value, Mapping):
        return (value,)
    if isinstance(value, Iterable):
        return value
    return (value,)


class MessageSequenceSplitter(ABC):
    """Base class for split strategies.

    Args:
        batch_size: Elements per sub-message; above 1, payloads are lists
        counter_variable_name: Property receiving the 1-based ordinal
    """

    kind: ClassVar[SplitKind]

    def __init__(self, *, batch_size: int = 1, counter_variable_name: str = COUNTER_PROPERTY) -> None:
        if batch_size <= 0:
            raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size}")
        self._batch_size = batch_size
        self._counter_variable_name = counter_variable_name
        self._listener: Stage | None = None

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def counter_variable_name(self) -> str:
        return self._counter_variable_name

    @property
    def expression(self) -> CompiledExpression | None:
        """Selection expression, or None when the payload is split directly."""
        return None

    def set_listener(self, listener: Stage) -> None:
        """Register the stage that receives each sub-message."""
        self._listener = listener

    @abstractmethod
    def split(self, message: Message) -> Iterator[Message]:
        """Split message into sub-messages.

        Implementations validate and select eagerly, so errors surface from
        this call, before any sub-message exists.
        """

    def process(self, message: Message) -> Message:
        """Route every sub-message of message to the listener, in order."""
        count = 0
        for count, sub_message in enumerate(self.split(message), start=1):
            sub_message.set_property(self._counter_variable_name, count)
            if self._listener is not None:
                with iteration_scope(count):
                    self._listener.process(sub_message)
        slog.debug(
            "split_complete",
            splitter=self.kind.value,
            message_id=message.message_id,
            sub_messages=count,
        )
        return message

    def _split_elements(self, message: Message, elements: Iterable[Any]) -> Iterator[Message]:
        if self._batch_size == 1:
            for element in elements:
                yield message.derive(element)
            return
        iterator = iter(elements)
        while group := list(islice(iterator, self._batch_size)):
            yield message.derive(group)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(batch_size={self._batch_size})"


class CollectionMapSplitter(MessageSequenceSplitter):
    """Splits the payload: collections by element, mappings by entry."""

    kind = SplitKind.COLLECTION_MAP

    def split(self, message: Message) -> Iterator[Message]:
        payload = message.payload
        if isinstance(payload, Mapping):
            if self._batch_size > 1:
                slog.debug(
                    "mapping_split_rejected",
                    message_id=message.message_id,
                    batch_size=self._batch_size,
                    entries=len(payload),
                )
                raise ConfigurationError(
                    f"batch_size={self._batch_size} cannot be used with a mapping payload; map entries are split one at a time"
                )
            return self._split_entries(message, payload)
        return self._split_elements(message, _elements(payload))

    def _split_entries(self, message: Message, payload: Mapping[Any, Any]) -> Iterator[Message]:
        # Snapshot so inner stages may modify the original mapping
        for key, value in list(payload.items()):
            yield message.derive(value, **{MAP_ENTRY_KEY: key})


class ExpressionSplitter(MessageSequenceSplitter):
    """Splits the collection selected by an expression.

    Structural queries are converted to their branch form so that they
    select every matching element instead of the first.
    """

    def __init__(
        self,
        expression: CompiledExpression,
        *,
        batch_size: int = 1,
        counter_variable_name: str = COUNTER_PROPERTY,
    ) -> None:
        super().__init__(batch_size=batch_size, counter_variable_name=counter_variable_name)
        if isinstance(expression, XPathQuery):
            expression = expression.to_branch()
        self._expression = expression

    @property
    def kind(self) -> SplitKind:  # type: ignore[override]
        return SplitKind.STRUCTURAL if self._expression.is_structural else SplitKind.EXPRESSION

    @property
    def expression(self) -> CompiledExpression:
        return self._expression

    def split(self, message: Message) -> Iterator[Message]:
        return self._split_elements(message, _elements(self._expression.evaluate(message)))

    def __repr__(self) -> str:
        return f"ExpressionSplitter({self._expression.expression!r}, batch_size={self._batch_size})"


def create_splitter(settings: ForeachSettings) -> MessageSequenceSplitter:
    """Select the split strategy for settings.

    Raises:
        ExpressionSyntaxError: If the collection expression cannot be parsed
        ExpressionSecurityError: If it uses forbidden constructs
    """
    if settings.collection is None:
        return CollectionMapSplitter(
            batch_size=settings.batch_size,
            counter_variable_name=settings.counter_variable_name,
        )
    return ExpressionSplitter(
        compile_expression(settings.collection),
        batch_size=settings.batch_size,
        counter_variable_name=settings.counter_variable_name,
    )

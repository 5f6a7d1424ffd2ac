# src/splitloop/engine/foreach.py
"""ForeachStage - iterate a nested chain over the elements of a message.

Lifecycle:
    ForeachStage(settings, stages) -> initialise() -> process()* -> dispose()

- Construction only captures configuration. Nothing is validated yet.
- initialise() validates settings, selects the split strategy, resolves the
  payload codec, and assembles [splitter, *stages] into the iteration chain.
  It is the only transition into INITIALISED; on failure it raises
  InitialisationError and the stage stays unusable. If an owned stage fails
  to start, the owned stages already started are disposed again.- process() runs one message through the whole split-iterate cycle and then
  forwards THAT SAME message to the next stage (or returns it).
- dispose() releases owned stages. A disposed stage refuses messages until
  initialise() starts it again.

Iteration context:
    Before splitting, the root message property (default "rootMessage") is
    set on the message to the message itself. Sub-messages copy their
    parent's properties on creation, so every sub-message - and anything an
    inner stage derives from it - reaches the original message through that
    property. The counter property (default "counter") numbers sub-messages
    from 1.

Errors:
    Processing is never retried or rolled back. An exception from the
    codec, the splitter, or any inner stage ends the iteration immediately
    and propagates to the caller; remaining elements are never processed.

After initialise() the stage holds no per-message state, so process() may be
called concurrently for independent messages.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from splitloop.contracts.enums import SplitKind, StageState
from splitloop.contracts.errors import (
    ConfigurationError,
    InitialisationError,
    StageStateError,
    TransformerNotFoundError,
)
from splitloop.contracts.message import Message
from splitloop.contracts.stage import Stage
from splitloop.core.config import ForeachSettings
from splitloop.core.logging import foreach_scope
from splitloop.engine.chain import ChainBuilder, MessageProcessorChain
from splitloop.engine.codec import NULL_CODEC, PayloadCodec, resolve_codec
from splitloop.engine.expression_parser import ExpressionSecurityError, ExpressionSyntaxError
from splitloop.engine.splitters import MessageSequenceSplitter, create_splitter
from splitloop.plugins.manager import TransformerRegistry

slog = structlog.get_logger(__name__)


class ForeachStage:
    """Runs a chain of stages once per element of a message.

    Example:
        stage = ForeachStage(
            {"collection": "payload['orders']", "batch_size": 2},
            [price_orders, store_orders],
        )
        stage.set_listener(notify)
        stage.initialise()
        stage.process(Message(payload={"orders": [...]}))

    Args:
        settings: ForeachSettings, or a dict validated at initialise()
        stages: Inner stages each sub-message is routed through, in order
        registry: Transformer registry for structural expressions; defaults
            to the built-in transformers
    """

    def __init__(
        self,
        settings: ForeachSettings | Mapping[str, Any] | None = None,
        stages: Iterable[Stage] = (),
        *,
        registry: TransformerRegistry | None = None,
    ) -> None:
        self._config: ForeachSettings | Mapping[str, Any] = settings if settings is not None else ForeachSettings()
        self._stages: tuple[Stage, ...] = tuple(stages)
        self._registry = registry
        self._listener: Stage | None = None
        self._state = StageState.UNINITIALISED

        # Assigned together by initialise()
        self._settings: ForeachSettings | None = None
        self._splitter: MessageSequenceSplitter | None = None
        self._codec: PayloadCodec = NULL_CODEC
        self._chain: MessageProcessorChain | None = None

    @property
    def state(self) -> StageState:
        return self._state

    @property
    def stages(self) -> tuple[Stage, ...]:
        """Inner stages, in routing order."""
        return self._stages

    @property
    def settings(self) -> ForeachSettings:
        """Validated settings.

        Raises:
            StageStateError: If the stage has not been initialised
        """
        if self._settings is None:
            raise StageStateError("ForeachStage settings are only available after initialise()")
        return self._settings

    @property
    def splitter_kind(self) -> SplitKind | None:
        """Split strategy selected at initialise(), None before."""
        return self._splitter.kind if self._splitter is not None else None

    def set_listener(self, listener: Stage) -> None:
        """Register the stage that receives the message after iteration."""
        self._listener = listener

    def initialise(self) -> None:
        """Validate configuration and assemble the iteration chain.

        Raises:
            InitialisationError: If settings are invalid, the expression cannot
                be compiled, a structural expression has no XML transformer
                pair, or the chain cannot be built
            StageStateError: If the stage is already INITIALISED
        """
        if self._state is StageState.INITIALISED:
            raise StageStateError(f"ForeachStage cannot be initialised from state {self._state}")

        try:
            settings = self._validated_settings()
            splitter = create_splitter(settings)
            codec = resolve_codec(splitter.expression, self._registry)
            chain = ChainBuilder("foreach").chain(splitter, *self._stages).build()
        except (ConfigurationError, TransformerNotFoundError, ExpressionSyntaxError, ExpressionSecurityError) as e:
            slog.warning("foreach_initialise_failed", error=str(e), error_type=type(e).__name__)
            raise InitialisationError(f"ForeachStage failed to initialise: {e}", self) from e

        self._initialise_owned_stages()

        self._settings = settings
        self._splitter = splitter
        self._codec = codec
        self._chain = chain
        self._state = StageState.INITIALISED

        slog.info(
            "foreach_initialised",
            splitter=splitter.kind.value,
            collection=settings.collection,
            batch_size=settings.batch_size,
            inner_stages=len(self._stages),
        )

    def process(self, message: Message) -> Message | None:
        """Iterate the inner chain over message, then forward message.

        Returns:
            The listener's result if a listener is registered, otherwise
            the same message object that was passed in

        Raises:
            StageStateError: If the stage is not INITIALISED
            TransformerError: If the payload cannot be encoded or decoded
        """
        if self._state is not StageState.INITIALISED:
            raise StageStateError(f"ForeachStage cannot process messages in state {self._state}; call initialise() first")
        # Narrowing for type checkers - INITIALISED guarantees both are set
        assert self._settings is not None and self._chain is not None

        encoded = self._codec.needs_encode(message)
        if encoded:
            self._codec.encode(message)

        message.set_property(self._settings.root_message_variable_name, message)
        with foreach_scope(message.message_id):
            self._chain.process(message)

        if encoded:
            self._codec.decode(message)
        return self._process_next(message)

    def _initialise_owned_stages(self) -> None:
        """Initialise inner stages in order.

        A failure propagates as-is. Stages started before it are disposed in
        reverse order first, so a later initialise() starts them afresh.
        """
        started: list[Stage] = []
        try:
            for stage in self._stages:
                initialise = getattr(stage, "initialise", None)
                if callable(initialise):
                    initialise()
                    started.append(stage)
        except Exception:
            slog.warning("foreach_owned_stage_initialise_failed", rolled_back=len(started))
            for stage in reversed(started):
                dispose = getattr(stage, "dispose", None)
                if callable(dispose):
                    dispose()
            raise

    def _process_next(self, message: Message) -> Message | None:
        if self._listener is None:
            return message
        return self._listener.process(message)

    def dispose(self) -> None:
        """Dispose owned stages and retire this stage."""
        if self._state is StageState.DISPOSED:
            return
        for stage in self._stages:
            dispose = getattr(stage, "dispose", None)
            if callable(dispose):
                dispose()
        self._state = StageState.DISPOSED
        slog.debug("foreach_disposed", inner_stages=len(self._stages))

    def _validated_settings(self) -> ForeachSettings:
        if isinstance(self._config, ForeachSettings):
            return self._config
        return ForeachSettings.from_dict(dict(self._config))

    def __repr__(self) -> str:
        return f"ForeachStage(state={self._state.value}, splitter={self.splitter_kind}, stages={len(self._stages)})"

# src/splitloop/engine/chain.py
"""Processing chains: ordered lists of stages run as one stage.

A chain passes each stage the previous stage's output. Two rules shape how a
list of stages becomes a chain:

- Intercepting stages (those exposing set_listener) take over the rest of
  the list: the builder assembles the remaining stages into a sub-chain and
  registers it as the intercepting stage's listener. The outer chain stops
  at the intercepting stage, which forwards to its listener itself.
- A stage returning None ends processing of that message; the chain
  returns None.

Topology is fixed at build time. build() is the only place chain assembly
can fail.
"""

from collections.abc import Iterable
from typing import Self

from splitloop.contracts.errors import ChainBuildError, StageStateError
from splitloop.contracts.message import Message
from splitloop.contracts.stage import InterceptingStage, Stage


class MessageProcessorChain:
    """Runs a fixed sequence of stages in order.

    Created by ChainBuilder.build(); not meant to be constructed directly.
    """

    def __init__(self, stages: tuple[Stage, ...], name: str | None = None) -> None:
        self._stages = stages
        self._name = name

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def name(self) -> str | None:
        return self._name

    def process(self, message: Message) -> Message | None:
        current: Message | None = message
        for stage in self._stages:
            current = stage.process(current)
            if current is None:
                return None
        return current

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"MessageProcessorChain(name={self._name!r}, stages={len(self._stages)})"


class ChainBuilder:
    """Assembles stages into a MessageProcessorChain.

    Example:
        chain = ChainBuilder("orders").chain(splitter, enrich, store).build()
        chain.process(message)
    """

    def __init__(self, name: str | None = None) -> None:
        self._name = name
        self._stages: list[Stage] = []

    def chain(self, *stages: Stage) -> Self:
        """Append stages in order."""
        self._stages.extend(stages)
        return self

    def build(self) -> MessageProcessorChain:
        """Build the chain, wiring intercepting stages to their listeners.

        Raises:
            ChainBuildError: If an element is not a stage or a listener
                cannot be registered
        """
        _validate_stages(self._stages)
        return self._assemble(self._stages)

    def _assemble(self, stages: list[Stage]) -> MessageProcessorChain:
        for index, stage in enumerate(stages):
            if not isinstance(stage, InterceptingStage):
                continue
            remainder = stages[index + 1 :]
            if remainder:
                listener = self._assemble(remainder)
                try:
                    stage.set_listener(listener)
                except (StageStateError, TypeError, ValueError) as e:
                    raise ChainBuildError(f"Cannot register listener on {stage!r}: {e}") from e
            return MessageProcessorChain(tuple(stages[: index + 1]), self._name)
        return MessageProcessorChain(tuple(stages), self._name)


def _validate_stages(stages: Iterable[object]) -> None:
    for position, stage in enumerate(stages):
        if not callable(getattr(stage, "process", None)):
            raise ChainBuildError(f"Element {position} of chain is not a stage (no callable process()): {stage!r}")

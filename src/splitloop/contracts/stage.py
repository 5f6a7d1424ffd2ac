"""Stage protocols: the host pipeline contract.

A stage is anything exposing process(message). An intercepting stage also
accepts a listener - the stage that receives its output - and is responsible
for forwarding to it.

These protocols are used for type checking and for runtime isinstance() checks
when a chain is assembled.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from splitloop.contracts.message import Message


@runtime_checkable
class Stage(Protocol):
    """A unit in a processing pipeline.

    process() returns the resulting message, or None to stop the chain for
    this message.
    """

    def process(self, message: "Message") -> "Message | None": ...


@runtime_checkable
class InterceptingStage(Stage, Protocol):
    """A stage that forwards its own output to a registered listener.

    The host registers the listener with set_listener() before first use.
    """

    def set_listener(self, listener: Stage) -> None: ...

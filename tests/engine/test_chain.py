# tests/engine/test_chain.py
"""Tests for chain assembly and execution."""

import pytest

from splitloop.contracts import ChainBuildError, Message
from splitloop.engine.chain import ChainBuilder, MessageProcessorChain
from splitloop.engine.splitters import CollectionMapSplitter
from tests.conftest import RecordingStage


class AppendStage:
    def __init__(self, value: str) -> None:
        self.value = value

    def process(self, message: Message) -> Message:
        message.payload = [*message.payload, self.value]
        return message


class DropStage:
    def process(self, message: Message) -> None:
        return None


class ReplaceStage:
    def process(self, message: Message) -> Message:
        return Message(payload="replacement")


class Forwarder:
    """Intercepting stage that forwards to its listener."""

    def __init__(self) -> None:
        self.listener: object | None = None

    def set_listener(self, listener: object) -> None:
        self.listener = listener

    def process(self, message: Message) -> Message | None:
        message.set_property("forwarded", True)
        if self.listener is None:
            return message
        return self.listener.process(message)  # type: ignore[attr-defined]


class RejectingListener(Forwarder):
    def set_listener(self, listener: object) -> None:
        raise ValueError("listener already fixed")


class TestChainExecution:
    def test_stages_run_in_order(self) -> None:
        chain = ChainBuilder().chain(AppendStage("a"), AppendStage("b")).build()
        assert chain.process(Message(payload=[])).payload == ["a", "b"]

    def test_each_stage_receives_previous_output(self) -> None:
        recorder = RecordingStage()
        chain = ChainBuilder().chain(ReplaceStage(), recorder).build()

        result = chain.process(Message(payload="original"))

        assert recorder.payloads == ["replacement"]
        assert result is not None and result.payload == "replacement"

    def test_none_stops_chain(self) -> None:
        recorder = RecordingStage()
        chain = ChainBuilder().chain(DropStage(), recorder).build()

        assert chain.process(Message(payload=1)) is None
        assert recorder.seen == []

    def test_empty_chain_returns_message(self) -> None:
        message = Message(payload=1)
        assert ChainBuilder().build().process(message) is message

    def test_chain_is_a_stage(self) -> None:
        inner = ChainBuilder().chain(AppendStage("inner")).build()
        outer = ChainBuilder().chain(inner, AppendStage("outer")).build()
        assert outer.process(Message(payload=[])).payload == ["inner", "outer"]


class TestInterceptingStages:
    def test_remainder_becomes_listener(self) -> None:
        forwarder = Forwarder()
        recorder = RecordingStage()

        chain = ChainBuilder("test").chain(AppendStage("a"), forwarder, recorder).build()

        assert len(chain) == 2
        assert isinstance(forwarder.listener, MessageProcessorChain)
        assert forwarder.listener.stages == (recorder,)

        chain.process(Message(payload=[]))
        assert recorder.seen[0].properties["forwarded"] is True
        assert recorder.payloads == [["a"]]

    def test_intercepting_stage_last_gets_no_listener(self) -> None:
        forwarder = Forwarder()
        ChainBuilder().chain(forwarder).build()
        assert forwarder.listener is None

    def test_nested_intercepting_stages(self) -> None:
        first, second = Forwarder(), Forwarder()
        recorder = RecordingStage()

        ChainBuilder().chain(first, AppendStage("x"), second, recorder).build()

        assert isinstance(first.listener, MessageProcessorChain)
        assert len(first.listener) == 2
        assert isinstance(second.listener, MessageProcessorChain)
        assert second.listener.stages == (recorder,)

    def test_splitter_routes_each_element_through_remainder(self) -> None:
        recorder = RecordingStage()
        chain = ChainBuilder().chain(CollectionMapSplitter(), AppendStage("seen"), recorder).build()

        chain.process(Message(payload=[[1], [2]]))

        assert recorder.payloads == [[1, "seen"], [2, "seen"]]
        assert recorder.property_values("counter") == [1, 2]


class TestChainBuildErrors:
    def test_non_stage_rejected(self) -> None:
        with pytest.raises(ChainBuildError, match="Element 1"):
            ChainBuilder().chain(RecordingStage(), object()).build()  # type: ignore[arg-type]

    def test_non_callable_process_rejected(self) -> None:
        class NotAStage:
            process = "nope"

        with pytest.raises(ChainBuildError):
            ChainBuilder().chain(NotAStage()).build()  # type: ignore[arg-type]

    def test_listener_registration_failure(self) -> None:
        with pytest.raises(ChainBuildError, match="listener already fixed") as exc_info:
            ChainBuilder().chain(RejectingListener(), RecordingStage()).build()
        assert isinstance(exc_info.value.__cause__, ValueError)

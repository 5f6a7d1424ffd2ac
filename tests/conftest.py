# tests/conftest.py
"""Shared test fixtures and helper stages.

Helper Stages:
- RecordingStage: records every message it sees (payload, property snapshot)
- FailingStage: raises on the Nth message it sees
- LifecycleStage: counts initialise()/dispose() calls

Stages are plain classes satisfying the Stage protocol - the host contract
is structural, so tests never need a base class.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from dataclasses import dataclass, field
from typing import Any

import pytest
from hypothesis import Verbosity, settings

from splitloop.contracts import Message
from splitloop.plugins.manager import TransformerRegistry

settings.register_profile("ci", max_examples=100)
settings.register_profile("nightly", max_examples=1000)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "ci"))


@dataclass
class Seen:
    """One message observed by a RecordingStage."""

    message: Message
    payload: Any
    properties: dict[str, Any]


class RecordingStage:
    """Stage that records what it receives and passes the message on."""

    def __init__(self) -> None:
        self.seen: list[Seen] = []

    def process(self, message: Message) -> Message:
        self.seen.append(Seen(message=message, payload=message.payload, properties=dict(message.properties)))
        return message

    @property
    def payloads(self) -> list[Any]:
        return [s.payload for s in self.seen]

    def property_values(self, name: str) -> list[Any]:
        return [s.properties.get(name) for s in self.seen]


class InjectedFailure(RuntimeError):
    """Raised by FailingStage."""


class FailingStage:
    """Stage that raises InjectedFailure on the fail_on-th message (1-based)."""

    def __init__(self, fail_on: int) -> None:
        self.fail_on = fail_on
        self.calls = 0

    def process(self, message: Message) -> Message:
        self.calls += 1
        if self.calls == self.fail_on:
            raise InjectedFailure(f"failed on message {self.calls}")
        return message


@dataclass
class LifecycleStage:
    """Stage that counts lifecycle calls."""

    initialised: int = 0
    disposed: int = 0
    fail_initialise: bool = False
    seen: list[Message] = field(default_factory=list)

    def initialise(self) -> None:
        if self.fail_initialise:
            raise RuntimeError("inner stage cannot start")
        self.initialised += 1

    def dispose(self) -> None:
        self.disposed += 1

    def process(self, message: Message) -> Message:
        self.seen.append(message)
        return message


@pytest.fixture
def recorder() -> RecordingStage:
    return RecordingStage()


@pytest.fixture
def registry() -> TransformerRegistry:
    return TransformerRegistry.with_builtins()

"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes are NOT re-exported here - import them from
splitloop.core.config.
"""

from splitloop.contracts.enums import Representation, SplitKind, StageState
from splitloop.contracts.errors import (
    ChainBuildError,
    ConfigurationError,
    InitialisationError,
    SplitloopError,
    StageStateError,
    TransformerError,
    TransformerNotFoundError,
)
from splitloop.contracts.message import Message
from splitloop.contracts.stage import InterceptingStage, Stage

__all__ = [
    "ChainBuildError",
    "ConfigurationError",
    "InitialisationError",
    "InterceptingStage",
    "Message",
    "Representation",
    "SplitKind",
    "SplitloopError",
    "Stage",
    "StageState",
    "StageStateError",
    "TransformerError",
    "TransformerNotFoundError",
]

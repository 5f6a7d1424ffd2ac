"""Exception hierarchy for foreach stages.

Configuration problems are detected when a stage is initialised and are never
replaced by silent defaults. Transformer failures surface from process()
immediately. Errors raised by inner stages are NOT wrapped - they propagate to
the caller of process() unchanged.
"""

from typing import Any


class SplitloopError(Exception):
    """Base class for all splitloop errors."""


class ConfigurationError(SplitloopError):
    """Raised when stage or split configuration is invalid."""


class InitialisationError(ConfigurationError):
    """Raised when a stage fails to initialise.

    The underlying failure is chained via __cause__. The stage that raised
    it stays UNINITIALISED and refuses to process messages.

    Attributes:
        stage: The stage that failed to initialise
    """

    def __init__(self, message: str, stage: Any) -> None:
        self.stage = stage
        super().__init__(message)


class ChainBuildError(ConfigurationError):
    """Raised when a processing chain cannot be assembled."""


class TransformerError(SplitloopError):
    """Raised when a payload cannot be converted between representations."""


class TransformerNotFoundError(TransformerError):
    """Raised when no transformer is registered for a representation pair.

    Attributes:
        source: Representation the transformer would read
        target: Representation the transformer would produce
    """

    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(f"No transformer registered for {source} -> {target}")


class StageStateError(SplitloopError):
    """Raised when a stage is used in the wrong lifecycle state."""

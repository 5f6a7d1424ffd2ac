"""Status codes, kinds, and representation tokens shared across subsystems."""

from enum import StrEnum


class StageState(StrEnum):
    """Lifecycle state of a ForeachStage.

    UNINITIALISED -> INITIALISED -> DISPOSED. Only initialise() moves a stage
    into INITIALISED, and a failed initialise() leaves it UNINITIALISED.
    """

    UNINITIALISED = "uninitialised"
    INITIALISED = "initialised"
    DISPOSED = "disposed"


class SplitKind(StrEnum):
    """Closed set of split strategies.

    Selected once from settings when the stage is initialised:
    - COLLECTION_MAP: no expression, split the payload itself
    - EXPRESSION: evaluate a value expression, split its result
    - STRUCTURAL: evaluate a branch-producing xpath query over an element tree
    """

    COLLECTION_MAP = "collection_map"
    EXPRESSION = "expression"
    STRUCTURAL = "structural"


class Representation(StrEnum):
    """Payload representation tokens used as transformer registry keys."""

    XML_STRING = "xml_string"
    XML_DOCUMENT = "xml_document"

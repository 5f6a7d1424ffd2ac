# src/splitloop/core/config.py
"""
Configuration schema and loading for foreach stages.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from splitloop.contracts.errors import ConfigurationError

ROOT_MESSAGE_PROPERTY = "rootMessage"
COUNTER_PROPERTY = "counter"


class ForeachSettings(BaseModel):
    """How a foreach stage splits a message.

    Example YAML:
        collection: "payload['orders']"
        batch_size: 10
        counter_variable_name: "orderNumber"

    Attributes:
        collection: Selection expression. None splits the payload itself.
            "xpath:<path>" selects elements of an XML document.
        batch_size: Elements per sub-message. 1 means one element each;
            larger values group elements into lists.
        root_message_variable_name: Property holding the original message
        counter_variable_name: Property holding the 1-based iteration number
    """

    model_config = {"frozen": True, "extra": "forbid"}

    collection: str | None = Field(
        default=None,
        description="Expression selecting the collection to iterate (default: the payload)",
    )
    batch_size: int = Field(default=1, description="Number of elements per sub-message")
    root_message_variable_name: str = Field(default=ROOT_MESSAGE_PROPERTY)
    counter_variable_name: str = Field(default=COUNTER_PROPERTY)

    @field_validator("collection")
    @classmethod
    def validate_collection_expression(cls, v: str | None) -> str | None:
        """Validate that collection is a valid expression at config time."""
        if v is None:
            return v
        from splitloop.engine.expression_parser import (
            ExpressionSecurityError,
            ExpressionSyntaxError,
            compile_expression,
        )

        try:
            compile_expression(v)
        except ExpressionSyntaxError as e:
            raise ValueError(f"Invalid collection syntax: {e}") from e
        except ExpressionSecurityError as e:
            raise ValueError(f"Forbidden construct in collection: {e}") from e
        return v

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"batch_size must be a positive integer, got {v}")
        return v

    @field_validator("root_message_variable_name", "counter_variable_name")
    @classmethod
    def validate_variable_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("variable name cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_distinct_variable_names(self) -> Self:
        """Root message and counter must not overwrite each other."""
        if self.root_message_variable_name == self.counter_variable_name:
            raise ValueError(
                f"root_message_variable_name and counter_variable_name must differ, both are {self.counter_variable_name!r}"
            )
        return self

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> Self:
        """Create settings from dict with clear error on validation failure.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        if not isinstance(config, dict):
            raise ConfigurationError(f"Invalid configuration for {cls.__name__}: config must be a dict, got {type(config).__name__}.")
        try:
            return cls.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration for {cls.__name__}: {e}") from e


def load_settings(config_path: Path) -> ForeachSettings:
    """Load settings from a YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (SPLITLOOP_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated ForeachSettings instance

    Raises:
        ConfigurationError: If configuration fails validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="SPLITLOOP",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
    )

    # Dynaconf returns uppercase keys; Pydantic fields are lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    return ForeachSettings.from_dict(raw_config)

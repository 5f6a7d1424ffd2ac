# tests/core/test_config.py
"""Tests for ForeachSettings validation and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from splitloop.contracts import ConfigurationError
from splitloop.core.config import COUNTER_PROPERTY, ROOT_MESSAGE_PROPERTY, ForeachSettings, load_settings


class TestForeachSettingsDefaults:
    def test_defaults(self) -> None:
        settings = ForeachSettings()
        assert settings.collection is None
        assert settings.batch_size == 1
        assert settings.root_message_variable_name == ROOT_MESSAGE_PROPERTY == "rootMessage"
        assert settings.counter_variable_name == COUNTER_PROPERTY == "counter"

    def test_settings_are_frozen(self) -> None:
        settings = ForeachSettings()
        with pytest.raises(ValidationError):
            settings.batch_size = 5  # type: ignore[misc]


class TestForeachSettingsValidation:
    @pytest.mark.parametrize("batch_size", [0, -1, -100])
    def test_non_positive_batch_size_rejected(self, batch_size: int) -> None:
        with pytest.raises(ConfigurationError, match="batch_size"):
            ForeachSettings.from_dict({"batch_size": batch_size})

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="ForeachSettings"):
            ForeachSettings.from_dict({"colection": "payload"})

    def test_non_dict_config_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="must be a dict"):
            ForeachSettings.from_dict(["collection"])  # type: ignore[arg-type]

    def test_invalid_expression_syntax_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid collection syntax"):
            ForeachSettings.from_dict({"collection": "payload[["})

    def test_forbidden_expression_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Forbidden construct"):
            ForeachSettings.from_dict({"collection": "__import__('os')"})

    @pytest.mark.parametrize("collection", ["xpath:", "xpath:b[", "xpath:@x", "xpath:b[@x='1'"])
    def test_invalid_xpath_rejected(self, collection: str) -> None:
        with pytest.raises(ConfigurationError, match="Invalid collection syntax"):
            ForeachSettings.from_dict({"collection": collection})

    def test_valid_expressions_accepted(self) -> None:
        assert ForeachSettings.from_dict({"collection": "payload['items']"}).collection == "payload['items']"
        assert ForeachSettings.from_dict({"collection": "xpath://b"}).collection == "xpath://b"

    def test_empty_variable_name_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="variable name cannot be empty"):
            ForeachSettings.from_dict({"counter_variable_name": "  "})

    def test_same_variable_names_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="must differ"):
            ForeachSettings.from_dict({"root_message_variable_name": "x", "counter_variable_name": "x"})

    def test_overrides_accepted(self) -> None:
        settings = ForeachSettings.from_dict(
            {"batch_size": 3, "root_message_variable_name": "parent", "counter_variable_name": "index"}
        )
        assert settings.batch_size == 3
        assert settings.root_message_variable_name == "parent"
        assert settings.counter_variable_name == "index"


class TestLoadSettings:
    def test_load_from_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "foreach.yaml"
        config_file.write_text("collection: \"payload['orders']\"\nbatch_size: 4\ncounter_variable_name: orderNumber\n")

        settings = load_settings(config_file)

        assert settings.collection == "payload['orders']"
        assert settings.batch_size == 4
        assert settings.counter_variable_name == "orderNumber"
        assert settings.root_message_variable_name == "rootMessage"

    def test_environment_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "foreach.yaml"
        config_file.write_text("batch_size: 4\n")
        monkeypatch.setenv("SPLITLOOP_BATCH_SIZE", "7")

        assert load_settings(config_file).batch_size == 7

    def test_invalid_file_values_raise_configuration_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "foreach.yaml"
        config_file.write_text("batch_size: 0\n")

        with pytest.raises(ConfigurationError, match="batch_size"):
            load_settings(config_file)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

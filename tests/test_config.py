"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for application settings.
"""

import logging
import os
import tempfile

import pytest
import yaml

from note_forge.config.loader import (
    DEFAULT_DB_PATH,
    BillingSettings,
    ExportSettings,
    GenerationSettings,
    TierConfig,
    default_settings,
    load_settings
)
from note_forge.config.logging_config import configure_logging


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_data = {
            "generation": {
                "model": "test-model",
                "max_attempts": 5,
                "retry_delay_seconds": 1.5,
                "request_deadline_seconds": None
            },
            "billing": {
                "coins_per_page": 2,
                "signup_bonus": 25,
                "tiers": {
                    "free": {"monthly_limit": 5},
                    "pro": {"monthly_limit": None}
                }
            },
            "storage": {"db_path": "/tmp/notes.db"},
            "export": {"page_size": "letter", "page_margin": 18},
            "server": {"api_tokens": {"tok-1": "alice"}}
        }

        settings = load_settings(self._write_config(config_data))

        assert settings.generation.model == "test-model"
        assert settings.generation.max_attempts == 5
        assert settings.generation.retry_delay_seconds == 1.5
        assert settings.generation.request_deadline_seconds is None
        assert settings.billing.coins_per_page == 2
        assert settings.billing.signup_bonus == 25
        assert settings.billing.tiers["free"].monthly_limit == 5
        assert settings.billing.tiers["pro"].monthly_limit is None
        assert settings.storage.db_path == "/tmp/notes.db"
        assert settings.export.page_size == "letter"
        assert settings.export.page_margin == 18
        assert settings.server.api_tokens == {"tok-1": "alice"}

    def test_missing_sections_use_defaults(self):
        """Test that omitted sections fall back to built-in defaults."""
        settings = load_settings(self._write_config({"storage": {"db_path": "x.db"}}))

        assert settings.generation == GenerationSettings()
        assert settings.billing.signup_bonus == 10
        assert settings.export == ExportSettings()
        assert settings.server.api_tokens == {}

    def test_default_settings(self):
        """Test built-in defaults."""
        settings = default_settings()

        assert settings.storage.db_path == DEFAULT_DB_PATH
        assert settings.generation.max_attempts == 3
        assert settings.generation.retry_delay_seconds == 2.0
        assert settings.generation.request_deadline_seconds == 90.0
        assert settings.billing.coins_per_page == 1
        assert set(settings.billing.tiers) == {"free", "pro", "enterprise"}
        assert settings.export.min_width == 600
        assert settings.export.max_width == 1200
        assert settings.export.device_scale == 2.0

    def test_file_not_found(self):
        """Test error when config file doesn't exist."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(os.path.join(self.temp_dir, "missing.yaml"))

    def test_invalid_yaml(self):
        """Test error on malformed YAML."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("generation: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_settings(config_path)

    def test_empty_config(self):
        """Test error on empty configuration file."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()

        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_settings(config_path)

    def test_unknown_top_level_key(self):
        """Test that unknown top-level keys are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_settings(self._write_config({"storage": {}, "telemetry": {}}))

    def test_unknown_section_key(self):
        """Test that unknown keys inside a section are rejected."""
        with pytest.raises(ValueError, match="Unknown keys in generation"):
            load_settings(self._write_config({"generation": {"retries": 3}}))

    def test_unknown_tier_key(self):
        """Test that unknown tier keys are rejected."""
        config_data = {"billing": {"tiers": {"free": {"coins": 5}}}}
        with pytest.raises(ValueError, match="Unknown keys in billing.tiers.free"):
            load_settings(self._write_config(config_data))

    def test_default_tier_must_exist(self):
        """Test that the default tier must be one of the configured tiers."""
        config_data = {"billing": {"tiers": {"pro": {}}}}
        with pytest.raises(ValueError, match="not a configured tier"):
            load_settings(self._write_config(config_data))

    def test_invalid_api_tokens(self):
        """Test that api_tokens must map strings to user ids."""
        config_data = {"server": {"api_tokens": {"tok": ""}}}
        with pytest.raises(ValueError, match="api_tokens"):
            load_settings(self._write_config(config_data))


class TestSettingsValidation:
    """Test dataclass-level validation."""

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError, match="max_attempts must be >= 1"):
            GenerationSettings(max_attempts=0)

    def test_empty_model(self):
        with pytest.raises(ValueError, match="model is required"):
            GenerationSettings(model="  ")

    def test_invalid_deadline(self):
        with pytest.raises(ValueError, match="request_deadline_seconds"):
            GenerationSettings(request_deadline_seconds=0)

    def test_invalid_coins_per_page(self):
        with pytest.raises(ValueError, match="coins_per_page must be >= 1"):
            BillingSettings(coins_per_page=0)

    def test_negative_monthly_limit(self):
        with pytest.raises(ValueError, match="monthly_limit"):
            TierConfig(monthly_limit=-1)

    def test_export_width_range(self):
        with pytest.raises(ValueError, match="max_width must be >= export.min_width"):
            ExportSettings(min_width=800, max_width=600)

    def test_export_page_size(self):
        with pytest.raises(ValueError, match="page_size"):
            ExportSettings(page_size="A3")

    def test_get_tier_falls_back_to_default(self):
        billing = BillingSettings(tiers={"free": TierConfig(monthly_limit=3)})
        assert billing.get_tier("gold").monthly_limit == 3


class TestLoggingConfig:
    """Test logging setup."""

    def test_configure_logging_is_idempotent(self):
        logger = configure_logging("DEBUG")
        handler_count = len(logger.handlers)

        logger = configure_logging("INFO")

        assert len(logger.handlers) == handler_count
        assert logger.level == logging.INFO

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("LOUD")

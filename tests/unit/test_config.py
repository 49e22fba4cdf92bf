"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from tpebatch.common.config import (
    HarnessSettings,
    LoggingSettings,
    OptimizerSettings,
    ParzenSettings,
    get_settings,
    reload_settings,
)


class TestOptimizerSettings:
    """Test optimizer loop configuration."""

    def test_default_values(self):
        config = OptimizerSettings()
        assert config.trial_budget == 1000
        assert config.batch_size == 50
        assert config.num_workers is None
        assert config.execution_method == "thread"
        assert config.sampler == "parzen"
        assert config.direction == "maximize"
        assert config.seed == 0
        assert config.objective_delay_ms == 50

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TRIAL_BUDGET", "120")
        monkeypatch.setenv("BATCH_SIZE", "12")
        monkeypatch.setenv("EXECUTION_METHOD", "PROCESS")
        config = OptimizerSettings()
        assert config.trial_budget == 120
        assert config.batch_size == 12
        assert config.execution_method == "process"

    def test_keyword_override(self):
        config = OptimizerSettings(trial_budget=7, direction="MINIMIZE")
        assert config.trial_budget == 7
        assert config.direction == "minimize"

    @pytest.mark.parametrize("field,value", [
        ("trial_budget", 0),
        ("batch_size", -1),
        ("num_workers", 0),
        ("execution_method", "fiber"),
        ("sampler", "grid"),
        ("direction", "sideways"),
        ("objective_delay_ms", -5),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            OptimizerSettings(**{field: value})


class TestParzenSettings:
    """Test Parzen estimator configuration."""

    def test_default_values(self):
        config = ParzenSettings()
        assert config.gamma == 0.1
        assert config.n_candidates == 24
        assert config.prior_weight == 1.0
        assert config.max_resamples == 100

    def test_gamma_range(self):
        ParzenSettings(gamma=1.0)
        with pytest.raises(ValidationError):
            ParzenSettings(gamma=0.0)
        with pytest.raises(ValidationError):
            ParzenSettings(gamma=1.5)


class TestLoggingSettings:
    """Test logging configuration."""

    def test_level_normalized(self):
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_invalid_level_and_format(self):
        with pytest.raises(ValidationError):
            LoggingSettings(level="LOUD")
        with pytest.raises(ValidationError):
            LoggingSettings(format="xml")


class TestHarnessSettings:
    """Test combined settings."""

    def test_sub_configurations(self):
        settings = HarnessSettings()
        assert isinstance(settings.optimizer, OptimizerSettings)
        assert isinstance(settings.parzen, ParzenSettings)
        assert isinstance(settings.logging, LoggingSettings)
        assert settings.service_name == "tpebatch"

    def test_reload_settings(self, monkeypatch):
        monkeypatch.setenv("SEED", "99")
        try:
            reloaded = reload_settings()
            assert reloaded.optimizer.seed == 99
            assert get_settings() is reloaded
        finally:
            monkeypatch.delenv("SEED")
            reload_settings()

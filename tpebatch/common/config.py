"""
Configuration management using Pydantic settings.

This module provides typed configuration classes that load from environment variables
with validation and defaults for the optimization harness.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OptimizerSettings(BaseSettings):
    """Batch loop configuration."""

    model_config = SettingsConfigDict(env_file=None, extra='ignore', populate_by_name=True)

    trial_budget: int = Field(default=1000, validation_alias="TRIAL_BUDGET")
    batch_size: int = Field(default=50, validation_alias="BATCH_SIZE")
    num_workers: Optional[int] = Field(default=None, validation_alias="NUM_WORKERS")
    execution_method: str = Field(default="thread", validation_alias="EXECUTION_METHOD")
    sampler: str = Field(default="parzen", validation_alias="SAMPLER")
    direction: str = Field(default="maximize", validation_alias="DIRECTION")
    seed: int = Field(default=0, validation_alias="SEED")
    objective_delay_ms: int = Field(default=50, validation_alias="OBJECTIVE_DELAY_MS")

    @field_validator("trial_budget", "batch_size")
    @classmethod
    def validate_positive(cls, v):
        """Budget and batch size must be at least one trial."""
        if v <= 0:
            raise ValueError("TRIAL_BUDGET and BATCH_SIZE must be positive")
        return v

    @field_validator("num_workers")
    @classmethod
    def validate_num_workers(cls, v):
        if v is not None and v <= 0:
            raise ValueError("NUM_WORKERS must be positive when set")
        return v

    @field_validator("execution_method")
    @classmethod
    def validate_execution_method(cls, v):
        valid_methods = ["thread", "process"]
        if v.lower() not in valid_methods:
            raise ValueError(f"EXECUTION_METHOD must be one of: {valid_methods}")
        return v.lower()

    @field_validator("sampler")
    @classmethod
    def validate_sampler(cls, v):
        valid_samplers = ["parzen", "optuna"]
        if v.lower() not in valid_samplers:
            raise ValueError(f"SAMPLER must be one of: {valid_samplers}")
        return v.lower()

    @field_validator("direction")
    @classmethod
    def validate_direction(cls, v):
        valid_directions = ["maximize", "minimize"]
        if v.lower() not in valid_directions:
            raise ValueError(f"DIRECTION must be one of: {valid_directions}")
        return v.lower()

    @field_validator("objective_delay_ms")
    @classmethod
    def validate_delay(cls, v):
        if v < 0:
            raise ValueError("OBJECTIVE_DELAY_MS must be non-negative")
        return v


class ParzenSettings(BaseSettings):
    """Per-dimension Parzen estimator configuration."""

    model_config = SettingsConfigDict(env_file=None, extra='ignore', populate_by_name=True)

    gamma: float = Field(default=0.1, validation_alias="TPE_GAMMA")
    n_candidates: int = Field(default=24, validation_alias="TPE_CANDIDATES")
    prior_weight: float = Field(default=1.0, validation_alias="TPE_PRIOR_WEIGHT")
    max_resamples: int = Field(default=100, validation_alias="TPE_MAX_RESAMPLES")

    @field_validator("gamma")
    @classmethod
    def validate_gamma(cls, v):
        """Gamma is the fraction of observations treated as superior."""
        if not 0.0 < v <= 1.0:
            raise ValueError("TPE_GAMMA must be in (0, 1]")
        return v

    @field_validator("n_candidates", "max_resamples")
    @classmethod
    def validate_counts(cls, v):
        if v <= 0:
            raise ValueError("TPE_CANDIDATES and TPE_MAX_RESAMPLES must be positive")
        return v

    @field_validator("prior_weight")
    @classmethod
    def validate_prior_weight(cls, v):
        if v <= 0:
            raise ValueError("TPE_PRIOR_WEIGHT must be positive")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_file=None, extra='ignore', populate_by_name=True)

    level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    format: str = Field(default="json", validation_alias="LOG_FORMAT")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v):
        valid_formats = ["json", "text"]
        if v.lower() not in valid_formats:
            raise ValueError(f"LOG_FORMAT must be one of: {valid_formats}")
        return v.lower()


class HarnessSettings(BaseSettings):
    """Main configuration class that combines all settings."""

    model_config = SettingsConfigDict(env_file=None, extra='ignore', case_sensitive=False)

    service_name: str = Field(default="tpebatch", validation_alias="SERVICE_NAME")

    # Sub-configurations
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    parzen: ParzenSettings = Field(default_factory=ParzenSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Global settings instance
settings = HarnessSettings()


def get_settings() -> HarnessSettings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> HarnessSettings:
    """Reload settings from environment (useful for testing)."""
    global settings
    settings = HarnessSettings()
    return settings

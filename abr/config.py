"""Configuration management for the ABR engine.

Loads and validates tunables from environment variables using Pydantic settings.
"""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class AbrConfig(BaseSettings):
    """ABR engine configuration loaded from environment variables."""

    # Bandwidth estimator
    window_size_ms: int = Field(default=3000, alias="ABR_WINDOW_SIZE_MS", ge=100)
    min_samples: int = Field(default=3, alias="ABR_MIN_SAMPLES", ge=1, le=100)
    ewma_fast_alpha: float = Field(
        default=0.3, alias="ABR_EWMA_FAST_ALPHA", gt=0.0, le=1.0
    )
    ewma_slow_alpha: float = Field(
        default=0.1, alias="ABR_EWMA_SLOW_ALPHA", gt=0.0, le=1.0
    )
    safety_factor: float = Field(default=0.7, alias="ABR_SAFETY_FACTOR", gt=0.0, le=1.0)

    # Quality selector
    min_switch_interval_ms: int = Field(
        default=5000, alias="ABR_MIN_SWITCH_INTERVAL_MS", ge=0
    )
    up_switch_threshold: float = Field(
        default=1.5, alias="ABR_UP_SWITCH_THRESHOLD", gt=0.0
    )
    down_switch_threshold: float = Field(
        default=0.8, alias="ABR_DOWN_SWITCH_THRESHOLD", gt=0.0
    )
    min_buffer_for_upswitch: float = Field(
        default=10.0, alias="ABR_MIN_BUFFER_FOR_UPSWITCH", ge=0.0
    )
    critical_buffer_level: float = Field(
        default=5.0, alias="ABR_CRITICAL_BUFFER_LEVEL", ge=0.0
    )
    max_consecutive_switches: int = Field(
        default=2, alias="ABR_MAX_CONSECUTIVE_SWITCHES", ge=1
    )
    stability_period_ms: int = Field(
        default=30000, alias="ABR_STABILITY_PERIOD_MS", ge=0
    )
    trend_window_size: int = Field(
        default=5, alias="ABR_TREND_WINDOW_SIZE", ge=2, le=100
    )
    trend_threshold: float = Field(default=0.1, alias="ABR_TREND_THRESHOLD", ge=0.0)
    end_of_media_guard_s: float = Field(
        default=30.0, alias="ABR_END_OF_MEDIA_GUARD_S", ge=0.0
    )
    switch_history_size: int = Field(
        default=10, alias="ABR_SWITCH_HISTORY_SIZE", ge=1, le=1000
    )

    # Playback monitor
    moving_average_period: int = Field(
        default=3, alias="ABR_MOVING_AVERAGE_PERIOD", ge=1
    )
    quality_check_interval_ms: int = Field(
        default=1000, alias="ABR_QUALITY_CHECK_INTERVAL_MS", ge=0
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", alias="ABR_LOG_LEVEL"
    )

    @model_validator(mode="after")
    def validate_relations(self) -> "AbrConfig":
        """Check the cross-field constraints the algorithms rely on."""
        if self.ewma_fast_alpha <= self.ewma_slow_alpha:
            raise ValueError(
                f"ewma_fast_alpha ({self.ewma_fast_alpha}) must be greater than "
                f"ewma_slow_alpha ({self.ewma_slow_alpha})"
            )
        if self.critical_buffer_level > self.min_buffer_for_upswitch:
            raise ValueError(
                f"critical_buffer_level ({self.critical_buffer_level}s) must not "
                f"exceed min_buffer_for_upswitch ({self.min_buffer_for_upswitch}s)"
            )
        return self

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True


# Singleton configuration instance
_config: AbrConfig | None = None


def get_config() -> AbrConfig:
    """Get the global configuration instance.

    Returns:
        AbrConfig: Configuration singleton
    """
    global _config
    if _config is None:
        _config = AbrConfig()
    return _config

"""dzslide configuration using pydantic-settings.

All configuration is strongly typed and supports environment variables
and .env files.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when a configuration value is missing or invalid.

    Example:
        >>> Settings(_env_file=None, BACKGROUND_COLOR="red").background_rgb()
        Traceback (most recent call last):
        ...
        ConfigError: Invalid setting BACKGROUND_COLOR: expected RRGGBB, got 'red'
    """

    def __init__(self, key_name: str, reason: str) -> None:
        """Initialize configuration error.

        Args:
            key_name: Name of the offending setting.
            reason: Why the value was rejected.
        """
        self.key_name = key_name
        self.reason = reason
        super().__init__(f"Invalid setting {key_name}: {reason}")


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"  # "console" or "json"

    # Deep Zoom tiling
    TILE_STRIDE: int = 254  # Tile edge before overlap pixels are added
    TILE_OVERLAP: int = 1  # Pixels shared with each neighbouring tile
    TILE_FORMAT: str = "jpeg"
    JPEG_QUALITY: int = 75
    BACKGROUND_COLOR: str = "ffffff"  # Fill for transparent (unscanned) pixels

    # Pyramid resolution
    BEST_LEVEL_TOLERANCE: float = 1.01  # Slack when picking a native level
    EASY_LEVEL_TOLERANCE: float = 0.01  # |total downsample - 1| below this = easy level

    # Microns-per-pixel plausibility window
    MPP_MIN: float = 1e-10
    MPP_MAX: float = 1000.0

    @field_validator("TILE_STRIDE")
    @classmethod
    def _check_stride(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"TILE_STRIDE must be positive, got {value}")
        return value

    @field_validator("TILE_OVERLAP")
    @classmethod
    def _check_overlap(cls, value: int) -> int:
        if value not in (0, 1):
            raise ValueError(f"TILE_OVERLAP must be 0 or 1, got {value}")
        return value

    @field_validator("JPEG_QUALITY")
    @classmethod
    def _check_quality(cls, value: int) -> int:
        if not 1 <= value <= 100:
            raise ValueError(f"JPEG_QUALITY must be 1-100, got {value}")
        return value

    def background_rgb(self) -> tuple[int, int, int]:
        """Return BACKGROUND_COLOR as an (r, g, b) tuple.

        Raises:
            ConfigError: If BACKGROUND_COLOR is not a 6-digit hex string.
        """
        value = self.BACKGROUND_COLOR.strip().lstrip("#")
        if len(value) != 6:
            raise ConfigError("BACKGROUND_COLOR", f"expected RRGGBB, got {value!r}")
        try:
            return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))
        except ValueError as e:
            raise ConfigError(
                "BACKGROUND_COLOR", f"expected RRGGBB, got {value!r}"
            ) from e


# Singleton instance for import convenience
settings = Settings()

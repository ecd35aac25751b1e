"""Shared pytest fixtures and configuration."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fakes import FakeSlideSource, RecordingObserver, power_pyramid

from dzslide.config import Settings
from dzslide.utils.logging import clear_correlation_context, configure_logging


@pytest.fixture(autouse=True)
def reset_logging_context() -> Iterator[None]:
    """Reset correlation context between tests."""
    clear_correlation_context()
    yield
    clear_correlation_context()


@pytest.fixture
def test_settings() -> Settings:
    """Create a Settings instance with test-safe defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        LOG_LEVEL="DEBUG",
        LOG_FORMAT="console",
    )


@pytest.fixture
def configure_test_logging() -> Iterator[None]:
    """Configure logging for tests with console output."""
    configure_logging(level="DEBUG", log_format="console")
    yield


@pytest.fixture
def standard_source() -> FakeSlideSource:
    """4096x3072 slide with native downsamples 1, 4, 16."""
    return FakeSlideSource(
        power_pyramid(4096, 3072),
        properties={"openslide.vendor": "aperio", "openslide.mpp-x": "0.2498"},
    )


@pytest.fixture
def recorder() -> RecordingObserver:
    """Observer capturing trace events."""
    return RecordingObserver()


@pytest.fixture
def slide_file(tmp_path: Path) -> Path:
    """An existing (content-free) slide path."""
    path = tmp_path / "slide.svs"
    path.write_bytes(b"fake slide")
    return path

"""Fixtures for slide integration tests.

These tests require a real slide file. They are skipped if none is available.

Test files can be provided via:
1. WSI_TEST_FILE environment variable pointing to a local slide file
2. A pre-downloaded .svs file in tests/integration/wsi/data/

The CMU-1-Small-Region.svs file (~10MB) is recommended for CI:
    https://openslide.cs.cmu.edu/download/openslide-testdata/Aperio/CMU-1-Small-Region.svs
"""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

pytestmark = pytest.mark.integration


def get_test_wsi_path() -> Path | None:
    """Get the path to a real slide test file.

    Returns:
        Path to slide file if available, None otherwise.
    """
    env_path = os.environ.get("WSI_TEST_FILE")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    test_data_dir = Path(__file__).parent / "data"
    if test_data_dir.exists():
        for svs_file in test_data_dir.glob("*.svs"):
            return svs_file

    return None


@pytest.fixture(scope="session")
def wsi_test_file() -> Generator[Path, None, None]:
    """Provide path to a real slide test file.

    Skips the test if no test file is available.
    """
    path = get_test_wsi_path()
    if path is None:
        pytest.skip(
            "No WSI test file available. "
            "Set WSI_TEST_FILE environment variable or download test data. "
            "Example: curl -LO https://openslide.cs.cmu.edu/download/"
            "openslide-testdata/Aperio/CMU-1-Small-Region.svs"
        )
    yield path

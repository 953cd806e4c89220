"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from src.core.models import ChildProfile  # noqa: E402
from tests.factories import InMemoryProfileStore, RecordingSleep  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'profiles.db'}",
    )


@pytest.fixture
def now():
    """Fixed planning clock."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def child():
    """A fourth grader."""
    return ChildProfile(id="child-1", family_id="family-1", grade=4)


@pytest.fixture
def store():
    """Empty in-memory profile store."""
    return InMemoryProfileStore()


@pytest.fixture
def sleep():
    """Non-blocking backoff sleep."""
    return RecordingSleep()

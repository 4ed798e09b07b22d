"""Pytest configuration and shared fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Add project paths
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeClock, FakeProvider, FakeSession, RecordingTransport, make_config  # noqa: E402

from meetbot.context import SessionContext  # noqa: E402


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def temp_dir(tmp_path):
    """Return a temporary directory for test files."""
    return tmp_path


@pytest.fixture(autouse=True)
def setup_env():
    """Set up environment variables for testing."""
    # Save original values
    original_env = dict(os.environ)

    # Set test environment
    os.environ.setdefault("TESTING", "1")

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Manually advanced clock, starting at t=1000."""
    return FakeClock(1000.0)


@pytest.fixture
def transport():
    """Transport that records every delivered payload."""
    return RecordingTransport()


@pytest.fixture
def config(tmp_path):
    """Session config with short timeouts and a temporary data dir."""
    return make_config(tmp_path)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def session(config, transport, clock):
    """Session whose factories return fakes instead of real services."""
    return FakeSession(config, transport=transport, clock=clock)


@pytest.fixture
def context(provider):
    return SessionContext(provider=provider)

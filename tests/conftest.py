"""
Shared test fixtures and configuration for aemcheck tests.

This module provides common fixtures used across all test types:
- In-memory account listing backend
- Recording output sink
- Fake clock for polling loops
- Engine wired to the in-memory collaborators
"""

import pytest

from aemcheck.account_directory import AccountDirectory
from aemcheck.engine import MonitoringVerifier
from tests.mocks.storage_mock import (
    FakeClock,
    MockDirectoryBackend,
    RecordingSink,
    make_account,
)

# ============================================================================
# COLLABORATOR FIXTURES
# ============================================================================


@pytest.fixture
def sink():
    """Output sink that records every message."""
    return RecordingSink()


@pytest.fixture
def clock():
    """Fake monotonic clock; its sleep() advances time instantly."""
    return FakeClock()


@pytest.fixture
def backend():
    """Account listing backend with one premium and one standard account."""
    return MockDirectoryBackend(
        accounts=[
            make_account("premacct", account_type="Premium_LRS"),
            make_account("stdacct", account_type="Standard_LRS", resource_group="std-rg"),
        ]
    )


@pytest.fixture
def directory(backend, sink):
    """AccountDirectory over the in-memory backend."""
    return AccountDirectory(backend, sink)


# ============================================================================
# ENGINE FIXTURES
# ============================================================================


@pytest.fixture
def engine(backend, sink, clock):
    """MonitoringVerifier over in-memory collaborators with a fake clock."""
    verifier = MonitoringVerifier(backend, sink, clock=clock, sleep=clock.sleep)
    yield verifier
    verifier.close()

"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers
WHY: Enable test organization, filtering, and shared test utilities
HOW: Define pytest markers, settings factory, and fakes
"""

import pytest

from tests.fixtures.fakes import make_settings, FakeClock, FakeTransport, RecordingSink, RecordingSleep


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time to run"
    )


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()

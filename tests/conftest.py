"""
Pytest configuration and shared fixtures.

The suite runs against the in-memory store; no Firebase project or
credentials are needed.
"""

import os

os.environ.setdefault("USE_MOCK_DB", "true")
os.environ.setdefault("AUTH_MODE", "header")

import pytest

from tests.helpers import RecordingAuditSink, TickingClock, build_service, seed_profiles


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def service(clock, audit_sink):
    return build_service(clock=clock, audit_sink=audit_sink)


@pytest.fixture
def store(service):
    return service.store


@pytest.fixture
def profiles(service):
    return seed_profiles(service)

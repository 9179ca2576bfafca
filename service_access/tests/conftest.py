"""
Shared fixtures for access service tests.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from shared.test_helpers import PRIVILEGED_EMAIL, TestDataFactory
from service_access.app.entitlements.evaluator import EntitlementEvaluator
from service_access.app.profiles.store import InMemoryProfileStore


ROME = ZoneInfo("Europe/Rome")


@pytest.fixture
def rome():
    return ROME


@pytest.fixture
def now():
    """Midday in Rome on 10 March 2025."""
    return datetime(2025, 3, 10, 12, 0, tzinfo=ROME)


@pytest.fixture
def factory():
    return TestDataFactory


@pytest.fixture
def evaluator():
    return EntitlementEvaluator(privileged_email=PRIVILEGED_EMAIL, timezone="Europe/Rome")


@pytest.fixture
def store():
    return InMemoryProfileStore()

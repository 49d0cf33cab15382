"""
Shared test configuration and fixtures for the Rainbow session tests.
"""

from typing import Any, List, Tuple

import pytest

from rainbow.sdk.session.events import Notifier, SessionEvent
from tests.helpers import FakeScheduler, MockMetricsClient


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def events(notifier):
    """Every notification emitted on `notifier`, as (event, payload) tuples."""
    recorded: List[Tuple[SessionEvent, Any]] = []

    def record(event, payload):
        recorded.append((event, payload))

    for event in SessionEvent:
        notifier.subscribe(event, record)
    return recorded


@pytest.fixture
def metrics_client():
    return MockMetricsClient()

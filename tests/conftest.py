"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from chatnav.events import EventBus
from tests.helpers import ALICE, BOB, PARTY, FakeBrowser, FakeHost, FakeTranscript


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def host(event_bus: EventBus) -> FakeHost:
    return FakeHost([ALICE, BOB], [PARTY], bus=event_bus)


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def transcript() -> FakeTranscript:
    return FakeTranscript()

from __future__ import annotations

import os
import random
from datetime import datetime, timedelta, timezone

import pytest

# Qt widget tests run without a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from ticketdesk.app.data_store import MemoryKeyValueStore, TicketSnapshotStore
from ticketdesk.app.ticket_ids import TicketIdGenerator
from ticketdesk.app.ticket_store import TicketStore
from ticketdesk.core import StateStreamer


class StepClock:
    """Returns ``start``, then ``start + step``, and so on."""

    def __init__(
        self,
        start: datetime = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def streamer():
    return StateStreamer()


@pytest.fixture
def snapshot_store(kv_store):
    return TicketSnapshotStore(kv_store, "repair")


@pytest.fixture
def make_store(snapshot_store, clock, streamer):
    def _make(**overrides):
        options = {
            "category": "repair",
            "label": "Console",
            "snapshot_store": snapshot_store,
            "id_generator": TicketIdGenerator(random.Random(7)),
            "clock": clock,
            "streamer": streamer,
        }
        options.update(overrides)
        return TicketStore(**options)

    return _make


@pytest.fixture
def store(make_store):
    return make_store()

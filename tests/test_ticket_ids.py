from __future__ import annotations

import random
import re
from datetime import datetime, timedelta, timezone

from ticketdesk.app.data_store import MemoryKeyValueStore, SnapshotSaveResult, TicketSnapshotStore
from ticketdesk.app.ticket_ids import TicketIdGenerator, generate_ticket_id
from ticketdesk.app.ticket_store import TicketStore

from conftest import StepClock


_DAY_ID = re.compile(r"^(RP|BT)-\d{8}-\d{4}$")
_ANY_ID = re.compile(r"^(RP|BT)-\d{8}(-\d{9})?-\d{4}(-\d+)?$")


class _DiscardingSnapshotStore(TicketSnapshotStore):
    def save_snapshot(self, records):
        return SnapshotSaveResult(ok=True)


def test_generate_ticket_id_uses_category_prefix_and_utc_day():
    now = datetime(2024, 3, 9, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    ticket_id = generate_ticket_id(now, "repair", rng=random.Random(1))
    assert _DAY_ID.match(ticket_id)
    assert ticket_id.startswith("RP-20240310-")

    trade_id = generate_ticket_id(now, "buytrade", rng=random.Random(1))
    assert trade_id.startswith("BT-20240310-")


def test_generate_ticket_id_suffix_stays_in_four_digit_range():
    rng = random.Random(3)
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for _ in range(500):
        suffix = int(generate_ticket_id(now, "repair", rng=rng).rsplit("-", 1)[1])
        assert 1000 <= suffix <= 9999


def test_precise_ids_carry_time_of_day():
    now = datetime(2024, 1, 1, 8, 5, 9, 123000, tzinfo=timezone.utc)
    ticket_id = TicketIdGenerator(random.Random(5)).generate(now, "repair", precise=True)
    assert ticket_id.startswith("RP-20240101-080509123-")


def test_ten_thousand_created_tickets_have_distinct_ids():
    store = TicketStore(
        category="repair",
        label="Console",
        snapshot_store=_DiscardingSnapshotStore(MemoryKeyValueStore(), "repair"),
        id_generator=TicketIdGenerator(random.Random(11)),
        clock=StepClock(step=timedelta(seconds=137)),
    )
    ids = [store.create_new(False).ticket_id for _ in range(10_000)]

    assert len(set(ids)) == 10_000
    assert all(_ANY_ID.match(ticket_id) for ticket_id in ids)
    assert len(store) == 10_000


def test_ids_stay_distinct_when_the_clock_does_not_move():
    frozen = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    store = TicketStore(
        category="buytrade",
        label="Buy/Trade",
        snapshot_store=_DiscardingSnapshotStore(MemoryKeyValueStore(), "buytrade"),
        id_generator=TicketIdGenerator(random.Random(2)),
        clock=lambda: frozen,
    )
    ids = [store.create_new(False).ticket_id for _ in range(10_000)]

    assert len(set(ids)) == 10_000
    assert all(ticket_id.startswith("BT-20240601-") for ticket_id in ids)

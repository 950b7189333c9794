from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from ticketdesk.app.data_store import SnapshotLoadResult, TicketSnapshotStore
from ticketdesk.app.ticket_errors import TicketReferenceError
from ticketdesk.app.ticket_ids import TicketIdGenerator
from ticketdesk.app.ticket_models import (
    FieldValue,
    TicketListEntry,
    TicketRecord,
    build_list_entry,
    format_timestamp,
    normalize_fields,
    parse_timestamp,
    timestamp_sort_key,
)
from ticketdesk.core import StateStreamer
from ticketdesk.core.event_stream import (
    TICKET_ACTIVE_MISSING,
    TICKET_CREATED,
    TICKET_MERGED,
    TICKET_PERSIST_FAILED,
    TICKET_SAVED,
    TICKET_SNAPSHOT_INVALID,
)


Clock = Callable[[], datetime]
_SOURCE = "ticket_store"
_DAY_FORMAT_ATTEMPTS = 16


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _lacks_fields(value: Any) -> bool:
    return not isinstance(value, Mapping)


class TicketStore:
    """Owns the ticket list, the active ticket id and every mutation of them.

    Insertion order is the stored order. Display order is derived on demand by
    :meth:`derive_display_order` and never written back.
    """

    def __init__(
        self,
        *,
        category: str,
        label: str,
        snapshot_store: TicketSnapshotStore,
        id_generator: TicketIdGenerator | None = None,
        clock: Clock | None = None,
        streamer: StateStreamer | None = None,
        logger: logging.Logger | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.category = category
        self.label = label
        self._snapshot_store = snapshot_store
        self._id_generator = id_generator or TicketIdGenerator()
        self._clock = clock or _utc_now
        self._streamer = streamer or StateStreamer()
        self._logger = logger or logging.getLogger("ticketdesk.tickets")
        self._on_change = on_change
        self._notifying = False
        self._records: list[TicketRecord] = []
        self._positions: dict[str, int] = {}
        self._active_ticket_id: str | None = None

    # ---- lookups -------------------------------------------------------

    @property
    def streamer(self) -> StateStreamer:
        return self._streamer

    @property
    def active_ticket_id(self) -> str | None:
        return self._active_ticket_id

    def set_change_listener(self, callback: Callable[[], None] | None) -> None:
        self._on_change = callback

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, ticket_id: object) -> bool:
        return ticket_id in self._positions

    def records(self) -> list[TicketRecord]:
        return list(self._records)

    def ids(self) -> list[str]:
        return [record.ticket_id for record in self._records]

    def get(self, ticket_id: str) -> TicketRecord | None:
        position = self._positions.get(ticket_id)
        if position is None:
            return None
        return self._records[position]

    def require(self, ticket_id: str) -> TicketRecord:
        record = self.get(ticket_id)
        if record is None:
            raise TicketReferenceError(ticket_id)
        return record

    def get_active(self) -> TicketRecord | None:
        ticket_id = self._active_ticket_id
        if not ticket_id:
            return None
        try:
            return self.require(ticket_id)
        except TicketReferenceError as exc:
            self._logger.warning("Active ticket is missing, clearing selection: %s", exc)
            self._streamer.record(
                TICKET_ACTIVE_MISSING,
                source=_SOURCE,
                payload={"ticket_id": ticket_id},
            )
            self._active_ticket_id = None
            return None

    # ---- mutations -----------------------------------------------------

    def create_new(self, make_active: bool) -> TicketRecord:
        now = self._clock()
        stamp = format_timestamp(now)
        record = TicketRecord(
            ticket_id=self._allocate_id(now),
            ticket_type=self.category,
            label=self.label,
            created_at=stamp,
            updated_at=stamp,
            date=stamp[:10],
            fields={},
        )
        self._append(record)
        self._streamer.record(
            TICKET_CREATED,
            source=_SOURCE,
            payload={"ticket_id": record.ticket_id},
        )
        self.persist()
        self._notify()
        if make_active:
            self.select_active(record.ticket_id)
        return record

    def save_from_form(
        self,
        snapshot: Mapping[str, FieldValue],
        date: str | None,
        display_id: str,
        *,
        assign_display_id_if_empty: bool,
    ) -> TicketRecord:
        record = self.get_active()
        if record is None:
            record = self.create_new(True)

        record.fields = normalize_fields(snapshot)
        record.date = str(date or "").strip() or None
        entered_id = str(display_id or "").strip()
        if not entered_id and assign_display_id_if_empty:
            entered_id = record.ticket_id
        record.display_id = entered_id
        self._touch(record)
        self._streamer.record(
            TICKET_SAVED,
            source=_SOURCE,
            payload={"ticket_id": record.ticket_id, "field_count": len(record.fields)},
        )
        self.persist()
        self._notify()
        return record

    def select_active(self, ticket_id: str) -> None:
        if ticket_id not in self._positions:
            self._logger.debug("Ignoring selection of unknown ticket %s", ticket_id)
            return
        self._active_ticket_id = ticket_id
        if not self._snapshot_store.save_last_active_id(ticket_id):
            self._streamer.record(
                TICKET_PERSIST_FAILED,
                source=_SOURCE,
                payload={"key": self._snapshot_store.last_active_key},
            )
        self._notify()

    def normalize_external_document(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Shape an imported JSON object like a stored ticket.

        Documents without a ``fields`` map come from the older flat export
        format: the whole document, including any id, type and label filled in
        here, becomes the field map.
        """
        ticket: dict[str, Any] = dict(document)
        if not ticket.get("id"):
            ticket["id"] = self._allocate_id(self._clock())
        if not ticket.get("type"):
            ticket["type"] = self.category
        if not ticket.get("label"):
            ticket["label"] = self.label
        if _lacks_fields(ticket.get("fields")):
            now_stamp = format_timestamp(self._clock())
            return {
                "id": ticket["id"],
                "type": ticket["type"],
                "label": ticket["label"],
                "createdAt": ticket.get("createdAt") or now_stamp,
                "updatedAt": ticket.get("updatedAt") or now_stamp,
                "date": ticket.get("date") or None,
                "fields": ticket,
            }
        return ticket

    def merge_external(self, document: Mapping[str, Any]) -> TicketRecord:
        record = TicketRecord.from_mapping(self.normalize_external_document(document))
        position = self._positions.get(record.ticket_id)
        if position is None:
            self._append(record)
            outcome = "added"
        else:
            self._records[position] = record
            outcome = "replaced"
        self._streamer.record(
            TICKET_MERGED,
            source=_SOURCE,
            payload={"ticket_id": record.ticket_id, "outcome": outcome},
        )
        return record

    def merge_many(self, documents: Iterable[Mapping[str, Any]]) -> list[TicketRecord]:
        merged = [self.merge_external(document) for document in documents]
        self.persist()
        self._notify()
        return merged

    # ---- persistence ---------------------------------------------------

    def persist(self) -> bool:
        result = self._snapshot_store.save_snapshot(self._records)
        if result.ok:
            return True
        self._streamer.record(
            TICKET_PERSIST_FAILED,
            source=_SOURCE,
            payload={"key": self._snapshot_store.snapshot_key, "error": result.error},
        )
        return False

    def load_from_persistence(self) -> SnapshotLoadResult:
        result = self._snapshot_store.load_snapshot()
        if result.warning:
            self._logger.error("Could not load stored tickets: %s", result.warning)
            self._streamer.record(
                TICKET_SNAPSHOT_INVALID,
                source=_SOURCE,
                payload={"key": self._snapshot_store.snapshot_key, "warning": result.warning},
            )
        self._records = []
        self._positions = {}
        self._active_ticket_id = None
        for record in result.records:
            if not record.ticket_id:
                record.ticket_id = self._allocate_id(self._clock())
            if record.ticket_id in self._positions:
                self._logger.warning("Dropping duplicate stored ticket %s", record.ticket_id)
                continue
            self._append(record)

        last_active = self._snapshot_store.load_last_active_id()
        if last_active and last_active in self._positions:
            self._active_ticket_id = last_active
        self._notify()
        return result

    # ---- derived views -------------------------------------------------

    def derive_display_order(self) -> list[TicketRecord]:
        return sorted(
            self._records,
            key=lambda record: timestamp_sort_key(record.updated_at),
            reverse=True,
        )

    def list_entries(self) -> list[TicketListEntry]:
        return [
            build_list_entry(
                record,
                active=record.ticket_id == self._active_ticket_id,
                pill_label=self.label,
                ticket_type=self.category,
            )
            for record in self.derive_display_order()
        ]

    # ---- internals -----------------------------------------------------

    def _append(self, record: TicketRecord) -> None:
        self._positions[record.ticket_id] = len(self._records)
        self._records.append(record)

    def _allocate_id(self, now: datetime) -> str:
        for _attempt in range(_DAY_FORMAT_ATTEMPTS):
            candidate = self._id_generator.generate(now, self.category)
            if candidate not in self._positions:
                return candidate
        for _attempt in range(_DAY_FORMAT_ATTEMPTS):
            candidate = self._id_generator.generate(now, self.category, precise=True)
            if candidate not in self._positions:
                return candidate
        serial = 2
        while f"{candidate}-{serial}" in self._positions:
            serial += 1
        return f"{candidate}-{serial}"

    def _touch(self, record: TicketRecord) -> None:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        previous = parse_timestamp(record.updated_at)
        if previous is not None and previous > now:
            return
        record.updated_at = format_timestamp(now)

    def _notify(self) -> None:
        if self._on_change is None or self._notifying:
            return
        self._notifying = True
        try:
            self._on_change()
        finally:
            self._notifying = False

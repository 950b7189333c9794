from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

from ticketdesk.app.form_bridge import FormBridge
from ticketdesk.app.ticket_files import (
    TicketBlob,
    TicketImportBatch,
    import_ticket_blobs,
    import_ticket_files,
    write_ticket_export,
)
from ticketdesk.app.ticket_models import TicketListEntry, TicketRecord
from ticketdesk.app.ticket_store import TicketStore
from ticketdesk.core.event_stream import TICKET_IMPORT_SKIPPED


RenderCallback = Callable[[list[TicketListEntry]], None]
_SOURCE = "ticket_session"


class TicketSession:
    """Event entry points for the ticket window.

    Each method runs save, persist and re-render as one sequence. Form writes
    and renders done here suspend :meth:`on_field_change` so that widget change
    signals fired by them do not save a half-written form.
    """

    def __init__(
        self,
        store: TicketStore,
        bridge: FormBridge,
        *,
        render: RenderCallback | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.bridge = bridge
        self._render_callback = render
        self._logger = logger or logging.getLogger("ticketdesk.session")
        self._suspended = False
        store.set_change_listener(self._render)

    def set_render_callback(self, render: RenderCallback | None) -> None:
        self._render_callback = render
        self._render()

    def start(self) -> TicketRecord:
        self.store.load_from_persistence()
        if not len(self.store):
            record = self.store.create_new(True)
        else:
            active = self.store.get_active()
            target = active.ticket_id if active is not None else self.store.ids()[0]
            self.store.select_active(target)
            record = self.store.require(target)
        self._push_active()
        return record

    def on_field_change(self) -> TicketRecord | None:
        if self._suspended:
            return None
        return self._save_from_form(assign_display_id=False)

    def save_ticket(self) -> TicketRecord:
        return self._save_from_form(assign_display_id=True)

    def export_active(self, folder: Path | str) -> Path:
        record = self.save_ticket()
        return write_ticket_export(record, self.store.category, folder)

    def new_ticket(self) -> TicketRecord:
        self._save_from_form(assign_display_id=True)
        record = self.store.create_new(True)
        self._push_active()
        return record

    def select_ticket(self, ticket_id: str) -> TicketRecord | None:
        if ticket_id not in self.store:
            return None
        self._save_from_form(assign_display_id=False)
        self.store.select_active(ticket_id)
        self._push_active()
        return self.store.get_active()

    def import_files(self, paths: Sequence[Path | str]) -> TicketImportBatch:
        return self._apply_import(import_ticket_files(paths))

    def import_blobs(self, blobs: Iterable[TicketBlob]) -> TicketImportBatch:
        return self._apply_import(import_ticket_blobs(blobs))

    def _apply_import(self, batch: TicketImportBatch) -> TicketImportBatch:
        for failure in batch.failures:
            self.store.streamer.record(
                TICKET_IMPORT_SKIPPED,
                source=_SOURCE,
                payload={"file": failure.name, "error": failure.error},
            )
        merged = self.store.merge_many(batch.payloads)
        self._logger.info(
            "Imported %d ticket file(s), skipped %d", len(merged), len(batch.failures)
        )

        active = self.store.get_active()
        if active is None and len(self.store):
            self.store.select_active(self.store.ids()[0])
            self._push_active()
        elif active is not None and any(record.ticket_id == active.ticket_id for record in merged):
            self._push_active()
        return batch

    def _save_from_form(self, *, assign_display_id: bool) -> TicketRecord:
        entered_display_id = self.bridge.read_display_id()
        record = self.store.save_from_form(
            self.bridge.read_form(),
            self.bridge.read_date(),
            entered_display_id,
            assign_display_id_if_empty=assign_display_id,
        )
        if record.display_id != entered_display_id:
            with self._suspend_form_events():
                self.bridge.write_header(date=record.date, display_id=record.display_id)
        return record

    def _push_active(self) -> None:
        record = self.store.get_active()
        with self._suspend_form_events():
            if record is None:
                self.bridge.write_form({})
                self.bridge.write_header(date=None, display_id="")
                return
            self.bridge.write_form(record.fields)
            self.bridge.write_header(
                date=record.date,
                display_id=record.display_id or record.ticket_id,
            )

    def _render(self) -> None:
        if self._render_callback is None:
            return
        with self._suspend_form_events():
            self._render_callback(self.store.list_entries())

    @contextmanager
    def _suspend_form_events(self) -> Iterator[None]:
        previous = self._suspended
        self._suspended = True
        try:
            yield
        finally:
            self._suspended = previous

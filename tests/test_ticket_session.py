from __future__ import annotations

import json

import pytest

from ticketdesk.app.form_bridge import FormBridge, MemoryFormSurface
from ticketdesk.app.ticket_files import TicketBlob
from ticketdesk.app.ticket_forms import REPAIR_FIELDS
from ticketdesk.app.ticket_session import TicketSession


@pytest.fixture
def surface():
    return MemoryFormSurface(REPAIR_FIELDS)


@pytest.fixture
def session(store, surface):
    return TicketSession(store, FormBridge(surface))


def _blob(name: str, payload) -> TicketBlob:
    return TicketBlob(name=name, data=json.dumps(payload).encode("utf-8"))


def test_start_with_empty_storage_creates_a_ticket(session, store, surface):
    record = session.start()

    assert len(store) == 1
    assert store.get_active() is record
    assert record.fields == {}
    assert surface.read_raw("ticket_id") == record.ticket_id
    assert surface.read_raw("ticket_date") == "2024-01-01"


def test_start_restores_last_active_ticket(make_store, surface):
    writer = make_store()
    first = writer.create_new(True)
    writer.save_from_form({"customer_name": "Ana"}, "2024-01-05", "", assign_display_id_if_empty=True)
    writer.create_new(True)
    writer.select_active(first.ticket_id)

    reader = make_store()
    record = TicketSession(reader, FormBridge(surface)).start()

    assert record.ticket_id == first.ticket_id
    assert len(reader) == 2
    assert surface.read_raw("customer_name") == "Ana"
    assert surface.read_raw("ticket_date") == "2024-01-05"


def test_field_change_saves_without_assigning_display_id(session, store, surface):
    record = session.start()
    surface.write_raw("ticket_id", "")
    surface.write_raw("customer_name", "Ana")

    saved = session.on_field_change()

    assert saved is record
    assert record.fields["customer_name"] == "Ana"
    assert record.display_id == ""
    assert surface.read_raw("ticket_id") == ""


def test_explicit_save_assigns_display_id_and_shows_it(session, surface):
    record = session.start()
    surface.write_raw("ticket_id", "")

    session.save_ticket()

    assert record.display_id == record.ticket_id
    assert surface.read_raw("ticket_id") == record.ticket_id


def test_select_saves_current_form_before_switching(session, store, surface):
    first = session.start()
    second = store.create_new(False)
    surface.write_raw("customer_name", "Ana")

    session.select_ticket(second.ticket_id)

    assert first.fields["customer_name"] == "Ana"
    assert store.active_ticket_id == second.ticket_id
    assert surface.read_raw("customer_name") == ""
    assert surface.read_raw("ticket_id") == second.ticket_id


def test_select_unknown_ticket_changes_nothing(session, store):
    record = session.start()
    assert session.select_ticket("RP-19990101-0000") is None
    assert store.active_ticket_id == record.ticket_id


def test_new_ticket_saves_previous_and_clears_form(session, store, surface):
    first = session.start()
    surface.write_raw("customer_name", "Ana")
    surface.write_raw("data_backup_ok", True)

    created = session.new_ticket()

    assert first.fields["customer_name"] == "Ana"
    assert first.display_id == first.ticket_id
    assert store.active_ticket_id == created.ticket_id
    assert surface.read_raw("customer_name") == ""
    assert surface.read_raw("data_backup_ok") is False


def test_import_batch_skips_the_invalid_file(session, store, streamer, surface):
    batch = session.import_blobs(
        [
            _blob("one.json", {"id": "RP-20240101-1001", "fields": {"customer_name": "One"}}),
            TicketBlob(name="two.json", data=b"{oops"),
            _blob("three.json", {"id": "RP-20240101-1003", "fields": {"customer_name": "Three"}}),
        ]
    )

    assert store.ids() == ["RP-20240101-1001", "RP-20240101-1003"]
    assert [failure.name for failure in batch.failures] == ["two.json"]
    skipped = streamer.events_of("tickets.import_skipped")
    assert len(skipped) == 1
    assert skipped[0].payload["file"] == "two.json"
    assert store.active_ticket_id == "RP-20240101-1001"
    assert surface.read_raw("customer_name") == "One"


def test_import_replacing_active_ticket_refreshes_form(session, store, surface):
    record = session.start()

    session.import_blobs([_blob("update.json", {"id": record.ticket_id, "fields": {"customer_name": "Imported"}})])

    assert len(store) == 1
    assert surface.read_raw("customer_name") == "Imported"


def test_import_files_from_disk(session, store, tmp_path):
    session.start()
    path = tmp_path / "flat.json"
    path.write_text(json.dumps({"customer_name": "Flat"}), encoding="utf-8")

    batch = session.import_files([path])

    assert batch.failures == []
    assert len(store) == 2
    assert any(record.fields.get("customer_name") == "Flat" for record in store.records())


def test_render_receives_display_entries(session, store):
    rendered = []
    session.set_render_callback(rendered.append)
    first = session.start()
    second = session.new_ticket()

    latest = rendered[-1]
    assert [entry.ticket_id for entry in latest] == [second.ticket_id, first.ticket_id]
    assert [entry.active for entry in latest] == [True, False]


def test_field_changes_during_render_are_ignored(session, store):
    results = []
    session.set_render_callback(lambda _entries: results.append(session.on_field_change()))
    session.start()
    session.new_ticket()

    assert results
    assert all(result is None for result in results)
    assert session.on_field_change() is not None


def test_export_active_writes_saved_ticket(session, surface, tmp_path):
    record = session.start()
    surface.write_raw("customer_name", "Ana")

    destination = session.export_active(tmp_path)

    assert destination.name == "repair-Ana.json"
    exported = json.loads(destination.read_text(encoding="utf-8"))
    assert exported["id"] == record.ticket_id
    assert exported["ticketId"] == record.ticket_id
    assert exported["fields"]["customer_name"] == "Ana"

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ticketdesk.app.ticket_models import (
    TicketRecord,
    as_bool,
    build_list_entry,
    default_ticket_label,
    format_timestamp,
    normalize_field_value,
    normalize_fields,
    normalize_ticket_type,
    parse_timestamp,
    timestamp_sort_key,
)


def test_ticket_type_aliases():
    assert normalize_ticket_type("Buy Trade") == "buytrade"
    assert normalize_ticket_type("buy-trade") == "buytrade"
    assert normalize_ticket_type("unknown") == "repair"
    assert default_ticket_label("buytrade") == "Buy/Trade"
    assert default_ticket_label("repair") == "Console"


def test_timestamps_are_utc_with_milliseconds():
    local = datetime(2024, 1, 1, 5, 6, 7, 891234, tzinfo=timezone(timedelta(hours=2)))
    assert format_timestamp(local) == "2024-01-01T03:06:07.891Z"
    assert parse_timestamp("2024-01-01T03:06:07.891Z") == datetime(2024, 1, 1, 3, 6, 7, 891000, tzinfo=timezone.utc)
    assert parse_timestamp("yesterday") is None
    assert timestamp_sort_key("") < timestamp_sort_key("1970-01-01T00:00:00.000Z")


def test_field_values_are_normalized():
    assert normalize_field_value(3) == "3"
    assert normalize_field_value(True) is True
    assert normalize_field_value(["a", 2, None]) == ["a", "2"]
    assert normalize_field_value({"b": 1}) == '{"b":1}'
    assert normalize_fields({"keep": "x", "drop": None, "": "y"}) == {"keep": "x"}


def test_unknown_top_level_keys_survive_a_round_trip():
    document = {
        "id": "RP-20240101-1001",
        "type": "repair",
        "label": "Console",
        "createdAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": "2024-01-01T00:00:00.000Z",
        "date": None,
        "ticketId": "",
        "fields": {"customer_name": "Ana"},
        "store": "north",
    }
    record = TicketRecord.from_mapping(document)
    assert record.extras == {"store": "north"}
    assert record.to_mapping() == document


def test_list_entry_falls_back_to_created_date_and_ticket_id():
    record = TicketRecord(
        ticket_id="RP-20240101-123456789-1001",
        ticket_type="repair",
        label="Console",
        created_at="2024-02-03T00:00:00.000Z",
        updated_at="2024-02-03T00:00:00.000Z",
        fields={"customer_name": "  "},
    )
    entry = build_list_entry(record, active=False, pill_label="Console", ticket_type="repair")
    assert entry.title == "No Name"
    assert entry.meta_date == "2024-02-03"
    assert entry.short_id == "RP-20240101-123456"


def test_as_bool_reads_form_style_flags():
    assert as_bool("yes") is True
    assert as_bool("on") is True
    assert as_bool("0") is False
    assert as_bool("") is False
    assert as_bool(False) is False

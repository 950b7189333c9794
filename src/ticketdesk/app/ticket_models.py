from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union


FieldValue = Union[str, bool, list[str]]

TICKET_TYPE_REPAIR = "repair"
TICKET_TYPE_BUYTRADE = "buytrade"
TICKET_TYPES: tuple[str, ...] = (TICKET_TYPE_REPAIR, TICKET_TYPE_BUYTRADE)
_TICKET_TYPE_PREFIXES: dict[str, str] = {
    TICKET_TYPE_REPAIR: "RP",
    TICKET_TYPE_BUYTRADE: "BT",
}
_TICKET_TYPE_LABELS: dict[str, str] = {
    TICKET_TYPE_REPAIR: "Console",
    TICKET_TYPE_BUYTRADE: "Buy/Trade",
}
_TICKET_TYPE_ALIASES: dict[str, str] = {
    "repair": TICKET_TYPE_REPAIR,
    "repairs": TICKET_TYPE_REPAIR,
    "buytrade": TICKET_TYPE_BUYTRADE,
    "buy_trade": TICKET_TYPE_BUYTRADE,
    "buy-trade": TICKET_TYPE_BUYTRADE,
    "trade": TICKET_TYPE_BUYTRADE,
}

NO_NAME_TITLE = "No Name"
SHORT_ID_LENGTH = 18
_KNOWN_KEYS = frozenset(
    {"id", "type", "label", "createdAt", "updatedAt", "date", "ticketId", "fields"}
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = _as_text(value).casefold()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off", ""}:
        return False
    return bool(value)


def normalize_ticket_type(value: Any) -> str:
    raw = _as_text(value).replace(" ", "").casefold()
    return _TICKET_TYPE_ALIASES.get(raw, TICKET_TYPE_REPAIR)


def ticket_type_prefix(value: Any) -> str:
    return _TICKET_TYPE_PREFIXES[normalize_ticket_type(value)]


def default_ticket_label(value: Any) -> str:
    return _TICKET_TYPE_LABELS[normalize_ticket_type(value)]


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    text = _as_text(value)
    if not text:
        return None
    normalized = text.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def timestamp_sort_key(value: Any) -> datetime:
    return parse_timestamp(value) or _OLDEST


def normalize_field_value(value: Any) -> FieldValue | None:
    """Coerce one form value into a string, a boolean or a list of strings.

    ``None`` means the key should be dropped.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [entry if isinstance(entry, str) else str(entry) for entry in value if entry is not None]
    if isinstance(value, Mapping):
        return json.dumps(dict(value), ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


def normalize_fields(value: Any) -> dict[str, FieldValue]:
    if not isinstance(value, Mapping):
        return {}
    rows: dict[str, FieldValue] = {}
    for raw_key, raw_value in value.items():
        key = str(raw_key)
        if not key:
            continue
        normalized = normalize_field_value(raw_value)
        if normalized is None:
            continue
        rows[key] = normalized
    return rows


def _optional_text(value: Any) -> str | None:
    text = _as_text(value)
    return text or None


@dataclass(slots=True)
class TicketRecord:
    ticket_id: str
    ticket_type: str
    label: str
    created_at: str
    updated_at: str
    date: str | None = None
    display_id: str = ""
    fields: dict[str, FieldValue] = field(default_factory=dict)
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, value: Mapping[str, Any] | None) -> "TicketRecord":
        if not isinstance(value, Mapping):
            return cls(ticket_id="", ticket_type="", label="", created_at="", updated_at="")
        return cls(
            ticket_id=_as_text(value.get("id")),
            ticket_type=_as_text(value.get("type")),
            label=_as_text(value.get("label")),
            created_at=_as_text(value.get("createdAt")),
            updated_at=_as_text(value.get("updatedAt")),
            date=_optional_text(value.get("date")),
            display_id=_as_text(value.get("ticketId")),
            fields=normalize_fields(value.get("fields")),
            extras={
                str(key): raw for key, raw in value.items() if str(key) not in _KNOWN_KEYS
            },
        )

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.ticket_id,
            "type": self.ticket_type,
            "label": self.label,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "date": self.date,
            "ticketId": self.display_id,
            "fields": {key: list(value) if isinstance(value, list) else value for key, value in self.fields.items()},
        }
        for key, raw in self.extras.items():
            payload.setdefault(key, raw)
        return payload

    @property
    def customer_name(self) -> str:
        value = self.fields.get("customer_name")
        return value.strip() if isinstance(value, str) else ""


@dataclass(frozen=True, slots=True)
class TicketListEntry:
    ticket_id: str
    title: str
    meta_date: str
    short_id: str
    pill_label: str
    ticket_type: str
    active: bool = False


def build_list_entry(
    record: TicketRecord,
    *,
    active: bool,
    pill_label: str,
    ticket_type: str,
) -> TicketListEntry:
    meta_date = record.date or (record.created_at[:10] if record.created_at else "")
    return TicketListEntry(
        ticket_id=record.ticket_id,
        title=record.customer_name or NO_NAME_TITLE,
        meta_date=meta_date,
        short_id=(record.display_id or record.ticket_id)[:SHORT_ID_LENGTH],
        pill_label=pill_label,
        ticket_type=normalize_ticket_type(ticket_type),
        active=active,
    )

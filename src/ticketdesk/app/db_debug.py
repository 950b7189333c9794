from __future__ import annotations

import itertools
import json
import os
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path


_DB_DEBUG_ENV = "TICKETDESK_DB_DEBUG"
_DB_DEBUG_LOG_ENV = "TICKETDESK_DB_DEBUG_LOG"
_REDACTED_VALUE = "<redacted>"
# Customer contact details never reach a trace line.
_PRIVATE_KEYS = frozenset({"customer_name", "customer_phone", "customer_email"})
_SEQUENCE = itertools.count(1)


def db_debug_enabled() -> bool:
    return str(os.getenv(_DB_DEBUG_ENV, "") or "").strip().casefold() in {"1", "true", "yes", "on", "y"}


def describe_snapshot(payload: str) -> dict[str, object]:
    """Size and ticket ids of a stored snapshot, leaving the field values out."""
    summary: dict[str, object] = {"bytes": len(payload.encode("utf-8"))}
    try:
        parsed = json.loads(payload)
    except ValueError:
        summary["valid"] = False
        return summary
    if isinstance(parsed, list):
        summary["tickets"] = len(parsed)
        summary["ids"] = [str(item.get("id") or "") for item in parsed if isinstance(item, Mapping)]
    return summary


def db_debug(event: str, **payload: object) -> None:
    """Append one JSON line for a storage event when TICKETDESK_DB_DEBUG is set.

    Lines go to the file named by TICKETDESK_DB_DEBUG_LOG, or to stderr.
    """
    if not db_debug_enabled():
        return
    line = json.dumps(
        {
            "seq": next(_SEQUENCE),
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "event": str(event or "").strip() or "unknown",
            "data": _scrub(payload),
        },
        ensure_ascii=True,
        default=str,
    )
    if _append_to_log_file(line):
        return
    try:
        sys.stderr.write(f"[db-debug] {line}\n")
        sys.stderr.flush()
    except (OSError, ValueError):
        pass


def _append_to_log_file(line: str) -> bool:
    target = str(os.getenv(_DB_DEBUG_LOG_ENV, "") or "").strip()
    if not target:
        return False
    destination = Path(target).expanduser()
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with destination.open("a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")
    except OSError:
        return False
    return True


def _scrub(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            str(key): _REDACTED_VALUE if str(key).strip().casefold() in _PRIVATE_KEYS else _scrub(raw)
            for key, raw in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_scrub(entry) for entry in value]
    return value

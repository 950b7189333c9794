from __future__ import annotations

import json
import logging
import os
import shutil
import sqlite3
import tempfile
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Iterable, Protocol

from ticketdesk.app.db_debug import db_debug, describe_snapshot
from ticketdesk.app.ticket_errors import TicketPersistenceError
from ticketdesk.app.ticket_models import TicketRecord


BACKEND_LOCAL_SQLITE = "local_sqlite"
BACKEND_LOCAL_JSON = "local_json"
BACKEND_MEMORY = "memory"
DEFAULT_JSON_FILE_NAME = "ticketdesk_store.json"
DEFAULT_SQLITE_FILE_NAME = "ticketdesk.sqlite3"
_LOCAL_SQLITE_TABLE = "kv_items"
_SNAPSHOT_KEY_TEMPLATE = "tickets_{category}_v1"
_LAST_ACTIVE_SUFFIX = "_lastActive"

_logger = logging.getLogger("ticketdesk.storage")


class KeyValueStore(Protocol):
    backend: str

    def get_item(self, key: str) -> str | None:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore:
    """Dict-backed store; ``quota_bytes`` makes oversized writes fail like a full browser store."""

    backend = BACKEND_MEMORY

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            used = sum(
                len(item_key.encode("utf-8")) + len(item.encode("utf-8"))
                for item_key, item in self._items.items()
                if item_key != key
            )
            needed = len(key.encode("utf-8")) + len(value.encode("utf-8"))
            if used + needed > self._quota_bytes:
                raise TicketPersistenceError(
                    f"Storage quota exceeded ({used + needed} > {self._quota_bytes} bytes).",
                    key=key,
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._items)


class LocalJsonKeyValueStore:
    backend = BACKEND_LOCAL_JSON

    def __init__(
        self,
        data_root: Path | str,
        *,
        data_file_name: str = DEFAULT_JSON_FILE_NAME,
    ) -> None:
        self.data_root = _normalize_path(Path(data_root))
        self._data_file_name = data_file_name

    @property
    def storage_file_path(self) -> Path:
        return self.data_root / self._data_file_name

    @property
    def backup_file_path(self) -> Path:
        storage_file = self.storage_file_path
        return storage_file.with_suffix(f"{storage_file.suffix}.bak")

    def get_item(self, key: str) -> str | None:
        value = self._read_items().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._read_items()
        items[key] = value
        self._write_items(items, key=key)

    def remove_item(self, key: str) -> None:
        items = self._read_items()
        if key not in items:
            return
        del items[key]
        self._write_items(items, key=key)

    def _read_items(self) -> dict[str, object]:
        for path in (self.storage_file_path, self.backup_file_path):
            if not path.exists() or not path.is_file():
                continue
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                _logger.warning("Could not read %s: %s", path, exc)
                db_debug("json.read.error", path=str(path), error=str(exc))
                continue
            if isinstance(raw, dict):
                return raw
        return {}

    def _write_items(self, items: dict[str, object], *, key: str) -> None:
        target_path = self.storage_file_path
        backup_path = self.backup_file_path
        try:
            self.data_root.mkdir(parents=True, exist_ok=True)
            if target_path.exists():
                shutil.copy2(target_path, backup_path)
            fd, temp_path = tempfile.mkstemp(
                prefix=f"{target_path.stem}.",
                suffix=".tmp",
                dir=str(self.data_root),
            )
        except OSError as exc:
            raise TicketPersistenceError(f"Could not prepare {target_path}: {exc}", key=key) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                json.dump(items, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, target_path)
        except OSError as exc:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise TicketPersistenceError(f"Could not write {target_path}: {exc}", key=key) from exc
        db_debug("json.write", path=str(target_path), key=key)


class LocalSqliteKeyValueStore:
    backend = BACKEND_LOCAL_SQLITE

    def __init__(
        self,
        data_root: Path | str,
        *,
        sqlite_file_name: str = DEFAULT_SQLITE_FILE_NAME,
    ) -> None:
        self.data_root = _normalize_path(Path(data_root))
        self._sqlite_file_name = str(sqlite_file_name or DEFAULT_SQLITE_FILE_NAME).strip() or DEFAULT_SQLITE_FILE_NAME

    @property
    def storage_file_path(self) -> Path:
        return self.data_root / self._sqlite_file_name

    def get_item(self, key: str) -> str | None:
        if not self.storage_file_path.exists():
            return None
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                row = connection.execute(
                    f"select item_value from {_LOCAL_SQLITE_TABLE} where item_key = ? limit 1",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            _logger.warning("SQLite read failed for %s: %s", key, exc)
            db_debug("sqlite.read.error", path=str(self.storage_file_path), key=key, error=str(exc))
            return None
        if row is None:
            return None
        value = row[0]
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        started_at = perf_counter()
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                connection.execute(
                    (
                        f"insert into {_LOCAL_SQLITE_TABLE} (item_key, item_value) values (?, ?) "
                        "on conflict(item_key) do update set item_value = excluded.item_value"
                    ),
                    (key, value),
                )
                connection.commit()
        except (sqlite3.Error, OSError) as exc:
            db_debug(
                "sqlite.write.error",
                path=str(self.storage_file_path),
                key=key,
                bytes=len(value.encode("utf-8")),
                error=str(exc),
            )
            raise TicketPersistenceError(f"Could not save {key!r} to SQLite: {exc}", key=key) from exc
        db_debug(
            "sqlite.write",
            path=str(self.storage_file_path),
            key=key,
            bytes=len(value.encode("utf-8")),
            duration_ms=round((perf_counter() - started_at) * 1000.0, 2),
        )

    def remove_item(self, key: str) -> None:
        if not self.storage_file_path.exists():
            return
        try:
            with self._connect() as connection:
                self._ensure_schema(connection)
                connection.execute(f"delete from {_LOCAL_SQLITE_TABLE} where item_key = ?", (key,))
                connection.commit()
        except sqlite3.Error as exc:
            raise TicketPersistenceError(f"Could not remove {key!r} from SQLite: {exc}", key=key) from exc

    def _connect(self) -> sqlite3.Connection:
        self.data_root.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(self.storage_file_path), timeout=4.0)

    def _ensure_schema(self, connection: sqlite3.Connection) -> None:
        connection.execute(
            f"""
            create table if not exists {_LOCAL_SQLITE_TABLE} (
                item_key text primary key,
                item_value text not null
            )
            """
        )


def create_key_value_store(backend: str, data_root: Path | str) -> KeyValueStore:
    normalized_backend = str(backend or "").strip().lower()
    if normalized_backend == BACKEND_MEMORY:
        return MemoryKeyValueStore()
    if normalized_backend == BACKEND_LOCAL_JSON:
        return LocalJsonKeyValueStore(data_root)
    return LocalSqliteKeyValueStore(data_root)


@dataclass(frozen=True, slots=True)
class SnapshotSaveResult:
    ok: bool
    byte_size: int = 0
    error: str = ""


@dataclass(frozen=True, slots=True)
class SnapshotLoadResult:
    records: tuple[TicketRecord, ...] = ()
    source: str = "empty"
    warning: str = ""


def snapshot_key_for(category: str) -> str:
    return _SNAPSHOT_KEY_TEMPLATE.format(category=str(category or "").strip())


class TicketSnapshotStore:
    """Saves the whole ticket list as one JSON array under a per-category key."""

    def __init__(self, kv_store: KeyValueStore, category: str) -> None:
        self.kv_store = kv_store
        self.category = category
        self.snapshot_key = snapshot_key_for(category)
        self.last_active_key = f"{self.snapshot_key}{_LAST_ACTIVE_SUFFIX}"

    def save_snapshot(self, records: Iterable[TicketRecord]) -> SnapshotSaveResult:
        payload = json.dumps([record.to_mapping() for record in records], ensure_ascii=False)
        try:
            self.kv_store.set_item(self.snapshot_key, payload)
        except TicketPersistenceError as exc:
            _logger.error("Failed to persist tickets under %s: %s", self.snapshot_key, exc)
            return SnapshotSaveResult(ok=False, error=str(exc))
        db_debug("snapshot.save", key=self.snapshot_key, **describe_snapshot(payload))
        return SnapshotSaveResult(ok=True, byte_size=len(payload.encode("utf-8")))

    def load_snapshot(self) -> SnapshotLoadResult:
        try:
            raw = self.kv_store.get_item(self.snapshot_key)
        except TicketPersistenceError as exc:
            _logger.error("Failed to read tickets under %s: %s", self.snapshot_key, exc)
            return SnapshotLoadResult(warning=f"Ticket storage could not be read: {exc}")
        if not raw:
            return SnapshotLoadResult()
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            _logger.error("Failed to load tickets from %s: %s", self.snapshot_key, exc)
            return SnapshotLoadResult(warning=f"Stored tickets are not valid JSON: {exc}")
        if not isinstance(parsed, list):
            return SnapshotLoadResult(warning="Stored tickets are not a JSON array.")
        records = tuple(
            TicketRecord.from_mapping(item) for item in parsed if isinstance(item, dict)
        )
        return SnapshotLoadResult(records=records, source="primary")

    def save_last_active_id(self, ticket_id: str | None) -> bool:
        try:
            if ticket_id:
                self.kv_store.set_item(self.last_active_key, ticket_id)
            else:
                self.kv_store.remove_item(self.last_active_key)
        except TicketPersistenceError as exc:
            _logger.error("Failed to remember last active ticket: %s", exc)
            return False
        return True

    def load_last_active_id(self) -> str | None:
        try:
            value = self.kv_store.get_item(self.last_active_key)
        except TicketPersistenceError:
            return None
        text = str(value or "").strip()
        return text or None


def _normalize_path(path: Path) -> Path:
    expanded = path.expanduser()
    try:
        return expanded.resolve()
    except OSError:
        return expanded

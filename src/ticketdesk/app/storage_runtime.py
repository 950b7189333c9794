from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ticketdesk.app.data_store import (
    BACKEND_LOCAL_SQLITE,
    KeyValueStore,
    TicketSnapshotStore,
    create_key_value_store,
)
from ticketdesk.app.settings_store import SUPPORTED_DATA_STORAGE_BACKENDS


@dataclass(frozen=True, slots=True)
class StorageRuntimeSelection:
    backend: str
    data_root: Path
    kv_store: KeyValueStore
    snapshot_store: TicketSnapshotStore
    warnings: tuple[str, ...] = ()


def build_storage_runtime(
    *,
    backend: str,
    data_root: Path | str,
    category: str,
) -> StorageRuntimeSelection:
    requested = str(backend or "").strip().lower()
    warnings: list[str] = []
    effective_backend = requested
    if requested not in SUPPORTED_DATA_STORAGE_BACKENDS:
        effective_backend = BACKEND_LOCAL_SQLITE
        warnings.append(
            f"Unknown data backend {requested or '(blank)'!r}. Falling back to local SQLite storage."
        )

    normalized_root = _normalize_path(Path(data_root))
    kv_store = create_key_value_store(effective_backend, normalized_root)
    return StorageRuntimeSelection(
        backend=effective_backend,
        data_root=normalized_root,
        kv_store=kv_store,
        snapshot_store=TicketSnapshotStore(kv_store, category),
        warnings=tuple(warnings),
    )


def _normalize_path(path: Path) -> Path:
    expanded = path.expanduser()
    try:
        return expanded.resolve()
    except OSError:
        return expanded

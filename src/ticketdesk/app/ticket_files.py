from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence

from ticketdesk.app.ticket_errors import TicketParseError
from ticketdesk.app.ticket_models import TicketRecord


_SAFE_NAME_PATTERN = re.compile(r"[^\w\-]+", re.ASCII)
_FALLBACK_NAME = "ticket"
_MAX_READ_WORKERS = 8

_logger = logging.getLogger("ticketdesk.files")


@dataclass(frozen=True, slots=True)
class ExportedTicketFile:
    file_name: str
    data: bytes
    media_type: str = "application/json"


@dataclass(frozen=True, slots=True)
class TicketBlob:
    name: str
    data: bytes


@dataclass(frozen=True, slots=True)
class ImportedDocument:
    name: str
    payload: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ImportFailure:
    name: str
    error: str


@dataclass(slots=True)
class TicketImportBatch:
    documents: list[ImportedDocument] = field(default_factory=list)
    failures: list[ImportFailure] = field(default_factory=list)

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [document.payload for document in self.documents]


def safe_file_stem(value: str) -> str:
    return _SAFE_NAME_PATTERN.sub("_", str(value))


def export_file_name(record: TicketRecord, category: str) -> str:
    name_base = record.customer_name or record.display_id or record.ticket_id or _FALLBACK_NAME
    return f"{category}-{safe_file_stem(name_base)}.json"


def export_ticket(record: TicketRecord, category: str) -> ExportedTicketFile:
    text = json.dumps(record.to_mapping(), indent=2, ensure_ascii=False)
    return ExportedTicketFile(
        file_name=export_file_name(record, category),
        data=text.encode("utf-8"),
    )


def write_ticket_export(record: TicketRecord, category: str, folder: Path | str) -> Path:
    exported = export_ticket(record, category)
    destination_dir = Path(folder).expanduser()
    destination_dir.mkdir(parents=True, exist_ok=True)
    destination = _next_available_path(destination_dir / exported.file_name)
    destination.write_bytes(exported.data)
    _logger.info("Exported ticket %s to %s", record.ticket_id, destination)
    return destination


def parse_ticket_document(name: str, data: bytes) -> dict[str, Any]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TicketParseError(f"{name} is not UTF-8 text: {exc}", source=name) from exc
    try:
        parsed = json.loads(text)
    except ValueError as exc:
        raise TicketParseError(f"Invalid ticket JSON in {name}: {exc}", source=name) from exc
    if not isinstance(parsed, dict):
        raise TicketParseError(f"{name} does not contain a JSON object.", source=name)
    return parsed


def import_ticket_blobs(blobs: Iterable[TicketBlob]) -> TicketImportBatch:
    batch = TicketImportBatch()
    for blob in blobs:
        try:
            payload = parse_ticket_document(blob.name, blob.data)
        except TicketParseError as exc:
            _logger.error("Skipping %s: %s", blob.name, exc)
            batch.failures.append(ImportFailure(name=blob.name, error=str(exc)))
            continue
        batch.documents.append(ImportedDocument(name=blob.name, payload=payload))
    return batch


def import_ticket_files(paths: Sequence[Path | str]) -> TicketImportBatch:
    """Read every file on a worker pool, wait for all of them, then parse in input order."""
    sources = [Path(path) for path in paths]
    if not sources:
        return TicketImportBatch()

    read_failures: dict[int, ImportFailure] = {}
    blobs: dict[int, TicketBlob] = {}
    with ThreadPoolExecutor(max_workers=min(_MAX_READ_WORKERS, len(sources))) as pool:
        results = list(pool.map(_read_source, sources))
    for index, (source, result) in enumerate(zip(sources, results)):
        if isinstance(result, OSError):
            _logger.error("Could not read %s: %s", source, result)
            read_failures[index] = ImportFailure(name=source.name, error=f"Could not read {source.name}: {result}")
        else:
            blobs[index] = TicketBlob(name=source.name, data=result)

    batch = TicketImportBatch()
    for index in range(len(sources)):
        failure = read_failures.get(index)
        if failure is not None:
            batch.failures.append(failure)
            continue
        parsed = import_ticket_blobs([blobs[index]])
        batch.documents.extend(parsed.documents)
        batch.failures.extend(parsed.failures)
    return batch


def _read_source(path: Path) -> bytes | OSError:
    try:
        return path.read_bytes()
    except OSError as exc:
        return exc


def _next_available_path(path: Path) -> Path:
    if not path.exists():
        return path
    stem = path.stem
    suffix = path.suffix
    index = 2
    while True:
        candidate = path.with_name(f"{stem} ({index}){suffix}")
        if not candidate.exists():
            return candidate
        index += 1

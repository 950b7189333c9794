from __future__ import annotations

import logging
import os
import sys
from typing import Sequence

from PySide6.QtWidgets import QApplication

from ticketdesk.app.settings_store import (
    load_data_storage_backend,
    load_data_storage_folder,
    load_ticket_label,
    load_ticket_type,
)
from ticketdesk.app.storage_runtime import build_storage_runtime
from ticketdesk.app.ticket_store import TicketStore
from ticketdesk.core import StateStreamer
from ticketdesk.core.event_stream import APP_STARTED
from ticketdesk.ui.window import TicketWindow
from ticketdesk.version import APP_NAME, APP_VERSION


_LOG_LEVEL_ENV = "TICKETDESK_LOG_LEVEL"


def _configure_logging() -> None:
    level_name = str(os.getenv(_LOG_LEVEL_ENV, "") or "").strip().upper() or "WARNING"
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_ticket_store(streamer: StateStreamer) -> TicketStore:
    ticket_type = load_ticket_type()
    runtime = build_storage_runtime(
        backend=load_data_storage_backend(),
        data_root=load_data_storage_folder(),
        category=ticket_type,
    )
    logger = logging.getLogger("ticketdesk.app")
    for warning in runtime.warnings:
        logger.warning(warning)
    return TicketStore(
        category=ticket_type,
        label=load_ticket_label(ticket_type),
        snapshot_store=runtime.snapshot_store,
        streamer=streamer,
    )


def run(argv: Sequence[str] | None = None) -> int:
    _configure_logging()
    app = QApplication.instance()
    if app is None:
        app = QApplication(list(argv or sys.argv))
    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)

    streamer = StateStreamer()
    store = build_ticket_store(streamer)
    streamer.record(
        APP_STARTED,
        source="app.main",
        payload={"ticket_type": store.category, "app_version": APP_VERSION},
    )
    window = TicketWindow(store)
    window.start()
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(run())

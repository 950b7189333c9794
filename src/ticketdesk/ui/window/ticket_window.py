from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QFileDialog,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from ticketdesk.app.form_bridge import FormBridge
from ticketdesk.app.settings_store import load_export_folder, save_export_folder
from ticketdesk.app.ticket_forms import form_fields_for
from ticketdesk.app.ticket_session import TicketSession
from ticketdesk.app.ticket_store import TicketStore
from ticketdesk.core import StreamEvent
from ticketdesk.core.event_stream import TICKET_PERSIST_FAILED, TICKET_SNAPSHOT_INVALID
from ticketdesk.ui.widgets import QtTicketForm, TicketListWidget


_STATUS_TIMEOUT_MS = 6000
_PREVIEW_LIMIT = 5


class TicketWindow(QMainWindow):
    def __init__(self, store: TicketStore, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._store = store
        self.setWindowTitle(f"Tickets - {store.label}")
        self.resize(1100, 720)

        central = QWidget(self)
        root = QHBoxLayout(central)
        root.setContentsMargins(12, 12, 12, 12)
        root.setSpacing(12)

        sidebar = QFrame(central)
        sidebar.setObjectName("TicketSidebar")
        sidebar.setFixedWidth(300)
        sidebar_layout = QVBoxLayout(sidebar)
        sidebar_layout.setContentsMargins(0, 0, 0, 0)
        sidebar_layout.setSpacing(8)

        button_row = QHBoxLayout()
        button_row.setSpacing(6)
        self._new_button = QPushButton("New Ticket", sidebar)
        self._new_button.clicked.connect(self._on_new_clicked)
        button_row.addWidget(self._new_button)
        self._load_button = QPushButton("Load...", sidebar)
        self._load_button.clicked.connect(self._on_load_clicked)
        button_row.addWidget(self._load_button)
        sidebar_layout.addLayout(button_row)

        self._ticket_list = TicketListWidget(sidebar)
        sidebar_layout.addWidget(self._ticket_list, 1)
        root.addWidget(sidebar, 0)

        editor = QFrame(central)
        editor.setObjectName("TicketEditor")
        editor_layout = QVBoxLayout(editor)
        editor_layout.setContentsMargins(0, 0, 0, 0)
        editor_layout.setSpacing(8)

        header_row = QHBoxLayout()
        title = QLabel(store.label, editor)
        title.setObjectName("TicketEditorTitle")
        header_row.addWidget(title, 1)
        self._save_button = QPushButton("Save && Export", editor)
        self._save_button.clicked.connect(self._on_save_clicked)
        header_row.addWidget(self._save_button, 0, Qt.AlignmentFlag.AlignRight)
        editor_layout.addLayout(header_row)

        scroll = QScrollArea(editor)
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QFrame.Shape.NoFrame)
        self._form = QtTicketForm(form_fields_for(store.category), scroll)
        scroll.setWidget(self._form)
        editor_layout.addWidget(scroll, 1)
        root.addWidget(editor, 1)

        self.setCentralWidget(central)

        self.session = TicketSession(
            store,
            FormBridge(self._form),
            render=self._ticket_list.set_entries,
        )
        self._form.changed.connect(self.session.on_field_change)
        self._ticket_list.ticketActivated.connect(self.session.select_ticket)
        unsubscribe = store.streamer.subscribe(self._on_stream_event)
        self.destroyed.connect(lambda _obj=None: unsubscribe())

    def start(self) -> None:
        self.session.start()

    def _on_new_clicked(self) -> None:
        self.session.new_ticket()

    def _on_save_clicked(self) -> None:
        folder = load_export_folder()
        if folder is None or not folder.exists():
            chosen = QFileDialog.getExistingDirectory(self, "Export tickets to", str(Path.home()))
            if not chosen:
                return
            folder = save_export_folder(chosen)
        try:
            destination = self.session.export_active(folder)
        except OSError as exc:
            QMessageBox.warning(self, "Export Failed", f"Could not write the ticket file.\n\n{exc}")
            return
        self.statusBar().showMessage(f"Saved {destination.name}", _STATUS_TIMEOUT_MS)

    def _on_load_clicked(self) -> None:
        paths, _selected_filter = QFileDialog.getOpenFileNames(
            self,
            "Load tickets",
            str(load_export_folder() or Path.home()),
            "Ticket files (*.json);;All files (*)",
        )
        if not paths:
            return
        batch = self.session.import_files(paths)
        if not batch.failures:
            self.statusBar().showMessage(f"Loaded {len(batch.documents)} ticket(s)", _STATUS_TIMEOUT_MS)
            return
        preview = "\n".join(f"- {failure.name}" for failure in batch.failures[:_PREVIEW_LIMIT])
        remaining = len(batch.failures) - _PREVIEW_LIMIT
        suffix = f"\n...and {remaining} more" if remaining > 0 else ""
        QMessageBox.warning(
            self,
            "Some Files Skipped",
            f"Loaded {len(batch.documents)} ticket(s). These files were not valid ticket JSON:\n\n{preview}{suffix}",
        )

    def _on_stream_event(self, event: StreamEvent) -> None:
        if event.event_type == TICKET_PERSIST_FAILED:
            self.statusBar().showMessage(
                "Could not save to local storage. Changes are kept in memory.",
                _STATUS_TIMEOUT_MS,
            )
        elif event.event_type == TICKET_SNAPSHOT_INVALID:
            self.statusBar().showMessage(
                "Stored tickets could not be read; starting with an empty list.",
                _STATUS_TIMEOUT_MS,
            )

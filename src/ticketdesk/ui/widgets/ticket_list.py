from __future__ import annotations

from typing import Sequence

from PySide6.QtCore import QTimer, Qt, Signal
from PySide6.QtGui import QFont
from PySide6.QtWidgets import QListWidget, QListWidgetItem, QWidget

from ticketdesk.app.ticket_models import TicketListEntry


class TicketListWidget(QListWidget):
    """Sidebar of tickets, most recently touched first."""

    ticketActivated = Signal(str)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setObjectName("TicketList")
        self.setAlternatingRowColors(True)
        self.itemClicked.connect(self._on_item_clicked)

    def set_entries(self, entries: Sequence[TicketListEntry]) -> None:
        self.blockSignals(True)
        try:
            self.clear()
            for entry in entries:
                item = QListWidgetItem(f"{entry.title}\n{entry.meta_date}   {entry.short_id}")
                item.setData(Qt.ItemDataRole.UserRole, entry.ticket_id)
                item.setToolTip(f"{entry.pill_label} · {entry.ticket_id}")
                if entry.active:
                    font = QFont(item.font())
                    font.setBold(True)
                    item.setFont(font)
                self.addItem(item)
                if entry.active:
                    self.setCurrentItem(item)
                    self.scrollToItem(item, QListWidget.ScrollHint.EnsureVisible)
        finally:
            self.blockSignals(False)

    def _on_item_clicked(self, item: QListWidgetItem) -> None:
        ticket_id = str(item.data(Qt.ItemDataRole.UserRole) or "")
        if ticket_id:
            # Selecting rebuilds the list, so leave the click handler first.
            QTimer.singleShot(0, lambda: self.ticketActivated.emit(ticket_id))

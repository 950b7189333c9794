from __future__ import annotations

from typing import Sequence

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QAbstractButton,
    QButtonGroup,
    QCheckBox,
    QComboBox,
    QFormLayout,
    QHBoxLayout,
    QLineEdit,
    QPlainTextEdit,
    QRadioButton,
    QWidget,
)

from ticketdesk.app.form_bridge import (
    FIELD_CHECKBOX,
    FIELD_CHECKBOX_GROUP,
    FIELD_CHOICE,
    FIELD_MULTILINE,
    FIELD_RADIO,
    FormFieldSpec,
)
from ticketdesk.app.ticket_models import FieldValue, as_bool as _as_bool


def _option_label(option: str) -> str:
    return option.replace("_", " ").capitalize() if option else "(none)"


class QtTicketForm(QWidget):
    """Ticket form built from field specs; satisfies the ``FormSurface`` protocol."""

    changed = Signal()

    def __init__(self, specs: Sequence[FormFieldSpec], parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setObjectName("TicketForm")
        self._specs = tuple(specs)
        self._inputs: dict[str, QWidget] = {}
        self._option_buttons: dict[str, dict[str, QAbstractButton]] = {}
        self._button_groups: dict[str, QButtonGroup] = {}

        form = QFormLayout(self)
        form.setContentsMargins(0, 0, 0, 0)
        form.setHorizontalSpacing(12)
        form.setVerticalSpacing(10)
        for spec in self._specs:
            form.addRow(spec.display_label, self._build_input(spec))

    def _build_input(self, spec: FormFieldSpec) -> QWidget:
        if spec.kind == FIELD_MULTILINE:
            editor = QPlainTextEdit(self)
            editor.setObjectName("TicketFormMultiline")
            editor.setTabChangesFocus(True)
            editor.textChanged.connect(self.changed)
            self._inputs[spec.name] = editor
            return editor
        if spec.kind == FIELD_CHOICE:
            combo = QComboBox(self)
            combo.setObjectName("TicketFormCombo")
            combo.setEditable(True)
            combo.addItems(list(spec.options))
            combo.currentTextChanged.connect(lambda _text: self.changed.emit())
            self._inputs[spec.name] = combo
            return combo
        if spec.kind == FIELD_CHECKBOX:
            checkbox = QCheckBox(self)
            checkbox.toggled.connect(lambda _checked: self.changed.emit())
            self._inputs[spec.name] = checkbox
            return checkbox
        if spec.kind in (FIELD_RADIO, FIELD_CHECKBOX_GROUP):
            return self._build_option_row(spec)

        line_edit = QLineEdit(self)
        line_edit.setObjectName("TicketFormInput")
        line_edit.textChanged.connect(lambda _text: self.changed.emit())
        self._inputs[spec.name] = line_edit
        return line_edit

    def _build_option_row(self, spec: FormFieldSpec) -> QWidget:
        host = QWidget(self)
        row = QHBoxLayout(host)
        row.setContentsMargins(0, 0, 0, 0)
        row.setSpacing(10)
        buttons: dict[str, QAbstractButton] = {}
        group: QButtonGroup | None = None
        if spec.kind == FIELD_RADIO:
            group = QButtonGroup(host)
            group.setExclusive(True)
            self._button_groups[spec.name] = group
        for option in spec.options:
            button: QAbstractButton
            if spec.kind == FIELD_RADIO:
                button = QRadioButton(_option_label(option), host)
            else:
                button = QCheckBox(_option_label(option), host)
            button.toggled.connect(lambda _checked: self.changed.emit())
            if group is not None:
                group.addButton(button)
            row.addWidget(button)
            buttons[option] = button
        row.addStretch(1)
        self._option_buttons[spec.name] = buttons
        self._inputs[spec.name] = host
        return host

    # ---- FormSurface ---------------------------------------------------

    def field_specs(self) -> Sequence[FormFieldSpec]:
        return self._specs

    def read_raw(self, name: str) -> FieldValue:
        buttons = self._option_buttons.get(name)
        if buttons is not None:
            selected = [option for option, button in buttons.items() if button.isChecked()]
            if name in self._button_groups:
                return selected[0] if selected else ""
            return selected
        widget = self._inputs.get(name)
        if isinstance(widget, QCheckBox):
            return widget.isChecked()
        if isinstance(widget, QPlainTextEdit):
            return widget.toPlainText()
        if isinstance(widget, QComboBox):
            return widget.currentText()
        if isinstance(widget, QLineEdit):
            return widget.text()
        return ""

    def write_raw(self, name: str, value: FieldValue) -> None:
        buttons = self._option_buttons.get(name)
        if buttons is not None:
            wanted = set(value) if isinstance(value, list) else {str(value)} if value else set()
            group = self._button_groups.get(name)
            if group is not None:
                # An exclusive group refuses to end up with nothing checked.
                group.setExclusive(False)
            for option, button in buttons.items():
                button.setChecked(option in wanted)
            if group is not None:
                group.setExclusive(True)
            return
        widget = self._inputs.get(name)
        if isinstance(widget, QCheckBox):
            widget.setChecked(_as_bool(value))
        elif isinstance(widget, QPlainTextEdit):
            widget.setPlainText(str(value))
        elif isinstance(widget, QComboBox):
            widget.setCurrentText(str(value))
        elif isinstance(widget, QLineEdit):
            widget.setText(str(value))

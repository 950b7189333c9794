from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from ticketdesk.app.ticket_models import FieldValue, as_bool as _as_bool


FIELD_TEXT = "text"
FIELD_MULTILINE = "multiline"
FIELD_CHOICE = "choice"
FIELD_CHECKBOX = "checkbox"
FIELD_RADIO = "radio"
FIELD_CHECKBOX_GROUP = "checkbox_group"
FIELD_KINDS: tuple[str, ...] = (
    FIELD_TEXT,
    FIELD_MULTILINE,
    FIELD_CHOICE,
    FIELD_CHECKBOX,
    FIELD_RADIO,
    FIELD_CHECKBOX_GROUP,
)
_TEXT_KINDS = frozenset({FIELD_TEXT, FIELD_MULTILINE, FIELD_CHOICE})

DATE_FIELD_NAME = "ticket_date"
DISPLAY_ID_FIELD_NAME = "ticket_id"


@dataclass(frozen=True, slots=True)
class FormFieldSpec:
    name: str
    kind: str = FIELD_TEXT
    label: str = ""
    options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in FIELD_KINDS:
            raise ValueError(f"Unknown form field kind {self.kind!r} for {self.name!r}.")

    @property
    def display_label(self) -> str:
        return self.label or self.name.replace("_", " ").title()


class FormSurface(Protocol):
    """The widget side of a form: named fields with raw values."""

    def field_specs(self) -> Sequence[FormFieldSpec]:
        raise NotImplementedError

    def read_raw(self, name: str) -> FieldValue:
        raise NotImplementedError

    def write_raw(self, name: str, value: FieldValue) -> None:
        raise NotImplementedError


def empty_value(spec: FormFieldSpec) -> FieldValue:
    if spec.kind == FIELD_CHECKBOX:
        return False
    if spec.kind == FIELD_CHECKBOX_GROUP:
        return []
    return ""


class MemoryFormSurface:
    """Headless form used when no widgets are around, and by tests."""

    def __init__(self, specs: Sequence[FormFieldSpec]) -> None:
        self._specs = tuple(specs)
        self._values: dict[str, FieldValue] = {spec.name: empty_value(spec) for spec in self._specs}

    def field_specs(self) -> Sequence[FormFieldSpec]:
        return self._specs

    def read_raw(self, name: str) -> FieldValue:
        value = self._values.get(name, "")
        return list(value) if isinstance(value, list) else value

    def write_raw(self, name: str, value: FieldValue) -> None:
        if name not in self._values:
            return
        self._values[name] = list(value) if isinstance(value, list) else value


class FormBridge:
    """Moves values between a :class:`FormSurface` and a ticket field map."""

    def __init__(
        self,
        surface: FormSurface,
        *,
        date_field: str = DATE_FIELD_NAME,
        display_id_field: str = DISPLAY_ID_FIELD_NAME,
    ) -> None:
        self.surface = surface
        self.date_field = date_field
        self.display_id_field = display_id_field

    def _specs(self) -> dict[str, FormFieldSpec]:
        return {spec.name: spec for spec in self.surface.field_specs()}

    def _header_names(self) -> tuple[str, str]:
        return (self.date_field, self.display_id_field)

    def read_form(self) -> dict[str, FieldValue]:
        """Every named field except the header, including unchecked boxes and empty groups."""
        snapshot: dict[str, FieldValue] = {}
        for spec in self.surface.field_specs():
            if spec.name in self._header_names():
                continue
            raw = self.surface.read_raw(spec.name)
            if spec.kind == FIELD_CHECKBOX:
                snapshot[spec.name] = _as_bool(raw)
            elif spec.kind == FIELD_CHECKBOX_GROUP:
                selected = set(_as_list(raw))
                snapshot[spec.name] = [option for option in spec.options if option in selected]
            elif spec.kind == FIELD_RADIO:
                value = _as_single_text(raw)
                snapshot[spec.name] = value if value in spec.options else ""
            else:
                snapshot[spec.name] = _as_single_text(raw)
        return snapshot

    def write_form(self, fields: Mapping[str, Any]) -> None:
        specs = {name: spec for name, spec in self._specs().items() if name not in self._header_names()}
        for spec in specs.values():
            self.surface.write_raw(spec.name, empty_value(spec))
        for name, value in fields.items():
            spec = specs.get(name)
            if spec is None:
                continue
            self.surface.write_raw(name, _coerce_for(spec, value))

    def read_date(self) -> str | None:
        if self.date_field not in self._specs():
            return None
        text = _as_single_text(self.surface.read_raw(self.date_field)).strip()
        return text or None

    def read_display_id(self) -> str:
        if self.display_id_field not in self._specs():
            return ""
        return _as_single_text(self.surface.read_raw(self.display_id_field)).strip()

    def write_header(self, *, date: str | None, display_id: str) -> None:
        specs = self._specs()
        if self.date_field in specs:
            self.surface.write_raw(self.date_field, date or "")
        if self.display_id_field in specs:
            self.surface.write_raw(self.display_id_field, display_id or "")


def _as_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(entry) for entry in value]
    if isinstance(value, bool) or value is None:
        return []
    text = str(value)
    return [text] if text else []


def _as_single_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(entry) for entry in value)
    if value is None:
        return ""
    return str(value)


def _coerce_for(spec: FormFieldSpec, value: Any) -> FieldValue:
    if spec.kind in _TEXT_KINDS:
        return _as_single_text(value)
    if spec.kind == FIELD_CHECKBOX:
        if isinstance(value, (list, tuple)):
            return bool(value)
        return _as_bool(value)
    if spec.kind == FIELD_RADIO:
        for candidate in _as_list(value):
            if candidate in spec.options:
                return candidate
        return ""
    selected = set(_as_list(value))
    return [option for option in spec.options if option in selected]

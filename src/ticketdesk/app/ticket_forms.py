from __future__ import annotations

from ticketdesk.app.form_bridge import (
    DATE_FIELD_NAME,
    DISPLAY_ID_FIELD_NAME,
    FIELD_CHECKBOX,
    FIELD_CHECKBOX_GROUP,
    FIELD_CHOICE,
    FIELD_MULTILINE,
    FIELD_RADIO,
    FIELD_TEXT,
    FormFieldSpec,
)
from ticketdesk.app.ticket_models import TICKET_TYPE_BUYTRADE, normalize_ticket_type


HEADER_FIELDS: tuple[FormFieldSpec, ...] = (
    FormFieldSpec(DATE_FIELD_NAME, FIELD_TEXT, "Date"),
    FormFieldSpec(DISPLAY_ID_FIELD_NAME, FIELD_TEXT, "Ticket #"),
)

_CUSTOMER_FIELDS: tuple[FormFieldSpec, ...] = (
    FormFieldSpec("customer_name", FIELD_TEXT, "Customer name"),
    FormFieldSpec("customer_phone", FIELD_TEXT, "Phone"),
    FormFieldSpec("customer_email", FIELD_TEXT, "Email"),
)

REPAIR_FIELDS: tuple[FormFieldSpec, ...] = (
    *HEADER_FIELDS,
    *_CUSTOMER_FIELDS,
    FormFieldSpec(
        "console_model",
        FIELD_CHOICE,
        "Console",
        ("", "PlayStation 5", "PlayStation 4", "Xbox Series X|S", "Xbox One", "Switch", "Other"),
    ),
    FormFieldSpec("serial_number", FIELD_TEXT, "Serial #"),
    FormFieldSpec("issue_description", FIELD_MULTILINE, "Issue"),
    FormFieldSpec(
        "accessories",
        FIELD_CHECKBOX_GROUP,
        "Left with unit",
        ("controller", "power_cable", "hdmi_cable", "case"),
    ),
    FormFieldSpec("condition", FIELD_RADIO, "Condition", ("good", "fair", "poor")),
    FormFieldSpec("data_backup_ok", FIELD_CHECKBOX, "OK to wipe data"),
    FormFieldSpec("estimate", FIELD_TEXT, "Estimate"),
    FormFieldSpec("technician_notes", FIELD_MULTILINE, "Technician notes"),
)

BUYTRADE_FIELDS: tuple[FormFieldSpec, ...] = (
    *HEADER_FIELDS,
    *_CUSTOMER_FIELDS,
    FormFieldSpec("id_verified", FIELD_CHECKBOX, "Photo ID checked"),
    FormFieldSpec("transaction", FIELD_RADIO, "Transaction", ("buy", "trade")),
    FormFieldSpec("items", FIELD_MULTILINE, "Items"),
    FormFieldSpec("offer_amount", FIELD_TEXT, "Offer"),
    FormFieldSpec("payment_method", FIELD_RADIO, "Paid as", ("cash", "store_credit")),
    FormFieldSpec("notes", FIELD_MULTILINE, "Notes"),
)


def form_fields_for(ticket_type: str) -> tuple[FormFieldSpec, ...]:
    if normalize_ticket_type(ticket_type) == TICKET_TYPE_BUYTRADE:
        return BUYTRADE_FIELDS
    return REPAIR_FIELDS

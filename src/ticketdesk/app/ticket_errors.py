from __future__ import annotations


class TicketParseError(ValueError):
    """Raised when stored or imported ticket text is not usable JSON."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = str(source or "").strip()


class TicketPersistenceError(RuntimeError):
    """Raised when the key-value store refuses a write."""

    def __init__(self, message: str, *, key: str = "") -> None:
        super().__init__(message)
        self.key = str(key or "").strip()


class TicketReferenceError(LookupError):
    """Raised when an id points at a ticket the store does not hold."""

    def __init__(self, ticket_id: str) -> None:
        super().__init__(f"No ticket with id {ticket_id!r}.")
        self.ticket_id = ticket_id

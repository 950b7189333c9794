from ticketdesk.ui.window.ticket_window import TicketWindow

__all__ = ["TicketWindow"]

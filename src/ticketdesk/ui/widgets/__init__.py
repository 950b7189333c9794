from ticketdesk.ui.widgets.ticket_form import QtTicketForm
from ticketdesk.ui.widgets.ticket_list import TicketListWidget

__all__ = [
    "QtTicketForm",
    "TicketListWidget",
]

"""Ticket workflows: scan, review, confirm, list and catalog maintenance."""

from canasta.application.tickets.catalog import (
    create_product,
    create_store,
    delete_product,
    delete_store,
    list_products,
    list_stores,
)
from canasta.application.tickets.confirm import (
    ConfirmItem,
    ConfirmTicketRequest,
    ConfirmTicketResult,
    confirm_ticket,
)
from canasta.application.tickets.listing import TicketListing, delete_ticket, get_ticket, list_tickets
from canasta.application.tickets.review import (
    accept_suggestion,
    edit_ticket_item,
    get_ticket_review,
    ignore_item,
    restore_item,
)
from canasta.application.tickets.scan import (
    TicketScanRequest,
    TicketScanResult,
    register_scanned_text,
    run_ticket_scan,
)

__all__ = [
    "ConfirmItem",
    "ConfirmTicketRequest",
    "ConfirmTicketResult",
    "TicketListing",
    "TicketScanRequest",
    "TicketScanResult",
    "accept_suggestion",
    "confirm_ticket",
    "create_product",
    "create_store",
    "delete_product",
    "delete_store",
    "delete_ticket",
    "edit_ticket_item",
    "get_ticket",
    "get_ticket_review",
    "ignore_item",
    "list_products",
    "list_stores",
    "list_tickets",
    "register_scanned_text",
    "restore_item",
    "run_ticket_scan",
]

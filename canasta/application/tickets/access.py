"""Lookups shared by the ticket workflows: existence, ownership and state checks."""

from __future__ import annotations

from canasta.domain.catalog import Product, Store
from canasta.domain.errors import ConflictError, NotFoundError, PermissionDeniedError
from canasta.domain.scan import TicketScan, TicketScanItem
from canasta.runtime.storage import UnitOfWork


def load_ticket(uow: UnitOfWork, user_id: str, ticket_id: str) -> TicketScan:
    ticket = uow.get_ticket_scan(ticket_id)
    if ticket is None:
        raise NotFoundError(f"Ticket '{ticket_id}' not found")
    if ticket.user_id != user_id:
        raise PermissionDeniedError(f"Ticket '{ticket_id}' belongs to another user")
    return ticket


def load_ready_ticket(uow: UnitOfWork, user_id: str, ticket_id: str) -> TicketScan:
    """Load a ticket the user owns and may still change.

    Raises:
        NotFoundError: Unknown ticket.
        PermissionDeniedError: Ticket owned by another user.
        ConflictError: Ticket already confirmed.
    """
    ticket = load_ticket(uow, user_id, ticket_id)
    if ticket.status != "READY":
        raise ConflictError(f"Ticket '{ticket_id}' is already confirmed")
    return ticket


def load_ticket_item(uow: UnitOfWork, ticket: TicketScan, item_id: str) -> TicketScanItem:
    item = uow.get_ticket_scan_item(item_id)
    if item is None or item.ticket_scan_id != ticket.id:
        raise NotFoundError(f"Item '{item_id}' not found in ticket '{ticket.id}'")
    return item


def load_owned_store(uow: UnitOfWork, user_id: str, store_id: str) -> Store:
    store = uow.get_store(store_id)
    if store is None:
        raise NotFoundError(f"Store '{store_id}' not found")
    if store.user_id != user_id:
        raise PermissionDeniedError(f"Store '{store_id}' belongs to another user")
    return store


def load_owned_product(uow: UnitOfWork, user_id: str, product_id: str) -> Product:
    product = uow.get_product(product_id)
    if product is None:
        raise NotFoundError(f"Product '{product_id}' not found")
    if product.user_id != user_id:
        raise PermissionDeniedError(f"Product '{product_id}' belongs to another user")
    return product

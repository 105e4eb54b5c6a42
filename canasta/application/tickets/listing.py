"""Ticket listing, lookup and deletion."""

from __future__ import annotations

from dataclasses import dataclass

from canasta.application.tickets.access import load_ready_ticket, load_ticket
from canasta.application.tickets.scan import ImageStore, release_image
from canasta.domain.errors import ValidationError
from canasta.domain.scan import TicketScan, TicketScanItem
from canasta.runtime.logging import get_logger
from canasta.runtime.storage import TicketDatabase

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class TicketListing:
    """One page of a user's tickets, newest first."""

    tickets: list[TicketScan]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0


def list_tickets(
    database: TicketDatabase,
    user_id: str,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> TicketListing:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    with database.unit_of_work(write=False) as uow:
        tickets = uow.list_ticket_scans(user_id, limit=limit, offset=(page - 1) * limit)
        total = uow.count_ticket_scans(user_id)
    return TicketListing(tickets=tickets, total=total, page=page, limit=limit)


def get_ticket(database: TicketDatabase, user_id: str, ticket_id: str) -> tuple[TicketScan, list[TicketScanItem]]:
    """Load a ticket and its items without computing suggestions."""
    with database.unit_of_work(write=False) as uow:
        ticket = load_ticket(uow, user_id, ticket_id)
        return ticket, uow.get_ticket_scan_items(ticket_id)


def delete_ticket(
    database: TicketDatabase,
    user_id: str,
    ticket_id: str,
    images: ImageStore | None = None,
) -> None:
    """Delete a READY ticket and its items, then release its image best-effort.

    Raises:
        NotFoundError: Unknown ticket.
        PermissionDeniedError: Ticket owned by another user.
        ConflictError: Ticket already confirmed.
    """
    with database.unit_of_work() as uow:
        ticket = load_ready_ticket(uow, user_id, ticket_id)
        uow.delete_ticket_scan(ticket_id)

    logger.info("Ticket %s deleted", ticket_id)
    if images is not None and ticket.image_ref:
        release_image(images, ticket.image_ref)

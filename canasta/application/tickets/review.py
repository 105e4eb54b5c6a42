"""Ticket review workflow: inspect and correct detected items before confirming.

Every edit requires the ticket to be READY and owned by the caller.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from canasta.application.tickets.access import (
    load_owned_product,
    load_ready_ticket,
    load_ticket,
    load_ticket_item,
)
from canasta.domain.catalog import ProductMatch
from canasta.domain.errors import ConflictError, ValidationError
from canasta.domain.scan import TicketReview, TicketReviewItem, TicketScanItem
from canasta.runtime.logging import get_logger
from canasta.runtime.storage import TicketDatabase
from canasta.ticket.matching import MatchConfig, UserCatalog, find_similar, normalize_name, trigram_similarity

logger = get_logger(__name__)


def get_ticket_review(
    database: TicketDatabase,
    user_id: str,
    ticket_id: str,
    match_config: MatchConfig | None = None,
) -> TicketReview:
    """Load a ticket with its items; PENDING items get suggestions from the current catalog."""
    config = match_config or MatchConfig()
    with database.unit_of_work(write=False) as uow:
        ticket = load_ticket(uow, user_id, ticket_id)
        items = uow.get_ticket_scan_items(ticket_id)
        catalog = UserCatalog(user_id, uow.find_products_by_user(user_id)) if ticket.status == "READY" else None

    review_items = []
    for item in items:
        suggestions: tuple[ProductMatch, ...] = ()
        if catalog is not None and item.status == "PENDING":
            suggestions = tuple(
                find_similar(
                    catalog,
                    item.detected_name,
                    limit=config.limit,
                    min_similarity=config.min_similarity,
                    similarity=config.similarity,
                )
            )
        review_items.append(TicketReviewItem(item=item, suggestions=suggestions))
    return TicketReview(ticket=ticket, items=tuple(review_items))


def edit_ticket_item(
    database: TicketDatabase,
    user_id: str,
    ticket_id: str,
    item_id: str,
    *,
    name: str | None = None,
    price: int | None = None,
    quantity: Decimal | None = None,
) -> TicketScanItem:
    """Correct the detected name, price or quantity of one item.

    Raises:
        ValidationError: Empty name, negative price or non-positive quantity.
    """
    changes: dict[str, object] = {}
    if name is not None:
        if not name.strip():
            raise ValidationError("Item name cannot be empty")
        changes["detected_name"] = name.strip()
    if price is not None:
        if price < 0:
            raise ValidationError("Item price cannot be negative")
        changes["detected_price"] = price
    if quantity is not None:
        if quantity <= 0:
            raise ValidationError("Item quantity must be positive")
        changes["detected_quantity"] = Decimal(quantity)

    with database.unit_of_work() as uow:
        ticket = load_ready_ticket(uow, user_id, ticket_id)
        item = load_ticket_item(uow, ticket, item_id)
        updated = replace(item, **changes)
        uow.update_ticket_scan_item(updated)
    return updated


def accept_suggestion(
    database: TicketDatabase,
    user_id: str,
    ticket_id: str,
    item_id: str,
    product_id: str,
) -> TicketScanItem:
    """Link an item to a product of the user's catalog (status MATCHED)."""
    with database.unit_of_work() as uow:
        ticket = load_ready_ticket(uow, user_id, ticket_id)
        item = load_ticket_item(uow, ticket, item_id)
        product = load_owned_product(uow, user_id, product_id)
        similarity = trigram_similarity(normalize_name(item.detected_name), normalize_name(product.name))
        updated = replace(
            item,
            status="MATCHED",
            matched_product_id=product.id,
            match_confidence=similarity,
            previous_status=None,
        )
        uow.update_ticket_scan_item(updated)
    logger.debug("Item %s accepted as product %s (%.2f)", item_id, product_id, similarity)
    return updated


def ignore_item(database: TicketDatabase, user_id: str, ticket_id: str, item_id: str) -> TicketScanItem:
    """Exclude an item from confirmation, remembering its status for restore_item()."""
    with database.unit_of_work() as uow:
        ticket = load_ready_ticket(uow, user_id, ticket_id)
        item = load_ticket_item(uow, ticket, item_id)
        if item.status == "IGNORED":
            return item
        updated = replace(item, status="IGNORED", previous_status=item.status)
        uow.update_ticket_scan_item(updated)
    return updated


def restore_item(database: TicketDatabase, user_id: str, ticket_id: str, item_id: str) -> TicketScanItem:
    """Undo ignore_item().

    Raises:
        ConflictError: The item is not ignored.
    """
    with database.unit_of_work() as uow:
        ticket = load_ready_ticket(uow, user_id, ticket_id)
        item = load_ticket_item(uow, ticket, item_id)
        if item.status != "IGNORED":
            raise ConflictError(f"Item '{item_id}' is not ignored")
        status = item.previous_status or ("MATCHED" if item.matched_product_id else "NEW")
        updated = replace(item, status=status, previous_status=None)
        uow.update_ticket_scan_item(updated)
    return updated

"""Ticket confirmation: turn a reviewed READY ticket into a purchase.

Confirmation runs in a single write unit of work. The status check reads
inside it, so of two concurrent confirmations of one ticket exactly one
creates a purchase and the other raises ConflictError. Any failure rolls back
every product, purchase and status change made so far.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from canasta.application.tickets.access import load_owned_product, load_owned_store, load_ready_ticket
from canasta.domain.catalog import Product
from canasta.domain.errors import ConflictError, ValidationError
from canasta.domain.scan import ItemStatus, Purchase, PurchaseItem, TicketScanItem
from canasta.runtime.logging import get_logger
from canasta.runtime.storage import TicketDatabase, UnitOfWork, new_id
from canasta.ticket.categories import CategoryClassifier
from canasta.ticket.matching import normalize_name

logger = get_logger(__name__)

OVERRIDE_STATUSES: frozenset[str] = frozenset({"NEW", "MATCHED", "PENDING", "IGNORED"})


@dataclass(frozen=True)
class ConfirmItem:
    """Last-minute corrections for one item, applied before confirming."""

    id: str
    name: str | None = None
    price: int | None = None
    quantity: Decimal | None = None
    matched_product_id: str | None = None
    status: ItemStatus | None = None


@dataclass(frozen=True)
class ConfirmTicketRequest:
    """Inputs for confirming a ticket."""

    user_id: str
    ticket_id: str
    store_id: str | None
    purchase_date: date | None
    items: tuple[ConfirmItem, ...] | None = None


@dataclass(frozen=True)
class ConfirmTicketResult:
    """Outcome of a successful confirmation."""

    purchase_id: str
    purchase_items_created: int
    products_created: int
    confirmed_at: datetime


def _apply_overrides(items: list[TicketScanItem], overrides: tuple[ConfirmItem, ...] | None) -> list[TicketScanItem]:
    if not overrides:
        return items

    by_id = {item.id: item for item in items}
    for override in overrides:
        item = by_id.get(override.id)
        if item is None:
            raise ValidationError(f"Item '{override.id}' does not belong to this ticket")

        changes: dict[str, object] = {}
        if override.name is not None:
            if not override.name.strip():
                raise ValidationError(f"Item '{override.id}' name cannot be empty")
            changes["detected_name"] = override.name.strip()
        if override.price is not None:
            if override.price < 0:
                raise ValidationError(f"Item '{override.id}' price cannot be negative")
            changes["detected_price"] = override.price
        if override.quantity is not None:
            if override.quantity <= 0:
                raise ValidationError(f"Item '{override.id}' quantity must be positive")
            changes["detected_quantity"] = Decimal(override.quantity)
        if override.matched_product_id is not None:
            changes["matched_product_id"] = override.matched_product_id
        if override.status is not None:
            if override.status not in OVERRIDE_STATUSES:
                raise ValidationError(f"Item '{override.id}' cannot be set to {override.status}")
            changes["status"] = override.status
        by_id[item.id] = replace(item, **changes)

    return [by_id[item.id] for item in items]


def _unit_price(total: int, quantity: Decimal) -> int:
    if quantity <= 0 or quantity == 1:
        return total
    return int((Decimal(total) / quantity).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class _ProductResolver:
    """Pick or create the catalog product for each confirmed item.

    Items named like an existing product (after normalization) reuse it, so
    confirming two "LECHE ENTERA" lines creates one product.
    """

    def __init__(self, uow: UnitOfWork, user_id: str, classifier: CategoryClassifier) -> None:
        self._uow = uow
        self._user_id = user_id
        self._classifier = classifier
        self._by_name: dict[str, Product] = {}
        for product in uow.find_products_by_user(user_id):
            self._by_name.setdefault(normalize_name(product.name), product)
        self.created = 0

    def resolve(self, item: TicketScanItem) -> str:
        if item.matched_product_id and item.status != "NEW":
            return load_owned_product(self._uow, self._user_id, item.matched_product_id).id

        normalized = normalize_name(item.detected_name)
        existing = self._by_name.get(normalized) if normalized else None
        if existing is not None:
            return existing.id

        category = self._classifier.detect_category(item.detected_name)
        product = self._uow.create_product(self._user_id, item.detected_name, category=category)
        if normalized:
            self._by_name[normalized] = product
        self.created += 1
        logger.debug("Created product %s (%s) for item %s", product.name, category, item.id)
        return product.id


def confirm_ticket(
    request: ConfirmTicketRequest,
    *,
    database: TicketDatabase,
    classifier: CategoryClassifier,
) -> ConfirmTicketResult:
    """Confirm a READY ticket, creating products, a purchase and its lines.

    Raises:
        ValidationError: Missing store or date, unknown override id, or no
            items left after removing IGNORED ones.
        NotFoundError: Unknown ticket, store or matched product.
        PermissionDeniedError: Ticket, store or product owned by another user.
        ConflictError: Ticket already confirmed.
    """
    if not request.store_id:
        raise ValidationError("A store is required to confirm a ticket")
    if request.purchase_date is None:
        raise ValidationError("A purchase date is required to confirm a ticket")

    confirmed_at = datetime.now()
    try:
        with database.unit_of_work() as uow:
            ticket = load_ready_ticket(uow, request.user_id, request.ticket_id)
            store = load_owned_store(uow, request.user_id, request.store_id)

            items = _apply_overrides(uow.get_ticket_scan_items(ticket.id), request.items)
            active = [item for item in items if item.status != "IGNORED"]
            if not active:
                raise ValidationError("No items to confirm")

            resolver = _ProductResolver(uow, request.user_id, classifier)
            purchase_id = new_id()
            lines = []
            confirmed_items = []
            for item in active:
                product_id = resolver.resolve(item)
                lines.append(
                    PurchaseItem(
                        id=new_id(),
                        purchase_id=purchase_id,
                        product_id=product_id,
                        quantity=item.detected_quantity,
                        unit_price=_unit_price(item.detected_price, item.detected_quantity),
                        total_price=item.detected_price,
                    )
                )
                confirmed_items.append(replace(item, status="CONFIRMED", final_product_id=product_id))

            purchase = Purchase(
                id=purchase_id,
                user_id=request.user_id,
                store_id=store.id,
                ticket_scan_id=ticket.id,
                purchase_date=request.purchase_date,
                total_amount=sum(line.total_price for line in lines),
                created_at=confirmed_at,
            )
            uow.create_purchase_with_items(purchase, lines)

            for item in items:
                if item.status == "IGNORED":
                    uow.update_ticket_scan_item(item)
            for item in confirmed_items:
                uow.update_ticket_scan_item(item)

            uow.update_ticket_scan(
                replace(
                    ticket,
                    status="CONFIRMED",
                    store_id=store.id,
                    purchase_date=request.purchase_date,
                    confirmed_at=confirmed_at,
                )
            )
    except sqlite3.IntegrityError as exc:
        # purchases.ticket_scan_id is unique.
        raise ConflictError(f"Ticket '{request.ticket_id}' could not be confirmed: {exc}") from exc

    logger.info(
        "Ticket %s confirmed: purchase %s, %d lines, %d new products",
        request.ticket_id,
        purchase_id,
        len(lines),
        resolver.created,
    )
    return ConfirmTicketResult(
        purchase_id=purchase_id,
        purchase_items_created=len(lines),
        products_created=resolver.created,
        confirmed_at=confirmed_at,
    )

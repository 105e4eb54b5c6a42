"""Persisted ticket scan, review item and purchase models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from canasta.domain.catalog import ProductMatch

TicketStatus = Literal["READY", "CONFIRMED"]
ItemStatus = Literal["NEW", "MATCHED", "PENDING", "IGNORED", "CONFIRMED"]

# Statuses a review item may hold before confirmation.
REVIEWABLE_STATUSES: frozenset[str] = frozenset({"NEW", "MATCHED", "PENDING"})


@dataclass(frozen=True)
class TicketScan:
    """A scanned ticket awaiting review (READY) or materialized (CONFIRMED)."""

    id: str
    user_id: str
    image_ref: str
    raw_text: str
    status: TicketStatus
    items_count: int
    total_amount: int
    image_url: str = ""
    store_id: str | None = None
    purchase_date: date | None = None
    detected_store_key: str | None = None
    detected_store_name: str | None = None
    detection_confidence: float = 0.0
    parser_used: str = ""
    created_at: datetime | None = None
    confirmed_at: datetime | None = None


@dataclass(frozen=True)
class TicketScanItem:
    """One detected line item of a ticket scan, editable until confirmation."""

    id: str
    ticket_scan_id: str
    line_number: int
    raw_text: str
    detected_name: str
    detected_price: int
    detected_quantity: Decimal
    status: ItemStatus
    unit: str = "UN"
    item_code: str | None = None
    parse_confidence: float = 0.0
    flags: tuple[str, ...] = ()
    matched_product_id: str | None = None
    match_confidence: float | None = None
    previous_status: ItemStatus | None = None
    final_product_id: str | None = None


@dataclass(frozen=True)
class TicketReviewItem:
    """A review item together with the suggestions shown to the user."""

    item: TicketScanItem
    suggestions: tuple[ProductMatch, ...] = ()


@dataclass(frozen=True)
class TicketReview:
    """A ticket scan with its items, as presented for review."""

    ticket: TicketScan
    items: tuple[TicketReviewItem, ...]


@dataclass(frozen=True)
class Purchase:
    id: str
    user_id: str
    store_id: str
    ticket_scan_id: str
    purchase_date: date
    total_amount: int
    created_at: datetime | None = None


@dataclass(frozen=True)
class PurchaseItem:
    id: str
    purchase_id: str
    product_id: str
    quantity: Decimal
    unit_price: int
    total_price: int

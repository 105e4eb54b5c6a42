"""Data models produced by the ticket parsing stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

PaymentMethod = Literal["cash", "card", "unknown"]

# Item flags
FLAG_NEEDS_REVIEW = "needs_review"
FLAG_OCR_UNORDERED = "ocr_unordered"
FLAG_PRICE_ESTIMATED = "price_estimated"


@dataclass(frozen=True)
class StoreIdentity:
    """Static identity of one supported retailer."""

    key: str
    display_name: str
    tax_id_patterns: tuple[str, ...] = ()
    name_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one parser's detect() on a text. Never persisted."""

    store_key: str
    store_name: str
    confidence: float
    matched_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class DetectionSummary:
    """Registry-level detection, including whether a human must confirm the store."""

    detected: bool
    results: tuple[DetectionResult, ...]
    needs_confirmation: bool
    suggested: DetectionResult | None = None


@dataclass(frozen=True)
class ParsedItem:
    """A single line item recovered from one or more receipt lines."""

    line_number: int
    raw_line: str
    description: str
    total_price: int
    quantity: Decimal = Decimal(1)
    # Pesos have no cents; prices are whole integers.
    unit_price: int = 0
    code: str | None = None
    unit: str = "UN"
    confidence: float = 0.7
    flags: tuple[str, ...] = ()


@dataclass(frozen=True)
class StoreInfo:
    key: str
    name: str
    confidence: float
    nit: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class DateInfo:
    value: date | None
    raw: str
    confidence: float


@dataclass(frozen=True)
class TotalInfo:
    total: int
    confidence: float
    subtotal: int | None = None
    tax: int | None = None
    discount: int | None = None


@dataclass(frozen=True)
class PaymentInfo:
    method: PaymentMethod = "unknown"
    card_last_digits: str | None = None


@dataclass(frozen=True)
class TicketMeta:
    parser_used: str
    parsed_at: datetime
    raw_text: str
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ParsedTicket:
    """Candidate ticket produced by one parser variant."""

    store: StoreInfo
    date: DateInfo
    items: tuple[ParsedItem, ...]
    totals: TotalInfo
    meta: TicketMeta
    payment: PaymentInfo = field(default_factory=PaymentInfo)

    @property
    def items_total(self) -> int:
        """Sum of item line totals, for comparing against the printed total."""
        return sum(item.total_price for item in self.items)

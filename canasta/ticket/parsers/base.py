"""Common contract and helpers for store-specific ticket parsers."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from canasta.domain.ticket import (
    DateInfo,
    DetectionResult,
    ParsedItem,
    ParsedTicket,
    PaymentInfo,
    StoreIdentity,
    StoreInfo,
    TicketMeta,
    TotalInfo,
)
from canasta.ticket.primitives import extract_date, extract_total
from canasta.ticket.text import collapse_whitespace, normalize, to_lines

# Detection scoring
TAX_ID_SCORE = 0.6
NAME_PATTERN_SCORE = 0.3

DEFAULT_ITEM_CONFIDENCE = 0.7

SEPARATOR_LINE = re.compile(r"^[-=*_.#\s]+$")
_LEADING_DIGITS = re.compile(r"^[\d\s]+")


def clean_product_name(name: str) -> str:
    """Trim, collapse whitespace, drop leading digits and upper-case a description."""
    cleaned = collapse_whitespace(name)
    cleaned = _LEADING_DIGITS.sub("", cleaned)
    return cleaned.upper()


def is_separator_line(line: str) -> bool:
    return bool(SEPARATOR_LINE.match(line))


def title_case(value: str) -> str:
    """Capitalize each word ("MOLINOS PLAZA" -> "Molinos Plaza")."""
    return " ".join(word.capitalize() for word in value.split())


def make_item(
    line_number: int,
    raw_line: str,
    description: str,
    total_price: int,
    *,
    quantity: Decimal | int | None = None,
    unit_price: int | None = None,
    code: str | None = None,
    unit: str = "UN",
    confidence: float = DEFAULT_ITEM_CONFIDENCE,
    flags: Iterable[str] = (),
) -> ParsedItem:
    """Build a ParsedItem, filling quantity/unit price when the receipt omits them.

    Quantity defaults to 1. A missing unit price is the line total, or the
    rounded total / quantity when a quantity other than 1 is known.
    """
    qty = Decimal(1) if quantity is None else Decimal(quantity)
    if unit_price is None:
        if qty > 0 and qty != 1:
            unit_price = int((Decimal(total_price) / qty).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        else:
            unit_price = total_price
    return ParsedItem(
        line_number=line_number,
        raw_line=raw_line,
        description=clean_product_name(description),
        quantity=qty,
        unit_price=unit_price,
        total_price=total_price,
        code=code,
        unit=unit,
        confidence=confidence,
        flags=tuple(flags),
    )


def window_bounds(
    lines: Sequence[str],
    start: re.Pattern[str],
    end: re.Pattern[str],
) -> tuple[int, int]:
    """Return [start, end) indexes of the item section.

    The section starts after the first line matching ``start`` (or at 0 when
    no header is printed) and stops before the next line matching ``end``.
    """
    start_idx = 0
    for idx, line in enumerate(lines):
        if start.search(line):
            start_idx = idx + 1
            break

    end_idx = len(lines)
    for idx in range(start_idx, len(lines)):
        if end.search(lines[idx]):
            end_idx = idx
            break
    return start_idx, end_idx


class TicketParser(ABC):
    """Base class for one retailer's receipt format.

    Subclasses declare their StoreIdentity and implement parse(). Detection is
    shared: a tax id (NIT) match is a strong signal, each store-name pattern a
    weak one.
    """

    identity: StoreIdentity

    def __init__(self) -> None:
        self._tax_id_regexes = [
            (source, re.compile(source, re.IGNORECASE | re.MULTILINE)) for source in self.identity.tax_id_patterns
        ]
        self._name_regexes = [
            (source, re.compile(source, re.IGNORECASE | re.MULTILINE)) for source in self.identity.name_patterns
        ]

    @property
    def key(self) -> str:
        return self.identity.key

    @property
    def store_name(self) -> str:
        return self.identity.display_name

    def detect(self, text: str) -> DetectionResult | None:
        """Score how likely text is a receipt from this store.

        Returns:
            DetectionResult capped at 1.0, or None when no pattern matched.
        """
        normalized = normalize(text)
        score = 0.0
        matched: list[str] = []

        for source, regex in self._tax_id_regexes:
            if regex.search(normalized):
                score += TAX_ID_SCORE
                matched.append(f"nit:{source}")
                break

        for source, regex in self._name_regexes:
            if regex.search(normalized):
                score += NAME_PATTERN_SCORE
                matched.append(f"id:{source}")

        if not matched:
            return None

        return DetectionResult(
            store_key=self.key,
            store_name=self.store_name,
            confidence=min(score, 1.0),
            matched_patterns=tuple(matched),
        )

    @abstractmethod
    def parse(self, text: str) -> ParsedTicket:
        """Turn receipt text into a candidate ticket. Must not raise on odd input."""

    def lines(self, text: str) -> list[str]:
        return to_lines(text)

    def build_ticket(
        self,
        text: str,
        lines: Sequence[str],
        items: Sequence[ParsedItem],
        *,
        store_name: str | None = None,
        store_confidence: float = 1.0,
        nit: str | None = None,
        address: str | None = None,
        date: DateInfo | None = None,
        totals: TotalInfo | None = None,
        payment: PaymentInfo | None = None,
        warnings: Iterable[str] = (),
    ) -> ParsedTicket:
        """Assemble the immutable ticket, using shared extractors for anything not given."""
        return ParsedTicket(
            store=StoreInfo(
                key=self.key,
                name=store_name or self.store_name,
                confidence=store_confidence,
                nit=nit,
                address=address,
            ),
            date=date if date is not None else extract_date(text),
            items=tuple(items),
            totals=totals if totals is not None else extract_total(lines),
            payment=payment if payment is not None else PaymentInfo(),
            meta=TicketMeta(
                parser_used=self.key,
                parsed_at=datetime.now(),
                raw_text=text,
                warnings=tuple(warnings),
            ),
        )

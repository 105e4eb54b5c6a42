"""Parser for Tiendas ARA (Jerónimo Martins) receipts.

ARA printers often split the receipt into two columns that OCR reads one after
the other: every product line first, then a line reading just "Valor", then
every price. Quantities sit under their product:

    7702001234567 LECHE ENTERA 1100ML
    2 UN X 3 450
    7701234000018 PAPA CRIOLLA
    0,735 KGM X 9 600
    Valor
    6 900 E
    7 056 E

Pairing products to prices is positional, so those items are flagged
``ocr_unordered``. Receipts without the marker use a single-line format.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from canasta.domain.ticket import (
    FLAG_NEEDS_REVIEW,
    FLAG_OCR_UNORDERED,
    ParsedItem,
    ParsedTicket,
    StoreIdentity,
)
from canasta.runtime.logging import get_logger
from canasta.ticket.parsers.base import TicketParser, is_separator_line, make_item
from canasta.ticket.primitives import extract_address, extract_nit, extract_payment, parse_price

logger = get_logger(__name__)

COLUMN_MARKER = re.compile(r"^valor$", re.IGNORECASE)

PRODUCT_LINE = re.compile(r"^(\d{6,14})\s+(.+)$")
QUANTITY_LINE = re.compile(r"^(\d+)\s*(UN|EA)\s*X\s*([\d\s]+)?$", re.IGNORECASE)
# "0,735 KGM X 9 600" -> 0.735 kg; the leading zero and comma are often lost.
WEIGHT_LINE = re.compile(r"^0?[,.]?\s*(\d{1,3})\s*KGM?\s*X\s*([\d\s]+)?$", re.IGNORECASE)
PRICE_LINE = re.compile(r"^([\d\s]+)\s*[A-Z]?$")
IGNORED_LINE = re.compile(
    r"^(nit|tel|comprobante|art[ií]culo|descripci[oó]n|jeronimo|total|descuento|tarjeta)",
    re.IGNORECASE,
)
STANDARD_LINE = re.compile(r"^(\d{6,14})?\s*(.+?)\s+([\d.,]+)\s*[A-Z]?$")

CASH_PATTERN = re.compile(r"EFECTIVO|CONTADO", re.IGNORECASE)
CARD_PATTERN = re.compile(r"TARJETA|DEBITO|CREDITO", re.IGNORECASE)
JERONIMO_MARTINS = re.compile(r"JERONIMO\s*MARTINS", re.IGNORECASE)

COLUMN_CONFIDENCE = 0.7
STANDARD_CONFIDENCE = 0.6
MAX_COLUMN_PRICE = 10_000_000
STANDARD_MIN_PRICE = 100
STANDARD_MAX_PRICE = 5_000_000


@dataclass
class _ColumnProduct:
    line_number: int
    code: str
    name: str
    raw_line: str
    quantity: Decimal
    unit: str
    unit_price: int | None


def _digits(value: str | None) -> int | None:
    if not value:
        return None
    price = parse_price(value)
    return price or None


class AraParser(TicketParser):
    identity = StoreIdentity(
        key="ara",
        display_name="Tiendas ARA",
        tax_id_patterns=(r"NIT\s*[:\s]?\s*900\.?480\.?569", r"900480569"),
        name_patterns=(r"JERONIMO\s*MARTINS", r"\bARA\b", r"TIENDAS\s*ARA"),
    )

    def parse(self, text: str) -> ParsedTicket:
        lines = self.lines(text)
        warnings: list[str] = []

        marker_idx = next((idx for idx, line in enumerate(lines) if COLUMN_MARKER.match(line)), -1)
        if marker_idx > 0:
            items = self._parse_columns(lines, marker_idx, warnings)
        else:
            items = self._parse_standard(lines)

        store_name = "ARA (Jerónimo Martins)" if JERONIMO_MARTINS.search(text) else None
        return self.build_ticket(
            text,
            lines,
            items,
            store_name=store_name,
            nit=extract_nit(text),
            address=extract_address(text),
            payment=extract_payment(text, card_pattern=CARD_PATTERN, cash_pattern=CASH_PATTERN),
            warnings=warnings,
        )

    def _parse_columns(self, lines: list[str], marker_idx: int, warnings: list[str]) -> list[ParsedItem]:
        product_zone = lines[:marker_idx]
        price_zone = lines[marker_idx + 1 :]

        products: list[_ColumnProduct] = []
        idx = 0
        while idx < len(product_zone):
            line = product_zone[idx]
            idx += 1
            line_number = idx
            if len(line) < 4 or IGNORED_LINE.match(line) or is_separator_line(line):
                continue

            product_match = PRODUCT_LINE.match(line)
            if not product_match:
                continue

            quantity = Decimal(1)
            unit = "UN"
            unit_price: int | None = None
            if idx < len(product_zone):
                next_line = product_zone[idx]
                qty_match = QUANTITY_LINE.match(next_line)
                weight_match = None if qty_match else WEIGHT_LINE.match(next_line)
                if qty_match:
                    quantity = Decimal(qty_match.group(1))
                    unit_price = _digits(qty_match.group(3))
                    idx += 1
                elif weight_match:
                    quantity = Decimal(f"0.{weight_match.group(1)}")
                    unit = "KG"
                    unit_price = _digits(weight_match.group(2))
                    idx += 1

            products.append(
                _ColumnProduct(
                    line_number=line_number,
                    code=product_match.group(1),
                    name=product_match.group(2).strip(),
                    raw_line=line,
                    quantity=quantity,
                    unit=unit,
                    unit_price=unit_price,
                )
            )

        prices: list[int] = []
        for line in price_zone:
            price_match = PRICE_LINE.match(line)
            if not price_match:
                continue
            price = parse_price(price_match.group(1))
            if 0 < price < MAX_COLUMN_PRICE:
                prices.append(price)

        if len(products) != len(prices):
            logger.debug("ARA column zones differ: %d products, %d prices", len(products), len(prices))
            warnings.append(
                f"Column layout has {len(products)} product lines but {len(prices)} prices; "
                "items were paired by position"
            )

        items = []
        for product, total in zip(products, prices):
            items.append(
                make_item(
                    product.line_number,
                    product.raw_line,
                    product.name,
                    total,
                    quantity=product.quantity,
                    unit_price=product.unit_price,
                    code=product.code,
                    unit=product.unit,
                    confidence=COLUMN_CONFIDENCE,
                    flags=(FLAG_OCR_UNORDERED,),
                )
            )
        return items

    def _parse_standard(self, lines: list[str]) -> list[ParsedItem]:
        items = []
        for line_number, line in enumerate(lines, start=1):
            if IGNORED_LINE.match(line):
                continue
            match = STANDARD_LINE.match(line)
            if not match or len(match.group(2)) <= 3:
                continue
            price = parse_price(match.group(3))
            if STANDARD_MIN_PRICE < price < STANDARD_MAX_PRICE:
                items.append(
                    make_item(
                        line_number,
                        line,
                        match.group(2),
                        price,
                        code=match.group(1),
                        confidence=STANDARD_CONFIDENCE,
                        flags=(FLAG_NEEDS_REVIEW,),
                    )
                )
        return items

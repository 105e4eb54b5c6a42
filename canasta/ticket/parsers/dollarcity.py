"""Parser for Dollarcity receipts.

Dollarcity slips print each item over several lines and OCR returns those
lines badly out of order:

    1   BOLSA RECICLADA
        7702345678901
        1 @ 427.00
        427.00 B
    TOTAL                 COP 78000.00

Descriptions, prices, quantity lines and barcodes are collected separately,
descriptions are ordered by their printed item number and everything is
paired by position. All items are flagged ``ocr_unordered``.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from canasta.domain.ticket import FLAG_OCR_UNORDERED, ParsedItem, ParsedTicket, StoreIdentity, TotalInfo
from canasta.ticket.parsers.base import TicketParser, make_item, title_case
from canasta.ticket.primitives import extract_address, extract_nit, extract_payment, extract_total

NUMBERED_ITEM = re.compile(r"^(\d{1,2})\s+([A-Z][A-Z\s/\d.]+)$", re.IGNORECASE)
# "427.00 B": the trailing letter is the tax class.
PRICE_WITH_TAX_CLASS = re.compile(r"^(\d+(?:\.\d{2})?)\s*([BZEP])$")
QUANTITY_AT_PRICE = re.compile(r"^(\d+)\s*@\s*([\d.]+)$")
BARCODE = re.compile(r"^(\d{12,14})$")
NUMERIC_ONLY = re.compile(r"^\d+$")

BRANCH_NAME = re.compile(r"DOLLARCITY\s+(?!NIT\b)([A-Z]+)", re.IGNORECASE)
COP_TOTAL = re.compile(r"COP\s*(\d+)(?:\.00)?", re.IGNORECASE)
CARD_PATTERN = re.compile(r"MASTERCARD|VISA|DEBITO|CREDITO", re.IGNORECASE)

# Plastic bag tax lines are not products.
IGNORED_DESCRIPTIONS = ("impuesto bolsa plastica", "bolsa plastica")

ITEM_CONFIDENCE = 0.75
COP_TOTAL_CONFIDENCE = 0.95
MAX_PRICE = 1_000_000


def _round_pesos(value: str) -> int | None:
    """Round a "427.00" style amount to whole pesos."""
    try:
        return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return None


class DollarcityParser(TicketParser):
    identity = StoreIdentity(
        key="dollarcity",
        display_name="Dollarcity",
        tax_id_patterns=(r"NIT\s*[:\s]?\s*900\.?943\.?2434", r"9009432434"),
        name_patterns=(r"DOLLARCITY", r"SURAMERICA\s*COMERCIAL"),
    )

    def parse(self, text: str) -> ParsedTicket:
        lines = self.lines(text)
        items, warnings = self._extract_items(lines)

        branch = BRANCH_NAME.search(text)
        store_name = f"Dollarcity {title_case(branch.group(1))}" if branch else None

        cop_total = COP_TOTAL.search(text)
        if cop_total:
            totals = TotalInfo(total=int(cop_total.group(1)), confidence=COP_TOTAL_CONFIDENCE)
        else:
            totals = extract_total(lines)

        return self.build_ticket(
            text,
            lines,
            items,
            store_name=store_name,
            nit=extract_nit(text),
            address=extract_address(text),
            totals=totals,
            payment=extract_payment(text, card_pattern=CARD_PATTERN),
            warnings=warnings,
        )

    def _extract_items(self, lines: list[str]) -> tuple[list[ParsedItem], list[str]]:
        descriptions: list[tuple[int, str, str]] = []
        prices: list[int] = []
        quantities: list[tuple[int, int | None]] = []
        barcodes: list[str] = []

        for line in lines:
            item_match = NUMBERED_ITEM.match(line)
            if item_match:
                description = item_match.group(2).strip()
                if len(description) <= 2 or NUMERIC_ONLY.match(description):
                    continue
                if any(ignored in description.lower() for ignored in IGNORED_DESCRIPTIONS):
                    continue
                descriptions.append((int(item_match.group(1)), description, line))
                continue

            price_match = PRICE_WITH_TAX_CLASS.match(line)
            if price_match:
                price = _round_pesos(price_match.group(1))
                if price is not None and 0 < price < MAX_PRICE:
                    prices.append(price)
                continue

            qty_match = QUANTITY_AT_PRICE.match(line)
            if qty_match:
                quantities.append((int(qty_match.group(1)), _round_pesos(qty_match.group(2))))
                continue

            barcode_match = BARCODE.match(line)
            if barcode_match:
                barcodes.append(barcode_match.group(1))

        # Stable sort keeps OCR order for repeated item numbers.
        descriptions.sort(key=lambda entry: entry[0])

        warnings = []
        if len(descriptions) != len(prices):
            warnings.append(
                f"Found {len(descriptions)} item descriptions but {len(prices)} prices; "
                "items were paired by position"
            )

        items = []
        for idx, ((number, description, raw_line), total) in enumerate(zip(descriptions, prices)):
            quantity, unit_price = quantities[idx] if idx < len(quantities) else (1, total)
            items.append(
                make_item(
                    number,
                    raw_line,
                    description,
                    total,
                    quantity=quantity,
                    unit_price=unit_price,
                    code=barcodes[idx] if idx < len(barcodes) else None,
                    confidence=ITEM_CONFIDENCE,
                    flags=(FLAG_OCR_UNORDERED,),
                )
            )
        return items, warnings

"""Parser for Gigante del Hogar receipts.

Each item is a small block of lines:

    # Descripcion Item U.M Cant. V/r Unit. Total
    1 COPA MARGARITA 9OZ CRISTAR
    12031689 5444C 484739 UND 1 $21.500
    $21.500*
    TOTAL
    $21.500

The detail line is sometimes split into a code line and a "UND 1 $21.500"
line. A block without its closing total line gets total = unit price x qty.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date

from canasta.domain.ticket import (
    FLAG_NEEDS_REVIEW,
    FLAG_PRICE_ESTIMATED,
    DateInfo,
    ParsedItem,
    ParsedTicket,
    StoreIdentity,
    TotalInfo,
)
from canasta.ticket.parsers.base import TicketParser, make_item, title_case
from canasta.ticket.primitives import extract_address, extract_nit, extract_payment, extract_total, parse_price

ITEMS_START = (
    re.compile(r"^#\s*Descripcion", re.IGNORECASE),
    re.compile(r"^Descripcion\s*$", re.IGNORECASE),
)
HEADER_TOKEN = re.compile(r"^(Iten|Item|U\.M|U/M|Cant|V/r|Total|U/r)$", re.IGNORECASE)
ITEMS_END = (
    re.compile(r"^TOTAL\s*$", re.IGNORECASE),
    re.compile(r"^TOTAL\s+ITEMS", re.IGNORECASE),
)

# "1 COPA MARGARITA 9OZ CRISTAR"
DESCRIPTION_LINE = re.compile(r"^(\d+)\s+([A-Z][A-Z\s\d]+)$", re.IGNORECASE)
LEADING_CODE = re.compile(r"^\d+\s+\d{5,}")
# "12031689 5444C 484739 UND 1 $21.500"
FULL_DETAIL_LINE = re.compile(r"^(\d+)\s+\S+\s+\S+\s+(UND|UN|KG|LB)\s+(\d+)\s+\$?([\d.,]+)", re.IGNORECASE)
# "12031689 5444C 484739"
CODE_ONLY_LINE = re.compile(r"^(\d{6,14})\s+\w+\s+\d+\s*$")
# "UND 1 $21.500"
QUANTITY_PRICE_LINE = re.compile(r"^(UND|UN|KG|LB)\s+(\d+)\s+\$?([\d.,]+)", re.IGNORECASE)
# "$21.500*"
TOTAL_LINE = re.compile(r"^\$?([\d.,]+)\*?$")

BRANCH_NAME = re.compile(r"GIGANTE\s+DEL\s+HOGAR\s+([A-Z]+)", re.IGNORECASE)
NIT_BEFORE_NAME = re.compile(r"(\d{9,10})-?\d?\s+[A-Z]")
MALL_ADDRESS = re.compile(r"CCIAL\s+([A-Z\s]+)\s+CL", re.IGNORECASE)
TOTAL_NEXT_LINE = re.compile(r"^[ \t]*TOTAL[ \t]*\n[ \t]*\$?([\d.,]+)\*?[ \t]*$", re.IGNORECASE | re.MULTILINE)
TOTAL_SAME_LINE = re.compile(r"^[ \t]*TOTAL[ \t]+\$?([\d.,]+)", re.IGNORECASE | re.MULTILINE)
FECHA = re.compile(r"Fecha\s*:\s*(\d{4})/(\d{1,2})/(\d{1,2})", re.IGNORECASE)
CARD_PATTERN = re.compile(r"MASTER\s*CARD|VISA|DEBITO|CREDITO", re.IGNORECASE)

BLOCK_CONFIDENCE = 0.9
ESTIMATED_CONFIDENCE = 0.75
LABELED_CONFIDENCE = 0.95


@dataclass
class _ItemBlock:
    number: int
    description: str
    raw_lines: list[str] = field(default_factory=list)
    code: str | None = None
    unit: str = "UN"
    quantity: int = 1
    unit_price: int | None = None


def _estimated_item(block: _ItemBlock) -> ParsedItem:
    unit_price = block.unit_price or 0
    return make_item(
        block.number,
        " | ".join(block.raw_lines),
        block.description,
        unit_price * block.quantity,
        quantity=block.quantity,
        unit_price=unit_price,
        code=block.code,
        unit=block.unit,
        confidence=ESTIMATED_CONFIDENCE,
        flags=(FLAG_PRICE_ESTIMATED, FLAG_NEEDS_REVIEW),
    )


class GiganteParser(TicketParser):
    identity = StoreIdentity(
        key="gigante",
        display_name="Gigante del Hogar",
        tax_id_patterns=(r"NIT\s*[:\s]?\s*901\.?140\.?179", r"901140179"),
        name_patterns=(r"GIGANTE\s+DEL\s+HOGAR", r"INVERSIONES\s+DUQUIN"),
    )

    def parse(self, text: str) -> ParsedTicket:
        lines = self.lines(text)
        items = self._extract_items(lines)

        branch = BRANCH_NAME.search(text)
        store_name = f"Gigante del Hogar {title_case(branch.group(1))}" if branch else None

        nit = extract_nit(text)
        if nit is None:
            nit_match = NIT_BEFORE_NAME.search(text)
            nit = nit_match.group(1) if nit_match else None

        mall = MALL_ADDRESS.search(text)
        address = f"C.C. {title_case(mall.group(1))}" if mall else extract_address(text)

        return self.build_ticket(
            text,
            lines,
            items,
            store_name=store_name,
            nit=nit,
            address=address,
            date=self._extract_date(text),
            totals=self._extract_total(text, lines),
            payment=extract_payment(text, card_pattern=CARD_PATTERN),
        )

    def _extract_total(self, text: str, lines: list[str]) -> TotalInfo:
        match = TOTAL_NEXT_LINE.search(text) or TOTAL_SAME_LINE.search(text)
        if match:
            return TotalInfo(total=parse_price(match.group(1)), confidence=LABELED_CONFIDENCE)
        return extract_total(lines)

    def _extract_date(self, text: str) -> DateInfo | None:
        match = FECHA.search(text)
        if not match:
            return None
        try:
            value = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None
        raw = f"{match.group(1)}/{match.group(2)}/{match.group(3)}"
        return DateInfo(value=value, raw=raw, confidence=LABELED_CONFIDENCE)

    def _extract_items(self, lines: list[str]) -> list[ParsedItem]:
        start = 0
        for idx, line in enumerate(lines):
            if any(pattern.match(line) for pattern in ITEMS_START):
                start = idx + 1
                break
        while start < len(lines) and HEADER_TOKEN.match(lines[start]):
            start += 1

        end = len(lines)
        for idx in range(start, len(lines)):
            if any(pattern.match(lines[idx]) for pattern in ITEMS_END):
                end = idx
                break

        items: list[ParsedItem] = []
        block: _ItemBlock | None = None

        for line in lines[start:end]:
            if len(line) < 2:
                continue

            desc_match = DESCRIPTION_LINE.match(line)
            if desc_match and not LEADING_CODE.match(line):
                if block is not None and block.unit_price:
                    items.append(_estimated_item(block))
                block = _ItemBlock(
                    number=int(desc_match.group(1)),
                    description=desc_match.group(2).strip(),
                    raw_lines=[line],
                )
                continue

            if block is None:
                continue

            detail_match = FULL_DETAIL_LINE.match(line)
            if detail_match:
                block.code = detail_match.group(1)
                block.unit = detail_match.group(2).upper()
                block.quantity = int(detail_match.group(3))
                block.unit_price = parse_price(detail_match.group(4))
                block.raw_lines.append(line)
                continue

            code_match = CODE_ONLY_LINE.match(line)
            if code_match:
                block.code = code_match.group(1)
                block.raw_lines.append(line)
                continue

            qty_match = QUANTITY_PRICE_LINE.match(line)
            if qty_match:
                block.unit = qty_match.group(1).upper()
                block.quantity = int(qty_match.group(2))
                block.unit_price = parse_price(qty_match.group(3))
                block.raw_lines.append(line)
                continue

            total_match = TOTAL_LINE.match(line)
            if total_match and block.unit_price:
                block.raw_lines.append(line)
                items.append(
                    make_item(
                        block.number,
                        " | ".join(block.raw_lines),
                        block.description,
                        parse_price(total_match.group(1)),
                        quantity=block.quantity,
                        unit_price=block.unit_price,
                        code=block.code,
                        unit=block.unit,
                        confidence=BLOCK_CONFIDENCE,
                    )
                )
                block = None

        if block is not None and block.unit_price:
            items.append(_estimated_item(block))
        return items

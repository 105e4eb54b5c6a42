"""Parser for Tiendas D1 receipts.

Known layout:
    D1 SAS NIT900276962-1 Gran contribuyente
    Generacion: 2024-09-11 11:30:07
    ITEM CANT DESCRIPCION VALOR
    1    2    UN    X    $4,490
    0770030492938 AVENA TETRA PAK    8,980 A
    0770030464571 QUESO MOZZARELL    9,490 5
    TOTAL 18,470

A quantity line may precede the code line it applies to.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from canasta.domain.ticket import FLAG_NEEDS_REVIEW, ParsedItem, ParsedTicket, StoreIdentity
from canasta.ticket.parsers.base import TicketParser, make_item, window_bounds
from canasta.ticket.primitives import extract_address, extract_nit, extract_payment, parse_price

ITEMS_START = re.compile(r"^(ITEM|CODIGO)\s+(CANT|DESCRIPCION)", re.IGNORECASE)
ITEMS_END = re.compile(r"^(TOTAL|AJUSTE|VALOR\s*PAGADO|FORMA\s*DE\s*PAGO)", re.IGNORECASE)

# "1    2    UN    X    $4,490" -> item number, quantity, unit price
QUANTITY_LINE = re.compile(r"^\d+\s+(\d+)\s+UN\s+X\s+\$?([\d.,]+)", re.IGNORECASE)
# "0770030492938 AVENA TETRA PAK    4,490 A"
CODE_LINE = re.compile(r"^(\d{10,14})\s+(.+?)\s+([\d.,]+)\s*[A-Z0-9]?$")
# "AVENA TETRA PAK 4,490 A" (code lost by OCR)
LOOSE_LINE = re.compile(r"^(.+?)\s+([\d.,]+)\s*[A-Z]?$")
NUMERIC_ONLY = re.compile(r"^\d+$")

CODE_LINE_CONFIDENCE = 0.9
LOOSE_LINE_CONFIDENCE = 0.7
LOOSE_MIN_PRICE = 100
LOOSE_MAX_PRICE = 1_000_000


@dataclass
class _PendingQuantity:
    quantity: int
    unit_price: int


class D1Parser(TicketParser):
    identity = StoreIdentity(
        key="d1",
        display_name="Tiendas D1",
        tax_id_patterns=(r"NIT\s*[:\s]?\s*900\.?276\.?962", r"900276962"),
        name_patterns=(r"D1\s+SAS", r"TIENDAS?\s+D1", r"^D1\s"),
    )

    def parse(self, text: str) -> ParsedTicket:
        lines = self.lines(text)
        items = self._extract_items(lines)
        return self.build_ticket(
            text,
            lines,
            items,
            nit=extract_nit(text),
            address=extract_address(text),
            payment=extract_payment(text),
        )

    def _extract_items(self, lines: list[str]) -> list[ParsedItem]:
        start, end = window_bounds(lines, ITEMS_START, ITEMS_END)
        items: list[ParsedItem] = []
        pending: _PendingQuantity | None = None

        for offset, line in enumerate(lines[start:end]):
            line_number = start + offset + 1
            if len(line) < 3:
                continue

            qty_match = QUANTITY_LINE.match(line)
            if qty_match:
                pending = _PendingQuantity(
                    quantity=max(int(qty_match.group(1)), 1),
                    unit_price=parse_price(qty_match.group(2)),
                )
                continue

            code_match = CODE_LINE.match(line)
            if code_match:
                total = parse_price(code_match.group(3))
                items.append(
                    make_item(
                        line_number,
                        line,
                        code_match.group(2),
                        total,
                        quantity=Decimal(pending.quantity) if pending else None,
                        unit_price=(pending.unit_price or None) if pending else None,
                        code=code_match.group(1),
                        confidence=CODE_LINE_CONFIDENCE,
                    )
                )
                pending = None
                continue

            loose_match = LOOSE_LINE.match(line)
            if loose_match:
                description = loose_match.group(1)
                if len(description) <= 3 or NUMERIC_ONLY.match(description):
                    continue
                price = parse_price(loose_match.group(2))
                if LOOSE_MIN_PRICE < price < LOOSE_MAX_PRICE:
                    items.append(
                        make_item(
                            line_number,
                            line,
                            description,
                            price,
                            confidence=LOOSE_LINE_CONFIDENCE,
                            flags=(FLAG_NEEDS_REVIEW,),
                        )
                    )

        return items

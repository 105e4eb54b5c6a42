"""Parser for Olímpica and SAO (Super Almacenes Olímpica) receipts.

Items usually span two lines, the code and description first and the
quantities and prices below:

    $ UM Vr.Unit Cant Vr.Total
    2154211 LECHE UHT OLIMPICA
    01 un    3.200     1      3.200    *
    **SUBTOTAL/TOTAL ---> $ 3.200
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from canasta.domain.ticket import ParsedItem, ParsedTicket, StoreIdentity, TotalInfo
from canasta.ticket.parsers.base import TicketParser, make_item, title_case, window_bounds
from canasta.ticket.primitives import extract_address, extract_nit, extract_payment, extract_total, parse_price

ITEMS_START = re.compile(r"^\$?\s*UM\s+Vr\.?\s*Unit", re.IGNORECASE)
ITEMS_END = re.compile(r"(\*+\s*SUBTOTAL|TOTAL\s*ARTICULOS|FORMA\s*DE\s*PAGO)", re.IGNORECASE)

CODE_LINE = re.compile(r"^(\d{6,8})\s+(.+)$")
UNIT_PREFIX = re.compile(r"^\d+\s+(un|kg)", re.IGNORECASE)
# "01 un    3.200     1      3.200    *" -> tax class, unit, unit price, quantity, total
PRICE_LINE = re.compile(r"^(\d{1,2})\s+(un|kg|lb|gr)\s+([\d.,]+)\s+(\d+)\s+([\d.,]+)\s*\*?$", re.IGNORECASE)
INLINE_LINE = re.compile(
    r"^(\d{6,8})?\s*(.+?)\s+(\d{1,2})\s+(un|kg)\s+([\d.,]+)\s+(\d+)\s+([\d.,]+)",
    re.IGNORECASE,
)

BRANCH_NAME = re.compile(r"OLIMPICA\s+(.+?)(?:\n|NIT)", re.IGNORECASE)
SAO = re.compile(r"\bSAO\b", re.IGNORECASE)
NIT_PATTERN = re.compile(r"NIT\.?\s*([\d.\-]+)", re.IGNORECASE)
SUBTOTAL_TOTAL = re.compile(r"\*+\s*SUBTOTAL/TOTAL\s*-+>\s*\$?\s*([\d.,]+)", re.IGNORECASE)
CARD_PATTERN = re.compile(r"TARJETA|DEBITO|CREDITO|PLATA", re.IGNORECASE)

TWO_LINE_CONFIDENCE = 0.9
INLINE_CONFIDENCE = 0.85
SUBTOTAL_TOTAL_CONFIDENCE = 0.95


@dataclass
class _PendingProduct:
    code: str
    description: str
    raw_line: str


class OlimpicaParser(TicketParser):
    identity = StoreIdentity(
        key="olimpica",
        display_name="Olímpica",
        tax_id_patterns=(r"NIT\.?\s*890\.?107\.?487", r"890107487"),
        name_patterns=(r"OLIMPICA", r"\bSAO\b", r"SUPER\s*ALMACENES"),
    )

    def parse(self, text: str) -> ParsedTicket:
        lines = self.lines(text)
        items = self._extract_items(lines)

        store_name = None
        branch = BRANCH_NAME.search(text)
        if branch and branch.group(1).strip():
            store_name = f"Olímpica {title_case(branch.group(1).strip())}"
        elif SAO.search(text):
            store_name = "SAO (Super Almacenes Olímpica)"

        subtotal_total = SUBTOTAL_TOTAL.search(text)
        if subtotal_total:
            totals = TotalInfo(total=parse_price(subtotal_total.group(1)), confidence=SUBTOTAL_TOTAL_CONFIDENCE)
        else:
            totals = extract_total(lines)

        return self.build_ticket(
            text,
            lines,
            items,
            store_name=store_name,
            nit=extract_nit(text, NIT_PATTERN),
            address=extract_address(text),
            totals=totals,
            payment=extract_payment(text, card_pattern=CARD_PATTERN),
        )

    def _extract_items(self, lines: list[str]) -> list[ParsedItem]:
        start, end = window_bounds(lines, ITEMS_START, ITEMS_END)
        items: list[ParsedItem] = []
        pending: _PendingProduct | None = None

        for offset, line in enumerate(lines[start:end]):
            line_number = start + offset + 1
            if len(line) < 3:
                continue

            price_match = PRICE_LINE.match(line)
            if price_match and pending is not None:
                items.append(
                    make_item(
                        line_number,
                        f"{pending.raw_line} | {line}",
                        pending.description,
                        parse_price(price_match.group(5)),
                        quantity=int(price_match.group(4)),
                        unit_price=parse_price(price_match.group(3)),
                        code=pending.code,
                        unit=price_match.group(2).upper(),
                        confidence=TWO_LINE_CONFIDENCE,
                    )
                )
                pending = None
                continue

            inline_match = INLINE_LINE.match(line)
            if inline_match:
                items.append(
                    make_item(
                        line_number,
                        line,
                        inline_match.group(2),
                        parse_price(inline_match.group(7)),
                        quantity=int(inline_match.group(6)),
                        unit_price=parse_price(inline_match.group(5)),
                        code=inline_match.group(1),
                        unit=inline_match.group(4).upper(),
                        confidence=INLINE_CONFIDENCE,
                    )
                )
                pending = None
                continue

            code_match = CODE_LINE.match(line)
            if code_match and not UNIT_PREFIX.match(line):
                pending = _PendingProduct(code=code_match.group(1), description=code_match.group(2), raw_line=line)

        return items

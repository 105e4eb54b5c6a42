"""Fallback parser for receipts from stores without a dedicated parser."""

from __future__ import annotations

import re

from canasta.domain.ticket import FLAG_NEEDS_REVIEW, DetectionResult, ParsedItem, ParsedTicket, StoreIdentity
from canasta.ticket.parsers.base import TicketParser, is_separator_line, make_item
from canasta.ticket.primitives import extract_address, extract_nit, extract_payment, parse_price

# Lowest non-null score: any store-specific match outranks it.
FALLBACK_CONFIDENCE = 0.1
GUESSED_STORE_CONFIDENCE = 0.5
GENERIC_WARNING = "Generic parser used; review all fields"

# "2 x LECHE ENTERA $4.500"
QTY_X_NAME_PRICE = re.compile(r"^(\d+)\s*[xX]\s+(.+?)\s+\$?([\d.,]+)$")
# "LECHE ENTERA 2 4.500 9.000"
NAME_QTY_UNIT_TOTAL = re.compile(r"^(.+?)\s+(\d+)\s+([\d.,]+)\s+([\d.,]+)$")
# "LECHE ENTERA $4.500"
NAME_PRICE = re.compile(r"^(.+?)\s+\$?([\d.,]+)$")

IGNORED_WORDS = re.compile(
    r"^(nit|tel|dir|fecha|hora|factura|recibo|iva|subtotal|total|efectivo|cambio|gracias|cliente|consumidor)\b",
    re.IGNORECASE,
)
BARE_DATE = re.compile(r"^\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}$")
NUMERIC_ONLY = re.compile(r"^[\d\s.,$]+$")

QTY_X_CONFIDENCE = 0.7
NAME_QTY_CONFIDENCE = 0.75
NAME_PRICE_CONFIDENCE = 0.5
MAX_PRICE = 10_000_000

# Checked against the first lines of the receipt, in order.
STORE_HINTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"exito", re.IGNORECASE), "Éxito"),
    (re.compile(r"olimpica", re.IGNORECASE), "Olímpica"),
    (re.compile(r"\bd1\b", re.IGNORECASE), "D1"),
    (re.compile(r"\bara\b", re.IGNORECASE), "ARA"),
    (re.compile(r"jumbo", re.IGNORECASE), "Jumbo"),
    (re.compile(r"carulla", re.IGNORECASE), "Carulla"),
    (re.compile(r"dollarcity", re.IGNORECASE), "Dollarcity"),
    (re.compile(r"metro", re.IGNORECASE), "Metro"),
    (re.compile(r"isimo", re.IGNORECASE), "Ísimo"),
)
STORE_HINT_LINES = 8


def _is_ignored(line: str) -> bool:
    return len(line) < 4 or bool(IGNORED_WORDS.match(line)) or is_separator_line(line) or bool(BARE_DATE.match(line))


def _is_description(value: str, min_length: int) -> bool:
    return len(value.strip()) > min_length and not NUMERIC_ONLY.match(value)


def guess_store_name(lines: list[str]) -> str | None:
    for line in lines[:STORE_HINT_LINES]:
        for pattern, name in STORE_HINTS:
            if pattern.search(line):
                return name
    return None


class GenericParser(TicketParser):
    identity = StoreIdentity(key="generic", display_name="Tienda desconocida")

    def detect(self, text: str) -> DetectionResult | None:
        return DetectionResult(
            store_key=self.key,
            store_name=self.store_name,
            confidence=FALLBACK_CONFIDENCE,
            matched_patterns=("fallback",),
        )

    def parse(self, text: str) -> ParsedTicket:
        lines = self.lines(text)
        items = self._extract_items(lines)
        guessed = guess_store_name(lines)
        return self.build_ticket(
            text,
            lines,
            items,
            store_name=guessed,
            store_confidence=GUESSED_STORE_CONFIDENCE if guessed else FALLBACK_CONFIDENCE,
            nit=extract_nit(text),
            address=extract_address(text),
            payment=extract_payment(text),
            warnings=(GENERIC_WARNING,),
        )

    def _extract_items(self, lines: list[str]) -> list[ParsedItem]:
        items: list[ParsedItem] = []
        for line_number, line in enumerate(lines, start=1):
            if _is_ignored(line):
                continue

            match = QTY_X_NAME_PRICE.match(line)
            if match and _is_description(match.group(2), 2):
                price = parse_price(match.group(3))
                if price > 0:
                    items.append(
                        make_item(
                            line_number,
                            line,
                            match.group(2),
                            price,
                            quantity=int(match.group(1)),
                            confidence=QTY_X_CONFIDENCE,
                            flags=(FLAG_NEEDS_REVIEW,),
                        )
                    )
                continue

            match = NAME_QTY_UNIT_TOTAL.match(line)
            if match and _is_description(match.group(1), 2):
                total = parse_price(match.group(4))
                if total > 0:
                    items.append(
                        make_item(
                            line_number,
                            line,
                            match.group(1),
                            total,
                            quantity=int(match.group(2)),
                            unit_price=parse_price(match.group(3)),
                            confidence=NAME_QTY_CONFIDENCE,
                            flags=(FLAG_NEEDS_REVIEW,),
                        )
                    )
                continue

            match = NAME_PRICE.match(line)
            if match and _is_description(match.group(1), 3):
                price = parse_price(match.group(2))
                if 0 < price < MAX_PRICE:
                    items.append(
                        make_item(
                            line_number,
                            line,
                            match.group(1),
                            price,
                            confidence=NAME_PRICE_CONFIDENCE,
                            flags=(FLAG_NEEDS_REVIEW,),
                        )
                    )
        return items

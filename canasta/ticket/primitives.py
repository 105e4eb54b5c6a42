"""Price, date and total parsing shared by all store parsers.

Colombian receipts print pesos without cents, so both "." and "," are
thousands separators. None of these helpers raise on bad input: a price of 0
means "no price found" and an empty DateInfo means "no date found".
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date

from canasta.domain.ticket import DateInfo, PaymentInfo, TotalInfo

_NON_DIGITS = re.compile(r"\D")

DATE_CONFIDENCE = 0.9
INVALID_DATE_CONFIDENCE = 0.5
TOTAL_CONFIDENCE = 0.9

# Two-digit years above the pivot belong to the 1900s.
TWO_DIGIT_YEAR_PIVOT = 50

# Ordered: the more specific / less ambiguous formats come first.
DATE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iso", re.compile(r"(\d{4})-(\d{2})-(\d{2})\s+(\d{2}):(\d{2})")),
    ("ymd", re.compile(r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})")),
    ("dmy", re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")),
    ("dmy_short", re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{2})(?!\d)")),
)

# Matched against each line from the bottom of the receipt upward.
TOTAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"TOTAL\s*[:.]?\s*\$?\s*([\d.,]+)", re.IGNORECASE),
    re.compile(r"VALOR\s*TOTAL\s*[:.]?\s*\$?\s*([\d.,]+)", re.IGNORECASE),
    re.compile(r"VALOR\s*PAGADO\s*[:.]?\s*\$?\s*([\d.,]+)", re.IGNORECASE),
    re.compile(r"\*\*SUBTOTAL/TOTAL\s*-+>\s*\$?\s*([\d.,]+)", re.IGNORECASE),
)

NIT_PATTERN = re.compile(r"NIT\s*[:.]?\s*([\d.\-]+)", re.IGNORECASE)
ADDRESS_PATTERN = re.compile(
    r"^(?:CRA|CR|CARRERA|KR|CL|CALLE|AV|AVENIDA|DG|DIAGONAL|TV|TRANSVERSAL)\.?[ \t]*\d[\w \t#.\-]*$",
    re.IGNORECASE | re.MULTILINE,
)
CARD_DIGITS_PATTERN = re.compile(r"\*+\s*(\d{4})")
DEFAULT_CASH_PATTERN = re.compile(r"EFECTIVO", re.IGNORECASE)
DEFAULT_CARD_PATTERN = re.compile(r"TARJ|CARD|DEBITO|CREDITO", re.IGNORECASE)


def parse_price(value: str) -> int:
    """Parse a peso amount, treating every non-digit as a separator.

    Returns 0 when no digits are present.
    """
    digits = _NON_DIGITS.sub("", value or "")
    if not digits:
        return 0
    return int(digits)


def format_price(amount: int, separator: str = ".") -> str:
    """Format pesos with thousands separators (4500 -> "4.500")."""
    return f"{amount:,}".replace(",", separator)


def _build_date(kind: str, groups: tuple[str, ...]) -> date | None:
    if kind in ("iso", "ymd"):
        year, month, day = int(groups[0]), int(groups[1]), int(groups[2])
    elif kind == "dmy":
        day, month, year = int(groups[0]), int(groups[1]), int(groups[2])
    else:
        day, month, short_year = int(groups[0]), int(groups[1]), int(groups[2])
        year = 1900 + short_year if short_year > TWO_DIGIT_YEAR_PIVOT else 2000 + short_year
    try:
        return date(year, month, day)
    except ValueError:
        return None


def extract_date(text: str) -> DateInfo:
    """Find the first date in text using DATE_PATTERNS in order.

    Args:
        text: Full receipt text.

    Returns:
        DateInfo with confidence 0.9 for a valid date, 0.5 when the first
        match is not a calendar date, or an empty DateInfo when nothing matched.
    """
    for kind, pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        value = _build_date(kind, match.groups())
        confidence = DATE_CONFIDENCE if value is not None else INVALID_DATE_CONFIDENCE
        return DateInfo(value=value, raw=match.group(0), confidence=confidence)
    return DateInfo(value=None, raw="", confidence=0.0)


def extract_total(lines: Sequence[str]) -> TotalInfo:
    """Find the printed total scanning from the last line upward."""
    for line in reversed(lines):
        for pattern in TOTAL_PATTERNS:
            match = pattern.search(line)
            if match:
                return TotalInfo(total=parse_price(match.group(1)), confidence=TOTAL_CONFIDENCE)
    return TotalInfo(total=0, confidence=0.0)


def extract_nit(text: str, pattern: re.Pattern[str] = NIT_PATTERN) -> str | None:
    """Return the digits of the first NIT on the receipt, or None."""
    match = pattern.search(text)
    if not match:
        return None
    digits = _NON_DIGITS.sub("", match.group(1))
    return digits or None


def extract_address(text: str) -> str | None:
    """Return the first street-address line (Colombian CL/CRA style), or None."""
    match = ADDRESS_PATTERN.search(text)
    if not match:
        return None
    return match.group(0).strip()


def extract_payment(
    text: str,
    card_pattern: re.Pattern[str] = DEFAULT_CARD_PATTERN,
    cash_pattern: re.Pattern[str] = DEFAULT_CASH_PATTERN,
) -> PaymentInfo:
    """Classify the payment method from keywords anywhere in the text.

    Cash keywords are checked first, so a ticket printing both reads as cash.
    """
    if cash_pattern.search(text):
        return PaymentInfo(method="cash")
    if card_pattern.search(text):
        digits_match = CARD_DIGITS_PATTERN.search(text)
        return PaymentInfo(method="card", card_last_digits=digits_match.group(1) if digits_match else None)
    return PaymentInfo()

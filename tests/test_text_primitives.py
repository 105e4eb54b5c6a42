from datetime import date

import pytest
from canasta.ticket.primitives import (
    extract_address,
    extract_date,
    extract_nit,
    extract_payment,
    extract_total,
    format_price,
    parse_price,
)
from canasta.ticket.text import normalize, strip_accents, to_lines


def test_normalize_uppercases_and_collapses_whitespace() -> None:
    assert normalize("  d1 sas\n\tnit  900276962 ") == "D1 SAS NIT 900276962"


def test_to_lines_drops_blank_lines_and_keeps_order() -> None:
    assert to_lines("  LECHE 4.500 \n\n   \nPAN 2.000\n") == ["LECHE 4.500", "PAN 2.000"]


def test_strip_accents() -> None:
    assert strip_accents("Olímpica Lácteos Panadería") == "Olimpica Lacteos Panaderia"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$4.500", 4500),
        ("18,470", 18470),
        ("1.234.567", 1234567),
        ("21 500", 21500),
        ("", 0),
        ("sin precio", 0),
    ],
)
def test_parse_price(raw: str, expected: int) -> None:
    assert parse_price(raw) == expected


@pytest.mark.parametrize("amount", [0, 7, 950, 4500, 1234567])
@pytest.mark.parametrize("separator", [".", ","])
def test_parse_price_reads_formatted_amounts(amount: int, separator: str) -> None:
    assert parse_price(format_price(amount, separator)) == amount


def test_format_price_uses_dot_thousands() -> None:
    assert format_price(1234567) == "1.234.567"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Generacion: 2024-09-11 11:30:07", date(2024, 9, 11)),
        ("Fecha 2024/03/05", date(2024, 3, 5)),
        ("FECHA: 15/03/2024", date(2024, 3, 15)),
        ("15-03-24 10:22", date(2024, 3, 15)),
        ("15/03/99", date(1999, 3, 15)),
    ],
)
def test_extract_date_formats(text: str, expected: date) -> None:
    info = extract_date(text)
    assert info.value == expected
    assert info.confidence == 0.9


def test_extract_date_invalid_calendar_date_keeps_raw_with_low_confidence() -> None:
    info = extract_date("FECHA 31/02/2024")
    assert info.value is None
    assert info.raw == "31/02/2024"
    assert info.confidence == 0.5


def test_extract_date_without_date() -> None:
    info = extract_date("LECHE ENTERA 4.500")
    assert info.value is None
    assert info.raw == ""
    assert info.confidence == 0.0


def test_extract_total_prefers_last_total_line() -> None:
    totals = extract_total(["SUBTOTAL 9.000", "IVA 0", "TOTAL $ 9.500", "EFECTIVO 10.000"])
    assert totals.total == 9500
    assert totals.confidence == 0.9


def test_extract_total_valor_pagado() -> None:
    assert extract_total(["LECHE 4.500", "VALOR PAGADO: 4.500"]).total == 4500


def test_extract_total_missing() -> None:
    totals = extract_total(["LECHE 4.500"])
    assert totals.total == 0
    assert totals.confidence == 0.0


def test_extract_nit_returns_digits() -> None:
    assert extract_nit("ALMACEN NIT: 890.107.487-3") == "8901074873"
    assert extract_nit("sin identificacion") is None


def test_extract_address_finds_street_line() -> None:
    text = "TIENDAS D1\nCL 45 # 12-30 BOGOTA\nTEL 555"
    assert extract_address(text) == "CL 45 # 12-30 BOGOTA"
    assert extract_address("LECHE 4.500") is None


def test_extract_payment_card_with_last_digits() -> None:
    payment = extract_payment("TARJETA DEBITO ****4321\nCAMBIO 0")
    assert payment.method == "card"
    assert payment.card_last_digits == "4321"


def test_extract_payment_cash_and_unknown() -> None:
    assert extract_payment("EFECTIVO 10.000\nCAMBIO 500").method == "cash"
    assert extract_payment("TOTAL 9.500").method == "unknown"


def test_extract_payment_cash_keyword_wins_over_card() -> None:
    payment = extract_payment("TARJETA DEBITO ****4321\nEFECTIVO 20.000")

    assert payment.method == "cash"
    assert payment.card_last_digits is None

"""Store parser behavior on small synthetic receipts."""

from datetime import date
from decimal import Decimal

from canasta.domain.ticket import FLAG_NEEDS_REVIEW, FLAG_OCR_UNORDERED, FLAG_PRICE_ESTIMATED
from canasta.ticket.parsers import (
    AraParser,
    D1Parser,
    DollarcityParser,
    GenericParser,
    GiganteParser,
    OlimpicaParser,
)

D1_TICKET = """D1 SAS NIT900276962-1 Gran contribuyente
CL 45 # 12-30
Generacion: 2024-09-11 11:30:07
ITEM CANT DESCRIPCION VALOR
1    2    UN    X    $4,490
0770030492938 AVENA TETRA PAK    8,980 A
0770030464571 QUESO MOZZARELL    9,490 5
PAPEL HIGIENICO 12,500
TOTAL 30,970
EFECTIVO 31,000
"""

ARA_COLUMNS_TICKET = """JERONIMO MARTINS COLOMBIA
NIT 900.480.569-0
7702001234567 LECHE ENTERA 1100ML
2 UN X 3 450
7701234000018 PAPA CRIOLLA
0,735 KGM X 9 600
Valor
6 900 E
7 056 E
TOTAL 13.956
EFECTIVO
"""

ARA_STANDARD_TICKET = """TIENDAS ARA
NIT 900.480.569-0
7702001234567 ARROZ DIANA 500G 3.200
LECHE ALPINA 4.500 E
TOTAL 7.700
"""

DOLLARCITY_TICKET = """DOLLARCITY CENTRO MAYOR
NIT 900.943.2434
1 CREMA DENTAL
2 JABON LIQUIDO
7702345678901
1 @ 5000.00
5000.00 B
8000.00 B
TOTAL COP 13000.00
TARJETA VISA ****1234
"""

OLIMPICA_TICKET = """SUPERTIENDAS OLIMPICA CALLE 80
NIT. 890.107.487-3
$ UM Vr.Unit Cant Vr.Total
2154211 LECHE UHT OLIMPICA
01 un    3.200     1      3.200    *
2165400 ARROZ ROA 1000G 01 un 2.800 2 5.600
**SUBTOTAL/TOTAL ---> $ 8.800
TARJETA PLATA
"""

GIGANTE_TICKET = """GIGANTE DEL HOGAR CENTRO
NIT 901.140.179-1
Fecha: 2024/03/15
# Descripcion Item U.M Cant. V/r Unit. Total
1 COPA MARGARITA 9OZ CRISTAR
12031689 5444C 484739 UND 1 $21.500
$21.500*
2 PLATO HONDO BLANCO
12031690 5445C 484740
UND 2 $5.000
TOTAL
$31.500
"""


def test_d1_items_with_pending_quantity() -> None:
    ticket = D1Parser().parse(D1_TICKET)

    assert [item.description for item in ticket.items] == ["AVENA TETRA PAK", "QUESO MOZZARELL", "PAPEL HIGIENICO"]
    avena, queso, papel = ticket.items
    assert avena.code == "0770030492938"
    assert avena.quantity == Decimal(2)
    assert avena.unit_price == 4490
    assert avena.total_price == 8980
    assert avena.confidence == 0.9
    assert avena.line_number == 6
    assert queso.quantity == Decimal(1)
    assert queso.unit_price == 9490
    assert papel.code is None
    assert papel.confidence == 0.7
    assert papel.flags == (FLAG_NEEDS_REVIEW,)


def test_d1_header_fields() -> None:
    ticket = D1Parser().parse(D1_TICKET)

    assert ticket.store.key == "d1"
    assert ticket.store.name == "Tiendas D1"
    assert ticket.store.nit == "9002769621"
    assert ticket.store.address == "CL 45 # 12-30"
    assert ticket.date.value == date(2024, 9, 11)
    assert ticket.totals.total == 30970
    assert ticket.items_total == ticket.totals.total
    assert ticket.payment.method == "cash"
    assert ticket.meta.parser_used == "d1"
    assert ticket.meta.raw_text == D1_TICKET


def test_d1_detection_caps_at_one() -> None:
    result = D1Parser().detect(D1_TICKET)

    assert result is not None
    assert result.confidence == 1.0
    assert result.matched_patterns[0].startswith("nit:")


def test_d1_detected_from_tax_id_alone() -> None:
    result = D1Parser().detect("NIT 900276962")

    assert result is not None
    assert result.store_key == "d1"
    assert result.confidence >= 0.6


def test_parser_detect_returns_none_without_signals() -> None:
    assert D1Parser().detect("LECHE ENTERA 4.500") is None


def test_ara_column_layout_pairs_products_with_prices() -> None:
    ticket = AraParser().parse(ARA_COLUMNS_TICKET)

    assert ticket.store.name == "ARA (Jerónimo Martins)"
    assert len(ticket.items) == 2
    leche, papa = ticket.items
    assert leche.description == "LECHE ENTERA 1100ML"
    assert leche.quantity == Decimal(2)
    assert leche.unit_price == 3450
    assert leche.total_price == 6900
    assert leche.line_number == 3
    assert papa.description == "PAPA CRIOLLA"
    assert papa.quantity == Decimal("0.735")
    assert papa.unit == "KG"
    assert papa.unit_price == 9600
    assert papa.total_price == 7056
    assert all(item.flags == (FLAG_OCR_UNORDERED,) for item in ticket.items)
    assert all(item.confidence == 0.7 for item in ticket.items)
    assert ticket.meta.warnings == ()
    assert ticket.totals.total == 13956
    assert ticket.payment.method == "cash"


def test_ara_column_layout_with_missing_price_keeps_paired_items() -> None:
    text = (
        "JERONIMO MARTINS COLOMBIA\n"
        "NIT 900.480.569-0\n"
        "7702001 LECHE ENTERA\n"
        "7702002 ARROZ DIANA\n"
        "7702003 PAN TAJADO\n"
        "Valor\n"
        "4 500 E\n"
        "3 200 E\n"
        "TOTAL 7.700\n"
    )
    ticket = AraParser().parse(text)

    assert [item.description for item in ticket.items] == ["LECHE ENTERA", "ARROZ DIANA"]
    assert [item.total_price for item in ticket.items] == [4500, 3200]
    assert all(FLAG_OCR_UNORDERED in item.flags for item in ticket.items)
    assert len(ticket.meta.warnings) == 1


def test_ara_standard_layout() -> None:
    ticket = AraParser().parse(ARA_STANDARD_TICKET)

    assert [(item.description, item.total_price) for item in ticket.items] == [
        ("ARROZ DIANA 500G", 3200),
        ("LECHE ALPINA", 4500),
    ]
    assert ticket.items[0].code == "7702001234567"
    assert all(item.confidence == 0.6 for item in ticket.items)
    assert all(item.flags == (FLAG_NEEDS_REVIEW,) for item in ticket.items)
    assert ticket.store.name == "Tiendas ARA"


def test_ara_detection_combines_tax_id_and_name() -> None:
    result = AraParser().detect(ARA_COLUMNS_TICKET)

    assert result is not None
    assert abs(result.confidence - 0.9) < 1e-9


def test_dollarcity_pairs_out_of_order_lines() -> None:
    ticket = DollarcityParser().parse(DOLLARCITY_TICKET)

    assert ticket.store.name == "Dollarcity Centro"
    assert ticket.store.nit == "9009432434"
    crema, jabon = ticket.items
    assert crema.description == "CREMA DENTAL"
    assert crema.line_number == 1
    assert crema.total_price == 5000
    assert crema.code == "7702345678901"
    assert jabon.description == "JABON LIQUIDO"
    assert jabon.total_price == 8000
    assert jabon.quantity == Decimal(1)
    assert jabon.code is None
    assert all(item.flags == (FLAG_OCR_UNORDERED,) for item in ticket.items)
    assert all(item.confidence == 0.75 for item in ticket.items)
    assert ticket.totals.total == 13000
    assert ticket.totals.confidence == 0.95
    assert ticket.payment.method == "card"
    assert ticket.payment.card_last_digits == "1234"


def test_dollarcity_skips_plastic_bag_tax() -> None:
    text = "DOLLARCITY\n1 IMPUESTO BOLSA PLASTICA\n2 VELA AROMATICA\n66.00 B\n9000.00 B\n"
    ticket = DollarcityParser().parse(text)

    assert [item.description for item in ticket.items] == ["VELA AROMATICA"]
    assert ticket.meta.warnings


def test_olimpica_two_line_and_inline_items() -> None:
    ticket = OlimpicaParser().parse(OLIMPICA_TICKET)

    assert ticket.store.name == "Olímpica Calle 80"
    assert ticket.store.nit == "8901074873"
    leche, arroz = ticket.items
    assert leche.description == "LECHE UHT OLIMPICA"
    assert leche.code == "2154211"
    assert leche.total_price == 3200
    assert leche.confidence == 0.9
    assert " | " in leche.raw_line
    assert arroz.description == "ARROZ ROA 1000G"
    assert arroz.code == "2165400"
    assert arroz.quantity == Decimal(2)
    assert arroz.unit_price == 2800
    assert arroz.total_price == 5600
    assert arroz.confidence == 0.85
    assert ticket.totals.total == 8800
    assert ticket.totals.confidence == 0.95
    assert ticket.payment.method == "card"


def test_ticket_printing_cash_and_card_keywords_reads_as_cash() -> None:
    dollarcity = DollarcityParser().parse(DOLLARCITY_TICKET + "EFECTIVO 20000.00\n")
    olimpica = OlimpicaParser().parse(OLIMPICA_TICKET + "EFECTIVO 10.000\n")

    assert dollarcity.payment.method == "cash"
    assert dollarcity.payment.card_last_digits is None
    assert olimpica.payment.method == "cash"


def test_gigante_blocks_and_estimated_total() -> None:
    ticket = GiganteParser().parse(GIGANTE_TICKET)

    assert ticket.store.name == "Gigante del Hogar Centro"
    assert ticket.date.value == date(2024, 3, 15)
    assert ticket.date.confidence == 0.95
    assert ticket.totals.total == 31500
    copa, plato = ticket.items
    assert copa.description == "COPA MARGARITA 9OZ CRISTAR"
    assert copa.code == "12031689"
    assert copa.unit == "UND"
    assert copa.total_price == 21500
    assert copa.confidence == 0.9
    assert copa.flags == ()
    assert plato.code == "12031690"
    assert plato.quantity == Decimal(2)
    assert plato.unit_price == 5000
    assert plato.total_price == 10000
    assert plato.confidence == 0.75
    assert plato.flags == (FLAG_PRICE_ESTIMATED, FLAG_NEEDS_REVIEW)


def test_generic_single_quantity_line() -> None:
    ticket = GenericParser().parse("1 x LECHE ENTERA $4.500\nTOTAL $4.500")

    assert len(ticket.items) == 1
    item = ticket.items[0]
    assert item.description == "LECHE ENTERA"
    assert item.quantity == Decimal(1)
    assert item.unit_price == 4500
    assert item.total_price == 4500
    assert ticket.totals.total == 4500
    assert ticket.meta.warnings == ("Generic parser used; review all fields",)


def test_generic_patterns_and_store_guess() -> None:
    text = "SUPERMERCADO CARULLA\n15/03/2024\nPAN TAJADO 2 3.000 6.000\nHUEVOS AA $12.900\nTOTAL 18.900\n"
    ticket = GenericParser().parse(text)

    assert ticket.store.key == "generic"
    assert ticket.store.name == "Carulla"
    assert ticket.store.confidence == 0.5
    pan, huevos = ticket.items
    assert (pan.description, pan.quantity, pan.unit_price, pan.total_price) == ("PAN TAJADO", Decimal(2), 3000, 6000)
    assert pan.confidence == 0.75
    assert (huevos.description, huevos.total_price, huevos.confidence) == ("HUEVOS AA", 12900, 0.5)
    assert all(FLAG_NEEDS_REVIEW in item.flags for item in ticket.items)


def test_generic_always_detects_with_lowest_score() -> None:
    result = GenericParser().detect("")

    assert result is not None
    assert result.confidence == 0.1
    assert result.matched_patterns == ("fallback",)


def test_parsers_tolerate_empty_and_garbage_text() -> None:
    for parser in (D1Parser(), AraParser(), DollarcityParser(), OlimpicaParser(), GiganteParser(), GenericParser()):
        for text in ("", "\n\n", "@@@ ### !!!", "Valor\n"):
            ticket = parser.parse(text)
            assert ticket.items == ()
            assert ticket.meta.parser_used == parser.key

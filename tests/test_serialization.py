import json
from datetime import datetime
from decimal import Decimal

from canasta.domain.catalog import MatchResult, ProductMatch
from canasta.domain.scan import TicketScanItem
from canasta.ticket.parsers import AraParser, D1Parser
from canasta.ticket.serialization import (
    match_result_from_dict,
    match_result_to_dict,
    parsed_ticket_from_dict,
    parsed_ticket_to_dict,
    ticket_scan_item_from_dict,
    ticket_scan_item_to_dict,
)

ARA_TICKET = """JERONIMO MARTINS COLOMBIA
NIT 900.480.569-0
7701234000018 PAPA CRIOLLA
0,735 KGM X 9 600
Valor
7 056 E
TOTAL 7.056
"""


def test_parsed_ticket_survives_json() -> None:
    ticket = D1Parser().parse("D1 SAS\nGeneracion: 2024-09-11 11:30:07\n0770030492938 AVENA TETRA PAK 4,490 A\nTOTAL 4,490")

    restored = parsed_ticket_from_dict(json.loads(json.dumps(parsed_ticket_to_dict(ticket))))

    assert restored == ticket


def test_weighted_quantity_stays_exact() -> None:
    ticket = AraParser().parse(ARA_TICKET)
    data = parsed_ticket_to_dict(ticket)

    assert data["items"][0]["quantity"] == "0.735"
    assert data["items"][0]["flags"] == ["ocr_unordered"]
    assert parsed_ticket_from_dict(data).items[0].quantity == Decimal("0.735")


def test_match_result_keeps_suggestion_order() -> None:
    result = MatchResult(
        detected_name="LECHE ENTERA",
        normalized_name="leche entera",
        status="PENDING",
        suggestions=(
            ProductMatch(product_id="p1", name="Leche Entera", category="Lácteos", brand="Alpina", similarity=0.75),
            ProductMatch(product_id="p2", name="Leche Deslactosada", category="Lácteos", brand="", similarity=0.4),
        ),
    )

    data = match_result_to_dict(result)

    assert data["match"] is None
    assert [suggestion["product_id"] for suggestion in data["suggestions"]] == ["p1", "p2"]
    assert match_result_from_dict(data) == result


def test_ticket_scan_item_with_optional_fields() -> None:
    item = TicketScanItem(
        id="item-1",
        ticket_scan_id="ticket-1",
        line_number=3,
        raw_text="0,735 KGM X 9 600",
        detected_name="PAPA CRIOLLA",
        detected_price=7056,
        detected_quantity=Decimal("0.735"),
        status="IGNORED",
        unit="KG",
        parse_confidence=0.7,
        flags=("ocr_unordered",),
        previous_status="PENDING",
    )

    data = ticket_scan_item_to_dict(item)

    assert data["match_confidence"] is None
    assert ticket_scan_item_from_dict(json.loads(json.dumps(data))) == item


def test_parsed_at_is_iso_text() -> None:
    data = parsed_ticket_to_dict(D1Parser().parse("TOTAL 1.000"))

    assert datetime.fromisoformat(data["meta"]["parsed_at"])
    assert data["date"]["value"] is None

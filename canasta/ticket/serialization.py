"""JSON-safe dict conversion for parsed tickets, match results and ticket scans.

Every field round-trips: dates and datetimes as ISO strings, quantities as
decimal strings (so 0.735 kg stays exact), confidences as floats, ordered
flags/suggestions/warnings as lists.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from canasta.domain.catalog import MatchResult, ProductMatch
from canasta.domain.scan import TicketScan, TicketScanItem
from canasta.domain.ticket import (
    DateInfo,
    DetectionResult,
    DetectionSummary,
    ParsedItem,
    ParsedTicket,
    PaymentInfo,
    StoreInfo,
    TicketMeta,
    TotalInfo,
)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# --- Detection ---


def detection_to_dict(result: DetectionResult) -> dict[str, Any]:
    return {
        "store_key": result.store_key,
        "store_name": result.store_name,
        "confidence": result.confidence,
        "matched_patterns": list(result.matched_patterns),
    }


def detection_summary_to_dict(summary: DetectionSummary) -> dict[str, Any]:
    return {
        "detected": summary.detected,
        "results": [detection_to_dict(result) for result in summary.results],
        "needs_confirmation": summary.needs_confirmation,
        "suggested": detection_to_dict(summary.suggested) if summary.suggested else None,
    }


# --- Parsed tickets ---


def parsed_item_to_dict(item: ParsedItem) -> dict[str, Any]:
    return {
        "line_number": item.line_number,
        "raw_line": item.raw_line,
        "description": item.description,
        "quantity": str(item.quantity),
        "unit_price": item.unit_price,
        "total_price": item.total_price,
        "code": item.code,
        "unit": item.unit,
        "confidence": item.confidence,
        "flags": list(item.flags),
    }


def parsed_item_from_dict(data: dict[str, Any]) -> ParsedItem:
    return ParsedItem(
        line_number=int(data["line_number"]),
        raw_line=data["raw_line"],
        description=data["description"],
        quantity=Decimal(data["quantity"]),
        unit_price=int(data["unit_price"]),
        total_price=int(data["total_price"]),
        code=data.get("code"),
        unit=data.get("unit", "UN"),
        confidence=float(data["confidence"]),
        flags=tuple(data.get("flags", ())),
    )


def parsed_ticket_to_dict(ticket: ParsedTicket) -> dict[str, Any]:
    return {
        "store": {
            "key": ticket.store.key,
            "name": ticket.store.name,
            "confidence": ticket.store.confidence,
            "nit": ticket.store.nit,
            "address": ticket.store.address,
        },
        "date": {
            "value": _iso(ticket.date.value),
            "raw": ticket.date.raw,
            "confidence": ticket.date.confidence,
        },
        "items": [parsed_item_to_dict(item) for item in ticket.items],
        "totals": {
            "total": ticket.totals.total,
            "confidence": ticket.totals.confidence,
            "subtotal": ticket.totals.subtotal,
            "tax": ticket.totals.tax,
            "discount": ticket.totals.discount,
        },
        "payment": {
            "method": ticket.payment.method,
            "card_last_digits": ticket.payment.card_last_digits,
        },
        "meta": {
            "parser_used": ticket.meta.parser_used,
            "parsed_at": _iso(ticket.meta.parsed_at),
            "raw_text": ticket.meta.raw_text,
            "warnings": list(ticket.meta.warnings),
        },
    }


def parsed_ticket_from_dict(data: dict[str, Any]) -> ParsedTicket:
    store = data["store"]
    date_info = data["date"]
    totals = data["totals"]
    payment = data.get("payment") or {}
    meta = data["meta"]
    parsed_at = _parse_datetime(meta["parsed_at"])
    if parsed_at is None:
        raise ValueError("meta.parsed_at is required")
    return ParsedTicket(
        store=StoreInfo(
            key=store["key"],
            name=store["name"],
            confidence=float(store["confidence"]),
            nit=store.get("nit"),
            address=store.get("address"),
        ),
        date=DateInfo(
            value=_parse_date(date_info.get("value")),
            raw=date_info.get("raw", ""),
            confidence=float(date_info["confidence"]),
        ),
        items=tuple(parsed_item_from_dict(item) for item in data.get("items", [])),
        totals=TotalInfo(
            total=int(totals["total"]),
            confidence=float(totals["confidence"]),
            subtotal=totals.get("subtotal"),
            tax=totals.get("tax"),
            discount=totals.get("discount"),
        ),
        payment=PaymentInfo(
            method=payment.get("method", "unknown"),
            card_last_digits=payment.get("card_last_digits"),
        ),
        meta=TicketMeta(
            parser_used=meta["parser_used"],
            parsed_at=parsed_at,
            raw_text=meta.get("raw_text", ""),
            warnings=tuple(meta.get("warnings", ())),
        ),
    )


# --- Matching ---


def product_match_to_dict(match: ProductMatch) -> dict[str, Any]:
    return {
        "product_id": match.product_id,
        "name": match.name,
        "category": match.category,
        "brand": match.brand,
        "similarity": match.similarity,
    }


def product_match_from_dict(data: dict[str, Any]) -> ProductMatch:
    return ProductMatch(
        product_id=data["product_id"],
        name=data["name"],
        category=data.get("category", ""),
        brand=data.get("brand", ""),
        similarity=float(data["similarity"]),
    )


def match_result_to_dict(result: MatchResult) -> dict[str, Any]:
    return {
        "detected_name": result.detected_name,
        "normalized_name": result.normalized_name,
        "status": result.status,
        "match": product_match_to_dict(result.match) if result.match else None,
        "suggestions": [product_match_to_dict(match) for match in result.suggestions],
    }


def match_result_from_dict(data: dict[str, Any]) -> MatchResult:
    match = data.get("match")
    return MatchResult(
        detected_name=data["detected_name"],
        normalized_name=data["normalized_name"],
        status=data["status"],
        match=product_match_from_dict(match) if match else None,
        suggestions=tuple(product_match_from_dict(item) for item in data.get("suggestions", [])),
    )


# --- Ticket scans ---


def ticket_scan_to_dict(ticket: TicketScan) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "user_id": ticket.user_id,
        "image_ref": ticket.image_ref,
        "image_url": ticket.image_url,
        "raw_text": ticket.raw_text,
        "status": ticket.status,
        "items_count": ticket.items_count,
        "total_amount": ticket.total_amount,
        "store_id": ticket.store_id,
        "purchase_date": _iso(ticket.purchase_date),
        "detected_store_key": ticket.detected_store_key,
        "detected_store_name": ticket.detected_store_name,
        "detection_confidence": ticket.detection_confidence,
        "parser_used": ticket.parser_used,
        "created_at": _iso(ticket.created_at),
        "confirmed_at": _iso(ticket.confirmed_at),
    }


def ticket_scan_from_dict(data: dict[str, Any]) -> TicketScan:
    return TicketScan(
        id=data["id"],
        user_id=data["user_id"],
        image_ref=data["image_ref"],
        image_url=data.get("image_url", ""),
        raw_text=data["raw_text"],
        status=data["status"],
        items_count=int(data["items_count"]),
        total_amount=int(data["total_amount"]),
        store_id=data.get("store_id"),
        purchase_date=_parse_date(data.get("purchase_date")),
        detected_store_key=data.get("detected_store_key"),
        detected_store_name=data.get("detected_store_name"),
        detection_confidence=float(data.get("detection_confidence", 0.0)),
        parser_used=data.get("parser_used", ""),
        created_at=_parse_datetime(data.get("created_at")),
        confirmed_at=_parse_datetime(data.get("confirmed_at")),
    )


def ticket_scan_item_to_dict(item: TicketScanItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "ticket_scan_id": item.ticket_scan_id,
        "line_number": item.line_number,
        "raw_text": item.raw_text,
        "detected_name": item.detected_name,
        "detected_price": item.detected_price,
        "detected_quantity": str(item.detected_quantity),
        "status": item.status,
        "unit": item.unit,
        "item_code": item.item_code,
        "parse_confidence": item.parse_confidence,
        "flags": list(item.flags),
        "matched_product_id": item.matched_product_id,
        "match_confidence": item.match_confidence,
        "previous_status": item.previous_status,
        "final_product_id": item.final_product_id,
    }


def ticket_scan_item_from_dict(data: dict[str, Any]) -> TicketScanItem:
    match_confidence = data.get("match_confidence")
    return TicketScanItem(
        id=data["id"],
        ticket_scan_id=data["ticket_scan_id"],
        line_number=int(data["line_number"]),
        raw_text=data["raw_text"],
        detected_name=data["detected_name"],
        detected_price=int(data["detected_price"]),
        detected_quantity=Decimal(data["detected_quantity"]),
        status=data["status"],
        unit=data.get("unit", "UN"),
        item_code=data.get("item_code"),
        parse_confidence=float(data.get("parse_confidence", 0.0)),
        flags=tuple(data.get("flags", ())),
        matched_product_id=data.get("matched_product_id"),
        match_confidence=float(match_confidence) if match_confidence is not None else None,
        previous_status=data.get("previous_status"),
        final_product_id=data.get("final_product_id"),
    )

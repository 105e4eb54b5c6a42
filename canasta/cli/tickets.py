"""Ticket command handlers used by the unified CLI."""

import argparse
import json
import sys
from pathlib import Path

from canasta.domain.errors import CanastaError
from canasta.runtime import get_logger
from canasta.ticket.primitives import format_price

logger = get_logger(__name__)


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.exists():
        print(f"Error: file not found: {path}")
        sys.exit(1)
    return path.read_text(encoding="utf-8")


def _fail(exc: CanastaError) -> None:
    logger.error("%s", exc)
    print(f"Error: {exc}")
    sys.exit(1)


def cmd_stores(args: argparse.Namespace) -> None:
    """List the stores with a dedicated parser."""
    from canasta.ticket.parsers import build_default_registry

    registry = build_default_registry()
    for key, name in registry.supported_stores():
        print(f"{key:<12} {name}")


def cmd_detect(args: argparse.Namespace) -> None:
    """Rank store detections for a ticket text file."""
    from canasta.ticket.parsers import build_default_registry

    summary = build_default_registry().detect_with_confirmation(_read_text(args.text_file))
    if not summary.detected:
        print("No store detected.")
        return
    for result in summary.results:
        patterns = ", ".join(result.matched_patterns)
        print(f"{result.store_key:<12} {result.confidence:.2f}  {result.store_name}  [{patterns}]")
    if summary.needs_confirmation:
        print("Low confidence: confirm the store before parsing.")


def cmd_parse(args: argparse.Namespace) -> None:
    """Parse a ticket text file and print the candidate ticket."""
    from canasta.ticket.parsers import build_default_registry
    from canasta.ticket.serialization import parsed_ticket_to_dict

    text = _read_text(args.text_file)
    try:
        ticket = build_default_registry().parse(text, force_key=args.store)
    except CanastaError as exc:
        _fail(exc)
        return

    if args.json:
        print(json.dumps(parsed_ticket_to_dict(ticket), indent=2, ensure_ascii=False))
        return

    print("\n" + "=" * 60)
    print("PARSED TICKET")
    print("=" * 60)
    print(f"Store: {ticket.store.name} ({ticket.meta.parser_used})")
    if ticket.store.nit:
        print(f"NIT: {ticket.store.nit}")
    print(f"Date: {ticket.date.value.isoformat() if ticket.date.value else 'UNKNOWN'}")
    print(f"Total: ${format_price(ticket.totals.total)}")
    print(f"Payment: {ticket.payment.method}")
    print(f"\nItems ({len(ticket.items)}):")
    for i, item in enumerate(ticket.items, 1):
        qty_str = f" x{item.quantity}" if item.quantity != 1 else ""
        flag_str = f" [{', '.join(item.flags)}]" if item.flags else ""
        print(f"  {i}. {item.description}{qty_str} - ${format_price(item.total_price)}{flag_str}")
    for warning in ticket.meta.warnings:
        print(f"Warning: {warning}")
    print("=" * 60)


def _services(args: argparse.Namespace):
    from canasta.runtime.ticket_server import build_services

    return build_services(ocr_url=getattr(args, "ocr_url", None))


def cmd_scan(args: argparse.Namespace) -> None:
    """Scan a ticket image and register it for review."""
    from canasta.application.tickets import TicketScanRequest, run_ticket_scan

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: ticket image not found: {image_path}")
        sys.exit(1)

    services = _services(args)
    try:
        result = run_ticket_scan(
            TicketScanRequest(
                user_id=args.user,
                image_bytes=image_path.read_bytes(),
                filename=image_path.name,
                store_key=args.store,
            ),
            ocr=services.ocr,
            images=services.images,
            registry=services.registry,
            database=services.database,
            match_config=services.match_config,
        )
    except CanastaError as exc:
        _fail(exc)
        return

    ticket = result.ticket
    print(f"Ticket {ticket.id} ({ticket.detected_store_name}) registered for review.")
    if result.detection.needs_confirmation:
        print("Store detection is uncertain; check the store when confirming.")
    for item in result.items:
        print(f"  {item.line_number:>3}. [{item.status:<7}] {item.detected_name} - ${format_price(item.detected_price)}")
    print(f"Total: ${format_price(ticket.total_amount)}")


def cmd_list(args: argparse.Namespace) -> None:
    """List a user's tickets, newest first."""
    from canasta.application.tickets import list_tickets

    services = _services(args)
    try:
        listing = list_tickets(services.database, args.user, page=args.page, limit=args.limit)
    except CanastaError as exc:
        _fail(exc)
        return

    if not listing.tickets:
        print("No tickets found.")
        return
    for ticket in listing.tickets:
        created = ticket.created_at.strftime("%Y-%m-%d %H:%M") if ticket.created_at else "?"
        print(
            f"{ticket.id}  {created}  {ticket.status:<9} "
            f"{ticket.detected_store_name or '?':<24} ${format_price(ticket.total_amount)}"
        )
    print(f"Page {listing.page}/{listing.pages} ({listing.total} tickets)")


def cmd_show(args: argparse.Namespace) -> None:
    """Show a ticket with its items and suggestions."""
    from canasta.application.tickets import get_ticket_review

    services = _services(args)
    try:
        review = get_ticket_review(services.database, args.user, args.ticket_id, services.match_config)
    except CanastaError as exc:
        _fail(exc)
        return

    ticket = review.ticket
    print(f"Ticket {ticket.id} [{ticket.status}]")
    print(f"Store: {ticket.detected_store_name} (parser {ticket.parser_used})")
    print(f"Date: {ticket.purchase_date.isoformat() if ticket.purchase_date else 'UNKNOWN'}")
    print(f"Total: ${format_price(ticket.total_amount)}")
    for entry in review.items:
        item = entry.item
        print(
            f"  {item.id}  [{item.status:<9}] {item.detected_name} "
            f"x{item.detected_quantity} - ${format_price(item.detected_price)}"
        )
        for match in entry.suggestions:
            print(f"      ? {match.name} ({match.similarity:.2f})")


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI ticket server."""
    import uvicorn

    from canasta.runtime.ticket_server import build_services, create_app

    app = create_app(build_services(ocr_url=args.ocr_url))
    print(f"Starting ticket server on {args.host}:{args.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(app, host=args.host, port=args.port)

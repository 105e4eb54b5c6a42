"""Ticket scan workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from canasta.domain.catalog import MatchResult
from canasta.domain.errors import InputError, ServiceUnavailableError
from canasta.domain.scan import TicketScan, TicketScanItem
from canasta.domain.ticket import DetectionSummary, ParsedTicket
from canasta.runtime.image_store import StoredImage
from canasta.runtime.logging import get_logger
from canasta.runtime.ocr_client import OcrResult, OcrServiceUnavailable
from canasta.runtime.storage import TicketDatabase, new_id
from canasta.ticket.matching import MatchConfig, UserCatalog, match_products
from canasta.ticket.parsers.registry import ParserRegistry

logger = get_logger(__name__)


class OcrClient(Protocol):
    def recognize_text(self, image_bytes: bytes, filename: str = ...) -> OcrResult: ...


class ImageStore(Protocol):
    def upload(self, image_bytes: bytes, filename: str) -> StoredImage: ...

    def delete(self, ref: str) -> bool: ...


@dataclass(frozen=True)
class TicketScanRequest:
    """Inputs for scanning one ticket image."""

    user_id: str
    image_bytes: bytes
    filename: str = "ticket.jpg"
    store_key: str | None = None


@dataclass(frozen=True)
class TicketScanResult:
    """Outcome of a scan: the persisted READY ticket and how it was built."""

    ticket: TicketScan
    items: tuple[TicketScanItem, ...]
    detection: DetectionSummary
    parsed: ParsedTicket
    matches: tuple[MatchResult, ...]


def release_image(images: ImageStore, ref: str) -> None:
    """Delete an uploaded image, logging instead of raising on failure."""
    try:
        images.delete(ref)
    except Exception:
        logger.warning("Could not release ticket image %s", ref, exc_info=True)


def _parse(registry: ParserRegistry, text: str, store_key: str | None) -> ParsedTicket:
    if store_key:
        return registry.parse(text, force_key=store_key)
    try:
        return registry.parse(text)
    except Exception:
        logger.exception("Store parser failed; falling back to %s", registry.fallback_key)
        return registry.parse(text, force_key=registry.fallback_key)


def register_scanned_text(
    user_id: str,
    raw_text: str,
    *,
    registry: ParserRegistry,
    database: TicketDatabase,
    image: StoredImage | None = None,
    store_key: str | None = None,
    match_config: MatchConfig | None = None,
    max_workers: int | None = None,
) -> TicketScanResult:
    """Parse recognized text, match its items and persist a READY ticket.

    Args:
        user_id: Owner of the ticket; only this user's catalog is matched.
        raw_text: OCR text of the ticket.
        registry: Frozen parser registry.
        database: Storage for the ticket and its items.
        image: Uploaded image the ticket was read from, if any.
        store_key: Parser chosen by the user, skipping detection.
        match_config: Matching thresholds.
        max_workers: Thread pool size for matching items.

    Raises:
        InputError: The text is empty.
        NotFoundError: store_key is not a registered parser.
    """
    if not raw_text.strip():
        raise InputError("No text was recognized in the ticket")

    detection = registry.detect_with_confirmation(raw_text)
    parsed = _parse(registry, raw_text, store_key)

    with database.unit_of_work(write=False) as uow:
        catalog = UserCatalog(user_id, uow.find_products_by_user(user_id))
    matches = match_products(
        catalog,
        [item.description for item in parsed.items],
        config=match_config,
        max_workers=max_workers,
    )

    ticket_id = new_id()
    items = tuple(
        TicketScanItem(
            id=new_id(),
            ticket_scan_id=ticket_id,
            line_number=item.line_number,
            raw_text=item.raw_line,
            detected_name=item.description,
            detected_price=item.total_price,
            detected_quantity=item.quantity,
            status=match.status,
            unit=item.unit,
            item_code=item.code,
            parse_confidence=item.confidence,
            flags=item.flags,
            matched_product_id=match.match.product_id if match.match else None,
            match_confidence=match.match.similarity if match.match else None,
        )
        for item, match in zip(parsed.items, matches)
    )

    suggested = detection.suggested
    ticket = TicketScan(
        id=ticket_id,
        user_id=user_id,
        image_ref=image.ref if image else "",
        image_url=image.url if image else "",
        raw_text=raw_text,
        status="READY",
        items_count=len(items),
        total_amount=parsed.totals.total or parsed.items_total,
        purchase_date=parsed.date.value,
        detected_store_key=parsed.store.key,
        detected_store_name=parsed.store.name,
        detection_confidence=suggested.confidence if suggested else 0.0,
        parser_used=parsed.meta.parser_used,
        created_at=datetime.now(),
    )

    with database.unit_of_work() as uow:
        uow.create_ticket_scan(ticket, items)

    logger.info(
        "Ticket %s registered: %s, %d items (%d matched)",
        ticket.id,
        ticket.detected_store_name,
        len(items),
        sum(1 for item in items if item.status == "MATCHED"),
    )
    return TicketScanResult(
        ticket=ticket,
        items=items,
        detection=detection,
        parsed=parsed,
        matches=tuple(matches),
    )


def run_ticket_scan(
    request: TicketScanRequest,
    *,
    ocr: OcrClient,
    images: ImageStore,
    registry: ParserRegistry,
    database: TicketDatabase,
    match_config: MatchConfig | None = None,
    max_workers: int | None = None,
) -> TicketScanResult:
    """Run scan flow: upload image -> OCR -> detect/parse -> match -> persist.

    Nothing is persisted when a step fails; an image uploaded before the
    failure is released best-effort.

    Raises:
        InputError: Empty image or no recognized text.
        ServiceUnavailableError: The image store or OCR service failed.
    """
    if not request.image_bytes:
        raise InputError("Ticket image is empty")

    try:
        stored = images.upload(request.image_bytes, request.filename)
    except OSError as exc:
        raise ServiceUnavailableError(f"Could not store ticket image: {exc}") from exc

    try:
        try:
            ocr_result = ocr.recognize_text(request.image_bytes, request.filename)
        except OcrServiceUnavailable as exc:
            raise ServiceUnavailableError(str(exc)) from exc
        logger.debug("OCR returned %d lines", len(ocr_result.lines))

        return register_scanned_text(
            request.user_id,
            ocr_result.full_text,
            registry=registry,
            database=database,
            image=stored,
            store_key=request.store_key,
            match_config=match_config,
            max_workers=max_workers,
        )
    except BaseException:
        release_image(images, stored.ref)
        raise

"""FastAPI server exposing ticket parsing, scanning, review and confirmation."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from canasta.application.tickets import (
    ConfirmItem,
    ConfirmTicketRequest,
    TicketScanRequest,
    accept_suggestion,
    confirm_ticket,
    create_product,
    create_store,
    delete_product,
    delete_store,
    delete_ticket,
    edit_ticket_item,
    get_ticket_review,
    ignore_item,
    list_products,
    list_stores,
    list_tickets,
    restore_item,
    run_ticket_scan,
)
from canasta.application.tickets.scan import ImageStore, OcrClient
from canasta.domain.catalog import Product, Store
from canasta.domain.errors import (
    CanastaError,
    ConflictError,
    InputError,
    NotFoundError,
    PermissionDeniedError,
    ServiceUnavailableError,
    ValidationError,
)
from canasta.domain.scan import ItemStatus, TicketReview
from canasta.runtime.category_rules import load_category_classifier
from canasta.runtime.image_store import LocalImageStore
from canasta.runtime.logging import get_logger
from canasta.runtime.matching_rules import load_match_config
from canasta.runtime.ocr_client import HttpOcrClient
from canasta.runtime.paths import ProjectPaths, get_paths
from canasta.runtime.storage import TicketDatabase
from canasta.ticket.categories import CategoryClassifier
from canasta.ticket.matching import MatchConfig
from canasta.ticket.parsers import build_default_registry
from canasta.ticket.parsers.registry import ParserRegistry
from canasta.ticket.serialization import (
    detection_summary_to_dict,
    match_result_to_dict,
    parsed_ticket_to_dict,
    product_match_to_dict,
    ticket_scan_item_to_dict,
    ticket_scan_to_dict,
)

logger = get_logger(__name__)

OCR_SERVICE_URL = os.environ.get("OCR_SERVICE_URL", "http://localhost:8001")
MATCH_WORKERS = 4

# Most specific first: ServiceUnavailableError is an InputError.
_ERROR_STATUS: tuple[tuple[type[CanastaError], int], ...] = (
    (ServiceUnavailableError, 502),
    (InputError, 400),
    (ValidationError, 400),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ConflictError, 409),
)


@dataclass
class TicketServices:
    """Collaborators shared by every request."""

    registry: ParserRegistry
    database: TicketDatabase
    ocr: OcrClient
    images: ImageStore
    classifier: CategoryClassifier
    match_config: MatchConfig = field(default_factory=MatchConfig)
    paths: ProjectPaths | None = None


def build_services(paths: ProjectPaths | None = None, ocr_url: str | None = None) -> TicketServices:
    """Wire the default collaborators for a project root."""
    paths = paths or get_paths()
    paths.ensure_dirs()
    return TicketServices(
        registry=build_default_registry(),
        database=TicketDatabase(paths.database),
        ocr=HttpOcrClient(ocr_url or OCR_SERVICE_URL),
        images=LocalImageStore(paths.images),
        classifier=load_category_classifier(),
        match_config=load_match_config(),
        paths=paths,
    )


# --- Request bodies ---


class TextBody(BaseModel):
    text: str
    store_key: str | None = None


class ItemEditBody(BaseModel):
    name: str | None = None
    price: int | None = None
    quantity: Decimal | None = None


class AcceptBody(BaseModel):
    product_id: str


class ConfirmItemBody(BaseModel):
    id: str
    name: str | None = None
    price: int | None = None
    quantity: Decimal | None = None
    matched_product_id: str | None = None
    status: ItemStatus | None = None


class ConfirmBody(BaseModel):
    store_id: str | None = None
    purchase_date: date | None = None
    items: list[ConfirmItemBody] | None = None


class StoreBody(BaseModel):
    name: str
    nit: str | None = None
    address: str | None = None


class ProductBody(BaseModel):
    name: str
    category: str | None = None
    brand: str = ""


# --- Response shapes ---


def _store_to_dict(store: Store) -> dict[str, Any]:
    return {"id": store.id, "name": store.name, "nit": store.nit, "address": store.address}


def _product_to_dict(product: Product) -> dict[str, Any]:
    return {"id": product.id, "name": product.name, "category": product.category, "brand": product.brand}


def _review_to_dict(review: TicketReview) -> dict[str, Any]:
    return {
        "ticket": ticket_scan_to_dict(review.ticket),
        "items": [
            {
                **ticket_scan_item_to_dict(entry.item),
                "suggestions": [product_match_to_dict(match) for match in entry.suggestions],
            }
            for entry in review.items
        ],
    }


def _status_for(exc: CanastaError) -> int:
    for error_type, status in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(services: TicketServices) -> FastAPI:
    """Build the HTTP application around one set of services."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create data directories on startup."""
        if services.paths is not None:
            services.paths.ensure_dirs()
        logger.info("Ticket server ready with %d parsers", len(services.registry))
        yield

    app = FastAPI(title="Canasta Ticket Scanner", lifespan=lifespan)

    @app.exception_handler(CanastaError)
    async def handle_domain_error(request: Request, exc: CanastaError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"status": "error", "message": str(exc)}, status_code=status)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"status": "error", "message": "Internal server error"}, status_code=500)

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", **services.registry.health()}

    # --- Parsers ---

    @app.get("/parsers/stores")
    def parser_stores() -> dict[str, Any]:
        return {"stores": [{"key": key, "name": name} for key, name in services.registry.supported_stores()]}

    @app.post("/parsers/detect")
    def parser_detect(body: TextBody) -> dict[str, Any]:
        return detection_summary_to_dict(services.registry.detect_with_confirmation(body.text))

    @app.post("/parsers/parse")
    def parser_parse(body: TextBody) -> dict[str, Any]:
        return parsed_ticket_to_dict(services.registry.parse(body.text, force_key=body.store_key))

    # --- Tickets ---

    @app.post("/tickets", status_code=201)
    async def scan_ticket(
        request: Request,
        user_id: str = Header(alias="X-User-Id"),
        filename: str = Header(default="ticket.jpg", alias="X-Filename"),
        store_key: str | None = Query(default=None),
    ) -> dict[str, Any]:
        """Receive a ticket image as the raw request body and register it for review."""
        image_bytes = await request.body()
        result = await run_in_threadpool(
            run_ticket_scan,
            TicketScanRequest(user_id=user_id, image_bytes=image_bytes, filename=filename, store_key=store_key),
            ocr=services.ocr,
            images=services.images,
            registry=services.registry,
            database=services.database,
            match_config=services.match_config,
            max_workers=MATCH_WORKERS,
        )
        return {
            "ticket": ticket_scan_to_dict(result.ticket),
            "items": [ticket_scan_item_to_dict(item) for item in result.items],
            "detection": detection_summary_to_dict(result.detection),
            "matches": [match_result_to_dict(match) for match in result.matches],
            "warnings": list(result.parsed.meta.warnings),
        }

    @app.get("/tickets")
    def tickets_list(
        user_id: str = Header(alias="X-User-Id"),
        page: int = Query(default=1),
        limit: int = Query(default=20),
    ) -> dict[str, Any]:
        listing = list_tickets(services.database, user_id, page=page, limit=limit)
        return {
            "tickets": [ticket_scan_to_dict(ticket) for ticket in listing.tickets],
            "total": listing.total,
            "page": listing.page,
            "limit": listing.limit,
            "pages": listing.pages,
        }

    @app.get("/tickets/{ticket_id}")
    def ticket_detail(ticket_id: str, user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        return _review_to_dict(get_ticket_review(services.database, user_id, ticket_id, services.match_config))

    @app.delete("/tickets/{ticket_id}", status_code=204)
    def ticket_delete(ticket_id: str, user_id: str = Header(alias="X-User-Id")) -> Response:
        delete_ticket(services.database, user_id, ticket_id, images=services.images)
        return Response(status_code=204)

    @app.patch("/tickets/{ticket_id}/items/{item_id}")
    def item_edit(
        ticket_id: str,
        item_id: str,
        body: ItemEditBody,
        user_id: str = Header(alias="X-User-Id"),
    ) -> dict[str, Any]:
        item = edit_ticket_item(
            services.database,
            user_id,
            ticket_id,
            item_id,
            name=body.name,
            price=body.price,
            quantity=body.quantity,
        )
        return ticket_scan_item_to_dict(item)

    @app.post("/tickets/{ticket_id}/items/{item_id}/accept")
    def item_accept(
        ticket_id: str,
        item_id: str,
        body: AcceptBody,
        user_id: str = Header(alias="X-User-Id"),
    ) -> dict[str, Any]:
        return ticket_scan_item_to_dict(accept_suggestion(services.database, user_id, ticket_id, item_id, body.product_id))

    @app.post("/tickets/{ticket_id}/items/{item_id}/ignore")
    def item_ignore(ticket_id: str, item_id: str, user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        return ticket_scan_item_to_dict(ignore_item(services.database, user_id, ticket_id, item_id))

    @app.post("/tickets/{ticket_id}/items/{item_id}/restore")
    def item_restore(ticket_id: str, item_id: str, user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        return ticket_scan_item_to_dict(restore_item(services.database, user_id, ticket_id, item_id))

    @app.post("/tickets/{ticket_id}/confirm")
    def ticket_confirm(ticket_id: str, body: ConfirmBody, user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        overrides = None
        if body.items is not None:
            overrides = tuple(
                ConfirmItem(
                    id=item.id,
                    name=item.name,
                    price=item.price,
                    quantity=item.quantity,
                    matched_product_id=item.matched_product_id,
                    status=item.status,
                )
                for item in body.items
            )
        result = confirm_ticket(
            ConfirmTicketRequest(
                user_id=user_id,
                ticket_id=ticket_id,
                store_id=body.store_id,
                purchase_date=body.purchase_date,
                items=overrides,
            ),
            database=services.database,
            classifier=services.classifier,
        )
        return {
            "purchase_id": result.purchase_id,
            "purchase_items_created": result.purchase_items_created,
            "products_created": result.products_created,
            "confirmed_at": result.confirmed_at.isoformat(),
        }

    # --- Catalog ---

    @app.post("/stores", status_code=201)
    def store_create(body: StoreBody, user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        return _store_to_dict(create_store(services.database, user_id, body.name, nit=body.nit, address=body.address))

    @app.get("/stores")
    def store_list(user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        return {"stores": [_store_to_dict(store) for store in list_stores(services.database, user_id)]}

    @app.delete("/stores/{store_id}", status_code=204)
    def store_delete(store_id: str, user_id: str = Header(alias="X-User-Id")) -> Response:
        delete_store(services.database, user_id, store_id)
        return Response(status_code=204)

    @app.post("/products", status_code=201)
    def product_create(body: ProductBody, user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        product = create_product(
            services.database,
            user_id,
            body.name,
            category=body.category,
            brand=body.brand,
            classifier=services.classifier,
        )
        return _product_to_dict(product)

    @app.get("/products")
    def product_list(user_id: str = Header(alias="X-User-Id")) -> dict[str, Any]:
        return {"products": [_product_to_dict(product) for product in list_products(services.database, user_id)]}

    @app.delete("/products/{product_id}", status_code=204)
    def product_delete(product_id: str, user_id: str = Header(alias="X-User-Id")) -> Response:
        delete_product(services.database, user_id, product_id)
        return Response(status_code=204)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(build_services()), host="0.0.0.0", port=8000)

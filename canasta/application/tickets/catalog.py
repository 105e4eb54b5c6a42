"""Catalog maintenance: a user's stores and products."""

from __future__ import annotations

from canasta.application.tickets.access import load_owned_product, load_owned_store
from canasta.domain.catalog import Product, Store
from canasta.domain.errors import ConflictError, ValidationError
from canasta.runtime.storage import TicketDatabase
from canasta.ticket.categories import CategoryClassifier


def create_store(
    database: TicketDatabase,
    user_id: str,
    name: str,
    nit: str | None = None,
    address: str | None = None,
) -> Store:
    if not name.strip():
        raise ValidationError("Store name cannot be empty")
    with database.unit_of_work() as uow:
        return uow.create_store(user_id, name.strip(), nit=nit, address=address)


def list_stores(database: TicketDatabase, user_id: str) -> list[Store]:
    with database.unit_of_work(write=False) as uow:
        return uow.find_stores_by_user(user_id)


def delete_store(database: TicketDatabase, user_id: str, store_id: str) -> None:
    """Delete a store no purchase or ticket refers to.

    Raises:
        ConflictError: The store is still referenced.
    """
    with database.unit_of_work() as uow:
        load_owned_store(uow, user_id, store_id)
        if uow.store_in_use(store_id):
            raise ConflictError(f"Store '{store_id}' is referenced by purchases or tickets")
        uow.delete_store(store_id)


def create_product(
    database: TicketDatabase,
    user_id: str,
    name: str,
    category: str | None = None,
    brand: str = "",
    classifier: CategoryClassifier | None = None,
) -> Product:
    """Add a product; without an explicit category it is classified from the name."""
    if not name.strip():
        raise ValidationError("Product name cannot be empty")
    if category is None:
        category = classifier.detect_category(name) if classifier is not None else ""
    with database.unit_of_work() as uow:
        return uow.create_product(user_id, name.strip(), category=category, brand=brand)


def list_products(database: TicketDatabase, user_id: str) -> list[Product]:
    with database.unit_of_work(write=False) as uow:
        return uow.find_products_by_user(user_id)


def delete_product(database: TicketDatabase, user_id: str, product_id: str) -> None:
    """Delete a product no purchase line refers to.

    Raises:
        ConflictError: The product appears in a confirmed purchase.
    """
    with database.unit_of_work() as uow:
        load_owned_product(uow, user_id, product_id)
        if uow.product_in_use(product_id):
            raise ConflictError(f"Product '{product_id}' is referenced by purchases")
        uow.delete_product(product_id)

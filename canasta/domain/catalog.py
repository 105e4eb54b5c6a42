"""Catalog models: a user's stores and products, and product match results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

MatchStatus = Literal["MATCHED", "PENDING", "NEW"]


@dataclass(frozen=True)
class Product:
    """A product in one user's catalog."""

    id: str
    user_id: str
    name: str
    category: str = ""
    brand: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class Store:
    """A store the user buys from."""

    id: str
    user_id: str
    name: str
    nit: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class ProductMatch:
    """A catalog product scored against a detected item name."""

    product_id: str
    name: str
    category: str
    brand: str
    similarity: float


@dataclass(frozen=True)
class MatchResult:
    """Classification of one detected item name against the user's catalog."""

    detected_name: str
    normalized_name: str
    status: MatchStatus
    match: ProductMatch | None = None
    suggestions: tuple[ProductMatch, ...] = ()

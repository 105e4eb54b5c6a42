"""SQLite storage for catalogs, ticket scans and purchases.

All reads and writes go through a UnitOfWork: one connection, one transaction,
committed when the ``with`` block exits normally and rolled back on any
exception. Write units start with ``BEGIN IMMEDIATE`` so the database write
lock is taken before the first read; a status checked inside the unit cannot
change until it commits. That is what serializes concurrent confirmations of
the same ticket.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from canasta.domain.catalog import Product, Store
from canasta.domain.scan import Purchase, PurchaseItem, TicketScan, TicketScanItem
from canasta.runtime.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BUSY_TIMEOUT = 30.0

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS stores (
  id          TEXT PRIMARY KEY,
  user_id     TEXT NOT NULL,
  name        TEXT NOT NULL,
  nit         TEXT,
  address     TEXT,
  created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
  id          TEXT PRIMARY KEY,
  user_id     TEXT NOT NULL,
  name        TEXT NOT NULL,
  category    TEXT NOT NULL DEFAULT '',
  brand       TEXT NOT NULL DEFAULT '',
  created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ticket_scans (
  id                    TEXT PRIMARY KEY,
  user_id               TEXT NOT NULL,
  image_ref             TEXT NOT NULL,
  image_url             TEXT NOT NULL DEFAULT '',
  raw_text              TEXT NOT NULL,
  status                TEXT NOT NULL CHECK (status IN ('READY', 'CONFIRMED')),
  items_count           INTEGER NOT NULL,
  total_amount          INTEGER NOT NULL,
  store_id              TEXT REFERENCES stores(id) ON DELETE RESTRICT,
  purchase_date         TEXT,
  detected_store_key    TEXT,
  detected_store_name   TEXT,
  detection_confidence  REAL NOT NULL DEFAULT 0,
  parser_used           TEXT NOT NULL DEFAULT '',
  created_at            TEXT NOT NULL,
  confirmed_at          TEXT
);

CREATE TABLE IF NOT EXISTS ticket_scan_items (
  id                  TEXT PRIMARY KEY,
  ticket_scan_id      TEXT NOT NULL REFERENCES ticket_scans(id) ON DELETE CASCADE,
  line_number         INTEGER NOT NULL,
  raw_text            TEXT NOT NULL,
  detected_name       TEXT NOT NULL,
  detected_price      INTEGER NOT NULL,
  detected_quantity   TEXT NOT NULL,
  status              TEXT NOT NULL
                      CHECK (status IN ('NEW', 'MATCHED', 'PENDING', 'IGNORED', 'CONFIRMED')),
  unit                TEXT NOT NULL DEFAULT 'UN',
  item_code           TEXT,
  parse_confidence    REAL NOT NULL DEFAULT 0,
  flags               TEXT NOT NULL DEFAULT '[]',
  matched_product_id  TEXT REFERENCES products(id) ON DELETE SET NULL,
  match_confidence    REAL,
  previous_status     TEXT,
  final_product_id    TEXT REFERENCES products(id) ON DELETE RESTRICT
);

CREATE TABLE IF NOT EXISTS purchases (
  id              TEXT PRIMARY KEY,
  user_id         TEXT NOT NULL,
  store_id        TEXT NOT NULL REFERENCES stores(id) ON DELETE RESTRICT,
  ticket_scan_id  TEXT NOT NULL UNIQUE REFERENCES ticket_scans(id) ON DELETE RESTRICT,
  purchase_date   TEXT NOT NULL,
  total_amount    INTEGER NOT NULL,
  created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS purchase_items (
  id           TEXT PRIMARY KEY,
  purchase_id  TEXT NOT NULL REFERENCES purchases(id) ON DELETE CASCADE,
  product_id   TEXT NOT NULL REFERENCES products(id) ON DELETE RESTRICT,
  quantity     TEXT NOT NULL,
  unit_price   INTEGER NOT NULL,
  total_price  INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_products_user        ON products(user_id);
CREATE INDEX IF NOT EXISTS idx_stores_user          ON stores(user_id);
CREATE INDEX IF NOT EXISTS idx_ticket_scans_user    ON ticket_scans(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_ticket_items_ticket  ON ticket_scan_items(ticket_scan_id, line_number);
CREATE INDEX IF NOT EXISTS idx_purchase_items_prod  ON purchase_items(product_id);
"""


def new_id() -> str:
    return uuid.uuid4().hex


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _to_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _to_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _product_from_row(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        category=row["category"],
        brand=row["brand"],
        created_at=_to_datetime(row["created_at"]),
    )


def _store_from_row(row: sqlite3.Row) -> Store:
    return Store(id=row["id"], user_id=row["user_id"], name=row["name"], nit=row["nit"], address=row["address"])


def _ticket_from_row(row: sqlite3.Row) -> TicketScan:
    return TicketScan(
        id=row["id"],
        user_id=row["user_id"],
        image_ref=row["image_ref"],
        image_url=row["image_url"],
        raw_text=row["raw_text"],
        status=row["status"],
        items_count=row["items_count"],
        total_amount=row["total_amount"],
        store_id=row["store_id"],
        purchase_date=_to_date(row["purchase_date"]),
        detected_store_key=row["detected_store_key"],
        detected_store_name=row["detected_store_name"],
        detection_confidence=row["detection_confidence"],
        parser_used=row["parser_used"],
        created_at=_to_datetime(row["created_at"]),
        confirmed_at=_to_datetime(row["confirmed_at"]),
    )


def _item_from_row(row: sqlite3.Row) -> TicketScanItem:
    return TicketScanItem(
        id=row["id"],
        ticket_scan_id=row["ticket_scan_id"],
        line_number=row["line_number"],
        raw_text=row["raw_text"],
        detected_name=row["detected_name"],
        detected_price=row["detected_price"],
        detected_quantity=Decimal(row["detected_quantity"]),
        status=row["status"],
        unit=row["unit"],
        item_code=row["item_code"],
        parse_confidence=row["parse_confidence"],
        flags=tuple(json.loads(row["flags"])),
        matched_product_id=row["matched_product_id"],
        match_confidence=row["match_confidence"],
        previous_status=row["previous_status"],
        final_product_id=row["final_product_id"],
    )


def _purchase_from_row(row: sqlite3.Row) -> Purchase:
    purchase_date = _to_date(row["purchase_date"])
    assert purchase_date is not None
    return Purchase(
        id=row["id"],
        user_id=row["user_id"],
        store_id=row["store_id"],
        ticket_scan_id=row["ticket_scan_id"],
        purchase_date=purchase_date,
        total_amount=row["total_amount"],
        created_at=_to_datetime(row["created_at"]),
    )


class UnitOfWork:
    """Repository operations bound to one open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # --- Stores ---

    def create_store(self, user_id: str, name: str, nit: str | None = None, address: str | None = None) -> Store:
        store = Store(id=new_id(), user_id=user_id, name=name, nit=nit, address=address)
        self._conn.execute(
            "INSERT INTO stores (id, user_id, name, nit, address, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (store.id, user_id, name, nit, address, datetime.now().isoformat()),
        )
        return store

    def get_store(self, store_id: str) -> Store | None:
        row = self._conn.execute("SELECT * FROM stores WHERE id = ?", (store_id,)).fetchone()
        return _store_from_row(row) if row else None

    def find_stores_by_user(self, user_id: str) -> list[Store]:
        rows = self._conn.execute("SELECT * FROM stores WHERE user_id = ? ORDER BY name", (user_id,)).fetchall()
        return [_store_from_row(row) for row in rows]

    def store_in_use(self, store_id: str) -> bool:
        row = self._conn.execute(
            "SELECT EXISTS(SELECT 1 FROM purchases WHERE store_id = ?) "
            "OR EXISTS(SELECT 1 FROM ticket_scans WHERE store_id = ?)",
            (store_id, store_id),
        ).fetchone()
        return bool(row[0])

    def delete_store(self, store_id: str) -> None:
        self._conn.execute("DELETE FROM stores WHERE id = ?", (store_id,))

    # --- Products ---

    def create_product(self, user_id: str, name: str, category: str = "", brand: str = "") -> Product:
        created_at = datetime.now()
        product = Product(
            id=new_id(),
            user_id=user_id,
            name=name,
            category=category,
            brand=brand,
            created_at=created_at,
        )
        self._conn.execute(
            "INSERT INTO products (id, user_id, name, category, brand, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (product.id, user_id, name, category, brand, created_at.isoformat()),
        )
        return product

    def get_product(self, product_id: str) -> Product | None:
        row = self._conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        return _product_from_row(row) if row else None

    def find_products_by_user(self, user_id: str) -> list[Product]:
        rows = self._conn.execute(
            "SELECT * FROM products WHERE user_id = ? ORDER BY created_at, id", (user_id,)
        ).fetchall()
        return [_product_from_row(row) for row in rows]

    def product_in_use(self, product_id: str) -> bool:
        row = self._conn.execute(
            "SELECT EXISTS(SELECT 1 FROM purchase_items WHERE product_id = ?)", (product_id,)
        ).fetchone()
        return bool(row[0])

    def delete_product(self, product_id: str) -> None:
        self._conn.execute("DELETE FROM products WHERE id = ?", (product_id,))

    # --- Ticket scans ---

    def create_ticket_scan(self, ticket: TicketScan, items: Sequence[TicketScanItem]) -> None:
        """Insert a ticket scan and all of its items."""
        self._conn.execute(
            """
            INSERT INTO ticket_scans (
              id, user_id, image_ref, image_url, raw_text, status, items_count, total_amount,
              store_id, purchase_date, detected_store_key, detected_store_name,
              detection_confidence, parser_used, created_at, confirmed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                ticket.id,
                ticket.user_id,
                ticket.image_ref,
                ticket.image_url,
                ticket.raw_text,
                ticket.status,
                ticket.items_count,
                ticket.total_amount,
                ticket.store_id,
                _iso(ticket.purchase_date),
                ticket.detected_store_key,
                ticket.detected_store_name,
                ticket.detection_confidence,
                ticket.parser_used,
                _iso(ticket.created_at or datetime.now()),
                _iso(ticket.confirmed_at),
            ),
        )
        for item in items:
            self._insert_item(item)

    def _insert_item(self, item: TicketScanItem) -> None:
        self._conn.execute(
            """
            INSERT INTO ticket_scan_items (
              id, ticket_scan_id, line_number, raw_text, detected_name, detected_price,
              detected_quantity, status, unit, item_code, parse_confidence, flags,
              matched_product_id, match_confidence, previous_status, final_product_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.id,
                item.ticket_scan_id,
                item.line_number,
                item.raw_text,
                item.detected_name,
                item.detected_price,
                str(item.detected_quantity),
                item.status,
                item.unit,
                item.item_code,
                item.parse_confidence,
                json.dumps(list(item.flags)),
                item.matched_product_id,
                item.match_confidence,
                item.previous_status,
                item.final_product_id,
            ),
        )

    def get_ticket_scan(self, ticket_id: str) -> TicketScan | None:
        row = self._conn.execute("SELECT * FROM ticket_scans WHERE id = ?", (ticket_id,)).fetchone()
        return _ticket_from_row(row) if row else None

    def get_ticket_scan_items(self, ticket_id: str) -> list[TicketScanItem]:
        rows = self._conn.execute(
            "SELECT * FROM ticket_scan_items WHERE ticket_scan_id = ? ORDER BY line_number, rowid",
            (ticket_id,),
        ).fetchall()
        return [_item_from_row(row) for row in rows]

    def get_ticket_scan_item(self, item_id: str) -> TicketScanItem | None:
        row = self._conn.execute("SELECT * FROM ticket_scan_items WHERE id = ?", (item_id,)).fetchone()
        return _item_from_row(row) if row else None

    def list_ticket_scans(self, user_id: str, limit: int, offset: int) -> list[TicketScan]:
        rows = self._conn.execute(
            "SELECT * FROM ticket_scans WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (user_id, limit, offset),
        ).fetchall()
        return [_ticket_from_row(row) for row in rows]

    def count_ticket_scans(self, user_id: str) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM ticket_scans WHERE user_id = ?", (user_id,)).fetchone()
        return int(row[0])

    def update_ticket_scan(self, ticket: TicketScan) -> None:
        self._conn.execute(
            """
            UPDATE ticket_scans
               SET status = ?, items_count = ?, total_amount = ?, store_id = ?,
                   purchase_date = ?, confirmed_at = ?
             WHERE id = ?
            """,
            (
                ticket.status,
                ticket.items_count,
                ticket.total_amount,
                ticket.store_id,
                _iso(ticket.purchase_date),
                _iso(ticket.confirmed_at),
                ticket.id,
            ),
        )

    def update_ticket_scan_item(self, item: TicketScanItem) -> None:
        self._conn.execute(
            """
            UPDATE ticket_scan_items
               SET detected_name = ?, detected_price = ?, detected_quantity = ?, status = ?,
                   matched_product_id = ?, match_confidence = ?, previous_status = ?,
                   final_product_id = ?
             WHERE id = ?
            """,
            (
                item.detected_name,
                item.detected_price,
                str(item.detected_quantity),
                item.status,
                item.matched_product_id,
                item.match_confidence,
                item.previous_status,
                item.final_product_id,
                item.id,
            ),
        )

    def delete_ticket_scan(self, ticket_id: str) -> None:
        """Delete a ticket scan; its items go with it."""
        self._conn.execute("DELETE FROM ticket_scans WHERE id = ?", (ticket_id,))

    # --- Purchases ---

    def create_purchase_with_items(self, purchase: Purchase, items: Sequence[PurchaseItem]) -> None:
        self._conn.execute(
            """
            INSERT INTO purchases (id, user_id, store_id, ticket_scan_id, purchase_date, total_amount, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                purchase.id,
                purchase.user_id,
                purchase.store_id,
                purchase.ticket_scan_id,
                purchase.purchase_date.isoformat(),
                purchase.total_amount,
                _iso(purchase.created_at or datetime.now()),
            ),
        )
        self._conn.executemany(
            """
            INSERT INTO purchase_items (id, purchase_id, product_id, quantity, unit_price, total_price)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (item.id, item.purchase_id, item.product_id, str(item.quantity), item.unit_price, item.total_price)
                for item in items
            ],
        )

    def get_purchase_for_ticket(self, ticket_id: str) -> Purchase | None:
        row = self._conn.execute("SELECT * FROM purchases WHERE ticket_scan_id = ?", (ticket_id,)).fetchone()
        return _purchase_from_row(row) if row else None

    def get_purchase_items(self, purchase_id: str) -> list[PurchaseItem]:
        rows = self._conn.execute(
            "SELECT * FROM purchase_items WHERE purchase_id = ? ORDER BY rowid", (purchase_id,)
        ).fetchall()
        return [
            PurchaseItem(
                id=row["id"],
                purchase_id=row["purchase_id"],
                product_id=row["product_id"],
                quantity=Decimal(row["quantity"]),
                unit_price=row["unit_price"],
                total_price=row["total_price"],
            )
            for row in rows
        ]

    def count_purchases(self, user_id: str) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM purchases WHERE user_id = ?", (user_id,)).fetchone()
        return int(row[0])


class TicketDatabase:
    """SQLite-backed store for catalogs, ticket scans and purchases.

    Each unit of work opens its own connection, so one TicketDatabase can be
    shared across threads. The database must be a file: an in-memory database
    would be private to each connection.
    """

    def __init__(self, db_path: Path | str, timeout: float = DEFAULT_BUSY_TIMEOUT) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Ticket DB path: %s", self.db_path)
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        # isolation_level=None: transactions are opened explicitly by unit_of_work().
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            try:
                conn.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.OperationalError as exc:
                logger.warning("Could not enable WAL journal mode: %s", exc)
            conn.executescript(SCHEMA_SQL)

    @contextmanager
    def unit_of_work(self, write: bool = True) -> Iterator[UnitOfWork]:
        """Open a transaction and yield repository operations bound to it.

        Args:
            write: Take the write lock up front (BEGIN IMMEDIATE). Read-only
                units use a deferred BEGIN.
        """
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE;" if write else "BEGIN;")
            try:
                yield UnitOfWork(conn)
            except BaseException as exc:
                logger.debug("Rolling back unit of work: %s", exc.__class__.__name__)
                conn.execute("ROLLBACK;")
                raise
            else:
                conn.execute("COMMIT;")

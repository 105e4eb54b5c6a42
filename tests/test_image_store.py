"""Local image store, alone and behind the scan/delete workflows."""

from __future__ import annotations

from pathlib import Path

import pytest
from canasta.application.tickets import TicketScanRequest, delete_ticket, list_tickets, run_ticket_scan
from canasta.domain.errors import ServiceUnavailableError
from canasta.runtime.image_store import LocalImageStore
from canasta.runtime.storage import TicketDatabase
from canasta.ticket.parsers.registry import ParserRegistry

from tests.conftest import FakeOcr

TICKET_TEXT = """D1 SAS NIT900276962-1
ITEM CANT DESCRIPCION VALOR
0770030492938 AVENA TETRA PAK    8,980 A
TOTAL 8,980
"""


def test_upload_writes_one_file_per_call(tmp_path: Path) -> None:
    store = LocalImageStore(tmp_path / "images")

    first = store.upload(b"same-bytes", "ticket.PNG")
    second = store.upload(b"same-bytes", "ticket.PNG")

    assert first.ref != second.ref
    assert first.ref.endswith(".png")
    assert (tmp_path / "images" / first.ref).read_bytes() == b"same-bytes"
    assert (tmp_path / "images" / second.ref).read_bytes() == b"same-bytes"
    assert first.url.startswith("file://")


def test_upload_without_extension_defaults_to_jpg(tmp_path: Path) -> None:
    stored = LocalImageStore(tmp_path).upload(b"bytes", "ticket")

    assert stored.ref.endswith(".jpg")


def test_delete_removes_only_that_upload(tmp_path: Path) -> None:
    store = LocalImageStore(tmp_path)
    kept = store.upload(b"same-bytes", "a.jpg")
    removed = store.upload(b"same-bytes", "a.jpg")

    assert store.delete(removed.ref) is True
    assert not (tmp_path / removed.ref).exists()
    assert (tmp_path / kept.ref).exists()


def test_delete_missing_image_returns_false(tmp_path: Path) -> None:
    assert LocalImageStore(tmp_path).delete("missing.jpg") is False


def test_delete_ignores_directory_parts_in_ref(tmp_path: Path) -> None:
    outside = tmp_path / "outside.jpg"
    outside.write_bytes(b"keep")
    store = LocalImageStore(tmp_path / "images")

    assert store.delete("../outside.jpg") is False
    assert outside.exists()


def _scan(store: LocalImageStore, database: TicketDatabase, registry: ParserRegistry, user_id: str, ocr: FakeOcr):
    return run_ticket_scan(
        TicketScanRequest(user_id=user_id, image_bytes=b"same-photo"),
        ocr=ocr,
        images=store,
        registry=registry,
        database=database,
    )


def test_deleting_a_ticket_keeps_other_tickets_with_identical_images(
    tmp_path: Path, database: TicketDatabase, registry: ParserRegistry
) -> None:
    store = LocalImageStore(tmp_path / "images")
    first = _scan(store, database, registry, "user-1", FakeOcr(TICKET_TEXT))
    second = _scan(store, database, registry, "user-2", FakeOcr(TICKET_TEXT))

    delete_ticket(database, "user-1", first.ticket.id, images=store)

    assert not (tmp_path / "images" / first.ticket.image_ref).exists()
    assert (tmp_path / "images" / second.ticket.image_ref).read_bytes() == b"same-photo"


def test_failed_rescan_keeps_the_existing_ticket_image(
    tmp_path: Path, database: TicketDatabase, registry: ParserRegistry
) -> None:
    store = LocalImageStore(tmp_path / "images")
    existing = _scan(store, database, registry, "user-1", FakeOcr(TICKET_TEXT))

    with pytest.raises(ServiceUnavailableError):
        _scan(store, database, registry, "user-1", FakeOcr(fail=True))

    assert (tmp_path / "images" / existing.ticket.image_ref).exists()
    assert [path.name for path in (tmp_path / "images").iterdir()] == [existing.ticket.image_ref]
    assert list_tickets(database, "user-1").total == 1

"""Shared pytest fixtures for canasta tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from canasta.runtime.category_rules import load_category_classifier
from canasta.runtime.image_store import StoredImage
from canasta.runtime.ocr_client import OcrResult, OcrServiceUnavailable
from canasta.runtime.paths import ProjectPaths
from canasta.runtime.storage import TicketDatabase
from canasta.ticket.categories import CategoryClassifier
from canasta.ticket.parsers import build_default_registry
from canasta.ticket.parsers.registry import ParserRegistry
from canasta.ticket.text import to_lines


class FakeOcr:
    """OCR collaborator returning canned text, or failing like an unreachable service."""

    def __init__(self, text: str = "", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.calls = 0

    def recognize_text(self, image_bytes: bytes, filename: str = "ticket.jpg") -> OcrResult:
        self.calls += 1
        if self.fail:
            raise OcrServiceUnavailable("OCR service error: 503")
        return OcrResult(full_text=self.text, lines=tuple(to_lines(self.text)))


class FakeImageStore:
    """In-memory image store that records uploads and deletions."""

    def __init__(self) -> None:
        self.stored: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def upload(self, image_bytes: bytes, filename: str) -> StoredImage:
        ref = f"img-{len(self.stored) + len(self.deleted) + 1}"
        self.stored[ref] = image_bytes
        return StoredImage(url=f"memory://{ref}", ref=ref)

    def delete(self, ref: str) -> bool:
        self.deleted.append(ref)
        return self.stored.pop(ref, None) is not None


@pytest.fixture
def database(tmp_path: Path) -> TicketDatabase:
    return TicketDatabase(tmp_path / "canasta.sqlite3")


@pytest.fixture
def registry() -> ParserRegistry:
    return build_default_registry()


@pytest.fixture
def classifier(tmp_path: Path) -> CategoryClassifier:
    return load_category_classifier((str(ProjectPaths(tmp_path).default_category_rules),))


@pytest.fixture
def images() -> FakeImageStore:
    return FakeImageStore()

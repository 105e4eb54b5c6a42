"""Local file storage for uploaded ticket images."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path

from canasta.runtime.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredImage:
    url: str
    ref: str


class LocalImageStore:
    """Image files under one directory, one file per upload.

    Each upload gets its own reference (a random id plus the original
    extension), so deleting one ticket's image never touches another
    ticket that was scanned from identical bytes.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def upload(self, image_bytes: bytes, filename: str) -> StoredImage:
        self.root.mkdir(parents=True, exist_ok=True)
        ext = Path(filename).suffix.lower() or ".jpg"
        ref = f"{uuid.uuid4().hex}{ext}"
        path = self.root / ref
        path.write_bytes(image_bytes)
        logger.debug("Stored ticket image %s (%d bytes)", ref, len(image_bytes))
        return StoredImage(url=path.as_uri(), ref=ref)

    def delete(self, ref: str) -> bool:
        """Remove a stored image; False when it was not there."""
        path = self.root / Path(ref).name
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Deleted ticket image %s", ref)
        return True

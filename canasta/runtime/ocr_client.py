"""HTTP client for the OCR service."""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx

from canasta.runtime.logging import get_logger
from canasta.ticket.text import to_lines

logger = get_logger(__name__)

OCR_TIMEOUT = 60.0


class OcrServiceUnavailable(RuntimeError):
    """Raised when the OCR service cannot be reached or returns an error."""


@dataclass(frozen=True)
class OcrResult:
    """Text recognized in a ticket image. Empty text is a valid result."""

    full_text: str
    lines: tuple[str, ...] = ()


class HttpOcrClient:
    """Send images to an OCR service exposing ``POST {url}/ocr``.

    The service answers JSON with ``full_text`` (or ``text``) and optionally
    ``lines``; when lines are missing they are derived from the text.
    """

    def __init__(self, url: str, timeout: float = OCR_TIMEOUT) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout

    def recognize_text(self, image_bytes: bytes, filename: str = "ticket.jpg") -> OcrResult:
        logger.info("Sending ticket image to OCR service at %s...", self.url)
        try:
            start_time = time.time()
            response = httpx.post(
                f"{self.url}/ocr",
                files={"file": (filename, image_bytes, "image/jpeg")},
                timeout=self.timeout,
            )
            logger.info("OCR service returned in %.2f seconds", time.time() - start_time)
        except httpx.RequestError as e:
            logger.error("Failed to connect to OCR service: %s", e)
            raise OcrServiceUnavailable(f"Failed to connect to OCR service: {e}") from e

        if response.status_code != 200:
            logger.error("OCR service error: %s", response.status_code)
            raise OcrServiceUnavailable(f"OCR service error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise OcrServiceUnavailable("OCR service returned invalid JSON") from e

        full_text = payload.get("full_text") or payload.get("text") or ""
        lines = payload.get("lines")
        if not lines:
            lines = to_lines(full_text)
        return OcrResult(full_text=full_text, lines=tuple(str(line) for line in lines))

"""HTTP OCR client against a patched transport."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from _pytest.monkeypatch import MonkeyPatch
from canasta.runtime.ocr_client import HttpOcrClient, OcrServiceUnavailable


def _patch_post(monkeypatch: MonkeyPatch, response: httpx.Response | Exception) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_post(url: str, **kwargs: Any) -> httpx.Response:
        calls.append({"url": url, **kwargs})
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(httpx, "post", fake_post)
    return calls


def test_recognize_text_with_lines(monkeypatch: MonkeyPatch) -> None:
    calls = _patch_post(
        monkeypatch,
        httpx.Response(
            200,
            json={"full_text": "LECHE 4.500\nTOTAL 4.500", "lines": ["LECHE 4.500", "TOTAL 4.500"]},
        ),
    )

    result = HttpOcrClient("http://ocr.local/", timeout=5).recognize_text(b"jpeg", "d1.jpg")

    assert result.full_text == "LECHE 4.500\nTOTAL 4.500"
    assert result.lines == ("LECHE 4.500", "TOTAL 4.500")
    assert calls[0]["url"] == "http://ocr.local/ocr"
    assert calls[0]["files"]["file"][0] == "d1.jpg"
    assert calls[0]["timeout"] == 5


def test_recognize_text_derives_lines_from_text(monkeypatch: MonkeyPatch) -> None:
    _patch_post(monkeypatch, httpx.Response(200, json={"text": "  LECHE 4.500 \n\nTOTAL 4.500\n"}))

    result = HttpOcrClient("http://ocr.local").recognize_text(b"jpeg")

    assert result.lines == ("LECHE 4.500", "TOTAL 4.500")


def test_recognize_text_empty_result_is_valid(monkeypatch: MonkeyPatch) -> None:
    _patch_post(monkeypatch, httpx.Response(200, json={}))

    result = HttpOcrClient("http://ocr.local").recognize_text(b"jpeg")

    assert result.full_text == ""
    assert result.lines == ()


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, text="busy"),
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ],
)
def test_recognize_text_failures_raise_service_unavailable(
    monkeypatch: MonkeyPatch, response: httpx.Response | Exception
) -> None:
    _patch_post(monkeypatch, response)

    with pytest.raises(OcrServiceUnavailable):
        HttpOcrClient("http://ocr.local").recognize_text(b"jpeg")

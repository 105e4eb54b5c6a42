"""Text normalization helpers shared by parsers and matching."""

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Upper-case text and collapse every whitespace run to one space."""
    return _WHITESPACE.sub(" ", text.upper()).strip()


def to_lines(text: str) -> list[str]:
    """Split OCR text into trimmed, non-empty lines in their original order."""
    lines = []
    for raw in text.split("\n"):
        line = raw.strip()
        if line:
            lines.append(line)
    return lines


def strip_accents(text: str) -> str:
    """Remove diacritics (NFD decomposition without combining marks)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()

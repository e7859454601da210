"""Fuzzy string matching shared by duplicate detection and hybrid merging."""

from __future__ import annotations

import unicodedata
from difflib import SequenceMatcher
from typing import Final

FUZZY_MATCH_THRESHOLD: Final[float] = 0.7


def normalize_text(value: str | None) -> str:
    if not value:
        return ""
    text = unicodedata.normalize("NFKC", value)
    text = text.casefold()
    text = "".join(ch for ch in text if not unicodedata.category(ch).startswith("P"))
    return "".join(text.split())


def similarity(left: str | None, right: str | None) -> float:
    a, b = normalize_text(left), normalize_text(right)
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b).ratio()


def fuzzy_match(left: str | None, right: str | None) -> bool:
    """Equal, contained in one another, or similar above the threshold."""

    a, b = normalize_text(left), normalize_text(right)
    if not a or not b:
        return False
    if a == b or a in b or b in a:
        return True
    return SequenceMatcher(None, a, b).ratio() >= FUZZY_MATCH_THRESHOLD

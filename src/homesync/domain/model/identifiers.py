"""Helpers for ``<domain>.<object>`` external identifiers."""

from __future__ import annotations

import re
from typing import Final

UNKNOWN_DOMAIN: Final[str] = "unknown"
UNKNOWN_NAME: Final[str] = "Unknown Entity"
DISAMBIGUATION_SUFFIX: Final[str] = "_ha"

_EXTERNAL_ID_RE = re.compile(r"^[a-z0-9_]+\.[a-z0-9_]+$")


def is_valid_external_id(value: str | None) -> bool:
    return value is not None and _EXTERNAL_ID_RE.match(value) is not None


def extract_domain(identifier: str | None) -> str:
    if not identifier or "." not in identifier:
        return UNKNOWN_DOMAIN
    domain = identifier.split(".", 1)[0]
    return domain or UNKNOWN_DOMAIN


def object_id(identifier: str | None) -> str:
    if not identifier:
        return ""
    return identifier.split(".", 1)[1] if "." in identifier else identifier


def display_name_from_id(identifier: str | None) -> str:
    """``light.living_room`` -> ``Living Room``."""

    obj = object_id(identifier)
    if obj:
        words = [word.capitalize() for word in obj.split("_") if word]
        if words:
            return " ".join(words)
    return identifier or UNKNOWN_NAME


def disambiguated(identifier: str) -> str:
    return f"{identifier}{DISAMBIGUATION_SUFFIX}"

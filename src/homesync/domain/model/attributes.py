"""Opaque attribute maps reported by the external source."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from homesync.domain.errors import ValidationError

type AttributeValue = (
    str | int | float | bool | None | list[AttributeValue] | dict[str, AttributeValue]
)
type Attributes = dict[str, AttributeValue]

DELETED_FROM_SOURCE = "deleted_from_source"
DELETED_AT = "deleted_at"
DELETION_MARKERS = (DELETED_FROM_SOURCE, DELETED_AT)


def normalize_attributes(raw: Mapping[str, object] | None) -> Attributes:
    """Copy ``raw`` into a plain attribute map, rejecting values outside the union."""

    if raw is None:
        return {}
    return {str(key): _normalize_value(value, path=str(key)) for key, value in raw.items()}


def _normalize_value(value: object, *, path: str) -> AttributeValue:
    if value is None or isinstance(value, str | bool | int | float):
        return value
    if isinstance(value, Mapping):
        return {
            str(key): _normalize_value(item, path=f"{path}.{key}")
            for key, item in value.items()  # type: ignore[reportUnknownVariableType]
        }
    if isinstance(value, Sequence) and not isinstance(value, bytes | bytearray):
        return [
            _normalize_value(item, path=f"{path}[{index}]")
            for index, item in enumerate(value)  # type: ignore[reportUnknownArgumentType]
        ]
    raise ValidationError(f"Unsupported attribute value at {path!r}: {type(value).__name__}")


def strip_deletion_markers(attributes: Attributes) -> Attributes:
    return {key: value for key, value in attributes.items() if key not in DELETION_MARKERS}


def has_deletion_marker(attributes: Attributes) -> bool:
    return attributes.get(DELETED_FROM_SOURCE) is True

"""Error taxonomy shared by the reconciliation components.

Every error carries the offending external identifier and/or local entity id when
known, plus a ``retryable`` hint for callers and schedulers. Per-record failures are
captured into aggregate results; only whole-run failures propagate.
"""

from __future__ import annotations

from typing import ClassVar


class RegistryError(Exception):
    """Base class for registry and reconciliation failures."""

    kind: ClassVar[str] = "registry"
    retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        *,
        external_id: str | None = None,
        entity_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.external_id = external_id
        self.entity_id = entity_id


class ValidationError(RegistryError):
    """Malformed input, e.g. a state record without an external identifier."""

    kind = "validation"


class ConflictError(RegistryError):
    """Irreconcilable state such as an identifier collision with an external record."""

    kind = "conflict"


class ConstraintViolation(RegistryError):
    """The operation would break a uniqueness or source invariant."""

    kind = "constraint"


class ConnectivityError(RegistryError):
    """The external source could not be reached or returned an unusable payload."""

    kind = "connectivity"
    retryable = True


class NotFoundError(RegistryError):
    """The operation targets a record that does not exist."""

    kind = "not_found"


__all__ = [
    "ConflictError",
    "ConnectivityError",
    "ConstraintViolation",
    "NotFoundError",
    "RegistryError",
    "ValidationError",
]

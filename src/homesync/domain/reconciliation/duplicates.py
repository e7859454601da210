"""Duplicate prevention for records about to enter the registry."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from homesync.domain.errors import ConstraintViolation
from homesync.domain.model import Confidence, object_id

from .contracts import DuplicateCheckResult, DuplicateMatch
from .matching import fuzzy_match

if TYPE_CHECKING:
    from uuid import UUID

    from homesync.domain.ports import EntityRepository

log = getLogger(__name__)


@dataclass(slots=True)
class DuplicatePreventer:
    """Match a candidate ``(external_id, domain, name)`` against the registry.

    Exact hits on the external id or the local entity id are high confidence; fuzzy
    name or identifier matches within the same domain are medium confidence.
    """

    entities: EntityRepository

    def check(
        self,
        external_id: str,
        domain: str | None = None,
        name: str | None = None,
    ) -> DuplicateCheckResult:
        matches: list[DuplicateMatch] = []
        seen: set[UUID] = set()

        def add(match: DuplicateMatch) -> None:
            if match.entity.id not in seen:
                seen.add(match.entity.id)
                matches.append(match)

        by_external_id = self.entities.get_by_external_id(external_id)
        if by_external_id is not None:
            add(DuplicateMatch(by_external_id, "external id already registered", Confidence.HIGH))

        by_entity_id = self.entities.get_by_entity_id(external_id)
        if by_entity_id is not None:
            add(DuplicateMatch(by_entity_id, "entity id already in use", Confidence.HIGH))

        if domain:
            candidate_object = object_id(external_id)
            for entity in self.entities.list_by_source_and_domain(domain=domain):
                if entity.id in seen:
                    continue
                if name and fuzzy_match(name, entity.name):
                    add(DuplicateMatch(entity, f"similar name {entity.name!r}", Confidence.MEDIUM))
                elif fuzzy_match(candidate_object, object_id(entity.entity_id)):
                    add(
                        DuplicateMatch(
                            entity, f"similar identifier {entity.entity_id!r}", Confidence.MEDIUM
                        )
                    )

        confidence = max(
            (match.confidence for match in matches),
            key=lambda value: value.rank,
            default=Confidence.NONE,
        )
        if matches:
            log.debug(
                "Duplicate check for %s: %d match(es), confidence %s",
                external_id,
                len(matches),
                confidence,
            )
        return DuplicateCheckResult(duplicates=tuple(matches), confidence=confidence)

    def validate_before_create(
        self,
        external_id: str,
        domain: str | None = None,
        name: str | None = None,
    ) -> DuplicateCheckResult:
        """Strict variant for direct creation; raises on a high-confidence duplicate."""

        result = self.check(external_id, domain, name)
        if result.confidence is Confidence.HIGH:
            reasons = "; ".join(match.reason for match in result.duplicates)
            raise ConstraintViolation(
                f"Duplicate entity {external_id!r}: {reasons}",
                external_id=external_id,
                entity_id=result.duplicates[0].entity.entity_id,
            )
        return result

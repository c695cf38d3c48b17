from typing import List, Optional

from cv_intelligence.models.models import (
    PERSONAL_FIELDS, CandidateProfile, Entity, EntityType, EvidenceEntry, EvidenceMap, is_sentinel,
)
from cv_intelligence.utils.logging_config import get_logger

logger = get_logger(__name__)

# personal field -> entity type that should back it
FIELD_ENTITY_TYPES = {
    "email": EntityType.EMAIL,
    "phone": EntityType.PHONE,
    "linkedin": EntityType.LINKEDIN,
}


def _matches(value: str, entity: Entity, partial: bool) -> bool:
    """Entity text covers the value; with partial, the value may also just contain it."""
    a, b = value.strip().lower(), entity.value.strip().lower()
    if not a or not b:
        return False
    return a in b or (partial and b in a)


def find_supporting_entity(field_name: str, value: str, entities: List[Entity]) -> Optional[Entity]:
    """Entity backing a field value; entities of the field's own type win.

    Only an entity of the field's own type may sit inside a longer value.
    """
    preferred = FIELD_ENTITY_TYPES.get(field_name)
    fallback = None
    for entity in entities:
        own_type = preferred is not None and entity.type == preferred
        if not _matches(value, entity, partial=own_type):
            continue
        if preferred is None or own_type:
            return entity
        if fallback is None:
            fallback = entity
    return fallback


def bind_evidence(profile: CandidateProfile, entities: List[Entity], raw_text: str = "") -> EvidenceMap:
    """Anchor the profile's personal fields to entity spans in the source text.

    Fields without a supporting entity are simply absent from the map.
    """
    evidence: EvidenceMap = {}
    for field_name in PERSONAL_FIELDS:
        value = getattr(profile.personal, field_name)
        if is_sentinel(value):
            continue
        entity = find_supporting_entity(field_name, value, entities)
        if entity is None:
            continue
        evidence[field_name] = EvidenceEntry(
            value=entity.value,
            start_offset=entity.start_offset,
            end_offset=entity.end_offset,
            context_window=entity.context_window,
            confidence=entity.confidence,
        )
    logger.debug(f"Bound evidence for {len(evidence)}/{len(PERSONAL_FIELDS)} personal fields")
    return evidence

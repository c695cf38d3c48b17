"""
Deterministic pattern-based entity extraction.

Entities are the ground truth evidence is anchored to: every entity's value is
exactly raw_text[start_offset:end_offset].
"""
import re
from functools import lru_cache
from typing import List, Tuple

from cv_intelligence.helpers.vocabulary import DEFAULT_VOCABULARY, SkillVocabulary
from cv_intelligence.models.models import Entity, EntityType
from cv_intelligence.utils.logging_config import get_logger
from cv_intelligence.utils.utils import context_window

logger = get_logger(__name__)

CONTEXT_RADIUS = 30

EMAIL_CONFIDENCE = 0.95
PHONE_CONFIDENCE = 0.90
LINKEDIN_CONFIDENCE = 0.98
MONTH_DATE_CONFIDENCE = 0.85
YEAR_CONFIDENCE = 0.80
SKILL_WITH_IMPACT_CONFIDENCE = 0.95
SKILL_CONFIDENCE = 0.70

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
LINKEDIN_RE = re.compile(r"(?:https?://)?(?:www\.)?linkedin\.com/in/[A-Za-z0-9_-]+/?", re.IGNORECASE)
PHONE_RE = re.compile(r"(?<![\w+])\+?\d{0,3}[ .-]?(?:\(\d{1,4}\)[ .-]?)?\d[\d .-]{4,}\d(?!\w)")
# "2019-2021", "2019 - 01", "2019-01 - 2021-01" look like phones but are years
YEAR_RUN_RE = re.compile(r"(?:19|20)\d{2}(?:(?:\s*[-/.–]\s*|\s+)(?:(?:19|20)\d{2}|\d{1,2}))*")

_MONTH_NAMES = (
    r"Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?"
    r"|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?"
)
MONTH_YEAR_RE = re.compile(rf"\b(?:{_MONTH_NAMES})\.?,?\s+(?:19|20)\d{{2}}(?!\d)", re.IGNORECASE)
NUMERIC_MONTH_RE = re.compile(r"(?<!\d)(?:0?[1-9]|1[0-2])/(?:19|20)\d{2}(?!\d)")
YEAR_RE = re.compile(r"(?<!\w)(?:19|20)\d{2}(?!\w)")

_TYPE_ORDER = {t: i for i, t in enumerate(EntityType)}


@lru_cache(maxsize=8)
def skill_patterns(vocabulary: SkillVocabulary) -> Tuple[Tuple[str, re.Pattern], ...]:
    return tuple(
        (skill, re.compile(rf"(?<![A-Za-z0-9]){re.escape(skill)}(?![A-Za-z0-9])", re.IGNORECASE))
        for skill in vocabulary.skills
    )


def _entity(raw_text: str, etype: EntityType, start: int, end: int, confidence: float) -> Entity:
    return Entity(
        type=etype,
        value=raw_text[start:end],
        start_offset=start,
        end_offset=end,
        context_window=context_window(raw_text, start, end, CONTEXT_RADIUS),
        confidence=confidence,
    )


def _digit_count(s: str) -> int:
    return sum(1 for c in s if c.isdigit())


def find_phones(raw_text: str) -> List[Tuple[int, int]]:
    spans = []
    for m in PHONE_RE.finditer(raw_text):
        start, end = m.start(), m.end()
        # leading separators captured by the optional prefix are not part of the number
        while start < end and raw_text[start] in " .-":
            start += 1
        value = raw_text[start:end]
        if not 7 <= _digit_count(value) <= 15:
            continue
        if YEAR_RUN_RE.fullmatch(value):
            continue
        spans.append((start, end))
    return spans


def extract_entities(raw_text: str, vocabulary: SkillVocabulary = DEFAULT_VOCABULARY) -> List[Entity]:
    """Find e-mails, phones, LinkedIn URLs, dates and vocabulary skills.

    Overlapping matches are all kept. The result is sorted by (start, end, type).
    """
    if not raw_text:
        return []

    entities: List[Entity] = []

    for m in EMAIL_RE.finditer(raw_text):
        entities.append(_entity(raw_text, EntityType.EMAIL, m.start(), m.end(), EMAIL_CONFIDENCE))

    for start, end in find_phones(raw_text):
        entities.append(_entity(raw_text, EntityType.PHONE, start, end, PHONE_CONFIDENCE))

    for m in LINKEDIN_RE.finditer(raw_text):
        entities.append(_entity(raw_text, EntityType.LINKEDIN, m.start(), m.end(), LINKEDIN_CONFIDENCE))

    for m in MONTH_YEAR_RE.finditer(raw_text):
        entities.append(_entity(raw_text, EntityType.DATE, m.start(), m.end(), MONTH_DATE_CONFIDENCE))
    for m in NUMERIC_MONTH_RE.finditer(raw_text):
        entities.append(_entity(raw_text, EntityType.DATE, m.start(), m.end(), MONTH_DATE_CONFIDENCE))
    for m in YEAR_RE.finditer(raw_text):
        entities.append(_entity(raw_text, EntityType.DATE, m.start(), m.end(), YEAR_CONFIDENCE))

    for _, pattern in skill_patterns(vocabulary):
        for m in pattern.finditer(raw_text):
            window = context_window(raw_text, m.start(), m.end(), CONTEXT_RADIUS)
            confidence = SKILL_WITH_IMPACT_CONFIDENCE if vocabulary.has_impact_verb(window) else SKILL_CONFIDENCE
            entities.append(_entity(raw_text, EntityType.SKILL, m.start(), m.end(), confidence))

    entities.sort(key=lambda e: (e.start_offset, e.end_offset, _TYPE_ORDER[e.type]))
    logger.debug(f"Extracted {len(entities)} entities from {len(raw_text)} characters")
    return entities


def first_of_type(entities: List[Entity], etype: EntityType):
    for e in entities:
        if e.type == etype:
            return e
    return None

"""
Job-side requirement extraction.

The structured-extraction backend is asked for a RequirementSet. Its answer is
topped up with vocabulary hits it missed and checked against the role family
the job title implies. Anything unusable falls back to a verbatim heuristic scan.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

from cv_intelligence.helpers.prompts import REQUIREMENTS_PROMPT
from cv_intelligence.helpers.vocabulary import DEFAULT_VOCABULARY, RoleFamily, SkillVocabulary
from cv_intelligence.models.models import RequirementSet
from cv_intelligence.services.backends import (
    SOURCE_HEURISTIC, SOURCE_MODEL, ExtractionOk, StructuredExtractionBackend, structured_extract,
)
from cv_intelligence.services.entities import skill_patterns
from cv_intelligence.utils.logging_config import get_logger

logger = get_logger(__name__)

EXPERIENCE_RE = re.compile(r"\d+\s*\+?\s*(?:years?|yrs?)\b[^.;\n]*", re.IGNORECASE)
_CLAUSE_SPLIT_RE = re.compile(r"(?<=[.!?;])\s+|\n+")


@dataclass
class RequirementExtraction:
    requirements: RequirementSet
    source: str = SOURCE_MODEL
    error: Optional[str] = None


def _contains(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def word_pattern(words) -> Optional[re.Pattern]:
    words = [w for w in words if w]
    if not words:
        return None
    alternation = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"(?<![A-Za-z0-9])(?:{alternation})(?![A-Za-z0-9])", re.IGNORECASE)


def split_clauses(text: str) -> List[str]:
    return [c.strip() for c in _CLAUSE_SPLIT_RE.split(text or "") if c and c.strip()]


def scan_skills(text: str, vocabulary: SkillVocabulary) -> List[str]:
    """Vocabulary skills found in text, sliced verbatim, in order of first appearance."""
    hits = []
    for _, pattern in skill_patterns(vocabulary):
        m = pattern.search(text)
        if m:
            hits.append((m.start(), m.end(), text[m.start():m.end()]))
    hits.sort()
    out, seen = [], set()
    for _, _, phrase in hits:
        if phrase.lower() not in seen:
            seen.add(phrase.lower())
            out.append(phrase)
    return out


def detect_role_family(text: str, vocabulary: SkillVocabulary) -> Optional[RoleFamily]:
    """Family of the earliest title marker in the text, if any."""
    best, best_pos = None, None
    for family in vocabulary.role_families:
        pattern = word_pattern(family.title_markers)
        m = pattern.search(text) if pattern else None
        if m and (best_pos is None or m.start() < best_pos):
            best, best_pos = family, m.start()
    return best


def off_family_share(skills: List[str], family: RoleFamily, vocabulary: SkillVocabulary) -> float:
    if not skills:
        return 0.0
    others = [f for f in vocabulary.role_families if f.name != family.name]
    off = 0
    for skill in skills:
        low = skill.lower()
        in_family = any(m == low or _word_contains(low, m) for m in family.skill_markers)
        in_other = any(m == low or _word_contains(low, m) for f in others for m in f.skill_markers)
        if in_other and not in_family:
            off += 1
    return off / len(skills)


def _word_contains(haystack: str, needle: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(needle)}(?![a-z0-9])", haystack) is not None


def heuristic_requirements(text: str, vocabulary: SkillVocabulary = DEFAULT_VOCABULARY) -> RequirementSet:
    """Deterministic requirement scan; every phrase is a verbatim substring of text."""
    skills = scan_skills(text, vocabulary)

    marker_re = word_pattern(vocabulary.requirement_markers)
    degree_re = word_pattern(vocabulary.degree_keywords)
    # skills such as "Scrum Master" must not read as a degree
    degree_like_skills = word_pattern([s for s in vocabulary.skills
                                   if degree_re and degree_re.search(s)])

    must_have, experience, education = [], [], []
    for clause in split_clauses(text):
        if marker_re and marker_re.search(clause):
            must_have.extend(scan_skills(clause, vocabulary))
        experience.extend(m.group(0).strip() for m in EXPERIENCE_RE.finditer(clause))
        masked = degree_like_skills.sub(" ", clause) if degree_like_skills else clause
        if degree_re and degree_re.search(masked):
            education.append(clause)

    return RequirementSet(skills=skills, must_have=must_have, experience=experience, education=education)


class RequirementExtractor:
    def __init__(
        self,
        backend: Optional[StructuredExtractionBackend] = None,
        vocabulary: SkillVocabulary = DEFAULT_VOCABULARY,
        role_mismatch_threshold: float = 0.5,
        max_input_chars: int = 12000,
    ):
        self.backend = backend
        self.vocabulary = vocabulary
        self.role_mismatch_threshold = role_mismatch_threshold
        self.max_input_chars = max_input_chars

    def extract(self, job_text: str) -> RequirementExtraction:
        if self.backend is None:
            return self._fallback(job_text, "no extraction backend configured")

        prompt = REQUIREMENTS_PROMPT.format(doc=job_text[:self.max_input_chars])
        outcome = structured_extract(self.backend, prompt, RequirementSet)
        if not isinstance(outcome, ExtractionOk):
            return self._fallback(job_text, outcome.reason)

        # judge the model's own answer before topping it up from the text
        family = detect_role_family(job_text, self.vocabulary)
        if family is not None:
            share = off_family_share(outcome.value.required_skills(), family, self.vocabulary)
            if share > self.role_mismatch_threshold:
                return self._fallback(
                    job_text,
                    f"role mismatch: {share:.0%} of extracted skills fall outside the {family.name} role family",
                )

        requirements = self._merge_missed(outcome.value, job_text)
        logger.info(f"Extracted {len(requirements.skills)} skills, {len(requirements.must_have)} must-haves from job text")
        return RequirementExtraction(requirements=requirements, source=SOURCE_MODEL)

    def _merge_missed(self, requirements: RequirementSet, job_text: str) -> RequirementSet:
        skills = list(requirements.skills)
        known = skills + requirements.must_have
        added = []
        for hit in scan_skills(job_text, self.vocabulary):
            if not any(_contains(hit, k) for k in known):
                skills.append(hit)
                known.append(hit)
                added.append(hit)
        if added:
            logger.debug(f"Merged {len(added)} vocabulary skills missed by the model: {added}")
        return requirements.model_copy(update={"skills": skills})

    def _fallback(self, job_text: str, reason: str) -> RequirementExtraction:
        logger.warning(f"Requirement extraction fell back to heuristics: {reason}")
        return RequirementExtraction(
            requirements=heuristic_requirements(job_text, self.vocabulary),
            source=SOURCE_HEURISTIC,
            error=reason,
        )

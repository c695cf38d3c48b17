"""
Résumé-side profile extraction.

The structured-extraction backend fills a CandidateProfile. When it cannot, the
profile is rebuilt from the entity list and closed-vocabulary scans, so the
result is always well formed.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

from cv_intelligence.helpers.dates import DATE_RANGE_RE, find_date_range
from cv_intelligence.helpers.prompts import PROFILE_PROMPT
from cv_intelligence.helpers.vocabulary import DEFAULT_VOCABULARY, SkillVocabulary
from cv_intelligence.models.models import (
    DATE_NOT_SPECIFIED, EMAIL_NOT_FOUND, LINKEDIN_NOT_FOUND, NAME_NOT_FOUND, PHONE_NOT_FOUND,
    CandidateProfile, EducationEntry, Entity, EntityType, ExperienceEntry, PersonalInfo,
)
from cv_intelligence.services.backends import (
    SOURCE_HEURISTIC, SOURCE_MODEL, ExtractionOk, StructuredExtractionBackend, structured_extract,
)
from cv_intelligence.services.entities import first_of_type
from cv_intelligence.services.requirements import scan_skills, word_pattern
from cv_intelligence.utils.logging_config import get_logger

logger = get_logger(__name__)

_BULLET_RE = re.compile(r"^\s*(?:[-*•·▪–]|\d+[.)])\s+")
_HEADING_SPLIT_RE = re.compile(r"\s+at\s+|\s*[|,@–—]\s*|\s+-\s+", re.IGNORECASE)
_EDU_SPLIT_RE = re.compile(r"\s*[,|;–—]\s*|\s+-\s+")
_YEAR_RE = re.compile(r"(?<!\d)(?:19|20)\d{2}(?!\d)")
_CERT_CLAUSE_RE = re.compile(r"[^,;\n.]+(?:\.(?!\s)[^,;\n.]*)*")
MAX_HEADING_WORDS = 12


@dataclass
class ProfileExtraction:
    profile: CandidateProfile
    source: str = SOURCE_MODEL
    error: Optional[str] = None


def _dedupe(items: List[str]) -> List[str]:
    out, seen = [], set()
    for item in items:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(item.strip())
    return out


def name_from_email(email: str) -> str:
    """'jane.doe42@example.com' -> 'Jane Doe'."""
    local = email.split("@", 1)[0]
    parts = [re.sub(r"\d+", "", p) for p in re.split(r"[._+-]+", local)]
    parts = [p for p in parts if p]
    if not parts:
        return NAME_NOT_FOUND
    return " ".join(p.capitalize() for p in parts)


def enforce_certifications(profile: CandidateProfile, text: str, vocabulary: SkillVocabulary) -> CandidateProfile:
    """Certifications only survive when the source text says so explicitly."""
    if profile.certifications and not vocabulary.has_certification_marker(text):
        logger.debug(f"Dropping {len(profile.certifications)} certifications without a marker in the source")
        return profile.model_copy(update={"certifications": []})
    return profile


def _is_bullet(line: str) -> bool:
    return bool(_BULLET_RE.match(line))


def _strip_bullet(line: str) -> str:
    return _BULLET_RE.sub("", line, count=1).strip()


def _personal(entities: List[Entity]) -> PersonalInfo:
    email = first_of_type(entities, EntityType.EMAIL)
    phone = first_of_type(entities, EntityType.PHONE)
    linkedin = first_of_type(entities, EntityType.LINKEDIN)
    return PersonalInfo(
        name=name_from_email(email.value) if email else NAME_NOT_FOUND,
        email=email.value if email else EMAIL_NOT_FOUND,
        phone=phone.value if phone else PHONE_NOT_FOUND,
        linkedin=linkedin.value if linkedin else LINKEDIN_NOT_FOUND,
    )


def _experience(lines: List[str], vocabulary: SkillVocabulary) -> List[ExperienceEntry]:
    role_re = word_pattern(vocabulary.role_keywords)
    if role_re is None:
        return []

    entries = []
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        if not line or _is_bullet(line) or len(line.split()) > MAX_HEADING_WORDS or not role_re.search(line):
            i += 1
            continue

        dates = find_date_range(line)
        j = i + 1
        if dates is None and j < len(lines) and not _is_bullet(lines[j]):
            dates = find_date_range(lines[j])
            if dates is not None:
                j += 1

        heading = DATE_RANGE_RE.sub(" ", line).strip(" ,|-–()[]") if dates else line

        role, company = _split_heading(heading, role_re)

        achievements = []
        while j < len(lines) and (_is_bullet(lines[j]) or not lines[j].strip()):
            if lines[j].strip():
                achievements.append(_strip_bullet(lines[j]))
            j += 1

        block = "\n".join([heading] + achievements)
        entries.append(ExperienceEntry(
            company=company,
            role=role,
            start_date=dates[0] if dates else DATE_NOT_SPECIFIED,
            end_date=dates[1] if dates else DATE_NOT_SPECIFIED,
            achievements=achievements,
            skills_used=scan_skills(block, vocabulary),
            impact_verbs=_dedupe(vocabulary.impact_verbs_in(block)),
        ))
        i = j
    return entries


def _split_heading(heading: str, role_re: re.Pattern):
    parts = [p.strip() for p in _HEADING_SPLIT_RE.split(heading) if p and p.strip()]
    role, company = "", ""
    for part in parts:
        if not role and role_re.search(part):
            role = part
        elif not company:
            company = part
    return role or heading, company


def _education(lines: List[str], vocabulary: SkillVocabulary) -> List[EducationEntry]:
    degree_re = word_pattern(vocabulary.degree_keywords)
    if degree_re is None:
        return []
    degree_like_skills = word_pattern([s for s in vocabulary.skills if degree_re.search(s)])
    field_re = word_pattern(vocabulary.study_fields)
    institution_re = word_pattern(vocabulary.institution_markers)

    entries = []
    for raw in lines:
        line = _strip_bullet(raw) if _is_bullet(raw) else raw.strip()
        masked = degree_like_skills.sub(" ", line) if degree_like_skills else line
        if not line or not degree_re.search(masked):
            continue
        segments = [s.strip() for s in _EDU_SPLIT_RE.split(line) if s and s.strip()]
        degree = next((s for s in segments if degree_re.search(s)), "")
        degree = re.split(r"\s+in\s+", degree, maxsplit=1)[0].strip()
        degree = _YEAR_RE.sub("", degree).strip(" ,()")
        field_match = field_re.search(line) if field_re else None
        institution = next((s for s in segments if institution_re and institution_re.search(s)), "")
        years = _YEAR_RE.findall(line)
        entries.append(EducationEntry(
            institution=_YEAR_RE.sub("", institution).strip(" ,()"),
            degree=degree,
            field=field_match.group(0) if field_match else "",
            year=years[-1] if years else "",
        ))
    return entries


def _certifications(text: str, vocabulary: SkillVocabulary) -> List[str]:
    out = []
    for m in _CERT_CLAUSE_RE.finditer(text):
        clause = _strip_bullet(m.group(0)) if _is_bullet(m.group(0)) else m.group(0).strip()
        if clause and vocabulary.has_certification_marker(clause):
            out.append(clause)
    return _dedupe(out)


def heuristic_profile(text: str, entities: List[Entity],
                      vocabulary: SkillVocabulary = DEFAULT_VOCABULARY) -> CandidateProfile:
    """Profile built only from entities and vocabulary scans."""
    lines = text.splitlines()
    skills = _dedupe([e.value for e in entities if e.type == EntityType.SKILL])
    profile = CandidateProfile(
        personal=_personal(entities),
        experience=_experience(lines, vocabulary),
        education=_education(lines, vocabulary),
        skills=skills,
        certifications=_certifications(text, vocabulary),
    )
    return enforce_certifications(profile, text, vocabulary)


class ProfileExtractor:
    def __init__(
        self,
        backend: Optional[StructuredExtractionBackend] = None,
        vocabulary: SkillVocabulary = DEFAULT_VOCABULARY,
        max_input_chars: int = 12000,
    ):
        self.backend = backend
        self.vocabulary = vocabulary
        self.max_input_chars = max_input_chars

    def extract(self, resume_text: str, entities: List[Entity]) -> ProfileExtraction:
        if self.backend is None:
            return self._fallback(resume_text, entities, "no extraction backend configured")

        prompt = PROFILE_PROMPT.format(doc=resume_text[:self.max_input_chars])
        outcome = structured_extract(self.backend, prompt, CandidateProfile)
        if not isinstance(outcome, ExtractionOk):
            return self._fallback(resume_text, entities, outcome.reason)

        profile = enforce_certifications(outcome.value, resume_text, self.vocabulary)
        return ProfileExtraction(profile=profile, source=SOURCE_MODEL)

    def _fallback(self, resume_text: str, entities: List[Entity], reason: str) -> ProfileExtraction:
        logger.warning(f"Profile extraction fell back to heuristics: {reason}")
        return ProfileExtraction(
            profile=heuristic_profile(resume_text, entities, self.vocabulary),
            source=SOURCE_HEURISTIC,
            error=reason,
        )

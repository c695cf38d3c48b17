"""
Consistency checks over an extracted profile.

Checks never raise; every finding becomes a ConsistencyIssue and feeds the
validity, coverage and disagreement rates.
"""
from datetime import date
from typing import List, Optional, Tuple

from cv_intelligence.helpers.dates import parse_month
from cv_intelligence.helpers.vocabulary import DEFAULT_VOCABULARY, SkillVocabulary
from cv_intelligence.models.models import (
    PERSONAL_FIELDS, CandidateProfile, ConsistencyIssue, Entity, EntityType, EvidenceMap, ExperienceEntry,
    IssueKind, VerificationResult,
)
from cv_intelligence.services.entities import CONTEXT_RADIUS
from cv_intelligence.utils.logging_config import get_logger
from cv_intelligence.utils.utils import clamp, context_window

logger = get_logger(__name__)


def _label(entry: ExperienceEntry) -> str:
    return f"{entry.role} at {entry.company}"


def check_chronology(profile: CandidateProfile, today: Optional[date] = None) -> List[ConsistencyIssue]:
    """Parseable start dates must not go backwards in list order."""
    issues = []
    previous = None
    for idx, entry in enumerate(profile.experience):
        start = parse_month(entry.start_date, today)
        if start is None:
            continue
        if previous is not None and start < previous[1]:
            issues.append(ConsistencyIssue(
                kind=IssueKind.CHRONOLOGY,
                field=f"experience[{idx}].start_date",
                message=f"{_label(entry)} starts {entry.start_date}, before the previous entry's start "
                        f"{profile.experience[previous[0]].start_date}",
            ))
        previous = (idx, start)
    return issues


def _ranges(profile: CandidateProfile, today: date) -> List[Tuple[int, date, date]]:
    now = date(today.year, today.month, 1)
    out = []
    for idx, entry in enumerate(profile.experience):
        start = parse_month(entry.start_date, today)
        if start is None:
            continue
        # open or unreadable ends run until now
        end = parse_month(entry.end_date, today) or now
        out.append((idx, start, end))
    return out


def check_overlaps(profile: CandidateProfile, today: Optional[date] = None) -> List[ConsistencyIssue]:
    today = today or date.today()
    ranges = _ranges(profile, today)
    issues = []
    for a in range(len(ranges)):
        for b in range(a + 1, len(ranges)):
            i, s1, e1 = ranges[a]
            j, s2, e2 = ranges[b]
            if s1 < e2 and s2 < e1:
                issues.append(ConsistencyIssue(
                    kind=IssueKind.OVERLAP,
                    field=f"experience[{i}],experience[{j}]",
                    message=f"{_label(profile.experience[i])} overlaps {_label(profile.experience[j])}",
                ))
    return issues


def check_date_ranges(profile: CandidateProfile, today: Optional[date] = None) -> List[ConsistencyIssue]:
    today = today or date.today()
    now = date(today.year, today.month, 1)
    issues = []
    for idx, entry in enumerate(profile.experience):
        start = parse_month(entry.start_date, today)
        end = parse_month(entry.end_date, today)
        if start is not None and end is not None and start > end:
            issues.append(ConsistencyIssue(
                kind=IssueKind.DATE_RANGE,
                field=f"experience[{idx}]",
                message=f"{_label(entry)} starts {entry.start_date} after it ends {entry.end_date}",
            ))
        if start is not None and start > now:
            issues.append(ConsistencyIssue(
                kind=IssueKind.FUTURE_DATE,
                field=f"experience[{idx}].start_date",
                message=f"{_label(entry)} starts in the future ({entry.start_date})",
            ))
    return issues


def skill_is_substantiated(skill: str, raw_text: str, entities: List[Entity],
                           vocabulary: SkillVocabulary = DEFAULT_VOCABULARY) -> bool:
    key = skill.strip().lower()
    windows = [e.context_window for e in entities
               if e.type == EntityType.SKILL and (key in e.value.lower() or e.value.lower() in key)]
    if not windows:
        pos = raw_text.lower().find(key)
        if pos < 0:
            return False
        windows = [context_window(raw_text, pos, pos + len(key), CONTEXT_RADIUS)]
    return any(vocabulary.has_impact_verb(w) for w in windows)


def check_skill_evidence(profile: CandidateProfile, raw_text: str, entities: List[Entity],
                         vocabulary: SkillVocabulary = DEFAULT_VOCABULARY) -> List[ConsistencyIssue]:
    issues = []
    for idx, skill in enumerate(profile.skills):
        if not skill.strip():
            continue
        if not skill_is_substantiated(skill, raw_text, entities, vocabulary):
            issues.append(ConsistencyIssue(
                kind=IssueKind.UNSUBSTANTIATED_SKILL,
                field=f"skills[{idx}]",
                message=f"No impact verb near '{skill}' in the source text",
            ))
    return issues


def required_field_count(profile: CandidateProfile) -> int:
    return (len(PERSONAL_FIELDS) + len(profile.experience) + len(profile.education)
            + len(profile.skills) + len(profile.certifications))


def verify_profile(
    profile: CandidateProfile,
    raw_text: str,
    entities: List[Entity],
    evidence: Optional[EvidenceMap] = None,
    vocabulary: SkillVocabulary = DEFAULT_VOCABULARY,
    today: Optional[date] = None,
) -> VerificationResult:
    today = today or date.today()
    issues: List[ConsistencyIssue] = []
    issues += check_chronology(profile, today)
    issues += check_overlaps(profile, today)
    issues += check_date_ranges(profile, today)
    issues += check_skill_evidence(profile, raw_text, entities, vocabulary)

    required = required_field_count(profile)
    n_issues = len(issues)
    n_evidence = len(evidence or {})

    if issues:
        logger.debug(f"Verification found {n_issues} issues across {required} required fields")

    return VerificationResult(
        field_validity_rate=round(clamp((required - n_issues) / required), 4),
        evidence_coverage=round(clamp(n_evidence / required), 4),
        disagreement_rate=round(clamp(n_issues / required), 4),
        issues=issues,
        required_fields=required,
    )

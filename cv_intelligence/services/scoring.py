"""
Composite candidate scoring.

overall = w_must * must_have + w_sem * semantic + w_rec * recency + w_imp * impact,
every component and the total clamped to [0, 1].
"""
from datetime import date
from typing import List, Optional

from cv_intelligence.helpers.dates import months_between, parse_month
from cv_intelligence.helpers.vocabulary import DEFAULT_VOCABULARY, SkillVocabulary
from cv_intelligence.models.models import CandidateProfile, MatchResult, Recommendation, RequirementSet, ScoreResult
from cv_intelligence.models.settings import ScoringSettings, ScoringThresholds, ScoringWeights
from cv_intelligence.services.matching import phrases_match
from cv_intelligence.utils.utils import clamp


def must_have_score(must_have: List[str], candidate_skills: List[str]) -> float:
    musts = [m for m in must_have if m and m.strip()]
    if not musts:
        return 1.0
    hit = sum(1 for m in musts if any(phrases_match(m, c) for c in candidate_skills))
    return hit / len(musts)


def recency_weight(months_ago: int, recent_years: int = 5, mid_years: int = 10) -> float:
    if months_ago <= recent_years * 12:
        return 1.0
    if months_ago <= mid_years * 12:
        return 0.5
    return 0.25


def recency_score(profile: CandidateProfile, settings: ScoringSettings = None, today: Optional[date] = None) -> float:
    """Duration-weighted recency over entries with an interpretable end date."""
    settings = settings or ScoringSettings()
    today = today or date.today()
    now = date(today.year, today.month, 1)

    total_weight = 0.0
    weighted = 0.0
    for entry in profile.experience:
        end = parse_month(entry.end_date, today)
        if end is None:
            continue
        start = parse_month(entry.start_date, today)
        if start is None:
            duration = settings.default_duration_months
        else:
            duration = max(1, months_between(start, end))
        months_ago = max(0, months_between(end, now))
        weighted += duration * recency_weight(months_ago, settings.recent_years, settings.mid_years)
        total_weight += duration

    if total_weight == 0:
        return 0.0
    return clamp(weighted / total_weight)


def impact_count(profile: CandidateProfile, vocabulary: SkillVocabulary = DEFAULT_VOCABULARY) -> int:
    """Impact-verb occurrences in achievements and roles.

    Listed impact_verbs restate those words, so a listed verb only counts when
    the entry's text never uses it.
    """
    count = 0
    for entry in profile.experience:
        found = []
        for text in entry.achievements + [entry.role]:
            found.extend(vocabulary.impact_verbs_in(text))
        listed = {v.strip().lower() for v in entry.impact_verbs if v and v.strip()}
        count += len(found) + len(listed - set(found))
    return count


def impact_score(profile: CandidateProfile, saturation: int = 5,
                 vocabulary: SkillVocabulary = DEFAULT_VOCABULARY) -> float:
    return clamp(impact_count(profile, vocabulary) / max(1, saturation))


def score_candidate(
    profile: CandidateProfile,
    requirements: RequirementSet,
    match: MatchResult,
    semantic_similarity: Optional[float] = None,
    weights: ScoringWeights = None,
    settings: ScoringSettings = None,
    vocabulary: SkillVocabulary = DEFAULT_VOCABULARY,
    today: Optional[date] = None,
) -> ScoreResult:
    settings = settings or ScoringSettings()
    weights = weights or settings.weights

    candidate_skills = match.candidate_skills or profile.all_skills()
    must = must_have_score(requirements.must_have, candidate_skills)
    sem = clamp(semantic_similarity) if semantic_similarity is not None else 0.0
    rec = recency_score(profile, settings, today)
    imp = impact_score(profile, settings.impact_saturation, vocabulary)

    overall = weights.must_have * must + weights.semantic * sem + weights.recency * rec + weights.impact * imp
    return ScoreResult(
        must_have_score=round(clamp(must), 4),
        semantic_score=round(sem, 4),
        recency_score=round(rec, 4),
        impact_score=round(imp, 4),
        overall_score=round(clamp(overall), 4),
    )


def categorize(total: float, thresholds: ScoringThresholds = None) -> Recommendation:
    thresholds = thresholds or ScoringThresholds()
    if total >= thresholds.select_min:
        return Recommendation.SELECT
    if total <= thresholds.reject_max:
        return Recommendation.REJECT
    return Recommendation.NEED_FURTHER_EVAL

from typing import List

from cv_intelligence.models.models import MatchResult


def phrases_match(a: str, b: str) -> bool:
    """Lexical containment in either direction, case-insensitive."""
    a, b = a.strip().lower(), b.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def _clean(phrases: List[str]) -> List[str]:
    out, seen = [], set()
    for p in phrases or []:
        p = (p or "").strip()
        if p and p.lower() not in seen:
            seen.add(p.lower())
            out.append(p)
    return out


def match_percentage(matched: int, required: int) -> int:
    # round half up, not banker's rounding
    return int(100 * matched / max(1, required) + 0.5)


def match_skills(required: List[str], candidate_skills: List[str]) -> MatchResult:
    required = _clean(required)
    candidate = _clean(candidate_skills)

    matched = [r for r in required if any(phrases_match(r, c) for c in candidate)]
    missing = [r for r in required if r not in matched]
    extra = [c for c in candidate if not any(phrases_match(r, c) for r in required)]

    return MatchResult(
        matched=matched,
        missing=missing,
        extra=extra,
        match_percentage=match_percentage(len(matched), len(required)),
        required=required,
        candidate_skills=candidate,
    )

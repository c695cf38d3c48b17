from typing import List

from cv_intelligence.models.models import CandidateRecord, RecordStatus


def _sort_key(record: CandidateRecord):
    return (
        -record.scores.overall_score,
        -record.scores.must_have_score,
        -record.verification.evidence_coverage,
    )


def justify(record: CandidateRecord, rank: int, total: int) -> str:
    s = record.scores
    head = f"Ranked {rank} of {total}"
    if record.status in (RecordStatus.FAILED, RecordStatus.SKIPPED):
        reason = record.verification.issues[0].message if record.verification.issues else record.status.value
        return f"{head}: not scored ({record.status.value}: {reason})."
    parts = [
        f"overall {s.overall_score:.2f}",
        f"must-have {s.must_have_score:.2f}",
        f"semantic {s.semantic_score:.2f}",
        f"recency {s.recency_score:.2f}",
        f"impact {s.impact_score:.2f}",
    ]
    text = f"{head}: " + ", ".join(parts)
    text += f"; {len(record.match.matched)}/{len(record.match.required)} required skills matched"
    if record.match.missing:
        text += f" (missing: {', '.join(record.match.missing[:5])})"
    text += f"; evidence coverage {record.verification.evidence_coverage:.0%}."
    return text


def rank_batch(records: List[CandidateRecord]) -> List[CandidateRecord]:
    """Order records best first and stamp 1-based ranks with a justification.

    Pure: input records are left untouched and ranking twice gives the same result.
    """
    ordered = sorted(records, key=_sort_key)
    total = len(ordered)
    out = []
    for rank, record in enumerate(ordered, start=1):
        out.append(record.model_copy(update={"rank": rank, "justification": justify(record, rank, total)}))
    return out

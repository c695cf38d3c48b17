import os
from pathlib import Path
from typing import List, Tuple

import pandas as pd

from cv_intelligence.models.models import BatchResult, CandidateRecord, is_sentinel
from cv_intelligence.utils.logging_config import get_logger

logger = get_logger(__name__)

REPORT_COLUMNS = [
    "rank", "document_id", "file_name", "name", "status", "recommendation",
    "overall_score", "must_have_score", "semantic_score", "recency_score", "impact_score",
    "match_percentage", "field_validity_rate", "evidence_coverage", "disagreement_rate",
    "issues", "justification",
]


def records_to_frame(records: List[CandidateRecord]) -> pd.DataFrame:
    data = [{
        "rank": r.rank,
        "document_id": r.document_id,
        "file_name": r.file_name,
        "name": "" if is_sentinel(r.profile.personal.name) else r.profile.personal.name,
        "status": r.status.value,
        "recommendation": r.recommendation.value,
        "overall_score": round(r.scores.overall_score, 4),
        "must_have_score": round(r.scores.must_have_score, 4),
        "semantic_score": round(r.scores.semantic_score, 4),
        "recency_score": round(r.scores.recency_score, 4),
        "impact_score": round(r.scores.impact_score, 4),
        "match_percentage": r.match.match_percentage,
        "field_validity_rate": round(r.verification.field_validity_rate, 4),
        "evidence_coverage": round(r.verification.evidence_coverage, 4),
        "disagreement_rate": round(r.verification.disagreement_rate, 4),
        "issues": len(r.verification.issues),
        "justification": r.justification,
    } for r in records] if records else []

    df = pd.DataFrame(data, columns=REPORT_COLUMNS)
    if len(df):
        df = df.sort_values(["rank", "overall_score"], ascending=[True, False], na_position="last")
    return df.reset_index(drop=True)


def write_reports(batch: BatchResult, report_dir: str, job_id: str) -> Tuple[str, str]:
    """Write a full CSV and a top-10 markdown shortlist for one batch."""
    Path(report_dir).mkdir(parents=True, exist_ok=True)
    df = records_to_frame(batch.records)

    csv_path = os.path.join(report_dir, f"{job_id}_report.csv")
    df.to_csv(csv_path, index=False)  # header-only file when empty

    md_lines = [f"# Job {job_id}: Top Candidates", ""]
    req = batch.requirements
    if req.must_have:
        md_lines.append(f"**Must have**: {', '.join(req.must_have)}")
    if req.skills:
        md_lines.append(f"**Skills**: {', '.join(req.skills)}")
    if batch.job_extraction_error:
        md_lines.append(f"> Requirements extracted heuristically: {batch.job_extraction_error}")
    md_lines.append("")

    if len(df):
        top = df.head(10)
        md_lines += [
            "| Rank | Candidate | Recommendation | Overall | Must-have | Semantic | Recency | Impact | Match % |",
            "|---:|---|---|---:|---:|---:|---:|---:|---:|",
        ]
        for r in top.itertuples():
            who = r.name or r.file_name
            md_lines.append(
                f"| {r.rank} | {who} | {r.recommendation} | {r.overall_score:.3f} | {r.must_have_score:.3f} | "
                f"{r.semantic_score:.3f} | {r.recency_score:.3f} | {r.impact_score:.3f} | {r.match_percentage} |"
            )
        md_lines.append("\n---\nJustifications (top-5):")
        for r in top.head(5).itertuples():
            md_lines.append(f"- **{r.name or r.file_name}**: {r.justification}")
    else:
        md_lines.append("> No candidates were scored for this job.\n")

    if batch.unreadable:
        md_lines.append("\nUnreadable documents:")
        for failure in batch.unreadable:
            md_lines.append(f"- {failure.file_name}: {failure.reason}")

    md_path = os.path.join(report_dir, f"{job_id}_top.md")
    Path(md_path).write_text("\n".join(md_lines), encoding="utf-8")
    logger.info(f"Reports written: {csv_path}, {md_path}")
    return csv_path, md_path

import pandas as pd

from cv_intelligence.models.models import (
    BatchResult, CandidateProfile, CandidateRecord, DocumentFailure, PersonalInfo, Recommendation, RequirementSet,
    ScoreResult,
)
from cv_intelligence.services.ranking import rank_batch
from cv_intelligence.services.reporting import REPORT_COLUMNS, records_to_frame, write_reports


def _record(doc_id, name, overall):
    return CandidateRecord(
        document_id=doc_id,
        file_name=f"{doc_id}.pdf",
        profile=CandidateProfile(personal=PersonalInfo(name=name)),
        scores=ScoreResult(overall_score=overall, must_have_score=overall),
        recommendation=Recommendation.SELECT if overall >= 0.72 else Recommendation.REJECT,
    )


def _batch(records, unreadable=()):
    return BatchResult(
        requirements=RequirementSet(skills=["Python", "AWS"], must_have=["Python"]),
        records=rank_batch(records),
        unreadable=list(unreadable),
    )


class TestRecordsToFrame:
    def test_columns_and_order(self):
        df = records_to_frame(rank_batch([_record("a", "Ann", 0.3), _record("b", "Bob", 0.8)]))
        assert list(df.columns) == REPORT_COLUMNS
        assert list(df["document_id"]) == ["b", "a"]
        assert list(df["rank"]) == [1, 2]

    def test_sentinel_names_are_blank(self):
        df = records_to_frame(rank_batch([_record("a", "Name not found", 0.3)]))
        assert df.loc[0, "name"] == ""

    def test_empty(self):
        df = records_to_frame([])
        assert df.empty
        assert list(df.columns) == REPORT_COLUMNS


class TestWriteReports:
    """Test cases for CSV and markdown report output"""

    def test_writes_csv_and_markdown(self, tmp_path):
        batch = _batch(
            [_record("a", "Ann", 0.3), _record("b", "Bob", 0.8), _record("c", "Name not found", 0.5)],
            unreadable=[DocumentFailure(document_id="cv_x", file_name="scan.pdf", reason="no text layer")],
        )

        csv_path, md_path = write_reports(batch, str(tmp_path / "reports"), "jd_123")

        df = pd.read_csv(csv_path)
        assert len(df) == 3
        assert list(df["document_id"]) == ["b", "c", "a"]

        md = open(md_path, encoding="utf-8").read()
        assert md.startswith("# Job jd_123: Top Candidates")
        assert "**Must have**: Python" in md
        assert "| 1 | Bob | SELECT |" in md
        assert "| 2 | c.pdf |" in md
        assert "Justifications (top-5):" in md
        assert "- scan.pdf: no text layer" in md

    def test_top_ten_only(self, tmp_path):
        batch = _batch([_record(f"d{i:02d}", f"Person {i}", i / 20) for i in range(12)])
        _, md_path = write_reports(batch, str(tmp_path), "jd_big")
        md = open(md_path, encoding="utf-8").read()
        table_rows = [line for line in md.splitlines() if line.startswith("| ") and not line.startswith("| Rank")]
        assert len(table_rows) == 10
        assert md.count("\n- **") == 5

    def test_empty_batch(self, tmp_path):
        batch = BatchResult(requirements=RequirementSet(), job_extraction_error="no extraction backend configured")
        csv_path, md_path = write_reports(batch, str(tmp_path), "jd_empty")
        md = open(md_path, encoding="utf-8").read()
        assert "No candidates were scored" in md
        assert "Requirements extracted heuristically" in md
        assert open(csv_path, encoding="utf-8").read().startswith("rank,document_id")

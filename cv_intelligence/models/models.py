from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Sentinels used instead of nulls so downstream stages never special-case a missing value
NAME_NOT_FOUND = "Name not found"
EMAIL_NOT_FOUND = "Email not found"
PHONE_NOT_FOUND = "Phone not found"
LOCATION_NOT_SPECIFIED = "Location not specified"
LINKEDIN_NOT_FOUND = "LinkedIn not found"
COMPANY_NOT_SPECIFIED = "Company not specified"
ROLE_NOT_SPECIFIED = "Role not specified"
DATE_NOT_SPECIFIED = "Date not specified"
INSTITUTION_NOT_SPECIFIED = "Institution not specified"
DEGREE_NOT_SPECIFIED = "Degree not specified"
FIELD_NOT_SPECIFIED = "Field not specified"
YEAR_NOT_SPECIFIED = "Year not specified"

SENTINELS = frozenset({
    NAME_NOT_FOUND, EMAIL_NOT_FOUND, PHONE_NOT_FOUND, LOCATION_NOT_SPECIFIED,
    LINKEDIN_NOT_FOUND, COMPANY_NOT_SPECIFIED, ROLE_NOT_SPECIFIED, DATE_NOT_SPECIFIED,
    INSTITUTION_NOT_SPECIFIED, DEGREE_NOT_SPECIFIED, FIELD_NOT_SPECIFIED, YEAR_NOT_SPECIFIED,
})


PERSONAL_FIELDS = ("name", "email", "phone", "location", "linkedin")


def is_sentinel(value: Optional[str]) -> bool:
    return not value or not value.strip() or value in SENTINELS


def _sentinel_if_blank(value: Any, sentinel: str) -> Any:
    if value is None:
        return sentinel
    if isinstance(value, str) and not value.strip():
        return sentinel
    return value


def _drop_nulls(value: Any) -> Any:
    # ["a", null, " "] -> ["a"]; other shapes are left for validation to reject
    if isinstance(value, list):
        return [v for v in value if not (v is None or (isinstance(v, str) and not v.strip()))]
    if value is None:
        return []
    return value


class DocumentKind(str, Enum):
    RESUME = "resume"
    JOB_DESCRIPTION = "job_description"


class Document(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: DocumentKind
    source_bytes: bytes = Field(repr=False)
    mime_type: Optional[str] = None
    file_name: str = ""


class LayoutBlock(BaseModel):
    """Blank-line delimited paragraph; advisory only."""
    index: int
    text: str
    start_offset: int
    end_offset: int
    block_type: str = "text"  # contact, experience, education, text


class ParsedText(BaseModel):
    raw_text: str
    layout_blocks: List[LayoutBlock] = Field(default_factory=list)
    word_count: int = 0


class EntityType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    LINKEDIN = "linkedin"
    DATE = "date"
    SKILL = "skill"


class Entity(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: EntityType
    value: str
    start_offset: int = Field(ge=0)
    end_offset: int
    context_window: str
    confidence: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_span(self):
        if self.end_offset <= self.start_offset:
            raise ValueError("end_offset must be greater than start_offset")
        return self


class RequirementSet(BaseModel):
    skills: List[str] = Field(default_factory=list)
    must_have: List[str] = Field(default_factory=list, alias="mustHave")
    experience: List[str] = Field(default_factory=list)
    education: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("skills", "must_have", "experience", "education", mode="before")
    @classmethod
    def _clean_phrases(cls, v):
        v = _drop_nulls(v)
        if isinstance(v, list):
            out, seen = [], set()
            for item in v:
                if not isinstance(item, str):
                    return v  # let strict validation report the bad element
                item = item.strip()
                if item and item.lower() not in seen:
                    seen.add(item.lower())
                    out.append(item)
            return out
        return v

    def required_skills(self) -> List[str]:
        """Skills plus must-haves, de-duplicated case-insensitively."""
        out, seen = [], set()
        for s in self.skills + self.must_have:
            if s.lower() not in seen:
                seen.add(s.lower())
                out.append(s)
        return out

    def as_text(self) -> str:
        parts = [
            "Skills: " + ", ".join(self.skills),
            "Must have: " + ", ".join(self.must_have),
            "Experience: " + "; ".join(self.experience),
            "Education: " + "; ".join(self.education),
        ]
        return "\n".join(parts)


class PersonalInfo(BaseModel):
    name: str = NAME_NOT_FOUND
    email: str = EMAIL_NOT_FOUND
    phone: str = PHONE_NOT_FOUND
    location: str = LOCATION_NOT_SPECIFIED
    linkedin: str = LINKEDIN_NOT_FOUND

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _fill_sentinels(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            for key, sentinel in (("name", NAME_NOT_FOUND), ("email", EMAIL_NOT_FOUND),
                                  ("phone", PHONE_NOT_FOUND), ("location", LOCATION_NOT_SPECIFIED),
                                  ("linkedin", LINKEDIN_NOT_FOUND)):
                data[key] = _sentinel_if_blank(data.get(key), sentinel)
        return data


class ExperienceEntry(BaseModel):
    company: str = COMPANY_NOT_SPECIFIED
    role: str = ROLE_NOT_SPECIFIED
    start_date: str = Field(default=DATE_NOT_SPECIFIED, alias="startDate")
    end_date: str = Field(default=DATE_NOT_SPECIFIED, alias="endDate")
    achievements: List[str] = Field(default_factory=list)
    skills_used: List[str] = Field(default_factory=list, alias="skillsUsed")
    impact_verbs: List[str] = Field(default_factory=list, alias="impactVerbs")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _fill_sentinels(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            for keys, sentinel in ((("company",), COMPANY_NOT_SPECIFIED),
                                   (("role", "title"), ROLE_NOT_SPECIFIED),
                                   (("startDate", "start_date"), DATE_NOT_SPECIFIED),
                                   (("endDate", "end_date"), DATE_NOT_SPECIFIED)):
                present = [k for k in keys if k in data]
                key = present[0] if present else keys[0]
                value = data.get(key)
                if sentinel == DATE_NOT_SPECIFIED and isinstance(value, int) and not isinstance(value, bool):
                    value = str(value)
                data[key] = _sentinel_if_blank(value, sentinel)
            if "role" not in data and "title" in data:
                data["role"] = data.pop("title")
            for key in ("achievements", "skillsUsed", "skills_used", "impactVerbs", "impact_verbs"):
                if key in data:
                    data[key] = _drop_nulls(data[key])
        return data


class EducationEntry(BaseModel):
    institution: str = INSTITUTION_NOT_SPECIFIED
    degree: str = DEGREE_NOT_SPECIFIED
    field: str = FIELD_NOT_SPECIFIED
    year: str = YEAR_NOT_SPECIFIED

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _fill_sentinels(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            for key, sentinel in (("institution", INSTITUTION_NOT_SPECIFIED), ("degree", DEGREE_NOT_SPECIFIED),
                                  ("field", FIELD_NOT_SPECIFIED), ("year", YEAR_NOT_SPECIFIED)):
                value = data.get(key)
                if isinstance(value, int):
                    value = str(value)
                data[key] = _sentinel_if_blank(value, sentinel)
        return data


class CandidateProfile(BaseModel):
    personal: PersonalInfo = Field(default_factory=PersonalInfo)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("personal", mode="before")
    @classmethod
    def _personal_default(cls, v):
        return {} if v is None else v

    @field_validator("experience", "education", "skills", "certifications", mode="before")
    @classmethod
    def _lists(cls, v):
        return _drop_nulls(v)

    def all_skills(self) -> List[str]:
        """Declared skills plus per-role skills, de-duplicated case-insensitively."""
        out, seen = [], set()
        for s in self.skills + [s for e in self.experience for s in e.skills_used]:
            key = s.strip().lower()
            if key and key not in seen:
                seen.add(key)
                out.append(s.strip())
        return out


class EvidenceEntry(BaseModel):
    value: str
    start_offset: int
    end_offset: int
    context_window: str
    confidence: float


EvidenceMap = Dict[str, EvidenceEntry]


class MatchResult(BaseModel):
    matched: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    extra: List[str] = Field(default_factory=list)
    match_percentage: int = 0
    required: List[str] = Field(default_factory=list)
    candidate_skills: List[str] = Field(default_factory=list)


class ScoreResult(BaseModel):
    must_have_score: float = Field(default=0.0, ge=0.0, le=1.0)
    semantic_score: float = Field(default=0.0, ge=0.0, le=1.0)
    recency_score: float = Field(default=0.0, ge=0.0, le=1.0)
    impact_score: float = Field(default=0.0, ge=0.0, le=1.0)
    overall_score: float = Field(default=0.0, ge=0.0, le=1.0)

    @classmethod
    def zero(cls) -> "ScoreResult":
        return cls()


class IssueKind(str, Enum):
    CHRONOLOGY = "chronology"
    OVERLAP = "overlap"
    DATE_RANGE = "date_range"
    FUTURE_DATE = "future_date"
    UNSUBSTANTIATED_SKILL = "unsubstantiated_skill"
    PIPELINE_FAILURE = "pipeline_failure"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


class ConsistencyIssue(BaseModel):
    kind: IssueKind
    message: str
    field: Optional[str] = None


class VerificationResult(BaseModel):
    field_validity_rate: float = 0.0
    evidence_coverage: float = 0.0
    disagreement_rate: float = 0.0
    issues: List[ConsistencyIssue] = Field(default_factory=list)
    required_fields: int = 0

    @classmethod
    def for_failure(cls, kind: IssueKind, message: str) -> "VerificationResult":
        return cls(
            field_validity_rate=0.0,
            evidence_coverage=0.0,
            disagreement_rate=1.0,
            issues=[ConsistencyIssue(kind=kind, message=message)],
        )


class RecordStatus(str, Enum):
    PROCESSED = "processed"
    DEGRADED = "degraded"  # backend failed, heuristic fallback used
    FAILED = "failed"      # timeout or unexpected error; all-zero scores
    SKIPPED = "skipped"    # batch cancelled before completion


class Recommendation(str, Enum):
    SELECT = "SELECT"
    NEED_FURTHER_EVAL = "NEED_FURTHER_EVAL"
    REJECT = "REJECT"


class CandidateRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    file_name: str
    status: RecordStatus = RecordStatus.PROCESSED
    profile: CandidateProfile = Field(default_factory=CandidateProfile)
    entities: List[Entity] = Field(default_factory=list)
    evidence: Dict[str, EvidenceEntry] = Field(default_factory=dict)
    match: MatchResult = Field(default_factory=MatchResult)
    scores: ScoreResult = Field(default_factory=ScoreResult)
    verification: VerificationResult = Field(default_factory=VerificationResult)
    recommendation: Recommendation = Recommendation.REJECT
    extraction_source: str = "none"  # model, heuristic, none
    extraction_error: Optional[str] = None
    rank: Optional[int] = None
    justification: str = ""


class DocumentFailure(BaseModel):
    document_id: str
    file_name: str
    reason: str


class BatchResult(BaseModel):
    requirements: RequirementSet
    requirements_source: str = "model"
    job_extraction_error: Optional[str] = None
    records: List[CandidateRecord] = Field(default_factory=list)
    unreadable: List[DocumentFailure] = Field(default_factory=list)

"""
Closed vocabularies used by the deterministic extractors.

The tables are frozen and built once; components receive a SkillVocabulary
instance instead of reading module globals.
"""
import re
from dataclasses import dataclass, field
from typing import List, Tuple

DEFAULT_SKILLS: Tuple[str, ...] = (
    # languages
    "Python", "JavaScript", "TypeScript", "Java", "C++", "C#", "Go", "Rust", "Ruby", "PHP",
    "Swift", "Kotlin", "Scala", "SQL", "HTML", "CSS", "Bash",
    # frameworks
    "React", "Angular", "Vue.js", "Node.js", "Express", "Django", "Flask", "FastAPI", "Spring",
    "Laravel", ".NET",
    # data and ML
    "Machine Learning", "Deep Learning", "Data Science", "NLP", "Computer Vision", "AI",
    "TensorFlow", "PyTorch", "Scikit-learn", "Pandas", "NumPy", "Spark", "Airflow", "LLM",
    # data stores
    "PostgreSQL", "MySQL", "MongoDB", "Redis", "Elasticsearch",
    # cloud and tooling
    "AWS", "Azure", "GCP", "Docker", "Kubernetes", "Terraform", "Jenkins", "CI/CD", "Git",
    "Linux", "DevOps", "REST", "GraphQL", "Microservices",
    # delivery and methodology
    "Agile", "Scrum", "Kanban", "SAFe", "Jira", "Confluence", "Azure DevOps", "Sprint Planning",
    "Retrospectives", "Project Management", "Stakeholder Management", "Risk Management",
    "Budgeting", "PMP", "PRINCE2", "Scrum Master", "CSM",
    # soft skills
    "Leadership", "Communication", "Mentoring", "Problem Solving", "Teamwork",
)

DEFAULT_IMPACT_VERBS: Tuple[str, ...] = (
    "implemented", "built", "led", "designed", "developed", "created", "managed", "owned",
    "launched", "delivered", "optimized", "improved", "increased", "reduced", "architected",
    "automated", "scaled", "shipped", "migrated", "spearheaded",
)

DEFAULT_CERTIFICATION_MARKERS: Tuple[str, ...] = ("certified", "certification", "certificate")

DEFAULT_REQUIREMENT_MARKERS: Tuple[str, ...] = (
    "required", "requirement", "must", "essential", "mandatory", "need to have", "needs to have",
)

DEFAULT_ROLE_KEYWORDS: Tuple[str, ...] = (
    "developer", "engineer", "manager", "analyst", "designer", "consultant", "scientist",
    "architect", "administrator", "lead", "intern", "specialist", "director",
)

DEFAULT_DEGREE_KEYWORDS: Tuple[str, ...] = (
    "bachelor", "master", "phd", "ph.d", "doctorate", "diploma", "associate degree", "mba",
    "b.sc", "m.sc", "bsc", "msc", "b.tech", "m.tech", "degree",
)

DEFAULT_STUDY_FIELDS: Tuple[str, ...] = (
    "computer science", "software engineering", "information technology", "data science",
    "electrical engineering", "mechanical engineering", "engineering", "business administration",
    "business", "mathematics", "statistics", "physics", "economics",
)

DEFAULT_INSTITUTION_MARKERS: Tuple[str, ...] = ("university", "college", "institute", "school", "academy")


@dataclass(frozen=True)
class RoleFamily:
    """Title markers identify a role family; skill markers identify skills typical of it."""
    name: str
    title_markers: Tuple[str, ...]
    skill_markers: Tuple[str, ...]


DEFAULT_ROLE_FAMILIES: Tuple[RoleFamily, ...] = (
    RoleFamily(
        name="engineering",
        title_markers=(
            "ai engineer", "machine learning engineer", "ml engineer", "software engineer",
            "data scientist", "data engineer", "backend engineer", "frontend engineer",
            "full stack", "devops engineer", "software developer", "web developer", "developer",
        ),
        skill_markers=(
            "python", "java", "javascript", "typescript", "c++", "go", "rust", "machine learning",
            "deep learning", "pytorch", "tensorflow", "scikit-learn", "nlp", "llm", "docker",
            "kubernetes", "aws", "azure", "gcp", "sql", "spark", "react", "node.js", "django",
            "flask", "fastapi", "computer vision", "data science", "mlops",
        ),
    ),
    RoleFamily(
        name="project_management",
        title_markers=(
            "project manager", "program manager", "programme manager", "scrum master",
            "product owner", "delivery manager", "agile coach",
        ),
        skill_markers=(
            "scrum", "agile", "kanban", "safe", "jira", "confluence", "sprint planning",
            "retrospectives", "project management", "stakeholder management", "risk management",
            "budgeting", "pmp", "prince2", "csm", "scrum master", "azure devops",
        ),
    ),
)


@dataclass(frozen=True)
class SkillVocabulary:
    skills: Tuple[str, ...] = DEFAULT_SKILLS
    impact_verbs: Tuple[str, ...] = DEFAULT_IMPACT_VERBS
    certification_markers: Tuple[str, ...] = DEFAULT_CERTIFICATION_MARKERS
    requirement_markers: Tuple[str, ...] = DEFAULT_REQUIREMENT_MARKERS
    role_keywords: Tuple[str, ...] = DEFAULT_ROLE_KEYWORDS
    degree_keywords: Tuple[str, ...] = DEFAULT_DEGREE_KEYWORDS
    study_fields: Tuple[str, ...] = DEFAULT_STUDY_FIELDS
    institution_markers: Tuple[str, ...] = DEFAULT_INSTITUTION_MARKERS
    role_families: Tuple[RoleFamily, ...] = DEFAULT_ROLE_FAMILIES
    _impact_re: re.Pattern = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        # normalize any list arguments to tuples so the table stays immutable
        for name in ("skills", "impact_verbs", "certification_markers", "requirement_markers",
                     "role_keywords", "degree_keywords", "study_fields", "institution_markers",
                     "role_families"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        verbs = "|".join(re.escape(v) for v in sorted(self.impact_verbs, key=len, reverse=True))
        object.__setattr__(self, "_impact_re", re.compile(rf"\b(?:{verbs})\b", re.IGNORECASE))

    def has_impact_verb(self, text: str) -> bool:
        return bool(self.impact_verbs) and self._impact_re.search(text) is not None

    def impact_verbs_in(self, text: str) -> List[str]:
        """Every impact-verb occurrence in text, lowercased, in order."""
        if not self.impact_verbs:
            return []
        return [m.group(0).lower() for m in self._impact_re.finditer(text)]

    def has_certification_marker(self, text: str) -> bool:
        low = text.lower()
        return any(m in low for m in self.certification_markers)


DEFAULT_VOCABULARY = SkillVocabulary()

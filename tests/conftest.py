import json
import os
import time

# console-only logging at WARNING for the test run; must precede package imports
os.environ["ENVIRONMENT"] = "testing"

import pytest

from cv_intelligence.models.settings import PipelineSettings, ProcessingSettings
from cv_intelligence.services.backends import EmbeddingBackend, StructuredExtractionBackend
from cv_intelligence.utils.exceptions import EmbeddingError

JOB_TEXT = """AI Engineer
We are hiring an AI Engineer to build production ML services.
5+ years Python, AWS required.
Experience with Docker and Kubernetes is a plus.
Bachelor's degree in Computer Science or related field.
"""

RESUME_TEXT = """Jane Doe
jane.doe@example.com | +1 (555) 123-4567 | linkedin.com/in/janedoe
Accra, Ghana

Summary
3 years Python development, AWS certified

Experience
Junior Developer at Beta Labs
2019-06 - 2020-12
- Developed REST services in Java

Software Engineer, Acme Corp
2021-01 - Present
- Built data pipelines in Python on AWS
- Led migration to Docker and Kubernetes

Education
BSc Computer Science, University of Ghana, 2019
"""

NO_CONTACT_RESUME_TEXT = """John Smith
Accra, Ghana

Backend Developer, Gamma Ltd
2020-01 - 2023-06
- Implemented billing APIs in Python
"""

REQUIREMENTS_REPLY = {
    "skills": ["Python", "AWS", "Docker", "Kubernetes"],
    "mustHave": ["Python", "AWS"],
    "experience": ["5+ years Python"],
    "education": ["Bachelor's degree in Computer Science"],
}

PROFILE_REPLY = {
    "personal": {
        "name": "Jane Doe",
        "email": "jane.doe@example.com",
        "phone": "+1 (555) 123-4567",
        "location": "Accra, Ghana",
        "linkedin": "linkedin.com/in/janedoe",
    },
    "experience": [
        {
            "company": "Beta Labs",
            "role": "Junior Developer",
            "startDate": "2019-06",
            "endDate": "2020-12",
            "achievements": ["Developed REST services in Java"],
            "skillsUsed": ["REST", "Java"],
            "impactVerbs": ["developed"],
        },
        {
            "company": "Acme Corp",
            "role": "Software Engineer",
            "startDate": "2021-01",
            "endDate": "Present",
            "achievements": ["Built data pipelines in Python on AWS", "Led migration to Docker and Kubernetes"],
            "skillsUsed": ["Python", "AWS", "Docker", "Kubernetes"],
            "impactVerbs": ["built", "led"],
        },
    ],
    "education": [
        {"institution": "University of Ghana", "degree": "BSc", "field": "Computer Science", "year": "2019"},
    ],
    "skills": ["Python", "AWS", "Docker", "Kubernetes", "REST", "Java"],
    "certifications": ["AWS certified"],
}


class FakeExtractionBackend(StructuredExtractionBackend):
    """Answers by schema title; a reply may be a dict, a raw string or an exception."""

    provider = "fake"

    def __init__(self, requirements_reply=None, profile_reply=None, delay: float = 0.0, profile_delay: float = 0.0):
        self.replies = {
            "RequirementSet": REQUIREMENTS_REPLY if requirements_reply is None else requirements_reply,
            "CandidateProfile": PROFILE_REPLY if profile_reply is None else profile_reply,
        }
        self.delay = delay
        self.profile_delay = profile_delay
        self.calls = []

    def complete_json(self, prompt, schema):
        title = schema.get("title")
        self.calls.append(title)
        if self.delay:
            time.sleep(self.delay)
        if title == "CandidateProfile" and self.profile_delay:
            time.sleep(self.profile_delay)
        reply = self.replies[title]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return reply
        return json.dumps(reply)


class FakeEmbeddingBackend(EmbeddingBackend):
    """Bag-of-keywords vectors, so overlapping texts are similar."""

    provider = "fake"
    KEYWORDS = ("python", "aws", "docker", "kubernetes", "java", "scrum", "jira")

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    def embed(self, text):
        self.calls += 1
        if self.fail:
            raise EmbeddingError("embedding service down", provider="fake", model_name="fake-embed")
        low = text.lower()
        return [float(low.count(k)) for k in self.KEYWORDS] + [1.0]


def make_pdf(lines) -> bytes:
    """Single-page Helvetica PDF with one text line per entry."""
    def esc(s):
        return s.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")

    ops = ["BT", "/F1 12 Tf", "72 720 Td", "14 TL"]
    for line in lines:
        ops.append(f"({esc(line)}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for i, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{i} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += f"{off:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


@pytest.fixture
def extraction_backend():
    return FakeExtractionBackend()


@pytest.fixture
def embedding_backend():
    return FakeEmbeddingBackend()


@pytest.fixture
def settings():
    return PipelineSettings(processing_settings=ProcessingSettings(max_concurrent=2, resume_timeout_s=5))

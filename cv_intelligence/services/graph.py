"""
Per-résumé pipeline as a LangGraph state graph.

parse_document -> extract_entities -> extract_profile -> bind_evidence -> match_skills
-> score_candidate -> verify_profile -> assemble_record

Every node returns a state delta. Node names must differ from state keys.
Only the profile and score nodes suspend: they call blocking backends in a
worker thread.
"""
from typing import Any, Awaitable, Callable, List, Optional, TypedDict

from langgraph.graph import END, StateGraph

from cv_intelligence.helpers.parsing import parse_document
from cv_intelligence.helpers.vocabulary import DEFAULT_VOCABULARY, SkillVocabulary
from cv_intelligence.models.models import (
    CandidateRecord, Document, Entity, EvidenceMap, MatchResult, ParsedText, RecordStatus, RequirementSet,
    ScoreResult, VerificationResult,
)
from cv_intelligence.models.settings import ScoringSettings
from cv_intelligence.services.backends import SOURCE_HEURISTIC
from cv_intelligence.services.entities import extract_entities
from cv_intelligence.services.evidence import bind_evidence
from cv_intelligence.services.matching import match_skills
from cv_intelligence.services.profiles import ProfileExtraction, ProfileExtractor
from cv_intelligence.services.scoring import categorize, score_candidate
from cv_intelligence.services.verification import verify_profile
from cv_intelligence.utils.exceptions import ExceptionContext
from cv_intelligence.utils.logging_config import get_logger
from cv_intelligence.utils.utils import cosine_similarity

logger = get_logger(__name__)

Embedder = Callable[[str], Awaitable[Optional[List[float]]]]
BlockingRunner = Callable[..., Awaitable[Any]]


class ResumeState(TypedDict, total=False):
    document: Document
    requirements: RequirementSet
    job_embedding: Optional[List[float]]
    parsed: ParsedText
    entities: List[Entity]
    extraction: ProfileExtraction
    evidence: EvidenceMap
    match: MatchResult
    scores: ScoreResult
    verification: VerificationResult
    record: CandidateRecord


def build_resume_graph(
    profile_extractor: ProfileExtractor,
    embed: Embedder,
    run_blocking: BlockingRunner,
    scoring: ScoringSettings = None,
    vocabulary: SkillVocabulary = DEFAULT_VOCABULARY,
):
    scoring = scoring or ScoringSettings()

    def stage(name: str, state: ResumeState) -> ExceptionContext:
        return ExceptionContext(name, logger, document_id=state["document"].id)

    async def node_parse(state: ResumeState):
        doc = state["document"]
        with stage("parse", state):
            parsed = parse_document(doc.source_bytes, doc.mime_type, doc.file_name)
        return {"parsed": parsed}

    async def node_entities(state: ResumeState):
        with stage("entities", state):
            entities = extract_entities(state["parsed"].raw_text, vocabulary)
        return {"entities": entities}

    async def node_profile(state: ResumeState):
        with stage("profile", state):
            extraction = await run_blocking(
                profile_extractor.extract, state["parsed"].raw_text, state["entities"]
            )
        return {"extraction": extraction}

    async def node_evidence(state: ResumeState):
        with stage("evidence", state):
            evidence = bind_evidence(state["extraction"].profile, state["entities"], state["parsed"].raw_text)
        return {"evidence": evidence}

    async def node_match(state: ResumeState):
        with stage("match", state):
            match = match_skills(state["requirements"].required_skills(), state["extraction"].profile.all_skills())
        return {"match": match}

    async def node_score(state: ResumeState):
        similarity = None
        job_embedding = state.get("job_embedding")
        if job_embedding is not None:
            resume_embedding = await embed(state["parsed"].raw_text)
            if resume_embedding is not None:
                similarity = cosine_similarity(resume_embedding, job_embedding)
        with stage("score", state):
            scores = score_candidate(
                state["extraction"].profile,
                state["requirements"],
                state["match"],
                semantic_similarity=similarity,
                settings=scoring,
                vocabulary=vocabulary,
            )
        return {"scores": scores}

    async def node_verify(state: ResumeState):
        with stage("verify", state):
            verification = verify_profile(
                state["extraction"].profile,
                state["parsed"].raw_text,
                state["entities"],
                state["evidence"],
                vocabulary=vocabulary,
            )
        return {"verification": verification}

    async def node_assemble(state: ResumeState):
        doc = state["document"]
        extraction = state["extraction"]
        record = CandidateRecord(
            document_id=doc.id,
            file_name=doc.file_name,
            status=RecordStatus.DEGRADED if extraction.source == SOURCE_HEURISTIC else RecordStatus.PROCESSED,
            profile=extraction.profile,
            entities=state["entities"],
            evidence=state["evidence"],
            match=state["match"],
            scores=state["scores"],
            verification=state["verification"],
            recommendation=categorize(state["scores"].overall_score, scoring.thresholds),
            extraction_source=extraction.source,
            extraction_error=extraction.error,
        )
        return {"record": record}

    g = StateGraph(ResumeState)
    g.add_node("parse_document", node_parse)
    g.add_node("extract_entities", node_entities)
    g.add_node("extract_profile", node_profile)
    g.add_node("bind_evidence", node_evidence)
    g.add_node("match_skills", node_match)
    g.add_node("score_candidate", node_score)
    g.add_node("verify_profile", node_verify)
    g.add_node("assemble_record", node_assemble)
    g.set_entry_point("parse_document")
    g.add_edge("parse_document", "extract_entities")
    g.add_edge("extract_entities", "extract_profile")
    g.add_edge("extract_profile", "bind_evidence")
    g.add_edge("bind_evidence", "match_skills")
    g.add_edge("match_skills", "score_candidate")
    g.add_edge("score_candidate", "verify_profile")
    g.add_edge("verify_profile", "assemble_record")
    g.add_edge("assemble_record", END)
    return g.compile()

"""
Batch screening: one job description against many résumés.

The job's requirements are extracted once and cached by content hash before any
résumé work starts. Résumés then run concurrently, bounded by a semaphore, each
under a hard timeout. Blocking backend calls share a worker pool of the same
size, so calls left running by a timeout still count against the limit.
Failures and cancellations become records instead of aborting the batch;
only unreadable résumés are left out of the records.
"""
import asyncio
import hashlib
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from cv_intelligence.helpers.parsing import parse_document
from cv_intelligence.helpers.vocabulary import DEFAULT_VOCABULARY, SkillVocabulary
from cv_intelligence.models.models import (
    BatchResult, CandidateRecord, Document, DocumentFailure, DocumentKind, IssueKind, Recommendation,
    RecordStatus, RequirementSet, ScoreResult, VerificationResult,
)
from cv_intelligence.models.settings import PipelineSettings, load_settings
from cv_intelligence.services.backends import (
    EmbeddingBackend, StructuredExtractionBackend, build_embedding_backend, build_extraction_backend,
)
from cv_intelligence.services.graph import build_resume_graph
from cv_intelligence.services.profiles import ProfileExtractor
from cv_intelligence.services.ranking import rank_batch
from cv_intelligence.services.requirements import RequirementExtraction, RequirementExtractor
from cv_intelligence.utils.exceptions import EmbeddingError, ExceptionContext, UnreadableDocument
from cv_intelligence.utils.logging_config import PerformanceMonitor, get_logger
from cv_intelligence.utils.utils import content_id

logger = get_logger(__name__)

__all__ = ["ScreeningPipeline", "make_document", "rank_batch"]


def make_document(source_bytes: bytes, file_name: str, kind: DocumentKind = DocumentKind.RESUME,
                  mime_type: Optional[str] = None) -> Document:
    """Document whose id is derived from its content, so re-submitting it keeps the id."""
    prefix = "jd" if kind == DocumentKind.JOB_DESCRIPTION else "cv"
    return Document(
        id=content_id(source_bytes, file_name, prefix=prefix),
        kind=kind,
        source_bytes=source_bytes,
        mime_type=mime_type,
        file_name=file_name,
    )


def failed_record(document: Document, kind: IssueKind, message: str,
                  status: RecordStatus = RecordStatus.FAILED) -> CandidateRecord:
    return CandidateRecord(
        document_id=document.id,
        file_name=document.file_name,
        status=status,
        scores=ScoreResult.zero(),
        verification=VerificationResult.for_failure(kind, message),
        recommendation=Recommendation.REJECT,
        extraction_source="none",
    )


class ScreeningPipeline:
    rank_batch = staticmethod(rank_batch)

    def __init__(
        self,
        settings: PipelineSettings = None,
        extraction_backend: Optional[StructuredExtractionBackend] = None,
        embedding_backend: Optional[EmbeddingBackend] = None,
        vocabulary: SkillVocabulary = DEFAULT_VOCABULARY,
    ):
        self.settings = settings or PipelineSettings()
        self.vocabulary = vocabulary
        self.embedding_backend = embedding_backend
        llm = self.settings.llm_settings
        self.requirement_extractor = RequirementExtractor(
            extraction_backend,
            vocabulary=vocabulary,
            role_mismatch_threshold=self.settings.processing_settings.role_mismatch_threshold,
            max_input_chars=llm.max_input_chars,
        )
        self.profile_extractor = ProfileExtractor(extraction_backend, vocabulary=vocabulary,
                                                  max_input_chars=llm.max_input_chars)
        # bounds live backend calls, which outlive timed-out or cancelled résumé tasks
        self._executor = ThreadPoolExecutor(max_workers=self.settings.processing_settings.max_concurrent,
                                            thread_name_prefix="cv-backend")
        self.graph = build_resume_graph(self.profile_extractor, self._embed, self.run_blocking,
                                        self.settings.scoring, vocabulary)

        self._requirements_cache: Dict[str, RequirementExtraction] = {}
        self._embedding_cache: Dict[str, List[float]] = {}

    @classmethod
    def from_settings(cls, settings: PipelineSettings = None, vocabulary: SkillVocabulary = DEFAULT_VOCABULARY):
        """Pipeline wired to the HTTP backends named in settings (environment by default)."""
        settings = settings or load_settings()
        processing = settings.processing_settings
        extraction = build_extraction_backend(settings.llm_settings, processing.retry_attempts, processing.retry_backoff,
                                              timeout=min(settings.llm_settings.timeout, processing.resume_timeout_s))
        embedding = build_embedding_backend(settings.embedding_settings, processing.retry_attempts,
                                            processing.retry_backoff,
                                            timeout=min(settings.embedding_settings.timeout, processing.resume_timeout_s))
        return cls(settings, extraction, embedding, vocabulary)

    async def run_blocking(self, fn: Callable[..., Any], *args) -> Any:
        """Run a blocking backend call on the pipeline's bounded worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def close(self):
        self._executor.shutdown(wait=False, cancel_futures=True)

    async def _embed(self, text: str) -> Optional[List[float]]:
        if self.embedding_backend is None or not text.strip():
            return None
        key = hashlib.sha256(text.encode("utf-8")).hexdigest()
        if key in self._embedding_cache:
            return self._embedding_cache[key]
        try:
            vector = await self.run_blocking(self.embedding_backend.embed, text)
        except EmbeddingError as e:
            logger.warning(f"Embedding unavailable, semantic score will be 0: {e.message}")
            return None
        self._embedding_cache[key] = vector
        return vector

    async def extract_job(self, document: Document) -> RequirementExtraction:
        """Requirement extraction for a job document, cached by content hash."""
        if document.id in self._requirements_cache:
            return self._requirements_cache[document.id]
        with PerformanceMonitor(f"job extraction {document.file_name}", logger,
                                threshold_ms=self.settings.processing_settings.slow_resume_ms):
            with ExceptionContext("job_parse", logger, document_id=document.id):
                parsed = parse_document(document.source_bytes, document.mime_type, document.file_name)
            extraction = await self.run_blocking(self.requirement_extractor.extract, parsed.raw_text)
        self._requirements_cache[document.id] = extraction
        return extraction

    async def process_job_description(self, source_bytes: bytes, file_name: str,
                                      mime_type: Optional[str] = None) -> RequirementSet:
        document = make_document(source_bytes, file_name, DocumentKind.JOB_DESCRIPTION, mime_type)
        extraction = await self.extract_job(document)
        return extraction.requirements

    async def _run_resume(self, document: Document, requirements: RequirementSet,
                          job_embedding: Optional[List[float]]) -> CandidateRecord:
        with PerformanceMonitor(f"resume {document.file_name}", logger,
                                threshold_ms=self.settings.processing_settings.slow_resume_ms):
            state = await self.graph.ainvoke({
                "document": document,
                "requirements": requirements,
                "job_embedding": job_embedding,
            })
        return state["record"]

    async def process_resume(self, source_bytes: bytes, file_name: str, requirements: RequirementSet,
                             mime_type: Optional[str] = None) -> CandidateRecord:
        """Run one résumé through the pipeline; raises UnreadableDocument if it has no text."""
        document = make_document(source_bytes, file_name, DocumentKind.RESUME, mime_type)
        job_embedding = await self._embed(requirements.as_text())
        return await self._run_resume(document, requirements, job_embedding)

    @staticmethod
    async def _cancel_on(event: asyncio.Event, tasks: List[asyncio.Task]):
        await event.wait()
        pending = [t for t in tasks if not t.done()]
        if pending:
            logger.warning(f"Batch cancelled, skipping {len(pending)} unfinished resumes")
        for t in pending:
            t.cancel()

    async def run_batch(self, job_document: Document, resume_documents: List[Document],
                        cancel_event: Optional[asyncio.Event] = None) -> BatchResult:
        processing = self.settings.processing_settings
        job = await self.extract_job(job_document)
        requirements = job.requirements
        job_embedding = await self._embed(requirements.as_text())

        semaphore = asyncio.Semaphore(processing.max_concurrent)

        async def run_one(document: Document) -> CandidateRecord:
            async with semaphore:
                return await asyncio.wait_for(
                    self._run_resume(document, requirements, job_embedding),
                    timeout=processing.resume_timeout_s,
                )

        tasks = [asyncio.create_task(run_one(d)) for d in resume_documents]
        watcher = asyncio.create_task(self._cancel_on(cancel_event, tasks)) if cancel_event is not None else None
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            if watcher is not None:
                watcher.cancel()

        records: List[CandidateRecord] = []
        unreadable: List[DocumentFailure] = []
        for document, result in zip(resume_documents, results):
            if isinstance(result, CandidateRecord):
                records.append(result)
            elif isinstance(result, UnreadableDocument):
                logger.warning(f"Unreadable resume {document.file_name}: {result.message}")
                unreadable.append(DocumentFailure(document_id=document.id, file_name=document.file_name,
                                                  reason=result.message))
            elif isinstance(result, asyncio.CancelledError):
                records.append(failed_record(document, IssueKind.SKIPPED, "Batch cancelled before completion",
                                             status=RecordStatus.SKIPPED))
            elif isinstance(result, asyncio.TimeoutError):
                logger.error(f"Resume {document.file_name} timed out after {processing.resume_timeout_s}s")
                records.append(failed_record(document, IssueKind.TIMEOUT,
                                             f"Timed out after {processing.resume_timeout_s}s"))
            else:
                logger.error(f"Resume {document.file_name} failed: {result!r}")
                records.append(failed_record(document, IssueKind.PIPELINE_FAILURE, str(result)))

        logger.info(f"Batch finished: {len(records)} records, {len(unreadable)} unreadable")
        return BatchResult(
            requirements=requirements,
            requirements_source=job.source,
            job_extraction_error=job.error,
            records=rank_batch(records),
            unreadable=unreadable,
        )

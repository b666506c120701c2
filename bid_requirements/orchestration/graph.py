"""
LangGraph State Machine — layered requirement extraction.

    analyze_corpus ─┬─▶ discover_taxonomy ─┬─▶ extract_category ⟲ ─▶ save_requirements ─▶ END
                    └─▶ end_failed         └─▶ end_failed

extract_category handles one category per visit and loops through a
conditional edge until every discovered category has been processed, so
categories run strictly one after another in taxonomy order.

RequirementsExtractionPipeline.run() is the only entry point. It never
raises: every outcome ends the stream with exactly one `complete` or
`error` event followed by `end`.
"""

from __future__ import annotations

import logging
import random
import threading
from functools import partial
from typing import Any, Optional, TypedDict

from langgraph.graph import END, StateGraph

from bid_requirements.agents import CategoryExtractionAgent, TaxonomyDiscoveryAgent
from bid_requirements.config import Settings, get_settings
from bid_requirements.errors import (
    BidRequirementsError,
    ContentExtractionError,
    EmptyCorpusError,
    NoCategoriesFound,
    PipelineCancelled,
    PipelineTimeoutError,
    UnexpectedError,
)
from bid_requirements.models.enums import RunStatus
from bid_requirements.models.schemas import ExtractionRequest, Requirement, RequirementCandidate
from bid_requirements.models.state import PipelineRun
from bid_requirements.orchestration.aggregator import RequirementAggregator
from bid_requirements.orchestration.progress import ProgressNarrator, ProgressSink
from bid_requirements.orchestration.rate_governor import Clock, RateGovernor, SystemClock
from bid_requirements.orchestration.retry import RetryPolicy
from bid_requirements.persistence import DocumentRepository, RequirementRepository
from bid_requirements.services.file_service import FileService
from bid_requirements.services.llm_service import InferenceClient
from bid_requirements.services.parsing_service import ContentExtractor, build_corpus

logger = logging.getLogger(__name__)


class PipelineState(TypedDict, total=False):
    corpus: str
    categories: list[str]
    cursor: int
    candidates: list[RequirementCandidate]
    skipped: list[str]
    requirements: list[Requirement]
    records: list[dict[str, Any]]
    status: str
    error_message: str


# ── Routing ──────────────────────────────────────────────

def route_after_analysis(state: PipelineState) -> str:
    if state.get("status") == RunStatus.FAILED.value:
        return "end_failed"
    return "discover_taxonomy"


def route_after_taxonomy(state: PipelineState) -> str:
    if state.get("status") == RunStatus.FAILED.value or not state.get("categories"):
        return "end_failed"
    return "extract_category"


def route_after_category(state: PipelineState) -> str:
    if state.get("cursor", 0) < len(state.get("categories", [])):
        return "extract_category"
    return "save_requirements"


def end_failed(state: PipelineState) -> PipelineState:
    logger.info(f"Pipeline terminated: {state.get('error_message', 'failed')}")
    return {"status": RunStatus.FAILED.value}


# ── One run ──────────────────────────────────────────────

class _RunExecutor:
    """Per-run collaborators and the graph node functions bound to them."""

    def __init__(
        self,
        pipeline: RequirementsExtractionPipeline,
        request: ExtractionRequest,
        narrator: ProgressNarrator,
        cancel_event: threading.Event,
    ) -> None:
        self.pipeline = pipeline
        self.request = request
        self.narrator = narrator
        self.cancel_event = cancel_event
        self.clock = pipeline.clock
        self.governor = RateGovernor(pipeline.settings.rate_limit_interval_seconds, self.clock)
        retry_policy = RetryPolicy.from_settings(
            pipeline.settings,
            sleep=partial(self.clock.sleep, cancel_event=cancel_event),
            rng=pipeline.rng,
        )
        self.taxonomy = TaxonomyDiscoveryAgent(pipeline.client)
        self.extraction = CategoryExtractionAgent(pipeline.client, retry_policy)
        self.deadline = self.clock.monotonic() + pipeline.settings.run_timeout_seconds

    def _check_continue(self) -> None:
        if self.cancel_event.is_set():
            raise PipelineCancelled()
        if self.clock.monotonic() > self.deadline:
            raise PipelineTimeoutError()

    # ── Nodes ────────────────────────────────────────────

    def analyze_corpus(self, state: PipelineState) -> PipelineState:
        documents = self.pipeline.documents.get_many(
            list(self.request.document_ids), self.request.project_id
        )
        self.narrator.analyzing(len(documents))

        sections: list[tuple[str, str]] = []
        for doc in documents:
            try:
                data = self.pipeline.files.load_file(doc.file_path)
                text = self.pipeline.extractor.extract_text(data, doc.mime_type)
            except ContentExtractionError as exc:
                logger.warning(f"[ANALYZE] Failed to read document '{doc.name}': {exc}")
                text = ""
            sections.append((doc.name, text))

        try:
            corpus = build_corpus(sections, self.pipeline.settings.max_corpus_chars)
        except EmptyCorpusError as exc:
            return {"status": RunStatus.FAILED.value, "error_message": exc.public_message}

        self.narrator.analyzed(len(corpus))
        return {"corpus": corpus}

    def discover_taxonomy(self, state: PipelineState) -> PipelineState:
        self.narrator.discovering()
        try:
            categories = self.taxonomy.discover(state["corpus"])
        except NoCategoriesFound as exc:
            return {"status": RunStatus.FAILED.value, "error_message": exc.public_message}
        finally:
            self.governor.release()

        self.narrator.categories_found(categories)
        return {"categories": categories, "cursor": 0, "candidates": [], "skipped": []}

    def extract_category(self, state: PipelineState) -> PipelineState:
        categories = state["categories"]
        cursor = state["cursor"]
        category = categories[cursor]
        candidates = list(state.get("candidates", []))
        skipped = list(state.get("skipped", []))

        self._check_continue()
        self.governor.acquire(self.cancel_event)
        self._check_continue()

        self.narrator.category_started(category, cursor, len(categories), len(candidates))
        try:
            extracted = self.extraction.extract(
                category,
                state["corpus"],
                on_retry=self.narrator.retry,
                cancel_event=self.cancel_event,
            )
        finally:
            self.governor.release()

        if extracted is None:
            skipped.append(category)
            extracted = []
        candidates.extend(extracted)

        self.narrator.category_finished(
            category, cursor + 1, len(categories), len(extracted), len(candidates)
        )
        return {"cursor": cursor + 1, "candidates": candidates, "skipped": skipped}

    def save_requirements(self, state: PipelineState) -> PipelineState:
        candidates = state.get("candidates", [])
        self.narrator.saving(len(candidates))

        aggregator = self.pipeline.aggregator
        requirements = aggregator.stamp(candidates, self.request)
        records = aggregator.persist(requirements)
        return {
            "requirements": requirements,
            "records": records,
            "status": RunStatus.COMPLETED.value,
        }

    # ── Graph ────────────────────────────────────────────

    def build_graph(self):
        graph = StateGraph(PipelineState)

        graph.add_node("analyze_corpus", self.analyze_corpus)
        graph.add_node("discover_taxonomy", self.discover_taxonomy)
        graph.add_node("extract_category", self.extract_category)
        graph.add_node("save_requirements", self.save_requirements)
        graph.add_node("end_failed", end_failed)

        graph.set_entry_point("analyze_corpus")

        graph.add_conditional_edges(
            "analyze_corpus",
            route_after_analysis,
            {
                "discover_taxonomy": "discover_taxonomy",
                "end_failed": "end_failed",
            },
        )
        graph.add_conditional_edges(
            "discover_taxonomy",
            route_after_taxonomy,
            {
                "extract_category": "extract_category",
                "end_failed": "end_failed",
            },
        )
        graph.add_conditional_edges(
            "extract_category",
            route_after_category,
            {
                "extract_category": "extract_category",
                "save_requirements": "save_requirements",
            },
        )

        graph.add_edge("save_requirements", END)
        graph.add_edge("end_failed", END)

        return graph.compile()


# ── Public entry point ───────────────────────────────────

class RequirementsExtractionPipeline:
    """
    Orchestrator for one or more ExtractionRequests.

    Collaborators are injected so tests can swap the inference client,
    repositories and clock.
    """

    def __init__(
        self,
        client: InferenceClient,
        documents: DocumentRepository,
        requirements: RequirementRepository,
        files: Optional[FileService] = None,
        extractor: Optional[ContentExtractor] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.documents = documents
        self.files = files or FileService(self.settings)
        self.extractor = extractor or ContentExtractor()
        self.aggregator = RequirementAggregator(requirements)
        self.clock = clock or SystemClock()
        self.rng = rng

    def run(
        self,
        request: ExtractionRequest,
        sink: ProgressSink,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineRun:
        run = PipelineRun(request=request)
        narrator = ProgressNarrator(sink)
        cancel_event = cancel_event or threading.Event()

        logger.info("═" * 60)
        logger.info(
            f"  EXTRACTION {run.run_id} STARTING | project={request.project_id} "
            f"documents={list(request.document_ids)}"
        )
        logger.info("═" * 60)

        run.start()
        try:
            narrator.start(len(request.document_ids))
            executor = _RunExecutor(self, request, narrator, cancel_event)
            final_state = executor.build_graph().invoke(
                {
                    "cursor": 0,
                    "candidates": [],
                    "skipped": [],
                    "status": RunStatus.RUNNING.value,
                },
                config={"recursion_limit": self.settings.graph_recursion_limit},
            )
            run.categories = list(final_state.get("categories", []))
            run.skipped_categories = list(final_state.get("skipped", []))

            if final_state.get("status") == RunStatus.COMPLETED.value:
                run.complete(final_state.get("requirements", []))
                narrator.complete(final_state.get("records", []))
            else:
                message = final_state.get("error_message") or "Requirement extraction failed"
                run.fail(message)
                narrator.error(message)

        except BidRequirementsError as exc:
            logger.error(f"[{run.run_id}] Extraction failed: {exc}")
            self._fail(run, narrator, exc.public_message)
        except Exception as exc:
            error = UnexpectedError(exc)
            logger.exception(f"[{run.run_id}] Unexpected error: {exc}")
            self._fail(run, narrator, str(error))
        finally:
            narrator.end()

        logger.info("═" * 60)
        logger.info(
            f"  EXTRACTION {run.run_id} FINISHED — status: {run.status.value} | "
            f"requirements={len(run.requirements)} skipped={run.skipped_categories}"
        )
        logger.info("═" * 60)
        return run

    @staticmethod
    def _fail(run: PipelineRun, narrator: ProgressNarrator, message: str) -> None:
        if not run.is_terminal:
            run.fail(message)
            narrator.error(message)

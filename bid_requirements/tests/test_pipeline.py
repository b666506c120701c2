"""
Tests: layered extraction pipeline end to end (no network, fake clock).

Run with:
    pytest bid_requirements/tests/test_pipeline.py -v
"""

import threading

import pytest

from bid_requirements.errors import InferenceFatalError
from bid_requirements.models.enums import (
    GENERATION_METHOD,
    InferenceErrorKind,
    Priority,
    ProgressEventType,
    RunStatus,
)
from bid_requirements.models.schemas import Document, ExtractionRequest
from bid_requirements.persistence import RequirementRepository
from bid_requirements.tests.conftest import StubInferenceClient, candidate, rate_limited


FINANCIAL = [
    candidate("Financial", "Annual Turnover", "Critical", "Average turnover of INR 50 crore over 3 years"),
    candidate("Financial", "Bid Security", "High", "EMD of INR 10 lakh"),
]
PERSONNEL = [
    candidate("Personnel", "Project Manager", "Critical", "15 years experience, PMP certified"),
]
COMPLIANCE = [
    candidate("Compliance", "ISO 9001", "High", "Valid ISO 9001:2015 certificate"),
]


class TestHappyPath:
    """Scenario C: fixed stub output for two categories."""

    def test_aggregate_is_union_of_stub_outputs(self, make_pipeline, extraction_request, sink, requirement_repo):
        client = StubInferenceClient(["Financial", "Personnel"], {"Financial": [FINANCIAL], "Personnel": [PERSONNEL]})
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.status == RunStatus.COMPLETED
        expected = FINANCIAL + PERSONNEL
        assert [(r.type, r.title, r.priority.value, r.description) for r in run.requirements] == [
            (c["type"], c["title"], c["priority"], c["description"]) for c in expected
        ]
        ids = [r.id for r in run.requirements]
        assert len(set(ids)) == len(ids)
        assert all(i.startswith("req_") for i in ids)
        assert all(r.created_at is not None for r in run.requirements)

        saved = requirement_repo.list_for_project("P1")
        assert [s["id"] for s in saved] == ids

    def test_metadata_references_request_documents(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(["Financial", "Personnel"], {"Financial": [FINANCIAL], "Personnel": [PERSONNEL]})
        run = make_pipeline(client).run(extraction_request, sink)

        for req in run.requirements:
            assert req.ai_metadata.document_ids == list(extraction_request.document_ids)
            assert req.ai_metadata.generation_method == GENERATION_METHOD
            assert req.status.value == "Pending"
            assert req.project_id == "P1"

    def test_complete_event_carries_persisted_records(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(["Financial"], {"Financial": [FINANCIAL]})
        make_pipeline(client).run(extraction_request, sink)

        complete = sink.of_type(ProgressEventType.COMPLETE)
        assert len(complete) == 1
        assert complete[0].progress == 100
        assert [r["title"] for r in complete[0].data] == ["Annual Turnover", "Bid Security"]
        assert complete[0].data[0]["ai_metadata"]["generation_method"] == "layered_extraction"
        assert sink.types[0] == "start"
        assert sink.types[-2:] == ["complete", "end"]

    def test_mismatched_type_is_pinned_to_category(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(
            ["Experience"],
            {"Experience": [[candidate("Track Record", "Similar Projects"), candidate("Experience", " ")]]},
        )
        run = make_pipeline(client).run(extraction_request, sink)

        assert [(r.type, r.title) for r in run.requirements] == [("Experience", "Similar Projects")]


class TestOrdering:
    def test_categories_processed_in_taxonomy_order(self, make_pipeline, extraction_request, sink):
        categories = ["Personnel", "Financial", "Compliance"]
        client = StubInferenceClient(
            categories,
            {"Financial": [FINANCIAL], "Personnel": [PERSONNEL], "Compliance": [COMPLIANCE]},
        )
        run = make_pipeline(client).run(extraction_request, sink)

        assert client.category_calls == categories
        assert [r.type for r in run.requirements] == ["Personnel", "Financial", "Financial", "Compliance"]

    def test_one_extraction_per_category(self, make_pipeline, extraction_request, sink):
        categories = ["Financial", "Legal", "Insurance", "Geographic"]
        client = StubInferenceClient(categories)
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.status == RunStatus.COMPLETED
        assert client.category_calls == categories
        assert run.requirements == []

    def test_duplicate_categories_collapse(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(["Financial", "financial", " Legal ", ""])
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.categories == ["Financial", "Legal"]
        assert client.category_calls == ["Financial", "Legal"]


class TestNoCategories:
    """Scenario A: empty taxonomy ends the run with one error."""

    def test_empty_taxonomy_emits_error_then_end(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient([])
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.status == RunStatus.FAILED
        errors = sink.of_type(ProgressEventType.ERROR)
        assert len(errors) == 1
        assert errors[0].message.startswith("No requirement types could be identified")
        assert sink.types[-2:] == ["error", "end"]
        assert client.category_calls == []
        assert not sink.of_type(ProgressEventType.COMPLETE)

    def test_taxonomy_failure_is_not_retried(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(rate_limited())
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.status == RunStatus.FAILED
        assert [kind for kind, _ in client.calls] == ["taxonomy"]
        assert not sink.of_type(ProgressEventType.RETRY)
        assert sink.types.count("end") == 1


class TestRetries:
    """Scenario B: category 2 is rate limited twice, then succeeds."""

    def test_two_retry_events_and_results_kept(self, make_pipeline, extraction_request, sink, clock):
        client = StubInferenceClient(
            ["Financial", "Personnel", "Compliance"],
            {
                "Financial": [FINANCIAL],
                "Personnel": [rate_limited(), rate_limited(), PERSONNEL],
                "Compliance": [COMPLIANCE],
            },
        )
        run = make_pipeline(client).run(extraction_request, sink)

        retries = sink.of_type(ProgressEventType.RETRY)
        assert len(retries) == 2
        assert all(e.current_type == "Personnel" for e in retries)
        assert [e.attempt for e in retries] == [2, 3]
        assert all(e.max_attempts == 3 for e in retries)
        assert retries[0].wait_time >= 3.0

        assert client.category_calls == ["Financial", "Personnel", "Personnel", "Personnel", "Compliance"]
        assert "Project Manager" in [r.title for r in run.requirements]
        assert run.status == RunStatus.COMPLETED

    def test_backoff_and_rate_governor_sleeps(self, make_pipeline, extraction_request, sink, clock):
        client = StubInferenceClient(
            ["Financial", "Personnel"],
            {"Financial": [FINANCIAL], "Personnel": [rate_limited(), PERSONNEL]},
        )
        make_pipeline(client).run(extraction_request, sink)

        # governor before Financial, governor before Personnel, one backoff
        backoffs = [s for s in clock.sleeps if s >= 3.0]
        spacing = [s for s in clock.sleeps if s < 3.0]
        assert len(backoffs) == 1
        assert clock.sleeps[0] == pytest.approx(2.0)
        assert sum(spacing) == pytest.approx(4.0, abs=0.01)


class TestPartialFailure:
    def test_exhausted_category_is_skipped(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(
            ["Financial", "Personnel", "Compliance"],
            {
                "Financial": [FINANCIAL],
                "Personnel": [rate_limited()],
                "Compliance": [COMPLIANCE],
            },
        )
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.status == RunStatus.COMPLETED
        assert run.skipped_categories == ["Personnel"]
        assert client.category_calls.count("Personnel") == 3
        assert {r.type for r in run.requirements} == {"Financial", "Compliance"}
        assert sink.types[-2:] == ["complete", "end"]
        assert not sink.of_type(ProgressEventType.ERROR)

    def test_fatal_error_skips_without_retry(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(
            ["Financial", "Legal"],
            {
                "Financial": [InferenceFatalError(InferenceErrorKind.BAD_REQUEST, "context too long")],
                "Legal": [[candidate("Legal", "Power of Attorney")]],
            },
        )
        run = make_pipeline(client).run(extraction_request, sink)

        assert client.category_calls == ["Financial", "Legal"]
        assert not sink.of_type(ProgressEventType.RETRY)
        assert [r.title for r in run.requirements] == ["Power of Attorney"]

    def test_unclassified_client_error_skips_category(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(
            ["Financial", "Legal"],
            {
                "Financial": [RuntimeError("boom")],
                "Legal": [[candidate("Legal", "Power of Attorney")]],
            },
        )
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.status == RunStatus.COMPLETED
        assert client.category_calls == ["Financial", "Legal"]
        assert run.skipped_categories == ["Financial"]
        assert [r.title for r in run.requirements] == ["Power of Attorney"]
        assert not sink.of_type(ProgressEventType.ERROR)
        assert sink.types[-2:] == ["complete", "end"]

    def test_all_categories_failing_still_completes(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(["Financial", "Legal"], {"Financial": [rate_limited()], "Legal": [rate_limited()]})
        run = make_pipeline(client).run(extraction_request, sink)

        assert run.status == RunStatus.COMPLETED
        assert run.requirements == []
        assert sink.of_type(ProgressEventType.COMPLETE)[0].data == []


class TestInvariants:
    def test_candidates_satisfy_model_invariants(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(
            ["Financial", "Personnel", "Compliance"],
            {"Financial": [FINANCIAL], "Personnel": [PERSONNEL], "Compliance": [COMPLIANCE]},
        )
        run = make_pipeline(client).run(extraction_request, sink)

        for req in run.requirements:
            assert req.type in run.categories
            assert req.priority in set(Priority)
            assert req.title.strip()

    def test_status_from_model_output_is_ignored(self, make_pipeline, extraction_request, sink, requirement_repo):
        reported = dict(candidate("Financial", "Annual Turnover"), status="Complete")
        client = StubInferenceClient(["Financial"], {"Financial": [[reported]]})
        run = make_pipeline(client).run(extraction_request, sink)

        assert [r.status.value for r in run.requirements] == ["Pending"]
        assert [s["status"] for s in requirement_repo.list_for_project("P1")] == ["Pending"]
        assert sink.of_type(ProgressEventType.COMPLETE)[0].data[0]["status"] == "Pending"

    def test_progress_is_monotonic(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(
            ["Financial", "Personnel", "Compliance"],
            {"Financial": [FINANCIAL], "Personnel": [rate_limited(), PERSONNEL], "Compliance": [COMPLIANCE]},
        )
        make_pipeline(client).run(extraction_request, sink)

        percents = [e.progress for e in sink.events if e.progress is not None]
        assert percents == sorted(percents)
        assert percents[0] == 0
        assert percents[-1] == 100
        assert 95 in percents

    def test_category_progress_counters(self, make_pipeline, extraction_request, sink):
        client = StubInferenceClient(["Financial", "Personnel"], {"Financial": [FINANCIAL], "Personnel": [PERSONNEL]})
        make_pipeline(client).run(extraction_request, sink)

        finished = [e for e in sink.of_type(ProgressEventType.PROGRESS) if e.extracted_count is not None]
        assert [(e.processed_types, e.total_types, e.extracted_count, e.total_extracted) for e in finished] == [
            (1, 2, 2, 2),
            (2, 2, 1, 3),
        ]
        assert [e.progress for e in finished] == [55.0, 90.0]


class TestRunFailures:
    def test_start_event_failure_still_ends_stream(self, make_pipeline, extraction_request, sink):
        class FlakySink:
            def emit(self, event):
                if event.type == ProgressEventType.START:
                    raise ConnectionResetError("client went away")
                sink.emit(event)

        client = StubInferenceClient(["Financial"], {"Financial": [FINANCIAL]})
        run = make_pipeline(client).run(extraction_request, FlakySink())

        assert run.status == RunStatus.FAILED
        assert client.calls == []
        assert sink.types == ["error", "end"]

    def test_unreadable_corpus(self, make_pipeline, settings, sink, documents):
        documents.add(Document(id="5", project_id="P1", name="scan.doc", file_path="missing.doc", mime_type="application/msword"))
        client = StubInferenceClient(["Financial"])
        run = make_pipeline(client).run(ExtractionRequest(document_ids=["5"], project_id="P1"), sink)

        assert run.status == RunStatus.FAILED
        assert sink.of_type(ProgressEventType.ERROR)[0].message == "No readable content found in the selected documents"
        assert client.calls == []

    def test_unexpected_error_reported_once(self, make_pipeline, extraction_request, sink, monkeypatch, documents):
        def boom(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(documents, "get_many", boom)
        run = make_pipeline(StubInferenceClient(["Financial"])).run(extraction_request, sink)

        assert run.status == RunStatus.FAILED
        errors = sink.of_type(ProgressEventType.ERROR)
        assert len(errors) == 1
        assert "unexpected error" in errors[0].message
        assert sink.types[-1] == "end"

    def test_persistence_failure_is_reported(self, make_pipeline, extraction_request, sink, monkeypatch):
        repo = RequirementRepository()
        calls = {"n": 0}
        original = repo._insert

        def flaky_insert(record):
            calls["n"] += 1
            if calls["n"] == 2:
                raise ConnectionError("write failed")
            original(record)

        monkeypatch.setattr(repo, "_insert", flaky_insert)
        client = StubInferenceClient(["Financial"], {"Financial": [FINANCIAL]})
        run = make_pipeline(client, requirements=repo).run(extraction_request, sink)

        assert run.status == RunStatus.FAILED
        assert len(repo.list_for_project("P1")) == 1
        assert sink.types[-2:] == ["error", "end"]

    def test_timeout_between_categories(self, make_pipeline, settings, extraction_request, sink):
        settings.run_timeout_seconds = 5.0
        client = StubInferenceClient(["Financial", "Personnel", "Compliance"])
        run = make_pipeline(client, settings=settings).run(extraction_request, sink)

        assert run.status == RunStatus.FAILED
        assert client.category_calls == ["Financial", "Personnel"]
        assert "maximum run time" in sink.of_type(ProgressEventType.ERROR)[0].message


class TestCancellation:
    def test_cancel_stops_before_next_category(self, make_pipeline, extraction_request, sink, requirement_repo):
        cancel = threading.Event()
        client = StubInferenceClient(["Financial", "Personnel", "Compliance"], {"Financial": [FINANCIAL]})
        client.on_call = lambda kind, category: cancel.set()

        run = make_pipeline(client).run(extraction_request, sink, cancel_event=cancel)

        assert client.category_calls == ["Financial"]
        assert run.status == RunStatus.FAILED
        assert run.error_message == "Requirement extraction was cancelled."
        assert requirement_repo.list_for_project("P1") == []
        assert sink.types.count("end") == 1


class TestPipelineRun:
    def test_lifecycle(self, extraction_request):
        from bid_requirements.models.state import PipelineRun

        run = PipelineRun(request=extraction_request)
        assert run.status == RunStatus.IDLE
        assert run.run_id.startswith("RUN-")

        run.start()
        run.complete([])
        assert run.is_terminal
        assert run.finished_at is not None

    def test_terminal_states_are_final(self, extraction_request):
        from bid_requirements.errors import InvalidRunTransition
        from bid_requirements.models.state import PipelineRun

        run = PipelineRun(request=extraction_request)
        with pytest.raises(InvalidRunTransition):
            run.complete([])

        run.start()
        run.fail("boom")
        with pytest.raises(InvalidRunTransition):
            run.start()
        assert run.error_message == "boom"

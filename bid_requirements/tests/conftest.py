"""Shared fixtures: stub inference client, seeded repositories, fake clock."""

from __future__ import annotations

import random
import re
from typing import Any, Callable, Union

import pytest

from bid_requirements.config import Settings
from bid_requirements.errors import InferenceTransientError
from bid_requirements.models.enums import InferenceErrorKind
from bid_requirements.models.schemas import (
    Document,
    ExtractionRequest,
    RequirementCandidateList,
    RequirementTypeList,
)
from bid_requirements.orchestration.graph import RequirementsExtractionPipeline
from bid_requirements.orchestration.progress import RecordingSink
from bid_requirements.orchestration.rate_governor import FakeClock
from bid_requirements.persistence import DocumentRepository, RequirementRepository
from bid_requirements.services.file_service import FileService

_CATEGORY_RE = re.compile(r'Extract ONLY the "(.+?)" bid-qualification')

Outcome = Union[BaseException, list[dict[str, Any]]]


def rate_limited() -> InferenceTransientError:
    return InferenceTransientError(InferenceErrorKind.RATE_LIMITED, "429 rate limit reached")


class StubInferenceClient:
    """
    Scripted InferenceClient.

    categories: what taxonomy discovery returns (or an exception to raise).
    script: category → list of outcomes consumed one per call; the last
            outcome repeats. An outcome is an exception or a list of
            candidate dicts.
    """

    def __init__(
        self,
        categories: Union[list[str], BaseException],
        script: dict[str, list[Outcome]] | None = None,
    ) -> None:
        self.categories = categories
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.calls: list[tuple[str, str]] = []
        self.on_call: Callable[[str, str], None] | None = None

    @property
    def category_calls(self) -> list[str]:
        return [c for kind, c in self.calls if kind == "category"]

    def extract(self, prompt: str, schema):
        if schema is RequirementTypeList:
            self.calls.append(("taxonomy", ""))
            if isinstance(self.categories, BaseException):
                raise self.categories
            return RequirementTypeList(requirement_types=list(self.categories))

        assert schema is RequirementCandidateList
        match = _CATEGORY_RE.search(prompt)
        assert match, "category prompt without a category"
        category = match.group(1)
        self.calls.append(("category", category))
        if self.on_call is not None:
            self.on_call("category", category)

        outcomes = self.script.get(category, [[]])
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return RequirementCandidateList.model_validate({"requirements": outcome})


def candidate(type_: str, title: str, priority: str = "High", description: str = "") -> dict[str, Any]:
    return {
        "type": type_,
        "title": title,
        "priority": priority,
        "description": description or f"{title} as stated in the tender",
    }


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        local_storage_path=str(tmp_path),
        rate_limit_interval_seconds=2.0,
        keepalive_interval_seconds=12.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def documents(tmp_path) -> DocumentRepository:
    repo = DocumentRepository()
    (tmp_path / "tender.txt").write_text(
        "Bidder shall have an average annual turnover of INR 50 crore.\n"
        "Project Manager with 15 years experience is mandatory.",
        encoding="utf-8",
    )
    (tmp_path / "annexure.md").write_text(
        "# Annexure\nISO 9001:2015 certification required.",
        encoding="utf-8",
    )
    repo.add(Document(id="1", project_id="P1", name="tender.txt", file_path="tender.txt", mime_type="text/plain"))
    repo.add(Document(id="2", project_id="P1", name="annexure.md", file_path="annexure.md", mime_type="text/markdown"))
    repo.add(Document(id="9", project_id="P2", name="other.txt", file_path="tender.txt", mime_type="text/plain"))
    return repo


@pytest.fixture
def requirement_repo() -> RequirementRepository:
    return RequirementRepository()


@pytest.fixture
def extraction_request() -> ExtractionRequest:
    return ExtractionRequest(document_ids=["1", "2"], project_id="P1")


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_pipeline(settings, clock, documents, requirement_repo):
    def _make(client, **overrides) -> RequirementsExtractionPipeline:
        kwargs = dict(
            client=client,
            documents=documents,
            requirements=requirement_repo,
            files=FileService(settings),
            settings=settings,
            clock=clock,
            rng=random.Random(7),
        )
        kwargs.update(overrides)
        return RequirementsExtractionPipeline(**kwargs)

    return _make

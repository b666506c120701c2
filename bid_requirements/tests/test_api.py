"""
Tests: HTTP surface — validation responses, SSE stream, read-back.

Run with:
    pytest bid_requirements/tests/test_api.py -v
"""

import json

import pytest
from fastapi.testclient import TestClient

from bid_requirements.api import create_app
from bid_requirements.bootstrap import build_services
from bid_requirements.config import Settings
from bid_requirements.models.schemas import Document
from bid_requirements.tests.conftest import StubInferenceClient, candidate


@pytest.fixture
def services(tmp_path):
    settings = Settings(
        _env_file=None,
        local_storage_path=str(tmp_path),
        rate_limit_interval_seconds=0.0,
        storage_backend="memory",
    )
    stub = StubInferenceClient(
        ["Financial", "Compliance"],
        {
            "Financial": [[candidate("Financial", "Annual Turnover", "Critical")]],
            "Compliance": [[candidate("Compliance", "ISO 9001")]],
        },
    )
    services = build_services(settings, client=stub)

    (tmp_path / "rfp.txt").write_text("Turnover INR 50 crore. ISO 9001 required.", encoding="utf-8")
    services.documents.add(Document(id="1", project_id="7", name="rfp.txt", file_path="rfp.txt", mime_type="text/plain"))
    services.documents.add(Document(id="2", project_id="8", name="rfp.txt", file_path="rfp.txt", mime_type="text/plain"))
    return services


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


def _events(response):
    events = []
    for line in response.iter_lines():
        if line.startswith("data: "):
            events.append(json.loads(line[len("data: "):]))
    return events


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestValidation:
    def test_empty_document_list(self, client):
        response = client.post("/api/requirements/generate", json={"document_ids": [], "project_id": 7})
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "document_ids" in body["errors"]

    def test_missing_project(self, client):
        response = client.post("/api/requirements/generate", json={"document_ids": [1]})
        assert response.status_code == 422
        assert "project_id" in response.json()["errors"]

    def test_unknown_document(self, client):
        response = client.post("/api/requirements/generate", json={"document_ids": [1, 99], "project_id": 7})
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Validation failed"
        assert "document_ids.1" in body["errors"]

    def test_document_from_other_project(self, client):
        response = client.post("/api/requirements/generate", json={"document_ids": [1, 2], "project_id": 7})
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "No valid documents found for the selected project",
        }


class TestGenerateStream:
    def test_streams_progress_until_end(self, client):
        with client.stream(
            "POST",
            "/api/requirements/generate",
            json={"document_ids": [1], "project_id": 7},
        ) as response:
            assert response.status_code == 200
            assert response.headers["content-type"].startswith("text/event-stream")
            assert response.headers["cache-control"] == "no-cache"
            events = _events(response)

        types = [e["type"] for e in events]
        assert types[0] == "start"
        assert types[-2:] == ["complete", "end"]
        complete = events[-2]
        assert [r["title"] for r in complete["data"]] == ["Annual Turnover", "ISO 9001"]
        assert all(r["project_id"] == "7" for r in complete["data"])

    def test_saved_requirements_are_listed(self, client):
        with client.stream(
            "POST",
            "/api/requirements/generate",
            json={"document_ids": ["1"], "project_id": "7"},
        ) as response:
            _events(response)

        response = client.get("/api/requirements/7")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [r["type"] for r in body["data"]] == ["Financial", "Compliance"]
        assert body["data"][0]["ai_metadata"]["document_ids"] == ["1"]

    def test_unknown_project_lists_nothing(self, client):
        assert client.get("/api/requirements/404").json() == {"success": True, "data": []}

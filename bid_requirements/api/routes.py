"""
API routes — thin HTTP layer that delegates to the extraction pipeline.

Routes:
  GET  /health                              → API health check
  POST /api/requirements/generate           → Validate, then stream extraction progress (SSE)
  GET  /api/requirements/{project_id}       → Saved requirements for a project
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Union

import pydantic
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from bid_requirements.api.streaming import SSE_HEADERS, ExtractionStream
from bid_requirements.bootstrap import AppServices
from bid_requirements.errors import DocumentValidationError
from bid_requirements.models.schemas import ExtractionRequest

logger = logging.getLogger(__name__)

# ── Routers ──────────────────────────────────────────────
health_router = APIRouter()
requirements_router = APIRouter()


# ── Request schemas ──────────────────────────────────────
class GenerateRequirementsBody(BaseModel):
    document_ids: list[Union[int, str]] = []
    project_id: Union[int, str, None] = None


def _services(request: Request) -> AppServices:
    return request.app.state.services


def _field_errors(exc: pydantic.ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in exc.errors():
        field = ".".join(str(p) for p in item.get("loc", ())) or "body"
        errors.setdefault(field, []).append(item.get("msg", "Invalid value"))
    return errors


# ── Health ───────────────────────────────────────────────

@health_router.get("/health")
async def health_check():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Generate (streaming) ─────────────────────────────────

@requirements_router.post("/generate")
async def generate_requirements(body: GenerateRequirementsBody, request: Request):
    """
    Validate the selection, then open a Server-Sent Events stream that
    narrates the extraction. Validation failures return a single JSON
    error response instead of a stream.
    """
    services = _services(request)

    try:
        extraction_request = ExtractionRequest(
            document_ids=body.document_ids,
            project_id=body.project_id,
        )
    except pydantic.ValidationError as exc:
        raise DocumentValidationError("Validation failed", errors=_field_errors(exc)) from exc

    services.documents.validate_request(extraction_request)

    logger.info(
        f"Starting requirement extraction: project={extraction_request.project_id} "
        f"documents={list(extraction_request.document_ids)}"
    )
    stream = ExtractionStream(
        services.pipeline,
        extraction_request,
        keepalive_interval=services.settings.keepalive_interval_seconds,
    )
    return StreamingResponse(
        stream.sse(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ── Read back ────────────────────────────────────────────

@requirements_router.get("/{project_id}")
async def list_requirements(project_id: str, request: Request) -> dict[str, Any]:
    records = _services(request).requirements.list_for_project(project_id)
    return {"success": True, "data": records}

"""
FastAPI application factory and API package.

Run with:
    uvicorn bid_requirements.api:app --port 8000

Or via main.py:
    python -m bid_requirements --serve
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bid_requirements.api.routes import health_router, requirements_router
from bid_requirements.bootstrap import AppServices, build_services
from bid_requirements.errors import DocumentValidationError

logger = logging.getLogger(__name__)


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """Application factory — create and configure the FastAPI instance."""
    services = services or build_services()

    application = FastAPI(
        title="Bid Requirements Extraction API",
        description="Extracts bid-qualification requirements from tender documents",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.state.services = services

    # CORS: allow the frontend (adjust origins in production)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error responses (never a stream) ─────────────────

    @application.exception_handler(DocumentValidationError)
    async def document_validation_handler(request: Request, exc: DocumentValidationError):
        logger.info(f"Rejected extraction request: {exc} {exc.errors}")
        body = {"success": False, "error": str(exc)}
        if exc.errors:
            body["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=body)

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors: dict[str, list[str]] = {}
        for item in exc.errors():
            field = ".".join(str(p) for p in item.get("loc", ()) if p != "body") or "body"
            errors.setdefault(field, []).append(item.get("msg", "Invalid value"))
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": "Validation failed", "errors": errors},
        )

    # Register route groups
    application.include_router(health_router, tags=["Health"])
    application.include_router(requirements_router, prefix="/api/requirements", tags=["Requirements"])

    logger.info(f"Created {services.settings.app_name} API")
    return application


# Module-level instance for `uvicorn bid_requirements.api:app`
app = create_app()

"""
Bid Requirements Extraction — Main Entry Point

Run the pipeline directly on local files (CLI):
    python -m bid_requirements tender.pdf annexure.docx --project P-001

Run as an API server:
    python -m bid_requirements --serve
    # or: uvicorn bid_requirements.api:app --port 8000

Or import and run programmatically:
    from bid_requirements.main import run
    pipeline_run = run(["path/to/tender.pdf"])
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from bid_requirements.bootstrap import build_services
from bid_requirements.config import get_settings
from bid_requirements.models.schemas import Document, ExtractionRequest
from bid_requirements.models.state import PipelineRun
from bid_requirements.orchestration.progress import LoggingProgressSink
from bid_requirements.services.parsing_service import guess_mime_type
from bid_requirements.utils.logger import setup_logging


def run(file_paths: list[str], project_id: str = "local") -> PipelineRun:
    """Register local files as documents, run the extraction and return the run."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    services = build_services(settings)
    document_ids = []
    for index, raw_path in enumerate(file_paths, start=1):
        path = Path(raw_path).resolve()
        doc = services.documents.add(
            Document(
                id=f"DOC-{index:03d}",
                project_id=project_id,
                name=path.name,
                file_path=str(path),
                mime_type=guess_mime_type(path.name),
            )
        )
        document_ids.append(doc.id)

    request = ExtractionRequest(document_ids=document_ids, project_id=project_id)
    services.documents.validate_request(request)

    pipeline_run = services.pipeline.run(request, LoggingProgressSink())
    _print_summary(pipeline_run)
    logger.debug(f"Run {pipeline_run.run_id} finished with status {pipeline_run.status.value}")
    return pipeline_run


def _print_summary(pipeline_run: PipelineRun) -> None:
    """Log a human-readable summary of the run."""
    logger = logging.getLogger(__name__)

    logger.info("-" * 60)
    logger.info("  EXTRACTION RESULT SUMMARY")
    logger.info("-" * 60)
    logger.info(f"  Run ID:         {pipeline_run.run_id}")
    logger.info(f"  Status:         {pipeline_run.status.value}")
    logger.info(f"  Types:          {', '.join(pipeline_run.categories) or 'N/A'}")
    logger.info(f"  Requirements:   {len(pipeline_run.requirements)} extracted")
    if pipeline_run.error_message:
        logger.info(f"  Error:          {pipeline_run.error_message}")
    logger.info("-" * 60)

    for req in pipeline_run.requirements:
        logger.info(f"    [{req.priority.value:<8}] {req.type} | {req.title}")


def serve(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Start the FastAPI server."""
    import uvicorn

    setup_logging(get_settings().log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run("bid_requirements.api:app", host=host, port=port)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="bid_requirements",
        description="Extract bid-qualification requirements from tender documents.",
    )
    parser.add_argument("files", nargs="*", help="Documents to analyze (PDF, DOCX, text)")
    parser.add_argument("--project", default="local", help="Project id to attach requirements to")
    parser.add_argument("--serve", action="store_true", help="Start the API server instead")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    if args.serve:
        serve(args.host, args.port)
    elif args.files:
        run(args.files, project_id=args.project)
    else:
        parser.error("give at least one document, or --serve")


if __name__ == "__main__":
    main()

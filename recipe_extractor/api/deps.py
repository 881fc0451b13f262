"""FastAPI dependencies for the recipe extractor API."""

from fastapi import Request

from recipe_extractor.services.completion import CompletionHandler
from recipe_extractor.services.job_store import JobStore
from recipe_extractor.services.orchestrator import ExtractionOrchestrator


def get_job_store(request: Request) -> JobStore:
    """Dependency for the job store."""
    return request.app.state.job_store


def get_orchestrator(request: Request) -> ExtractionOrchestrator:
    """Dependency for the extraction orchestrator."""
    return request.app.state.orchestrator


def get_completion_handler(request: Request) -> CompletionHandler:
    """Dependency for the webhook completion handler."""
    return request.app.state.completion_handler

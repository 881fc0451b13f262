"""FastAPI routes for the recipe extractor API."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from recipe_extractor.api.deps import get_completion_handler, get_job_store, get_orchestrator
from recipe_extractor.services.completion import CompletionHandler
from recipe_extractor.services.job_store import JobStore
from recipe_extractor.services.orchestrator import ExtractionOrchestrator, ExtractOutcome
from recipe_extractor.utils.errors import (
    InvalidPayloadError,
    InvalidUrlError,
    MetadataUnavailableError,
    RecipeExtractorError,
    UnauthorizedError,
    UpstreamTriggerFailedError,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter()


# ==================== Error Response Model ====================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    error_type: str
    errors: Optional[List[Dict[str, Any]]] = None


# ==================== Exception Handlers ====================


def status_code_for(exc: RecipeExtractorError) -> int:
    """Map an application error to its HTTP status code."""
    if isinstance(exc, (InvalidUrlError, MetadataUnavailableError, InvalidPayloadError)):
        return 400
    if isinstance(exc, UnauthorizedError):
        return 401
    if isinstance(exc, UpstreamTriggerFailedError):
        return 502  # Bad Gateway for scraper trigger failures
    # ConfigurationError, NormalizationError, DatastoreError
    return 500


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle malformed request bodies and parameters."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid request",
            "error_type": "ValidationError",
            "errors": [
                {"loc": list(e.get("loc", [])), "msg": e.get("msg", "")} for e in exc.errors()
            ],
        },
    )


async def recipe_extractor_exception_handler(
    request: Request, exc: RecipeExtractorError
) -> JSONResponse:
    """Handle application-specific errors."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error_type": type(exc).__name__,
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_type": "HTTPException",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_type": "InternalError",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(RecipeExtractorError, recipe_extractor_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


# ==================== Request/Response Models ====================


class ExtractRequest(BaseModel):
    """Request model for extract endpoint."""

    url: str = Field(min_length=1, description="TikTok or YouTube video URL")
    force: bool = Field(default=False, description="Re-extract even if a job exists")


def _outcome_response(outcome: ExtractOutcome) -> JSONResponse:
    # PENDING is accepted work; READY and FAILED are final answers
    status_code = 202 if outcome.status == "PENDING" else 200
    return JSONResponse(
        status_code=status_code,
        content=outcome.model_dump(mode="json", exclude_none=True),
    )


# ==================== Endpoints ====================


ERROR_RESPONSES: Dict[int | str, Dict[str, Any]] = {
    code: {"model": ErrorResponse} for code in (400, 401, 404, 500, 502)
}


@router.post("/extract", responses=ERROR_RESPONSES)
async def extract_recipe(
    request: ExtractRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Extract a recipe from a video URL.

    Returns READY or FAILED (200) when the outcome is known now, or
    PENDING (202) when a scraper run will complete it; poll ``/result``.
    """
    outcome = await orchestrator.extract(request.url, force=request.force)
    return _outcome_response(outcome)


@router.get("/result", responses=ERROR_RESPONSES)
async def get_result(
    key: Optional[str] = Query(default=None, description="Canonical video key"),
    store: JobStore = Depends(get_job_store),
) -> JSONResponse:
    """Read the current state of a job."""
    if not key or not key.strip():
        raise HTTPException(status_code=400, detail="Query parameter 'key' is required")

    job = await store.get(key.strip())
    if job is None:
        raise HTTPException(status_code=404, detail=f"No job for key {key.strip()!r}")

    return _outcome_response(ExtractOutcome.from_job(job))


@router.post("/apify-webhook", responses=ERROR_RESPONSES)
async def apify_webhook(
    request: Request,
    key: Optional[str] = Query(default=None),
    secret: Optional[str] = Query(default=None),
    handler: CompletionHandler = Depends(get_completion_handler),
) -> JSONResponse:
    """
    Complete a slow-path job from a scraper callback.

    Any 2xx tells the scraper to stop redelivering, so only terminal
    outcomes are acknowledged with 200.
    """
    # Authenticate before touching the body
    handler.verify_secret(secret)
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidPayloadError("Webhook body is not valid JSON")

    ack = await handler.complete(key, secret, payload)
    return JSONResponse(status_code=200, content=ack.model_dump(mode="json", exclude_none=True))


@router.get("/health")
async def health() -> Dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}

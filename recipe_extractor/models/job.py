"""Job Pydantic models for the extraction cache table."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from recipe_extractor.models.recipe import Recipe

JobState = Literal["PENDING", "READY", "FAILED"]
ContentOrigin = Literal["caption", "transcript", "video_analysis"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobError(BaseModel):
    """Structured error stored on a FAILED job."""

    type: str = Field(min_length=1)
    message: str


class PhaseTimings(BaseModel):
    """Per-phase timings in milliseconds."""

    oembed_ms: Optional[float] = None
    normalize_ms: Optional[float] = None
    trigger_ms: Optional[float] = None
    dataset_ms: Optional[float] = None


class JobMeta(BaseModel):
    """Diagnostic inputs recorded for a job.

    Every field is optional; successive writes are combined with
    :func:`merge_meta` so later writers never erase earlier fields.
    """

    source_url: Optional[str] = None
    platform: Optional[Literal["tiktok", "youtube"]] = None
    source: Optional[ContentOrigin] = None
    caption: Optional[str] = None
    transcript: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    creator_handle: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_width: Optional[int] = None
    thumbnail_height: Optional[int] = None
    ai_provider: Optional[str] = None
    model: Optional[str] = None
    actor_run_id: Optional[str] = None
    dataset_id: Optional[str] = None
    timings: Optional[PhaseTimings] = None


def _merge_models(old: BaseModel, new: BaseModel) -> dict:
    merged = old.model_dump()
    for name, value in new.model_dump().items():
        if value is not None:
            merged[name] = value
    return merged


def merge_meta(old: Optional[JobMeta], new: Optional[JobMeta]) -> JobMeta:
    """
    Merge two meta records field by field.

    A field set in ``new`` wins; a field left unset in ``new`` keeps the value
    from ``old``. Timings are merged the same way.

    Args:
        old: Previously stored meta (may be None)
        new: Meta carried by the current write (may be None)

    Returns:
        The merged JobMeta
    """
    if old is None:
        return new.model_copy(deep=True) if new is not None else JobMeta()
    if new is None:
        return old.model_copy(deep=True)

    merged = _merge_models(old, new)
    if old.timings is not None and new.timings is not None:
        merged["timings"] = _merge_models(old.timings, new.timings)
    return JobMeta.model_validate(merged)


class Job(BaseModel):
    """One row of the extraction cache, keyed by canonical video id."""

    key: str = Field(min_length=1)
    status: JobState = "PENDING"
    value: Optional[Recipe] = None
    meta: JobMeta = Field(default_factory=JobMeta)
    error: Optional[JobError] = None
    updated_at: datetime = Field(default_factory=utcnow)

"""Pydantic data models for the recipe extractor."""

from recipe_extractor.models.job import Job, JobError, JobMeta, JobState, PhaseTimings, merge_meta
from recipe_extractor.models.recipe import Ingredient, Media, Recipe, Step, Thumbnail
from recipe_extractor.models.video import ParsedUrl, Platform, VideoMetadata

__all__ = [
    "Job",
    "JobError",
    "JobMeta",
    "JobState",
    "PhaseTimings",
    "merge_meta",
    "Ingredient",
    "Media",
    "Recipe",
    "Step",
    "Thumbnail",
    "ParsedUrl",
    "Platform",
    "VideoMetadata",
]

"""Utility modules for the recipe extractor."""

from recipe_extractor.utils.errors import (
    ConfigurationError,
    DatastoreError,
    InvalidPayloadError,
    InvalidUrlError,
    MetadataUnavailableError,
    MissingCredentialError,
    NormalizationError,
    RecipeExtractorError,
    UnauthorizedError,
    UpstreamTriggerFailedError,
    VideoIdUnavailableError,
)
from recipe_extractor.utils.retry import with_retry

__all__ = [
    "RecipeExtractorError",
    "InvalidUrlError",
    "MetadataUnavailableError",
    "VideoIdUnavailableError",
    "ConfigurationError",
    "MissingCredentialError",
    "NormalizationError",
    "UnauthorizedError",
    "InvalidPayloadError",
    "DatastoreError",
    "UpstreamTriggerFailedError",
    "with_retry",
]

"""Service layer for the recipe extractor."""

from recipe_extractor.services.completion import CompletionAck, CompletionHandler
from recipe_extractor.services.heuristics import RecipeHeuristic
from recipe_extractor.services.identity import resolve
from recipe_extractor.services.job_store import JobStore, create_job_store
from recipe_extractor.services.metadata import MetadataFetcher, create_metadata_fetcher
from recipe_extractor.services.normalizer import (
    GeminiNormalizer,
    NormalizeInput,
    NormalizeResult,
    OpenAINormalizer,
    RecipeNormalizer,
)
from recipe_extractor.services.orchestrator import ExtractionOrchestrator, ExtractOutcome
from recipe_extractor.services.router import ProviderChoice, ProviderRouter, route
from recipe_extractor.services.scraper import ApifyClient, ApifyRun, create_apify_client

__all__ = [
    "CompletionAck",
    "CompletionHandler",
    "RecipeHeuristic",
    "resolve",
    "JobStore",
    "create_job_store",
    "MetadataFetcher",
    "create_metadata_fetcher",
    "GeminiNormalizer",
    "NormalizeInput",
    "NormalizeResult",
    "OpenAINormalizer",
    "RecipeNormalizer",
    "ExtractionOrchestrator",
    "ExtractOutcome",
    "ProviderChoice",
    "ProviderRouter",
    "route",
    "ApifyClient",
    "ApifyRun",
    "create_apify_client",
]

"""FastAPI application for the recipe extractor."""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recipe_extractor.api.routes import register_exception_handlers, router
from recipe_extractor.config import Settings, get_settings
from recipe_extractor.services.completion import CompletionHandler
from recipe_extractor.services.heuristics import RecipeHeuristic
from recipe_extractor.services.job_store import JobStore, create_job_store
from recipe_extractor.services.metadata import MetadataFetcher, create_metadata_fetcher
from recipe_extractor.services.orchestrator import ExtractionOrchestrator
from recipe_extractor.services.router import ProviderRouter
from recipe_extractor.services.scraper import ApifyClient, create_apify_client

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    job_store: Optional[JobStore] = None,
    metadata_fetcher: Optional[MetadataFetcher] = None,
    provider_router: Optional[ProviderRouter] = None,
    apify_client: Optional[ApifyClient] = None,
) -> FastAPI:
    """
    Build the application and wire its services.

    Args:
        settings: Application settings (read from the environment if None)
        job_store: Job store (Supabase-backed if None)
        metadata_fetcher: oEmbed fetcher
        provider_router: AI provider router
        apify_client: Scraper client

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    job_store = job_store or create_job_store(settings)
    metadata_fetcher = metadata_fetcher or create_metadata_fetcher(settings)
    provider_router = provider_router or ProviderRouter(settings)
    apify_client = apify_client or create_apify_client(settings)

    # Requests for these platforms will fail with MissingCredentialError
    for platform, error in provider_router.missing_credentials().items():
        logger.warning(f"{platform} extraction is unavailable: {error}")

    app = FastAPI(title="Recipe Extractor API")
    app.state.settings = settings
    app.state.job_store = job_store
    app.state.orchestrator = ExtractionOrchestrator(
        settings=settings,
        job_store=job_store,
        metadata_fetcher=metadata_fetcher,
        router=provider_router,
        apify_client=apify_client,
        heuristic=RecipeHeuristic.from_settings(settings),
    )
    app.state.completion_handler = CompletionHandler(
        settings=settings,
        job_store=job_store,
        router=provider_router,
        apify_client=apify_client,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)

    logger.info(
        f"Recipe extractor ready (ai_provider={settings.ai_provider}, table={settings.cache_table})"
    )
    return app


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "recipe_extractor.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )

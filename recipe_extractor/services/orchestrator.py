"""Extraction orchestrator: the per-request job state machine."""

import logging
import time
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel

from recipe_extractor.config import Settings
from recipe_extractor.models.job import Job, JobError, JobMeta, JobState, PhaseTimings, merge_meta
from recipe_extractor.models.recipe import Recipe
from recipe_extractor.models.video import VideoMetadata
from recipe_extractor.services.heuristics import RecipeHeuristic
from recipe_extractor.services.identity import resolve
from recipe_extractor.services.job_store import JobStore
from recipe_extractor.services.metadata import MetadataFetcher
from recipe_extractor.services.normalizer import NormalizeInput, NormalizeResult
from recipe_extractor.services.router import ProviderRouter
from recipe_extractor.services.scraper import ApifyClient
from recipe_extractor.utils.errors import ConfigurationError, NormalizationError

logger = logging.getLogger(__name__)

SLOW_PATH_SETTINGS = ("apify_token", "apify_actor_id", "apify_webhook_secret", "public_base_url")


class ExtractOutcome(BaseModel):
    """What ``POST /extract`` reports back to the client."""

    key: str
    status: JobState
    value: Optional[Recipe] = None
    error: Optional[JobError] = None

    @classmethod
    def from_job(cls, job: Job) -> "ExtractOutcome":
        return cls(key=job.key, status=job.status, value=job.value, error=job.error)


def result_meta(meta: JobMeta, result: NormalizeResult, source: str) -> JobMeta:
    """Meta for a READY write: the inputs plus the provider that produced it."""
    return merge_meta(
        meta,
        JobMeta(
            source=source,
            ai_provider=result.provider,
            model=result.model_used,
            timings=PhaseTimings(normalize_ms=result.elapsed_ms),
        ),
    )


class ExtractionOrchestrator:
    """Runs one extraction request against the shared job store.

    Holds no per-job state of its own; concurrent requests for the same
    video coordinate only through the job store.
    """

    def __init__(
        self,
        settings: Settings,
        job_store: JobStore,
        metadata_fetcher: MetadataFetcher,
        router: ProviderRouter,
        apify_client: ApifyClient,
        heuristic: Optional[RecipeHeuristic] = None,
    ) -> None:
        self.settings = settings
        self.store = job_store
        self.metadata = metadata_fetcher
        self.router = router
        self.apify = apify_client
        self.heuristic = heuristic or RecipeHeuristic.from_settings(settings)

    async def extract(self, url: str, force: bool = False) -> ExtractOutcome:
        """
        Extract a recipe for a video URL.

        Args:
            url: TikTok or YouTube video URL
            force: Re-extract even when a job already exists

        Returns:
            ExtractOutcome with the stored status after this request

        Raises:
            InvalidUrlError: If the URL is not a supported video URL
            MetadataUnavailableError: If oEmbed metadata cannot be fetched
            MissingCredentialError: If the routed provider has no API key
            ConfigurationError: If the scraper is needed but not configured
            UpstreamTriggerFailedError: If the scraper run cannot be started
            DatastoreError: If the job store fails
        """
        request_id = uuid4().hex[:8]
        start = time.perf_counter()

        parsed = resolve(url)
        logger.info(f"[{request_id}] extract {parsed.platform} url={parsed.url} force={force}")

        metadata = await self.metadata.fetch(parsed.platform, parsed.url)
        key = metadata.key

        existing = await self.store.get(key)
        if existing is not None and not force:
            logger.info(f"[{request_id}] {key} cache hit: {existing.status}")
            return ExtractOutcome.from_job(existing)

        if parsed.platform == "youtube":
            outcome = await self._extract_youtube(request_id, metadata, force)
        else:
            outcome = await self._extract_tiktok(request_id, metadata, force)

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"[{request_id}] {key} -> {outcome.status} ({elapsed:.0f}ms)")
        return outcome

    async def _extract_tiktok(
        self, request_id: str, metadata: VideoMetadata, force: bool
    ) -> ExtractOutcome:
        key = metadata.key
        meta = metadata.to_meta()

        if self.heuristic.looks_like_recipe(metadata.caption):
            choice = self.router.route("tiktok")
            logger.info(f"[{request_id}] {key} caption looks like a recipe, normalizing with {choice.provider}")
            try:
                result = await self.router.normalize(NormalizeInput.from_metadata(metadata), choice)
            except NormalizationError as e:
                logger.warning(f"[{request_id}] {key} caption normalization failed, using scraper: {e}")
            else:
                job = await self.store.mark_ready(
                    key, result.recipe, meta=result_meta(meta, result, "caption"), force=force
                )
                return ExtractOutcome.from_job(job)
        else:
            logger.info(f"[{request_id}] {key} caption is not recipe-like, using scraper")

        return await self._trigger_scrape(request_id, metadata, meta, force)

    async def _trigger_scrape(
        self, request_id: str, metadata: VideoMetadata, meta: JobMeta, force: bool
    ) -> ExtractOutcome:
        missing = [name for name in SLOW_PATH_SETTINGS if not getattr(self.settings, name)]
        if missing:
            raise ConfigurationError(f"Scraper is not configured: {', '.join(n.upper() for n in missing)}")

        key = metadata.key
        webhook_url = self.apify.build_webhook_url(
            self.settings.public_base_url, key, self.settings.apify_webhook_secret
        )
        run = await self.apify.trigger_run(metadata.source_url, key, webhook_url)

        pending_meta = merge_meta(
            meta,
            JobMeta(
                actor_run_id=run.run_id,
                dataset_id=run.dataset_id,
                timings=PhaseTimings(trigger_ms=run.elapsed_ms),
            ),
        )
        job = await self.store.mark_pending(key, meta=pending_meta, force=force)
        logger.info(f"[{request_id}] {key} scraper run {run.run_id} started")
        return ExtractOutcome.from_job(job)

    async def _extract_youtube(
        self, request_id: str, metadata: VideoMetadata, force: bool
    ) -> ExtractOutcome:
        key = metadata.key
        meta = metadata.to_meta()

        choice = self.router.route("youtube")
        logger.info(f"[{request_id}] {key} analyzing YouTube video with {choice.provider}")
        try:
            result = await self.router.normalize(NormalizeInput.from_metadata(metadata), choice)
        except NormalizationError as e:
            logger.warning(f"[{request_id}] {key} video analysis failed: {e}")
            # Not forced: a failed retry never replaces a READY recipe
            job = await self.store.mark_failed(key, "NormalizationError", str(e), meta=meta)
            return ExtractOutcome.from_job(job)

        job = await self.store.mark_ready(
            key, result.recipe, meta=result_meta(meta, result, "video_analysis"), force=force
        )
        return ExtractOutcome.from_job(job)

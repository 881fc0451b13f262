"""Completion of slow-path jobs from the Apify webhook."""

import hmac
import logging
import time
from typing import Any, Callable, Optional
from uuid import uuid4

from pydantic import BaseModel

from recipe_extractor.config import Settings
from recipe_extractor.models.job import Job, JobMeta, JobState, PhaseTimings, merge_meta
from recipe_extractor.services.job_store import JobStore
from recipe_extractor.services.normalizer import NormalizeInput
from recipe_extractor.services.orchestrator import result_meta
from recipe_extractor.services.router import ProviderRouter
from recipe_extractor.services.scraper import ApifyClient
from recipe_extractor.utils.errors import (
    ConfigurationError,
    InvalidPayloadError,
    NormalizationError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

Extractor = tuple[str, Callable[[dict[str, Any]], Any]]


def _path(*names: str) -> Callable[[dict[str, Any]], Any]:
    def get(item: dict[str, Any]) -> Any:
        value: Any = item
        for name in names:
            if not isinstance(value, dict):
                return None
            value = value.get(name)
        return value

    return get


def _extractors(*paths: str) -> list[Extractor]:
    return [(path, _path(*path.split("."))) for path in paths]


# Ordered: the first extractor with a non-empty value wins
KEY_EXTRACTORS = _extractors("key", "videoKey", "customData.videoKey", "id")
CAPTION_EXTRACTORS = _extractors("caption", "text", "desc", "description")
TRANSCRIPT_EXTRACTORS = _extractors("transcript", "transcription", "subtitles", "vtt")
SOURCE_URL_EXTRACTORS = _extractors("source_url", "webVideoUrl", "videoUrl", "url")
RUN_ID_EXTRACTORS = _extractors("actorRunId", "eventData.actorRunId", "resource.id")
DATASET_ID_EXTRACTORS = _extractors("datasetId", "resource.defaultDatasetId")
AUTHOR_EXTRACTORS = _extractors("author", "authorMeta.nickName", "author_name")
HANDLE_EXTRACTORS = _extractors("creator_handle", "authorMeta.name", "author_unique_id")
THUMBNAIL_EXTRACTORS = _extractors("thumbnail_url", "videoMeta.coverUrl", "covers.default")


def _text(value: Any) -> Optional[str]:
    """Non-empty text from a string, a number or a list of transcript segments."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        segments = []
        for segment in value:
            if isinstance(segment, dict):
                segment = segment.get("text")
            if isinstance(segment, str) and segment.strip():
                segments.append(segment.strip())
        return " ".join(segments) or None
    return None


def first_match(item: dict[str, Any], extractors: list[Extractor]) -> Optional[str]:
    for name, extract in extractors:
        value = _text(extract(item))
        if value:
            logger.debug(f"Resolved webhook field from {name!r}")
            return value
    return None


class WebhookDetails(BaseModel):
    """Fields resolved from one webhook item."""

    key: Optional[str] = None
    caption: Optional[str] = None
    transcript: Optional[str] = None
    source_url: Optional[str] = None
    actor_run_id: Optional[str] = None
    dataset_id: Optional[str] = None
    author: Optional[str] = None
    creator_handle: Optional[str] = None
    thumbnail_url: Optional[str] = None

    @property
    def has_content(self) -> bool:
        return bool(self.caption or self.transcript)

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "WebhookDetails":
        return cls(
            key=first_match(item, KEY_EXTRACTORS),
            caption=first_match(item, CAPTION_EXTRACTORS),
            transcript=first_match(item, TRANSCRIPT_EXTRACTORS),
            source_url=first_match(item, SOURCE_URL_EXTRACTORS),
            actor_run_id=first_match(item, RUN_ID_EXTRACTORS),
            dataset_id=first_match(item, DATASET_ID_EXTRACTORS),
            author=first_match(item, AUTHOR_EXTRACTORS),
            creator_handle=first_match(item, HANDLE_EXTRACTORS),
            thumbnail_url=first_match(item, THUMBNAIL_EXTRACTORS),
        )

    def to_meta(self) -> JobMeta:
        return JobMeta(
            source_url=self.source_url,
            caption=self.caption,
            transcript=self.transcript,
            author=self.author,
            creator_handle=self.creator_handle,
            thumbnail_url=self.thumbnail_url,
            actor_run_id=self.actor_run_id,
            dataset_id=self.dataset_id,
        )


class CompletionAck(BaseModel):
    """Acknowledgement returned to the scraper."""

    ok: bool = True
    key: str
    status: JobState
    already_processed: bool = False
    error_type: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job, already_processed: bool = False) -> "CompletionAck":
        return cls(
            key=job.key,
            status=job.status,
            already_processed=already_processed,
            error_type=job.error.type if job.error else None,
        )


def default_source_url(platform: str, key: str) -> str:
    if platform == "youtube":
        return f"https://www.youtube.com/watch?v={key}"
    return f"https://www.tiktok.com/video/{key}"


def is_run_event(payload: dict[str, Any]) -> bool:
    """Apify run events carry ``resource`` and ``eventType``; dataset items do not."""
    return isinstance(payload.get("resource"), dict) or "eventType" in payload


class CompletionHandler:
    """Turns a scraper callback into exactly one terminal job write."""

    def __init__(
        self,
        settings: Settings,
        job_store: JobStore,
        router: ProviderRouter,
        apify_client: ApifyClient,
    ) -> None:
        self.settings = settings
        self.store = job_store
        self.router = router
        self.apify = apify_client

    def verify_secret(self, secret: Optional[str]) -> None:
        """
        Check the shared secret carried by the callback URL.

        Raises:
            ConfigurationError: If no webhook secret is configured
            UnauthorizedError: If the secret is missing or wrong
        """
        expected = self.settings.apify_webhook_secret
        if not expected:
            raise ConfigurationError("APIFY_WEBHOOK_SECRET is not configured")
        if not secret or not hmac.compare_digest(secret.encode("utf-8"), expected.encode("utf-8")):
            raise UnauthorizedError("Invalid webhook secret")

    async def complete(
        self, query_key: Optional[str], secret: Optional[str], payload: Any
    ) -> CompletionAck:
        """
        Handle one webhook delivery.

        Args:
            query_key: Key from the callback URL
            secret: Shared secret from the callback URL
            payload: Parsed JSON body

        Returns:
            CompletionAck describing the stored outcome

        Raises:
            UnauthorizedError: Bad secret
            InvalidPayloadError: Malformed payload or key mismatch
            MissingCredentialError: Routed provider has no API key
            DatastoreError: Job store failure
        """
        request_id = uuid4().hex[:8]
        start = time.perf_counter()
        self.verify_secret(secret)

        details, dataset_ms = await self._resolve_details(request_id, query_key, payload)

        if details.key and query_key and details.key != query_key:
            raise InvalidPayloadError(
                f"Payload key {details.key!r} does not match callback key {query_key!r}"
            )
        key = details.key or query_key
        if not key:
            raise InvalidPayloadError("Webhook carries no job key")

        logger.info(
            f"[{request_id}] webhook {key} caption_len={len(details.caption or '')} "
            f"transcript_len={len(details.transcript or '')} run={details.actor_run_id}"
        )

        stored = await self.store.get(key)
        if stored is not None and stored.status == "READY":
            logger.info(f"[{request_id}] {key} already READY, ignoring redelivery")
            return CompletionAck.from_job(stored, already_processed=True)

        webhook_meta = details.to_meta()
        if dataset_ms is not None:
            webhook_meta.timings = PhaseTimings(dataset_ms=dataset_ms)
        # Stored oEmbed attribution wins; the webhook only fills gaps
        meta = merge_meta(webhook_meta, stored.meta if stored else None)
        # Scraped content replaces the oEmbed caption that sent the job here
        meta.caption = details.caption or meta.caption
        meta.transcript = details.transcript or meta.transcript

        if not details.has_content:
            logger.warning(f"[{request_id}] {key} webhook has no caption or transcript")
            job = await self.store.mark_failed(
                key, "NoContent", "Scraper returned no caption or transcript", meta=meta
            )
            return CompletionAck.from_job(job)

        platform = meta.platform or "tiktok"
        choice = self.router.route(platform)
        data = NormalizeInput.from_meta(key, meta, source_url=default_source_url(platform, key))

        try:
            result = await self.router.normalize(data, choice)
        except NormalizationError as e:
            logger.warning(f"[{request_id}] {key} normalization failed: {e}")
            job = await self.store.mark_failed(key, "NormalizationError", str(e), meta=meta)
            return CompletionAck.from_job(job)

        source = "transcript" if data.transcript else "caption"
        job = await self.store.mark_ready(key, result.recipe, meta=result_meta(meta, result, source))
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"[{request_id}] {key} -> {job.status} ({elapsed:.0f}ms)")
        return CompletionAck.from_job(job)

    async def _resolve_details(
        self, request_id: str, query_key: Optional[str], payload: Any
    ) -> tuple[WebhookDetails, Optional[float]]:
        dataset_ms: Optional[float] = None

        if isinstance(payload, list):
            items = [item for item in payload if isinstance(item, dict)]
            run_details = WebhookDetails()
        elif isinstance(payload, dict) and is_run_event(payload):
            run_details = WebhookDetails.from_item(payload)
            if not run_details.dataset_id and not run_details.actor_run_id:
                raise InvalidPayloadError("Run event carries no dataset or run id")
            start = time.perf_counter()
            items = await self.apify.fetch_dataset_items(
                dataset_id=run_details.dataset_id, run_id=run_details.actor_run_id
            )
            dataset_ms = round((time.perf_counter() - start) * 1000, 1)
            logger.info(f"[{request_id}] fetched {len(items)} dataset items ({dataset_ms:.0f}ms)")
            # A run event's resource.id is the run, never the job key
            run_details.key = None
        elif isinstance(payload, dict):
            items = [payload]
            run_details = WebhookDetails()
        else:
            raise InvalidPayloadError("Webhook body must be a JSON object or array")

        item = self._select_item(items, query_key)
        details = WebhookDetails.from_item(item) if item else WebhookDetails()
        details.actor_run_id = details.actor_run_id or run_details.actor_run_id
        details.dataset_id = details.dataset_id or run_details.dataset_id
        return details, dataset_ms

    def _select_item(
        self, items: list[dict[str, Any]], query_key: Optional[str]
    ) -> Optional[dict[str, Any]]:
        """The item for this job's key, else the first item."""
        if not items:
            return None
        if query_key:
            for item in items:
                if first_match(item, KEY_EXTRACTORS) == query_key:
                    return item
        return items[0]

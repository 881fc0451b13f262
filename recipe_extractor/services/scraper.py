"""Apify client for starting TikTok scraper runs and reading their datasets."""

import base64
import json
import logging
import time
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from recipe_extractor.config import Settings
from recipe_extractor.utils.errors import ConfigurationError, UpstreamTriggerFailedError
from recipe_extractor.utils.retry import with_retry

logger = logging.getLogger(__name__)

APIFY_API_BASE = "https://api.apify.com/v2"
RUN_SUCCEEDED = "ACTOR.RUN.SUCCEEDED"


class ApifyRun(BaseModel):
    """A started actor run."""

    run_id: str
    status: Optional[str] = None
    dataset_id: Optional[str] = None
    elapsed_ms: Optional[float] = None


def build_webhook_url(base_url: str, key: str, secret: str) -> str:
    """Callback URL that carries the job key and the shared secret."""
    query = urlencode({"key": key, "secret": secret})
    return f"{base_url.rstrip('/')}/apify-webhook?{query}"


def encode_webhooks(webhook_url: str) -> str:
    """Encode an ad-hoc run webhook as Apify expects it (base64 JSON)."""
    webhooks = [{"eventTypes": [RUN_SUCCEEDED], "requestUrl": webhook_url}]
    return base64.b64encode(json.dumps(webhooks).encode("utf-8")).decode("ascii")


class ApifyClient:
    """Thin async client for the Apify REST API."""

    def __init__(
        self,
        token: str,
        actor_id: str,
        api_base: str = APIFY_API_BASE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the ApifyClient.

        Args:
            token: Apify API token
            actor_id: Actor id or ``user/actor`` name
            api_base: Apify API base URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.token = token
        self.actor_id = actor_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def build_webhook_url(self, base_url: str, key: str, secret: str) -> str:
        return build_webhook_url(base_url, key, secret)

    async def trigger_run(self, video_url: str, key: str, webhook_url: str) -> ApifyRun:
        """
        Start the scraper actor for one video.

        Args:
            video_url: Video to scrape
            key: Canonical key echoed back in the dataset items
            webhook_url: Callback for the run-succeeded event

        Returns:
            ApifyRun with run and dataset ids

        Raises:
            UpstreamTriggerFailedError: If the run could not be started
        """
        if not self.token or not self.actor_id:
            raise ConfigurationError("APIFY_TOKEN and APIFY_ACTOR_ID are required")

        # Apify addresses "user/actor" names as "user~actor"
        endpoint = f"{self.api_base}/acts/{self.actor_id.replace('/', '~')}/runs"
        body = {"videos": [video_url], "customData": {"videoKey": key}}
        params = {"webhooks": encode_webhooks(webhook_url)}

        start = time.perf_counter()
        try:
            response = await self._post(endpoint, body, params)
        except httpx.HTTPError as e:
            raise UpstreamTriggerFailedError(0, f"request failed: {e!r}")
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)

        if response.status_code not in (200, 201):
            logger.error(
                f"Apify trigger for {key} failed ({response.status_code}): {response.text[:300]}"
            )
            raise UpstreamTriggerFailedError(response.status_code, response.text[:300])

        try:
            data = response.json().get("data") or {}
        except (ValueError, AttributeError):
            raise UpstreamTriggerFailedError(response.status_code, "non-JSON response")

        run_id = data.get("id")
        if not run_id:
            raise UpstreamTriggerFailedError(response.status_code, "no run id in response")

        run = ApifyRun(
            run_id=run_id,
            status=data.get("status"),
            dataset_id=data.get("defaultDatasetId"),
            elapsed_ms=elapsed_ms,
        )
        logger.info(f"Apify run {run.run_id} started for {key} ({elapsed_ms:.0f}ms)")
        return run

    # Only connection failures are retried: a POST that reached Apify may
    # already have started a run.
    @with_retry(max_attempts=2, base_delay=0.5, exceptions=(httpx.ConnectError,))
    async def _post(
        self, endpoint: str, body: dict[str, Any], params: dict[str, str]
    ) -> httpx.Response:
        async with self._client() as client:
            return await client.post(endpoint, json=body, params=params, headers=self._headers)

    async def fetch_dataset_items(
        self, dataset_id: Optional[str] = None, run_id: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """
        Read the items a run produced.

        Args:
            dataset_id: Dataset id (preferred)
            run_id: Actor run id, used when no dataset id is known

        Returns:
            List of dataset items

        Raises:
            ValueError: If neither id is given
            httpx.HTTPError: If the dataset cannot be read
        """
        if dataset_id:
            endpoint = f"{self.api_base}/datasets/{dataset_id}/items"
        elif run_id:
            endpoint = f"{self.api_base}/actor-runs/{run_id}/dataset/items"
        else:
            raise ValueError("dataset_id or run_id is required")

        response = await self._get(endpoint)
        response.raise_for_status()
        items = response.json()
        if not isinstance(items, list):
            raise ValueError("Apify dataset response is not a list")
        logger.info(f"Fetched {len(items)} dataset items from {dataset_id or run_id}")
        return [item for item in items if isinstance(item, dict)]

    @with_retry(max_attempts=3, base_delay=0.5, exceptions=(httpx.TransportError,))
    async def _get(self, endpoint: str) -> httpx.Response:
        async with self._client() as client:
            return await client.get(endpoint, params={"format": "json", "clean": "true"}, headers=self._headers)


def create_apify_client(settings: Settings) -> ApifyClient:
    """
    Create an ApifyClient from application settings.

    Returns:
        Configured ApifyClient
    """
    return ApifyClient(
        token=settings.apify_token,
        actor_id=settings.apify_actor_id,
        api_base=settings.apify_api_base,
        timeout=settings.http_timeout_seconds,
    )

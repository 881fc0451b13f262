"""oEmbed metadata fetcher for TikTok and YouTube videos."""

import logging
import re
import time
from typing import Any, Optional

import httpx

from recipe_extractor.config import Settings
from recipe_extractor.models.video import Platform, VideoMetadata
from recipe_extractor.utils.errors import MetadataUnavailableError, VideoIdUnavailableError
from recipe_extractor.utils.retry import with_retry

logger = logging.getLogger(__name__)

TIKTOK_OEMBED_ENDPOINT = "https://www.tiktok.com/oembed"
YOUTUBE_OEMBED_ENDPOINT = "https://www.youtube.com/oembed"
USER_AGENT = "Mozilla/5.0 (compatible; RecipeExtractor/1.0)"

# i.ytimg.com/vi/<id>/hqdefault.jpg and the vi_webp variant
_YOUTUBE_THUMBNAIL_ID = re.compile(r"/vi(?:_webp)?/([^/]+)/")


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def extract_video_id_from_thumbnail(thumbnail_url: Optional[str]) -> Optional[str]:
    """Pull the YouTube id out of an i.ytimg.com thumbnail URL."""
    if not thumbnail_url:
        return None
    match = _YOUTUBE_THUMBNAIL_ID.search(thumbnail_url)
    return match.group(1) if match else None


def extract_caption(data: dict[str, Any]) -> Optional[str]:
    """TikTok puts the caption in ``title``; fall back to ``description``."""
    return _clean(data.get("title")) or _clean(data.get("description"))


class MetadataFetcher:
    """Fetches oEmbed metadata and the canonical video id."""

    def __init__(
        self,
        tiktok_endpoint: str = TIKTOK_OEMBED_ENDPOINT,
        youtube_endpoint: str = YOUTUBE_OEMBED_ENDPOINT,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the MetadataFetcher.

        Args:
            tiktok_endpoint: TikTok oEmbed endpoint
            youtube_endpoint: YouTube oEmbed endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.tiktok_endpoint = tiktok_endpoint
        self.youtube_endpoint = youtube_endpoint
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, platform: Platform, url: str) -> VideoMetadata:
        """
        Fetch metadata and the authoritative canonical key for a video.

        Args:
            platform: Platform the URL was classified as
            url: Video URL

        Returns:
            VideoMetadata with ``key`` set to the canonical id

        Raises:
            MetadataUnavailableError: If the oEmbed call fails
            VideoIdUnavailableError: If no canonical id can be derived
        """
        start = time.perf_counter()
        if platform == "tiktok":
            data = await self._fetch_oembed(self.tiktok_endpoint, {"url": url})
            metadata = self._parse_tiktok(url, data)
        else:
            data = await self._fetch_oembed(self.youtube_endpoint, {"url": url, "format": "json"})
            metadata = self._parse_youtube(url, data)

        metadata.elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
        logger.info(
            f"oEmbed {platform} key={metadata.key} author={metadata.author!r} "
            f"caption_len={len(metadata.caption or '')} ({metadata.elapsed_ms:.0f}ms)"
        )
        return metadata

    def _parse_tiktok(self, url: str, data: dict[str, Any]) -> VideoMetadata:
        key = _clean(str(data["embed_product_id"])) if data.get("embed_product_id") else None
        if not key:
            raise VideoIdUnavailableError("TikTok oEmbed response has no embed_product_id")

        return VideoMetadata(
            platform="tiktok",
            key=key,
            source_url=url,
            title=_clean(data.get("title")),
            caption=extract_caption(data),
            author=_clean(data.get("author_name")),
            author_url=_clean(data.get("author_url")),
            creator_handle=_clean(data.get("author_unique_id")),
            thumbnail_url=_clean(data.get("thumbnail_url")),
            thumbnail_width=_int_or_none(data.get("thumbnail_width")),
            thumbnail_height=_int_or_none(data.get("thumbnail_height")),
        )

    def _parse_youtube(self, url: str, data: dict[str, Any]) -> VideoMetadata:
        thumbnail_url = _clean(data.get("thumbnail_url"))
        key = extract_video_id_from_thumbnail(thumbnail_url)
        if not key:
            logger.warning(f"Could not derive YouTube id from thumbnail {thumbnail_url!r}")
            raise VideoIdUnavailableError("YouTube video id not found in oEmbed thumbnail URL")

        return VideoMetadata(
            platform="youtube",
            key=key,
            source_url=url,
            title=_clean(data.get("title")),
            # YouTube oEmbed has no caption; the title is the only text
            caption=None,
            author=_clean(data.get("author_name")),
            author_url=_clean(data.get("author_url")),
            thumbnail_url=thumbnail_url,
            thumbnail_width=_int_or_none(data.get("thumbnail_width")),
            thumbnail_height=_int_or_none(data.get("thumbnail_height")),
        )

    async def _fetch_oembed(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        try:
            response = await self._get(endpoint, params)
        except httpx.HTTPError as e:
            raise MetadataUnavailableError(f"oEmbed request failed: {e!r}")

        if response.status_code != 200:
            raise MetadataUnavailableError(
                f"oEmbed returned {response.status_code} for {params.get('url')}"
            )

        try:
            data = response.json()
        except ValueError:
            raise MetadataUnavailableError("oEmbed returned a non-JSON body")

        if not isinstance(data, dict):
            raise MetadataUnavailableError("oEmbed returned an unexpected payload")
        return data

    @with_retry(max_attempts=2, base_delay=0.5, exceptions=(httpx.TransportError,))
    async def _get(self, endpoint: str, params: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.get(endpoint, params=params, headers={"User-Agent": USER_AGENT})


def create_metadata_fetcher(settings: Settings) -> MetadataFetcher:
    """
    Create a MetadataFetcher from application settings.

    Args:
        settings: Application Settings

    Returns:
        Configured MetadataFetcher
    """
    return MetadataFetcher(
        tiktok_endpoint=settings.tiktok_oembed_endpoint,
        youtube_endpoint=settings.youtube_oembed_endpoint,
        timeout=settings.http_timeout_seconds,
    )

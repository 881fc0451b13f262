"""URL classification for TikTok and YouTube video links.

Classification is purely syntactic. The canonical key for a TikTok video
cannot be derived from its URL (short links, several hosts) and only comes
from oEmbed metadata, so ``provisional_key`` is a hint and never a job key.
"""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from recipe_extractor.models.video import ParsedUrl
from recipe_extractor.utils.errors import InvalidUrlError

logger = logging.getLogger(__name__)

TIKTOK_DOMAINS = ("tiktok.com",)
TIKTOK_SHORT_HOSTS = ("vm.tiktok.com", "vt.tiktok.com")
YOUTUBE_DOMAINS = ("youtube.com", "youtu.be")

_TIKTOK_VIDEO_ID = re.compile(r"/video/(\d+)")
_YOUTUBE_PATH_ID = re.compile(r"/(?:embed|v|shorts)/([^/?#]+)")


def _host_matches(host: str, domains: tuple[str, ...]) -> bool:
    return any(host == d or host.endswith(f".{d}") for d in domains)


def is_tiktok_url(host: str, path: str) -> bool:
    """Check host and path against the known TikTok video URL shapes."""
    if not _host_matches(host, TIKTOK_DOMAINS):
        return False
    return "/video/" in path or "/v/" in path or host in TIKTOK_SHORT_HOSTS


def is_youtube_url(host: str, path: str, query: str) -> bool:
    """Check host, path and query against the known YouTube video URL shapes."""
    if not _host_matches(host, YOUTUBE_DOMAINS):
        return False
    if host == "youtu.be":
        return len(path) > 1
    has_video_path = any(p in path for p in ("/watch", "/embed/", "/v/", "/shorts/"))
    return has_video_path or "v" in parse_qs(query)


def extract_youtube_id(host: str, path: str, query: str) -> Optional[str]:
    """Best-effort YouTube id from a URL; None when the URL does not carry one."""
    if host == "youtu.be":
        return path.lstrip("/").split("/")[0] or None

    v = parse_qs(query).get("v")
    if v and v[0]:
        return v[0]

    match = _YOUTUBE_PATH_ID.search(path)
    return match.group(1) if match else None


def resolve(raw_url: str) -> ParsedUrl:
    """
    Classify a raw URL into a supported platform.

    Args:
        raw_url: URL as submitted by the client

    Returns:
        ParsedUrl with platform, trimmed url and a provisional key if any

    Raises:
        InvalidUrlError: If the URL matches no supported platform
    """
    url = (raw_url or "").strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        raise InvalidUrlError(raw_url)

    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidUrlError(raw_url)

    host = parsed.hostname.lower()
    path = parsed.path or ""

    if is_tiktok_url(host, path):
        match = _TIKTOK_VIDEO_ID.search(path)
        return ParsedUrl(
            platform="tiktok",
            url=url,
            provisional_key=match.group(1) if match else None,
        )

    if is_youtube_url(host, path, parsed.query):
        return ParsedUrl(
            platform="youtube",
            url=url,
            provisional_key=extract_youtube_id(host, path, parsed.query),
        )

    logger.info(f"Rejected unsupported URL: {url[:200]}")
    raise InvalidUrlError(raw_url)

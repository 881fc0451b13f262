"""Video identity and metadata models."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from recipe_extractor.models.job import JobMeta, PhaseTimings

Platform = Literal["tiktok", "youtube"]


class ParsedUrl(BaseModel):
    """Provisional classification of a raw URL (no network involved)."""

    platform: Platform
    url: str = Field(min_length=1)
    provisional_key: Optional[str] = None


class VideoMetadata(BaseModel):
    """oEmbed metadata with the authoritative canonical key."""

    platform: Platform
    key: str = Field(min_length=1)
    source_url: str
    title: Optional[str] = None
    caption: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    creator_handle: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_width: Optional[int] = None
    thumbnail_height: Optional[int] = None
    elapsed_ms: Optional[float] = None

    def to_meta(self) -> JobMeta:
        """Project the attribution fields onto a job meta record."""
        return JobMeta(
            source_url=self.source_url,
            platform=self.platform,
            caption=self.caption,
            title=self.title,
            author=self.author,
            author_url=self.author_url,
            creator_handle=self.creator_handle,
            thumbnail_url=self.thumbnail_url,
            thumbnail_width=self.thumbnail_width,
            thumbnail_height=self.thumbnail_height,
            timings=PhaseTimings(oembed_ms=self.elapsed_ms) if self.elapsed_ms is not None else None,
        )

"""AI normalizers that turn captions, transcripts or videos into recipes."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Literal, Optional

from pydantic import BaseModel
from pydantic_ai import VideoUrl
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from recipe_extractor.agents.recipe_normalizer import create_recipe_agent
from recipe_extractor.models.job import JobMeta
from recipe_extractor.models.recipe import Media, Recipe, Thumbnail
from recipe_extractor.models.video import Platform, VideoMetadata
from recipe_extractor.utils.errors import NormalizationError

logger = logging.getLogger(__name__)

ProviderName = Literal["openai", "gemini"]


class NormalizeInput(BaseModel):
    """Everything a normalizer may use for one video."""

    key: str
    source_url: str
    platform: Platform = "tiktok"
    caption: Optional[str] = None
    transcript: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    creator_handle: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_width: Optional[int] = None
    thumbnail_height: Optional[int] = None

    @property
    def has_text(self) -> bool:
        return bool((self.caption or "").strip() or (self.transcript or "").strip())

    @classmethod
    def from_metadata(cls, metadata: VideoMetadata) -> "NormalizeInput":
        return cls(
            key=metadata.key,
            source_url=metadata.source_url,
            platform=metadata.platform,
            caption=metadata.caption,
            title=metadata.title,
            author=metadata.author,
            author_url=metadata.author_url,
            creator_handle=metadata.creator_handle,
            thumbnail_url=metadata.thumbnail_url,
            thumbnail_width=metadata.thumbnail_width,
            thumbnail_height=metadata.thumbnail_height,
        )

    @classmethod
    def from_meta(cls, key: str, meta: JobMeta, source_url: str) -> "NormalizeInput":
        return cls(
            key=key,
            source_url=meta.source_url or source_url,
            platform=meta.platform or "tiktok",
            caption=meta.caption,
            transcript=meta.transcript,
            title=meta.title,
            author=meta.author,
            author_url=meta.author_url,
            creator_handle=meta.creator_handle,
            thumbnail_url=meta.thumbnail_url,
            thumbnail_width=meta.thumbnail_width,
            thumbnail_height=meta.thumbnail_height,
        )


class NormalizeResult(BaseModel):
    """A normalized recipe and how it was produced."""

    recipe: Recipe
    model_used: str
    provider: ProviderName
    elapsed_ms: float


def build_user_prompt(data: NormalizeInput) -> str:
    """Build the user message from the available text and identifiers."""
    parts = ["Normalize this video into the recipe schema using chef-guided inference."]
    parts.append(f"source_url: {data.source_url}")
    parts.append(f"video_id: {data.key}")
    if data.title and data.title != data.caption:
        parts.append(f"title: {data.title}")
    if data.author:
        parts.append(f"author: {data.author}")
    if data.creator_handle:
        parts.append(f"creator_handle: {data.creator_handle}")
    if data.caption:
        parts.append(f"\nCAPTION:\n{data.caption}")
    if data.transcript:
        parts.append(f"\nTRANSCRIPT:\n{data.transcript}")
    return "\n".join(parts)


def backfill_recipe(recipe: Recipe, data: NormalizeInput) -> Recipe:
    """
    Fill attribution fields the provider left empty.

    Args:
        recipe: Recipe returned by the provider
        data: The input the recipe was normalized from

    Returns:
        A copy of the recipe with id, source_url, media, author and
        creator_handle set where they were missing
    """
    update: dict[str, Any] = {}
    if not recipe.id:
        update["id"] = data.key
    if not recipe.source_url:
        update["source_url"] = data.source_url
    if recipe.media is None:
        thumbnail = None
        if data.thumbnail_url:
            thumbnail = Thumbnail(
                url=data.thumbnail_url,
                width=data.thumbnail_width,
                height=data.thumbnail_height,
            )
        update["media"] = Media(
            video_url=data.source_url,
            poster_url=data.thumbnail_url,
            thumbnail=thumbnail,
        )
    if not recipe.author and data.author:
        update["author"] = data.author
    if not recipe.creator_handle and data.creator_handle:
        update["creator_handle"] = data.creator_handle
    return recipe.model_copy(update=update)


class RecipeNormalizer(ABC):
    """Base normalizer: one pydantic-ai agent bound to one provider model."""

    provider: ProviderName

    def __init__(
        self,
        api_key: str,
        model_name: str,
        temperature: float = 0.1,
        timeout: float = 90.0,
        model: Optional[Any] = None,
    ) -> None:
        """
        Initialize the normalizer.

        Args:
            api_key: Provider API key
            model_name: Provider model name
            temperature: Sampling temperature
            timeout: Upper bound for one normalization in seconds
            model: Prebuilt pydantic-ai model (used by tests)
        """
        self.api_key = api_key
        self.model_name = model_name
        self.temperature = temperature
        self.timeout = timeout
        self._model = model
        self._agent = None

    @abstractmethod
    def _build_model(self) -> Any:
        """The provider's pydantic-ai model."""

    @property
    def agent(self):
        if self._agent is None:
            model = self._model if self._model is not None else self._build_model()
            self._agent = create_recipe_agent(
                model, temperature=self.temperature, timeout=self.timeout
            )
        return self._agent

    def build_prompt(self, data: NormalizeInput) -> Any:
        if not data.has_text:
            raise NormalizationError(f"No caption or transcript to normalize for {data.key}")
        return build_user_prompt(data)

    async def normalize(self, data: NormalizeInput) -> NormalizeResult:
        """
        Normalize one video into a Recipe.

        Raises:
            NormalizationError: On provider failure, timeout or invalid output
        """
        prompt = self.build_prompt(data)
        start = time.perf_counter()
        logger.info(f"Normalizing {data.key} with {self.provider}/{self.model_name}")

        try:
            result = await asyncio.wait_for(self.agent.run(prompt), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise NormalizationError(
                f"{self.provider} normalization timed out after {self.timeout:.0f}s"
            )
        except Exception as e:
            logger.warning(f"{self.provider} normalization failed for {data.key}: {e!r}")
            raise NormalizationError(f"{self.provider} normalization failed: {e}")

        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
        recipe = backfill_recipe(result.output, data)
        logger.info(
            f"Normalized {data.key}: {recipe.title!r} "
            f"({len(recipe.ingredients)} ingredients, {len(recipe.steps)} steps, {elapsed_ms:.0f}ms)"
        )
        return NormalizeResult(
            recipe=recipe,
            model_used=self.model_name,
            provider=self.provider,
            elapsed_ms=elapsed_ms,
        )


class OpenAINormalizer(RecipeNormalizer):
    """Text normalizer on the OpenAI chat completions API."""

    provider: ProviderName = "openai"

    def _build_model(self) -> OpenAIChatModel:
        return OpenAIChatModel(self.model_name, provider=OpenAIProvider(api_key=self.api_key))


class GeminiNormalizer(RecipeNormalizer):
    """Gemini normalizer; YouTube videos are sent as a video part."""

    provider: ProviderName = "gemini"

    def _build_model(self) -> GoogleModel:
        return GoogleModel(self.model_name, provider=GoogleProvider(api_key=self.api_key))

    def build_prompt(self, data: NormalizeInput) -> Any:
        if data.platform != "youtube":
            return super().build_prompt(data)

        text = (
            "Watch this cooking video and extract the recipe: ingredients with "
            "quantities, method steps, timings, servings and equipment.\n"
            + build_user_prompt(data)
        )
        return [text, VideoUrl(url=data.source_url)]

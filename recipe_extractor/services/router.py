"""Provider routing for recipe normalization."""

import logging
from typing import Optional, get_args

from pydantic import BaseModel

from recipe_extractor.config import Settings
from recipe_extractor.models.video import Platform
from recipe_extractor.services.normalizer import (
    GeminiNormalizer,
    NormalizeInput,
    NormalizeResult,
    OpenAINormalizer,
    ProviderName,
    RecipeNormalizer,
)
from recipe_extractor.utils.errors import MissingCredentialError

logger = logging.getLogger(__name__)

API_KEY_SETTINGS: dict[ProviderName, str] = {
    "openai": "openai_api_key",
    "gemini": "gemini_api_key",
}


class ProviderChoice(BaseModel):
    provider: ProviderName
    api_key_setting: str


def route(platform: Platform, settings: Settings) -> ProviderChoice:
    """
    Choose the normalization provider for a platform.

    YouTube always goes to Gemini, the only configured provider that can
    watch a video. TikTok uses the configured ``ai_provider``. There is no
    fallback between providers.

    Raises:
        MissingCredentialError: If the chosen provider has no API key
    """
    provider: ProviderName = "gemini" if platform == "youtube" else settings.ai_provider
    setting = API_KEY_SETTINGS[provider]
    if not getattr(settings, setting):
        raise MissingCredentialError(provider, setting)
    return ProviderChoice(provider=provider, api_key_setting=setting)


class ProviderRouter:
    """Maps a routing decision to one normalizer per provider."""

    def __init__(
        self,
        settings: Settings,
        normalizers: Optional[dict[ProviderName, RecipeNormalizer]] = None,
    ) -> None:
        self.settings = settings
        self._normalizers: dict[ProviderName, RecipeNormalizer] = dict(normalizers or {})

    def route(self, platform: Platform) -> ProviderChoice:
        return route(platform, self.settings)

    def missing_credentials(self) -> dict[Platform, MissingCredentialError]:
        """Platforms whose provider has no API key under the current settings."""
        missing: dict[Platform, MissingCredentialError] = {}
        for platform in get_args(Platform):
            try:
                route(platform, self.settings)
            except MissingCredentialError as e:
                missing[platform] = e
        return missing

    def normalizer_for(self, choice: ProviderChoice) -> RecipeNormalizer:
        normalizer = self._normalizers.get(choice.provider)
        if normalizer is None:
            normalizer = self._build(choice.provider)
            self._normalizers[choice.provider] = normalizer
        return normalizer

    def _build(self, provider: ProviderName) -> RecipeNormalizer:
        s = self.settings
        if provider == "gemini":
            return GeminiNormalizer(
                api_key=s.gemini_api_key,
                model_name=s.gemini_model,
                temperature=s.normalizer_temperature,
                timeout=s.normalizer_timeout_seconds,
            )
        return OpenAINormalizer(
            api_key=s.openai_api_key,
            model_name=s.openai_model,
            temperature=s.normalizer_temperature,
            timeout=s.normalizer_timeout_seconds,
        )

    async def normalize(
        self, data: NormalizeInput, choice: Optional[ProviderChoice] = None
    ) -> NormalizeResult:
        """Route (unless already routed) and normalize.

        Raises:
            MissingCredentialError: If the chosen provider has no API key
            NormalizationError: If the provider fails
        """
        choice = choice or self.route(data.platform)
        logger.debug(f"Routing {data.platform} {data.key} to {choice.provider}")
        return await self.normalizer_for(choice).normalize(data)

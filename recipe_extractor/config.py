"""Application settings from environment variables."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()

DEFAULT_RECIPE_KEYWORDS = [
    "recipe", "ingredient", "cook", "bake", "prep", "serve",
    "mix", "stir", "heat", "add", "combine", "whisk", "chop",
    "cup", "tbsp", "tsp", "oz", "gram", "ml", "tablespoon", "teaspoon",
    "minutes", "min", "hour", "temperature", "degrees", "°",
    "salt", "pepper", "oil", "butter", "garlic", "onion",
]


class Settings(BaseSettings):
    """Application settings from environment."""

    # AI providers
    openai_api_key: str = ""
    gemini_api_key: str = ""
    ai_provider: Literal["openai", "gemini"] = "openai"
    openai_model: str = "gpt-4o-mini"
    gemini_model: str = "gemini-2.0-flash"
    normalizer_temperature: float = 0.1
    normalizer_timeout_seconds: float = 90.0

    # Apify
    apify_token: str = ""
    apify_actor_id: str = ""
    apify_webhook_secret: str = ""
    apify_api_base: str = "https://api.apify.com/v2"
    public_base_url: str = ""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    cache_table: str = "cache"

    # oEmbed
    tiktok_oembed_endpoint: str = "https://www.tiktok.com/oembed"
    youtube_oembed_endpoint: str = "https://www.youtube.com/oembed"
    http_timeout_seconds: float = 10.0

    # Recipe heuristic
    min_recipe_caption_length: int = 20
    min_recipe_keyword_matches: int = 3
    recipe_keywords: list[str] = DEFAULT_RECIPE_KEYWORDS

    # Configuration
    log_level: str = "INFO"
    max_retry_attempts: int = 3
    base_delay_seconds: float = 1.0
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_file": ".env", "extra": "ignore"}

    @field_validator("ai_provider", mode="before")
    @classmethod
    def lowercase_provider(cls, v: str) -> str:
        """Accept AI_PROVIDER in any case."""
        if isinstance(v, str):
            return v.strip().lower() or "openai"
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

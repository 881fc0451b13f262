"""Custom exception classes for the recipe extractor."""


class RecipeExtractorError(Exception):
    """Base exception for all application errors."""

    pass


class InvalidUrlError(RecipeExtractorError):
    """URL is not a supported TikTok or YouTube video URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Not a valid TikTok or YouTube video URL: {url!r}")


class MetadataUnavailableError(RecipeExtractorError):
    """oEmbed metadata could not be fetched for a video."""

    pass


class VideoIdUnavailableError(MetadataUnavailableError):
    """oEmbed metadata did not carry a usable canonical video id."""

    pass


class ConfigurationError(RecipeExtractorError):
    """Server-side configuration is incomplete."""

    pass


class MissingCredentialError(ConfigurationError):
    """An AI provider was selected but its API key is not configured."""

    def __init__(self, provider: str, setting: str) -> None:
        self.provider = provider
        self.setting = setting
        super().__init__(f"{setting.upper()} is required for provider {provider!r}")


class NormalizationError(RecipeExtractorError):
    """The AI normalizer failed to produce a recipe."""

    pass


class UnauthorizedError(RecipeExtractorError):
    """Inbound webhook carried a missing or wrong shared secret."""

    pass


class InvalidPayloadError(RecipeExtractorError):
    """Inbound webhook payload is structurally invalid."""

    pass


class DatastoreError(RecipeExtractorError):
    """The job store could not be read or written."""

    pass


class UpstreamTriggerFailedError(RecipeExtractorError):
    """The external scraper run could not be started."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"Apify error {status_code}: {message}")

"""Recipe-likelihood heuristic that gates the caption fast path."""

import logging
from typing import Iterable, Optional

from recipe_extractor.config import DEFAULT_RECIPE_KEYWORDS, Settings

logger = logging.getLogger(__name__)


class RecipeHeuristic:
    """Keyword-density check over a minimum caption length.

    A false negative only costs a round trip through the scraper, so the
    thresholds are tunable rather than calibrated.
    """

    def __init__(
        self,
        min_caption_length: int = 20,
        min_keyword_matches: int = 3,
        keywords: Optional[Iterable[str]] = None,
    ) -> None:
        self.min_caption_length = min_caption_length
        self.min_keyword_matches = min_keyword_matches
        self.keywords = tuple(
            k.lower() for k in (keywords if keywords is not None else DEFAULT_RECIPE_KEYWORDS) if k
        )

    def keyword_matches(self, caption: str) -> list[str]:
        """Return the configured keywords that occur in the caption."""
        lower = caption.lower()
        return [keyword for keyword in self.keywords if keyword in lower]

    def looks_like_recipe(self, caption: Optional[str]) -> bool:
        """True when the caption is long enough and dense enough in keywords."""
        if not caption or len(caption.strip()) < self.min_caption_length:
            return False

        matches = self.keyword_matches(caption)
        is_recipe = len(matches) >= self.min_keyword_matches
        logger.debug(
            f"Recipe heuristic: {len(matches)} keywords {matches[:5]} "
            f"caption_len={len(caption)} is_recipe={is_recipe}"
        )
        return is_recipe

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecipeHeuristic":
        return cls(
            min_caption_length=settings.min_recipe_caption_length,
            min_keyword_matches=settings.min_recipe_keyword_matches,
            keywords=settings.recipe_keywords,
        )

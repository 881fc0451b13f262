"""PydanticAI agent configuration for recipe normalization."""

from recipe_extractor.agents.recipe_normalizer import RECIPE_SYSTEM_PROMPT, create_recipe_agent

__all__ = [
    "create_recipe_agent",
    "RECIPE_SYSTEM_PROMPT",
]

"""Recipe Pydantic models returned by the normalizers."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Where a piece of the recipe came from
ContentSource = Literal["caption", "transcript", "both", "inferred"]


class Macros(BaseModel):
    """Per-serving nutrition estimate."""

    calories: Optional[float] = None
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fat_g: Optional[float] = None


class Ingredient(BaseModel):
    """A single ingredient line."""

    section: str = "Main"
    item: str = Field(min_length=1)
    qty: Optional[float] = None
    unit: Optional[str] = Field(
        default=None,
        description="One of g, tsp, tbsp, cup, slice, clove, piece, pinch, dash, drizzle or null",
    )
    notes: Optional[str] = None
    source: ContentSource = "inferred"
    confidence: float = Field(default=0.5, ge=0, le=1)


class Step(BaseModel):
    """A single numbered method step."""

    n: int = Field(ge=1)
    text: str = Field(min_length=1)
    source: ContentSource = "inferred"
    confidence: float = Field(default=0.5, ge=0, le=1)


class Timings(BaseModel):
    """Prep and cook times in minutes."""

    prep_min: Optional[float] = None
    cook_min: Optional[float] = None
    total_min: Optional[float] = None


class Thumbnail(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class Media(BaseModel):
    """oEmbed media attached to a recipe."""

    type: Literal["oembed"] = "oembed"
    video_url: Optional[str] = None
    poster_url: Optional[str] = None
    thumbnail: Optional[Thumbnail] = None


class Recipe(BaseModel):
    """Structured recipe normalized from a caption, transcript or video."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    source_url: Optional[str] = None
    title: str = Field(min_length=1)
    author: Optional[str] = None
    creator_handle: Optional[str] = None
    servings: Optional[float] = None
    macros: Optional[Macros] = None
    recipe_notes: list[str] = Field(default_factory=list)
    ingredients: list[Ingredient] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    timings: Optional[Timings] = None
    equipment: list[str] = Field(default_factory=list)
    media: Optional[Media] = None
    assumptions: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_not_whitespace(cls, v: str) -> str:
        """Validate that title is not only whitespace."""
        if not v.strip():
            raise ValueError("title cannot be only whitespace")
        return v.strip()

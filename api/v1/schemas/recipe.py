from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from core.models import DietaryTag, Difficulty, Ingredient


def _non_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class RecipeIn(BaseModel):
    title: str
    description: str
    ingredients: list[Ingredient]
    instructions: list[str]
    prep_time: int = Field(..., ge=0)
    cook_time: int = Field(..., ge=0)
    servings: int = Field(..., ge=1)
    difficulty: Difficulty
    calories: int = Field(..., ge=0)
    tags: list[str] = []
    dietary_tags: list[DietaryTag] = []
    image: str = "default-recipe.jpg"

    @field_validator("title", "description")
    @classmethod
    def _text(cls, v: str) -> str:
        return _non_blank(v)

    @field_validator("instructions")
    @classmethod
    def _steps(cls, v: list[str]) -> list[str]:
        return [_non_blank(s) for s in v]


class RecipeUpdate(BaseModel):
    """Every field optional; only the ones sent are applied."""

    title: str | None = None
    description: str | None = None
    ingredients: list[Ingredient] | None = None
    instructions: list[str] | None = None
    prep_time: int | None = Field(None, ge=0)
    cook_time: int | None = Field(None, ge=0)
    servings: int | None = Field(None, ge=1)
    difficulty: Difficulty | None = None
    calories: int | None = Field(None, ge=0)
    tags: list[str] | None = None
    dietary_tags: list[DietaryTag] | None = None
    image: str | None = None


class CommentIn(BaseModel):
    text: str = Field(..., min_length=1)

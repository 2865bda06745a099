from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Unit(str, Enum):
    g = "g"
    kg = "kg"
    ml = "ml"
    l = "l"  # noqa: E741
    cup = "cup"
    tbsp = "tbsp"
    tsp = "tsp"
    piece = "piece"
    pinch = "pinch"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class DietaryTag(str, Enum):
    vegetarian = "vegetarian"
    vegan = "vegan"
    keto = "keto"
    paleo = "paleo"
    gluten_free = "gluten-free"
    dairy_free = "dairy-free"


class Ingredient(BaseModel):
    name: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    unit: Unit

    model_config = ConfigDict(from_attributes=True)

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ingredient name must not be blank")
        return v


class Comment(BaseModel):
    id: str
    user_id: str
    text: str
    created_at: datetime


class Recipe(BaseModel):
    """A recipe as the core sees it: read-only, owned by `author_id`."""

    id: str
    title: str
    description: str
    ingredients: list[Ingredient] = []
    instructions: list[str] = []
    prep_time: int = Field(0, ge=0)
    cook_time: int = Field(0, ge=0)
    servings: int = Field(1, ge=1)
    difficulty: Difficulty = Difficulty.easy
    tags: list[str] = []
    dietary_tags: list[DietaryTag] = []
    calories: int = Field(..., ge=0)
    image: str = "default-recipe.jpg"
    author_id: str
    likes: list[str] = []
    comments: list[Comment] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

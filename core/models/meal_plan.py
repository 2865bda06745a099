from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .recipe import DietaryTag, Unit


class Day(str, Enum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"
    sunday = "sunday"


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


class MealSlot(BaseModel):
    day: Day
    meal_type: MealType
    recipe_id: str
    notes: str | None = None


class ShoppingListEntry(BaseModel):
    """One consolidated (name, unit) line – no identity yet."""

    name: str
    amount: float = Field(..., ge=0)
    unit: Unit
    purchased: bool = False

    @property
    def key(self) -> tuple[str, Unit]:
        return (self.name, self.unit)


class ShoppingListItem(ShoppingListEntry):
    """A persisted entry, addressable inside its plan by `id`."""

    id: str

    model_config = ConfigDict(from_attributes=True)


class MealPlan(BaseModel):
    id: str
    owner_id: str
    week_start_date: date
    meals: list[MealSlot] = []
    total_calories: int = Field(..., ge=0)
    dietary_preferences: list[DietaryTag] = []
    budget: float = Field(..., ge=0)
    shopping_list: list[ShoppingListItem] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def item(self, item_id: str) -> ShoppingListItem | None:
        return next((i for i in self.shopping_list if i.id == item_id), None)

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from core.models import DietaryTag, MealSlot


class MealPlanIn(BaseModel):
    week_start_date: date
    meals: list[MealSlot]
    dietary_preferences: list[DietaryTag] = []
    budget: float = Field(..., ge=0)


class MealPlanUpdate(BaseModel):
    week_start_date: date | None = None
    meals: list[MealSlot] | None = None      # present → full regeneration
    dietary_preferences: list[DietaryTag] | None = None
    budget: float | None = Field(None, ge=0)

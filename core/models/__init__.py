"""Re-export the domain models for easy imports."""

from .recipe import Comment, DietaryTag, Difficulty, Ingredient, Recipe, Unit
from .meal_plan import (
    Day,
    MealPlan,
    MealSlot,
    MealType,
    ShoppingListEntry,
    ShoppingListItem,
)

__all__ = [
    "Comment",
    "Day",
    "DietaryTag",
    "Difficulty",
    "Ingredient",
    "MealPlan",
    "MealSlot",
    "MealType",
    "Recipe",
    "ShoppingListEntry",
    "ShoppingListItem",
    "Unit",
]

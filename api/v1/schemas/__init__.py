"""Re-export individual schema modules for easy imports."""

from .recipe import CommentIn, RecipeIn, RecipeUpdate
from .meal_plan import MealPlanIn, MealPlanUpdate

__all__ = [
    "CommentIn",
    "RecipeIn",
    "RecipeUpdate",
    "MealPlanIn",
    "MealPlanUpdate",
]

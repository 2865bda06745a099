# api/v1/router.py
from fastapi import APIRouter

from . import meal_plans, recipes

api_router = APIRouter()

api_router.include_router(recipes.router, prefix="/recipes", tags=["Recipes"])
api_router.include_router(meal_plans.router, prefix="/meal-plans", tags=["Meal Plans"])

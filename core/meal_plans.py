"""
core/meal_plans.py
────────────────────────────────────────────────────────────────────────
Meal-plan lifecycle on top of the consolidation engine.

derive      fetch recipes → expand slots → totals + shopping list → persist
regenerate  same, but purchased state / item ids are reconciled by key
toggle      one atomic flip of one item's `purchased` flag

Every write invalidates the `meal-plans` cache collection after the store
has acknowledged it and before the caller gets the result back.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Sequence

from core.errors import NotFound, Unauthorized, ValidationFailure
from core.models import DietaryTag, MealPlan, MealSlot, Recipe
from core.shopping_list import consolidate, reconcile, recipes_for_slots, total_calories
from services.cache import MEAL_PLANS, ResponseCache
from services.store import DocumentStore

_LOG = logging.getLogger(__name__)

PLAN_FIELDS = ("week_start_date", "dietary_preferences", "budget")


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _load_recipes(store: DocumentStore, slots: Sequence[MealSlot]) -> list[Recipe]:
    wanted = {s.recipe_id for s in slots}
    found = await store.find_recipes(wanted)
    return recipes_for_slots(slots, {r.id: r for r in found})


def _check_owner(plan: MealPlan, caller_id: str) -> None:
    if plan.owner_id != caller_id:
        raise Unauthorized("Not authorized")


# ───────────────────────────── reads ────────────────────────────── #
async def get_plan(store: DocumentStore, plan_id: str, caller_id: str) -> MealPlan:
    plan = await store.find_plan(plan_id)
    if plan is None:
        raise NotFound("Meal plan not found")
    _check_owner(plan, caller_id)
    return plan


async def list_plans(store: DocumentStore, owner_id: str) -> list[MealPlan]:
    return await store.list_plans(owner_id)


# ───────────────────────────── derive ───────────────────────────── #
async def derive_plan(
    store: DocumentStore,
    cache: ResponseCache,
    owner_id: str,
    week_start_date: date,
    meals: Sequence[MealSlot],
    dietary_preferences: Sequence[DietaryTag],
    budget: float,
) -> MealPlan:
    recipes = await _load_recipes(store, meals)   # NotFound here → nothing written
    now = _now()
    plan = MealPlan(
        id=uuid.uuid4().hex,
        owner_id=owner_id,
        week_start_date=week_start_date,
        meals=list(meals),
        total_calories=total_calories(recipes),
        dietary_preferences=list(dict.fromkeys(dietary_preferences)),
        budget=budget,
        shopping_list=reconcile([], consolidate(recipes)),
        created_at=now,
        updated_at=now,
    )
    plan = await store.create_plan(plan)
    await cache.invalidate(MEAL_PLANS)
    _LOG.info(
        "plan %s created for %s (%d meals, %d kcal, %d items)",
        plan.id, owner_id, len(plan.meals), plan.total_calories, len(plan.shopping_list),
    )
    return plan


async def regenerate_plan(
    store: DocumentStore,
    cache: ResponseCache,
    existing: MealPlan,
    new_meals: Sequence[MealSlot],
    fields: dict[str, Any] | None = None,
) -> MealPlan:
    """
    Replace the meals of `existing` and rebuild totals + shopping list.

    `fields` (plan metadata) is written in the same store call, so a
    missing recipe leaves the plan exactly as it was.
    """
    recipes = await _load_recipes(store, new_meals)   # NotFound here → nothing written
    items = reconcile(existing.shopping_list, consolidate(recipes))
    try:
        plan = await store.replace_plan_meals(
            existing.id,
            meals=list(new_meals),
            total_calories=total_calories(recipes),
            shopping_list=items,
            at=_now(),
            fields=fields,
        )
    finally:
        await cache.invalidate(MEAL_PLANS)
    if plan is None:
        raise NotFound("Meal plan not found")
    _LOG.info("plan %s regenerated (%d items)", plan.id, len(plan.shopping_list))
    return plan


# ───────────────────────────── update ───────────────────────────── #
async def update_plan(
    store: DocumentStore,
    cache: ResponseCache,
    plan_id: str,
    caller_id: str,
    changes: dict[str, Any],
) -> MealPlan:
    """
    Patch plan metadata and/or replace its meals.

    Metadata never touches totals or the shopping list; a `meals` change
    always goes through regeneration, carrying the metadata with it.
    """
    if not changes:
        raise ValidationFailure("No changes supplied")
    plan = await get_plan(store, plan_id, caller_id)

    fields = {k: v for k, v in changes.items() if k in PLAN_FIELDS and v is not None}
    if "dietary_preferences" in fields:
        fields["dietary_preferences"] = list(dict.fromkeys(fields["dietary_preferences"]))

    if changes.get("meals") is not None:
        return await regenerate_plan(store, cache, plan, changes["meals"], fields or None)
    if not fields:
        return plan

    try:
        patched = await store.update_plan_fields(plan_id, fields, _now())
    finally:
        await cache.invalidate(MEAL_PLANS)
    if patched is None:
        raise NotFound("Meal plan not found")
    return patched


async def toggle_item(
    store: DocumentStore,
    cache: ResponseCache,
    plan_id: str,
    item_id: str,
    caller_id: str,
) -> MealPlan:
    await get_plan(store, plan_id, caller_id)
    try:
        plan = await store.toggle_plan_item(plan_id, item_id)
    finally:
        await cache.invalidate(MEAL_PLANS)
    if plan is None:
        raise NotFound("Shopping list item not found")
    return plan


async def delete_plan(
    store: DocumentStore,
    cache: ResponseCache,
    plan_id: str,
    caller_id: str,
) -> None:
    await get_plan(store, plan_id, caller_id)
    try:
        deleted = await store.delete_plan(plan_id)
    finally:
        await cache.invalidate(MEAL_PLANS)
    if not deleted:
        raise NotFound("Meal plan not found")
    _LOG.info("plan %s deleted", plan_id)

"""
In-memory stand-ins for the document store and a cache store that is
always down.  Used by the core and HTTP tests – no database, no Redis.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Collection

from core.errors import UpstreamUnavailable
from core.models import (
    Comment,
    DietaryTag,
    Difficulty,
    Ingredient,
    MealPlan,
    MealSlot,
    Recipe,
    ShoppingListItem,
    Unit,
)

T0 = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def make_recipe(
    recipe_id: str,
    ingredients: list[tuple[str, float, str]] = (),
    calories: int = 0,
    author_id: str = "chef",
    **extra,
) -> Recipe:
    return Recipe(
        id=recipe_id,
        title=extra.pop("title", recipe_id.title()),
        description=extra.pop("description", f"{recipe_id} description"),
        ingredients=[Ingredient(name=n, amount=a, unit=Unit(u)) for n, a, u in ingredients],
        calories=calories,
        author_id=author_id,
        created_at=extra.pop("created_at", T0),
        updated_at=extra.pop("updated_at", T0),
        **extra,
    )


def slot(recipe_id: str, day: str = "monday", meal_type: str = "dinner") -> MealSlot:
    return MealSlot(day=day, meal_type=meal_type, recipe_id=recipe_id)


class MemoryDocumentStore:
    """Dict-backed `DocumentStore`; `down = True` simulates an outage."""

    def __init__(self, recipes: Collection[Recipe] = ()) -> None:
        self.recipes: dict[str, Recipe] = {r.id: r for r in recipes}
        self.plans: dict[str, MealPlan] = {}
        self.down = False
        self.writes = 0

    def _check(self) -> None:
        if self.down:
            raise UpstreamUnavailable("memory store is down", upstream="store")

    def _copy(self, plan: MealPlan) -> MealPlan:
        return plan.model_copy(deep=True)

    # recipes
    async def find_recipe(self, recipe_id: str) -> Recipe | None:
        self._check()
        return self.recipes.get(recipe_id)

    async def find_recipes(self, recipe_ids: Collection[str]) -> list[Recipe]:
        self._check()
        found = [r for rid, r in self.recipes.items() if rid in set(recipe_ids)]
        return list(reversed(found))   # callers must not rely on store order

    async def search_recipes(
        self,
        *,
        search: str | None = None,
        dietary_tags: Collection[DietaryTag] = (),
        difficulty: Difficulty | None = None,
    ) -> list[Recipe]:
        self._check()
        out = sorted(self.recipes.values(), key=lambda r: r.created_at, reverse=True)
        if search:
            s = search.lower()
            out = [r for r in out if s in r.title.lower() or s in r.description.lower()]
        if difficulty is not None:
            out = [r for r in out if r.difficulty == difficulty]
        if dietary_tags:
            out = [r for r in out if set(dietary_tags) & set(r.dietary_tags)]
        return out

    async def create_recipe(self, recipe: Recipe) -> Recipe:
        self._check()
        self.writes += 1
        self.recipes[recipe.id] = recipe
        return recipe

    async def update_recipe(self, recipe: Recipe) -> Recipe | None:
        self._check()
        if recipe.id not in self.recipes:
            return None
        self.writes += 1
        self.recipes[recipe.id] = recipe
        return recipe

    async def delete_recipe(self, recipe_id: str) -> bool:
        self._check()
        self.writes += 1
        return self.recipes.pop(recipe_id, None) is not None

    async def toggle_recipe_like(self, recipe_id: str, user_id: str, at: datetime) -> Recipe | None:
        self._check()
        r = self.recipes.get(recipe_id)
        if r is None:
            return None
        likes = [u for u in r.likes if u != user_id] if user_id in r.likes else [*r.likes, user_id]
        self.recipes[recipe_id] = r.model_copy(update={"likes": likes, "updated_at": at})
        self.writes += 1
        return self.recipes[recipe_id]

    async def add_recipe_comment(self, recipe_id: str, comment: Comment) -> Recipe | None:
        self._check()
        r = self.recipes.get(recipe_id)
        if r is None:
            return None
        self.recipes[recipe_id] = r.model_copy(update={"comments": [*r.comments, comment]})
        self.writes += 1
        return self.recipes[recipe_id]

    # plans
    async def find_plan(self, plan_id: str) -> MealPlan | None:
        self._check()
        p = self.plans.get(plan_id)
        return self._copy(p) if p else None

    async def list_plans(self, owner_id: str) -> list[MealPlan]:
        self._check()
        mine = [self._copy(p) for p in self.plans.values() if p.owner_id == owner_id]
        return sorted(mine, key=lambda p: p.week_start_date, reverse=True)

    async def create_plan(self, plan: MealPlan) -> MealPlan:
        self._check()
        self.writes += 1
        self.plans[plan.id] = self._copy(plan)
        return self._copy(plan)

    async def replace_plan_meals(
        self,
        plan_id: str,
        *,
        meals: list[MealSlot],
        total_calories: int,
        shopping_list: list[ShoppingListItem],
        at: datetime,
        fields: dict | None = None,
    ) -> MealPlan | None:
        self._check()
        p = self.plans.get(plan_id)
        if p is None:
            return None
        self.writes += 1
        self.plans[plan_id] = p.model_copy(
            update={
                **(fields or {}),
                "meals": list(meals),
                "total_calories": total_calories,
                "shopping_list": [i.model_copy() for i in shopping_list],
                "updated_at": at,
            }
        )
        return self._copy(self.plans[plan_id])

    async def update_plan_fields(self, plan_id: str, changes: dict, at: datetime) -> MealPlan | None:
        self._check()
        p = self.plans.get(plan_id)
        if p is None:
            return None
        self.writes += 1
        self.plans[plan_id] = p.model_copy(update={**changes, "updated_at": at})
        return self._copy(self.plans[plan_id])

    async def toggle_plan_item(self, plan_id: str, item_id: str) -> MealPlan | None:
        self._check()
        p = self.plans.get(plan_id)
        item = p.item(item_id) if p else None
        if item is None:
            return None
        self.writes += 1
        item.purchased = not item.purchased
        return self._copy(p)

    async def delete_plan(self, plan_id: str) -> bool:
        self._check()
        self.writes += 1
        return self.plans.pop(plan_id, None) is not None


class DownCacheStore:
    """Every call fails the way an unreachable Redis would."""

    def __init__(self) -> None:
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise UpstreamUnavailable("cache is down", upstream="cache")

    async def get(self, key: str) -> bytes | None:
        self._fail()

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self._fail()

    async def generation(self, collection: str) -> int:
        self._fail()

    async def bump_generation(self, collection: str) -> int:
        self._fail()

    async def close(self) -> None:
        pass


WEEK = date(2025, 1, 6)

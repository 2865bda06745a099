"""
services/store.py
────────────────────────────────────────────────────────────────────────
Document-store collaborator.

`DocumentStore` is what the core talks to; `SqlDocumentStore` implements
it on the async SQLAlchemy models from `services.db`.  Absent rows come
back as `None` / `False`; anything the database itself throws is turned
into `UpstreamUnavailable(upstream="store")`.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Collection, Protocol

from fastapi import Depends
from sqlalchemy import delete, insert, not_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.errors import UpstreamUnavailable
from core.models import (
    Comment,
    DietaryTag,
    Difficulty,
    MealPlan,
    MealSlot,
    Recipe,
    ShoppingListItem,
)
from services.db import MealPlanRow, RecipeRow, ShoppingListItemRow, get_session

_LOG = logging.getLogger(__name__)


class DocumentStore(Protocol):
    # recipes
    async def find_recipe(self, recipe_id: str) -> Recipe | None: ...

    async def find_recipes(self, recipe_ids: Collection[str]) -> list[Recipe]: ...

    async def search_recipes(
        self,
        *,
        search: str | None = None,
        dietary_tags: Collection[DietaryTag] = (),
        difficulty: Difficulty | None = None,
    ) -> list[Recipe]: ...

    async def create_recipe(self, recipe: Recipe) -> Recipe: ...

    async def update_recipe(self, recipe: Recipe) -> Recipe | None: ...

    async def delete_recipe(self, recipe_id: str) -> bool: ...

    async def toggle_recipe_like(
        self, recipe_id: str, user_id: str, at: datetime
    ) -> Recipe | None: ...

    async def add_recipe_comment(self, recipe_id: str, comment: Comment) -> Recipe | None: ...

    # meal plans
    async def find_plan(self, plan_id: str) -> MealPlan | None: ...

    async def list_plans(self, owner_id: str) -> list[MealPlan]: ...

    async def create_plan(self, plan: MealPlan) -> MealPlan: ...

    async def replace_plan_meals(
        self,
        plan_id: str,
        *,
        meals: list[MealSlot],
        total_calories: int,
        shopping_list: list[ShoppingListItem],
        at: datetime,
        fields: dict | None = None,
    ) -> MealPlan | None: ...

    async def update_plan_fields(
        self, plan_id: str, changes: dict, at: datetime
    ) -> MealPlan | None: ...

    async def toggle_plan_item(self, plan_id: str, item_id: str) -> MealPlan | None: ...

    async def delete_plan(self, plan_id: str) -> bool: ...


# ───────── row ⇄ model helpers ───────────────────────────────────────
def _recipe_values(recipe: Recipe) -> dict:
    values = recipe.model_dump(mode="json", exclude={"created_at", "updated_at"})
    values["created_at"] = recipe.created_at
    values["updated_at"] = recipe.updated_at
    return values


def _item_values(plan_id: str, items: list[ShoppingListItem]) -> list[dict]:
    return [
        {
            "plan_id": plan_id,
            "id": it.id,
            "position": pos,
            "name": it.name,
            "amount": it.amount,
            "unit": it.unit.value,
            "purchased": it.purchased,
        }
        for pos, it in enumerate(items)
    ]


def _plan_columns(changes: dict) -> dict:
    out = dict(changes)
    if "dietary_preferences" in out:
        out["dietary_preferences"] = [DietaryTag(t).value for t in out["dietary_preferences"]]
    if "meals" in out:
        out["meals"] = [m.model_dump(mode="json") for m in out["meals"]]
    return out


class SqlDocumentStore:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    @asynccontextmanager
    async def _guard(self, op: str) -> AsyncIterator[None]:
        try:
            yield
        except (SQLAlchemyError, OSError) as exc:
            _LOG.error("store %s failed: %s", op, exc)
            await self._db.rollback()
            raise UpstreamUnavailable(f"document store {op} failed", upstream="store") from exc

    # ───────────────────────── recipes ─────────────────────────
    async def find_recipe(self, recipe_id: str) -> Recipe | None:
        async with self._guard("find_recipe"):
            row = await self._db.get(RecipeRow, recipe_id, populate_existing=True)
        return Recipe.model_validate(row) if row else None

    async def find_recipes(self, recipe_ids: Collection[str]) -> list[Recipe]:
        if not recipe_ids:
            return []
        async with self._guard("find_recipes"):
            rows = (
                await self._db.execute(select(RecipeRow).where(RecipeRow.id.in_(list(recipe_ids))))
            ).scalars().all()
        return [Recipe.model_validate(r) for r in rows]

    async def search_recipes(
        self,
        *,
        search: str | None = None,
        dietary_tags: Collection[DietaryTag] = (),
        difficulty: Difficulty | None = None,
    ) -> list[Recipe]:
        stmt = select(RecipeRow).order_by(RecipeRow.created_at.desc())
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(RecipeRow.title.ilike(pattern), RecipeRow.description.ilike(pattern))
            )
        if difficulty is not None:
            stmt = stmt.where(RecipeRow.difficulty == difficulty.value)
        async with self._guard("search_recipes"):
            rows = (await self._db.execute(stmt)).scalars().all()
        recipes = [Recipe.model_validate(r) for r in rows]
        # JSON containment is dialect specific – filter tags here
        if dietary_tags:
            wanted = set(dietary_tags)
            recipes = [r for r in recipes if wanted.intersection(r.dietary_tags)]
        return recipes

    async def create_recipe(self, recipe: Recipe) -> Recipe:
        async with self._guard("create_recipe"):
            self._db.add(RecipeRow(**_recipe_values(recipe)))
            await self._db.commit()
        return recipe

    async def update_recipe(self, recipe: Recipe) -> Recipe | None:
        values = _recipe_values(recipe)
        values.pop("id")
        values.pop("created_at")
        async with self._guard("update_recipe"):
            res = await self._db.execute(
                update(RecipeRow).where(RecipeRow.id == recipe.id).values(**values)
            )
            await self._db.commit()
        return recipe if res.rowcount else None

    async def delete_recipe(self, recipe_id: str) -> bool:
        async with self._guard("delete_recipe"):
            res = await self._db.execute(delete(RecipeRow).where(RecipeRow.id == recipe_id))
            await self._db.commit()
        return bool(res.rowcount)

    async def _locked_recipe(self, recipe_id: str) -> RecipeRow | None:
        return (
            await self._db.execute(
                select(RecipeRow)
                .where(RecipeRow.id == recipe_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()

    async def toggle_recipe_like(
        self, recipe_id: str, user_id: str, at: datetime
    ) -> Recipe | None:
        async with self._guard("toggle_recipe_like"):
            row = await self._locked_recipe(recipe_id)
            if row is None:
                await self._db.rollback()
                return None
            likes = list(row.likes or [])
            if user_id in likes:
                likes.remove(user_id)
            else:
                likes.append(user_id)
            row.likes = likes
            row.updated_at = at
            await self._db.commit()
        return Recipe.model_validate(row)

    async def add_recipe_comment(self, recipe_id: str, comment: Comment) -> Recipe | None:
        async with self._guard("add_recipe_comment"):
            row = await self._locked_recipe(recipe_id)
            if row is None:
                await self._db.rollback()
                return None
            row.comments = [*(row.comments or []), comment.model_dump(mode="json")]
            row.updated_at = comment.created_at
            await self._db.commit()
        return Recipe.model_validate(row)

    # ──────────────────────── meal plans ───────────────────────
    async def find_plan(self, plan_id: str) -> MealPlan | None:
        stmt = (
            select(MealPlanRow)
            .where(MealPlanRow.id == plan_id)
            .options(selectinload(MealPlanRow.shopping_list))
            .execution_options(populate_existing=True)
        )
        async with self._guard("find_plan"):
            row = (await self._db.execute(stmt)).scalar_one_or_none()
        return MealPlan.model_validate(row) if row else None

    async def list_plans(self, owner_id: str) -> list[MealPlan]:
        stmt = (
            select(MealPlanRow)
            .where(MealPlanRow.owner_id == owner_id)
            .order_by(MealPlanRow.week_start_date.desc(), MealPlanRow.created_at.desc())
            .options(selectinload(MealPlanRow.shopping_list))
        )
        async with self._guard("list_plans"):
            rows = (await self._db.execute(stmt)).scalars().all()
        return [MealPlan.model_validate(r) for r in rows]

    async def create_plan(self, plan: MealPlan) -> MealPlan:
        values = _plan_columns(
            plan.model_dump(exclude={"shopping_list"}) | {"meals": plan.meals}
        )
        # plan row + items commit together or not at all
        async with self._guard("create_plan"):
            await self._db.execute(insert(MealPlanRow).values(**values))
            if plan.shopping_list:
                await self._db.execute(
                    insert(ShoppingListItemRow), _item_values(plan.id, plan.shopping_list)
                )
            await self._db.commit()
        return plan

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
        async with self._guard("replace_plan_meals"):
            res = await self._db.execute(
                update(MealPlanRow)
                .where(MealPlanRow.id == plan_id)
                .values(
                    **_plan_columns({**(fields or {}), "meals": meals}),
                    total_calories=total_calories,
                    updated_at=at,
                )
            )
            if not res.rowcount:
                await self._db.rollback()
                return None
            # explicit order: old items out before carried-over ids go back in
            await self._db.execute(
                delete(ShoppingListItemRow).where(ShoppingListItemRow.plan_id == plan_id)
            )
            if shopping_list:
                await self._db.execute(
                    insert(ShoppingListItemRow), _item_values(plan_id, shopping_list)
                )
            await self._db.commit()
        return await self.find_plan(plan_id)

    async def update_plan_fields(
        self, plan_id: str, changes: dict, at: datetime
    ) -> MealPlan | None:
        async with self._guard("update_plan_fields"):
            res = await self._db.execute(
                update(MealPlanRow)
                .where(MealPlanRow.id == plan_id)
                .values(**_plan_columns(changes), updated_at=at)
            )
            await self._db.commit()
        if not res.rowcount:
            return None
        return await self.find_plan(plan_id)

    async def toggle_plan_item(self, plan_id: str, item_id: str) -> MealPlan | None:
        # single targeted UPDATE – concurrent toggles on sibling items can't clobber each other
        async with self._guard("toggle_plan_item"):
            res = await self._db.execute(
                update(ShoppingListItemRow)
                .where(
                    ShoppingListItemRow.plan_id == plan_id,
                    ShoppingListItemRow.id == item_id,
                )
                .values(purchased=not_(ShoppingListItemRow.purchased))
                .returning(ShoppingListItemRow.id)
            )
            hit = res.scalar_one_or_none()
            await self._db.commit()
        if hit is None:
            return None
        return await self.find_plan(plan_id)

    async def delete_plan(self, plan_id: str) -> bool:
        async with self._guard("delete_plan"):
            await self._db.execute(
                delete(ShoppingListItemRow).where(ShoppingListItemRow.plan_id == plan_id)
            )
            res = await self._db.execute(delete(MealPlanRow).where(MealPlanRow.id == plan_id))
            await self._db.commit()
        return bool(res.rowcount)


# ───────── FastAPI dependency ────────────────────────────────────────
async def get_store(db: AsyncSession = Depends(get_session)) -> DocumentStore:
    return SqlDocumentStore(db)

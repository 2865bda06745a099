"""
core/recipes.py
────────────────────────────────────────────────────────────────────────
Recipe reads and author-only writes.  Each write bumps the `recipes`
cache generation so list/search pages cached before it stop being served.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Collection

from core.errors import NotFound, Unauthorized, ValidationFailure
from core.models import Comment, DietaryTag, Difficulty, Recipe
from services.cache import RECIPES, ResponseCache
from services.store import DocumentStore

_LOG = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def list_recipes(
    store: DocumentStore,
    search: str | None = None,
    dietary_tags: Collection[DietaryTag] = (),
    difficulty: Difficulty | None = None,
) -> list[Recipe]:
    return await store.search_recipes(
        search=search.strip() if search else None,
        dietary_tags=dietary_tags,
        difficulty=difficulty,
    )


async def get_recipe(store: DocumentStore, recipe_id: str) -> Recipe:
    recipe = await store.find_recipe(recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    return recipe


async def _authored(store: DocumentStore, recipe_id: str, caller_id: str, verb: str) -> Recipe:
    recipe = await get_recipe(store, recipe_id)
    if recipe.author_id != caller_id:
        raise Unauthorized(f"Not authorized to {verb} this recipe")
    return recipe


async def create_recipe(
    store: DocumentStore,
    cache: ResponseCache,
    author_id: str,
    data: dict[str, Any],
) -> Recipe:
    now = _now()
    recipe = Recipe.model_validate(
        {**data, "id": uuid.uuid4().hex, "author_id": author_id, "created_at": now, "updated_at": now}
    )
    recipe = await store.create_recipe(recipe)
    await cache.invalidate(RECIPES)
    _LOG.info("recipe created: %s", recipe.id)
    return recipe


async def update_recipe(
    store: DocumentStore,
    cache: ResponseCache,
    recipe_id: str,
    caller_id: str,
    changes: dict[str, Any],
) -> Recipe:
    if not changes:
        raise ValidationFailure("No changes supplied")
    current = await _authored(store, recipe_id, caller_id, "update")
    merged = Recipe.model_validate(
        {**current.model_dump(), **changes, "updated_at": _now()}
    )
    updated = await store.update_recipe(merged)
    if updated is None:
        raise NotFound("Recipe not found")
    await cache.invalidate(RECIPES)
    _LOG.info("recipe updated: %s", recipe_id)
    return updated


async def delete_recipe(
    store: DocumentStore,
    cache: ResponseCache,
    recipe_id: str,
    caller_id: str,
) -> None:
    await _authored(store, recipe_id, caller_id, "delete")
    if not await store.delete_recipe(recipe_id):
        raise NotFound("Recipe not found")
    await cache.invalidate(RECIPES)
    _LOG.info("recipe deleted: %s", recipe_id)


async def toggle_like(
    store: DocumentStore,
    cache: ResponseCache,
    recipe_id: str,
    caller_id: str,
) -> Recipe:
    recipe = await store.toggle_recipe_like(recipe_id, caller_id, _now())
    if recipe is None:
        raise NotFound("Recipe not found")
    await cache.invalidate(RECIPES)
    _LOG.info("recipe like status toggled: %s", recipe_id)
    return recipe


async def add_comment(
    store: DocumentStore,
    cache: ResponseCache,
    recipe_id: str,
    caller_id: str,
    text: str,
) -> Recipe:
    text = text.strip()
    if not text:
        raise ValidationFailure("Comment text is required")
    comment = Comment(id=uuid.uuid4().hex, user_id=caller_id, text=text, created_at=_now())
    recipe = await store.add_recipe_comment(recipe_id, comment)
    if recipe is None:
        raise NotFound("Recipe not found")
    await cache.invalidate(RECIPES)
    _LOG.info("comment added to recipe: %s", recipe_id)
    return recipe

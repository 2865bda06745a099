# api/v1/recipes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import TypeAdapter

from api.v1.schemas import CommentIn, RecipeIn, RecipeUpdate
from core import recipes as svc
from core.errors import ValidationFailure
from core.models import DietaryTag, Difficulty, Recipe
from services.auth import current_user_id
from services.cache import RECIPES, ResponseCache, get_cache, request_signature
from services.store import DocumentStore, get_store

router = APIRouter()

_RECIPE = TypeAdapter(Recipe)
_RECIPES = TypeAdapter(list[Recipe])


def _parse_tags(raw: str | None) -> list[DietaryTag]:
    """`?dietary_tags=vegan,keto` → [DietaryTag.vegan, DietaryTag.keto]."""
    if not raw:
        return []
    try:
        return [DietaryTag(t.strip()) for t in raw.split(",") if t.strip()]
    except ValueError as exc:
        raise ValidationFailure(f"Invalid dietary tag: {exc}") from None


def _json(body: bytes) -> Response:
    return Response(content=body, media_type="application/json")


# ───────────────────────── read (cached) ─────────────────────
@router.get("", response_model=list[Recipe], summary="List / search recipes")
async def list_recipes(
    request: Request,
    search: str | None = Query(None, description="Substring of title or description"),
    dietary_tags: str | None = Query(None, description="Comma-separated dietary tags"),
    difficulty: Difficulty | None = Query(None),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Response:
    tags = _parse_tags(dietary_tags)

    async def load() -> bytes:
        return _RECIPES.dump_json(await svc.list_recipes(store, search, tags, difficulty))

    sig = request_signature(request.url.path, request.query_params.multi_items())
    return _json(await cache.cached_read(RECIPES, sig, load))


@router.get("/{recipe_id}", response_model=Recipe, summary="Get a recipe by ID")
async def get_recipe(
    recipe_id: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Response:
    async def load() -> bytes:
        return _RECIPE.dump_json(await svc.get_recipe(store, recipe_id))

    sig = request_signature(request.url.path, request.query_params.multi_items())
    return _json(await cache.cached_read(RECIPES, sig, load))


# ───────────────────────── writes ────────────────────────────
@router.post("", response_model=Recipe, status_code=status.HTTP_201_CREATED)
async def create_recipe(
    body: RecipeIn,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Recipe:
    return await svc.create_recipe(store, cache, user_id, body.model_dump())


@router.put("/{recipe_id}", response_model=Recipe)
async def update_recipe(
    recipe_id: str,
    body: RecipeUpdate,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Recipe:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    return await svc.update_recipe(store, cache, recipe_id, user_id, changes)


@router.delete("/{recipe_id}")
async def delete_recipe(
    recipe_id: str,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> dict[str, str]:
    await svc.delete_recipe(store, cache, recipe_id, user_id)
    return {"message": "Recipe deleted successfully"}


@router.put("/{recipe_id}/like", response_model=Recipe, summary="Toggle like status")
async def toggle_like(
    recipe_id: str,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Recipe:
    return await svc.toggle_like(store, cache, recipe_id, user_id)


@router.post(
    "/{recipe_id}/comments",
    response_model=Recipe,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    recipe_id: str,
    body: CommentIn,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Recipe:
    return await svc.add_comment(store, cache, recipe_id, user_id, body.text)

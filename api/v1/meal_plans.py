# api/v1/meal_plans.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import TypeAdapter

from api.v1.schemas import MealPlanIn, MealPlanUpdate
from core import meal_plans as svc
from core.models import MealPlan
from services.auth import current_user_id
from services.cache import MEAL_PLANS, ResponseCache, get_cache, request_signature
from services.store import DocumentStore, get_store

router = APIRouter()

_PLAN = TypeAdapter(MealPlan)
_PLANS = TypeAdapter(list[MealPlan])


def _json(body: bytes) -> Response:
    return Response(content=body, media_type="application/json")


# ───────────────────────── read (cached per caller) ──────────
@router.get("", response_model=list[MealPlan], summary="List the caller's meal plans")
async def list_meal_plans(
    request: Request,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Response:
    async def load() -> bytes:
        return _PLANS.dump_json(await svc.list_plans(store, user_id))

    sig = request_signature(request.url.path, request.query_params.multi_items(), user_id)
    return _json(await cache.cached_read(MEAL_PLANS, sig, load))


@router.get("/{plan_id}", response_model=MealPlan, summary="Get a meal plan by ID")
async def get_meal_plan(
    plan_id: str,
    request: Request,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> Response:
    async def load() -> bytes:
        return _PLAN.dump_json(await svc.get_plan(store, plan_id, user_id))

    sig = request_signature(request.url.path, request.query_params.multi_items(), user_id)
    return _json(await cache.cached_read(MEAL_PLANS, sig, load))


# ───────────────────────── writes ────────────────────────────
@router.post("", response_model=MealPlan, status_code=status.HTTP_201_CREATED)
async def create_meal_plan(
    body: MealPlanIn,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> MealPlan:
    return await svc.derive_plan(
        store,
        cache,
        user_id,
        body.week_start_date,
        body.meals,
        body.dietary_preferences,
        body.budget,
    )


@router.put("/{plan_id}", response_model=MealPlan)
async def update_meal_plan(
    plan_id: str,
    body: MealPlanUpdate,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> MealPlan:
    # keep MealSlot objects intact – the core regenerates from them
    changes = {k: getattr(body, k) for k in body.model_fields_set if getattr(body, k) is not None}
    return await svc.update_plan(store, cache, plan_id, user_id, changes)


@router.delete("/{plan_id}")
async def delete_meal_plan(
    plan_id: str,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> dict[str, str]:
    await svc.delete_plan(store, cache, plan_id, user_id)
    return {"message": "Meal plan removed"}


@router.put(
    "/{plan_id}/shopping-list/{item_id}",
    response_model=MealPlan,
    summary="Toggle a shopping-list item's purchased flag",
)
async def toggle_shopping_list_item(
    plan_id: str,
    item_id: str,
    user_id: str = Depends(current_user_id),
    store: DocumentStore = Depends(get_store),
    cache: ResponseCache = Depends(get_cache),
) -> MealPlan:
    return await svc.toggle_item(store, cache, plan_id, item_id, user_id)

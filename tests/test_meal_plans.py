"""
core.meal_plans against the in-memory store – derivation, regeneration,
item toggles and the cache invalidation each write triggers.
"""
from __future__ import annotations

import asyncio

import pytest

from core import meal_plans
from core.errors import NotFound, Unauthorized, UpstreamUnavailable, ValidationFailure
from core.models import DietaryTag, MealPlan
from services.cache import MEAL_PLANS, MemoryCacheStore, ResponseCache, request_signature
from tests.fakes import WEEK, MemoryDocumentStore, make_recipe, slot

A = make_recipe("a", [("flour", 200, "g")], calories=300)
B = make_recipe("b", [("flour", 100, "g"), ("egg", 2, "piece")], calories=500)
C = make_recipe("c", [("milk", 250, "ml")], calories=150)


@pytest.fixture()
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore([A, B, C])


@pytest.fixture()
def cache() -> ResponseCache:
    return ResponseCache(MemoryCacheStore(), ttl_seconds=60)


def _derive(store, cache, slots, owner="alice"):
    return asyncio.run(
        meal_plans.derive_plan(store, cache, owner, WEEK, slots, [DietaryTag.vegetarian], 50.0)
    )


def _by_name(plan):
    return {i.name: i for i in plan.shopping_list}


# ── derive ──────────────────────────────────────────────────────────
def test_derive_totals_and_shopping_list(store, cache):
    plan = _derive(store, cache, [slot("a"), slot("b", "tuesday"), slot("a", "wednesday")])

    assert plan.total_calories == 1100
    assert [(i.name, i.amount, i.unit.value) for i in plan.shopping_list] == [
        ("flour", 500, "g"),
        ("egg", 2, "piece"),
    ]
    assert plan.owner_id == "alice"
    assert plan.id in store.plans


def test_derive_dedupes_dietary_preferences(store, cache):
    plan = asyncio.run(
        meal_plans.derive_plan(
            store, cache, "alice", WEEK, [slot("c")],
            [DietaryTag.vegan, DietaryTag.keto, DietaryTag.vegan], 0,
        )
    )
    assert plan.dietary_preferences == [DietaryTag.vegan, DietaryTag.keto]


def test_derive_with_missing_recipe_writes_nothing(store, cache):
    with pytest.raises(NotFound):
        _derive(store, cache, [slot("a"), slot("nope")])
    assert store.plans == {}
    assert store.writes == 0


def test_derive_empty_plan(store, cache):
    plan = _derive(store, cache, [])
    assert plan.total_calories == 0
    assert plan.shopping_list == []


def test_derive_invalidates_plan_reads(store, cache):
    before = asyncio.run(cache.store.generation(MEAL_PLANS))
    _derive(store, cache, [slot("a")])
    assert asyncio.run(cache.store.generation(MEAL_PLANS)) == before + 1


def test_totals_are_a_snapshot(store, cache):
    plan = _derive(store, cache, [slot("a")])
    store.recipes["a"] = A.model_copy(update={"calories": 9999})
    again = asyncio.run(meal_plans.get_plan(store, plan.id, "alice"))
    assert again.total_calories == 300


# ── toggle ──────────────────────────────────────────────────────────
def test_toggle_twice_restores_original(store, cache):
    plan = _derive(store, cache, [slot("b")])
    egg = _by_name(plan)["egg"]

    once = asyncio.run(meal_plans.toggle_item(store, cache, plan.id, egg.id, "alice"))
    assert once.item(egg.id).purchased is True
    assert once.item(_by_name(plan)["flour"].id).purchased is False
    assert once.total_calories == plan.total_calories

    twice = asyncio.run(meal_plans.toggle_item(store, cache, plan.id, egg.id, "alice"))
    assert twice.item(egg.id).purchased is False


def test_toggle_unknown_item_is_not_found_and_changes_nothing(store, cache):
    plan = _derive(store, cache, [slot("b")])
    writes = store.writes
    with pytest.raises(NotFound):
        asyncio.run(meal_plans.toggle_item(store, cache, plan.id, "missing", "alice"))
    assert store.writes == writes
    assert asyncio.run(meal_plans.get_plan(store, plan.id, "alice")) == plan


def test_toggle_item_of_another_plan_is_not_found(store, cache):
    mine = _derive(store, cache, [slot("a")])
    other = _derive(store, cache, [slot("c")])
    foreign = other.shopping_list[0].id
    with pytest.raises(NotFound):
        asyncio.run(meal_plans.toggle_item(store, cache, mine.id, foreign, "alice"))


def test_toggle_requires_owner(store, cache):
    plan = _derive(store, cache, [slot("a")])
    with pytest.raises(Unauthorized):
        asyncio.run(
            meal_plans.toggle_item(store, cache, plan.id, plan.shopping_list[0].id, "mallory")
        )


# ── regenerate ──────────────────────────────────────────────────────
def test_regenerate_keeps_purchased_for_surviving_keys(store, cache):
    plan = _derive(store, cache, [slot("b")])
    flour, egg = _by_name(plan)["flour"], _by_name(plan)["egg"]
    asyncio.run(meal_plans.toggle_item(store, cache, plan.id, flour.id, "alice"))
    asyncio.run(meal_plans.toggle_item(store, cache, plan.id, egg.id, "alice"))
    current = asyncio.run(meal_plans.get_plan(store, plan.id, "alice"))

    regen = asyncio.run(
        meal_plans.regenerate_plan(store, cache, current, [slot("a"), slot("c")])
    )
    items = _by_name(regen)
    assert set(items) == {"flour", "milk"}        # egg dropped
    assert items["flour"].purchased is True
    assert items["flour"].id == flour.id
    assert items["flour"].amount == 200
    assert items["milk"].purchased is False
    assert regen.total_calories == 450


def test_regenerate_same_recipes_keeps_ids(store, cache):
    plan = _derive(store, cache, [slot("a"), slot("b")])
    regen = asyncio.run(
        meal_plans.regenerate_plan(store, cache, plan, [slot("a"), slot("b")])
    )
    assert [i.id for i in regen.shopping_list] == [i.id for i in plan.shopping_list]


# ── update / delete ─────────────────────────────────────────────────
def test_update_metadata_leaves_derived_fields(store, cache):
    plan = _derive(store, cache, [slot("a")])
    asyncio.run(meal_plans.toggle_item(store, cache, plan.id, plan.shopping_list[0].id, "alice"))

    updated = asyncio.run(
        meal_plans.update_plan(store, cache, plan.id, "alice", {"budget": 80.0})
    )
    assert updated.budget == 80.0
    assert updated.total_calories == plan.total_calories
    assert updated.shopping_list[0].purchased is True


def test_update_with_meals_regenerates(store, cache):
    plan = _derive(store, cache, [slot("a")])
    updated = asyncio.run(
        meal_plans.update_plan(store, cache, plan.id, "alice", {"meals": [slot("c")]})
    )
    assert updated.total_calories == 150
    assert [i.name for i in updated.shopping_list] == ["milk"]


def test_update_without_changes(store, cache):
    plan = _derive(store, cache, [slot("a")])
    with pytest.raises(ValidationFailure):
        asyncio.run(meal_plans.update_plan(store, cache, plan.id, "alice", {}))


def test_delete_owner_only(store, cache):
    plan = _derive(store, cache, [slot("a")])
    with pytest.raises(Unauthorized):
        asyncio.run(meal_plans.delete_plan(store, cache, plan.id, "mallory"))
    asyncio.run(meal_plans.delete_plan(store, cache, plan.id, "alice"))
    with pytest.raises(NotFound):
        asyncio.run(meal_plans.get_plan(store, plan.id, "alice"))


def test_update_metadata_and_meals_in_one_write(store, cache):
    plan = _derive(store, cache, [slot("a")])
    writes = store.writes
    updated = asyncio.run(
        meal_plans.update_plan(
            store, cache, plan.id, "alice",
            {"budget": 99.0, "dietary_preferences": [DietaryTag.keto], "meals": [slot("c")]},
        )
    )
    assert store.writes == writes + 1
    assert updated.budget == 99.0
    assert updated.dietary_preferences == [DietaryTag.keto]
    assert updated.total_calories == 150


def test_update_with_unknown_recipe_leaves_plan_and_cache_intact(store, cache):
    plan = asyncio.run(
        meal_plans.derive_plan(store, cache, "alice", WEEK, [slot("a")], [], 10.0)
    )
    sig = request_signature(f"/api/v1/meal-plans/{plan.id}", identity="alice")

    async def load() -> bytes:
        current = await meal_plans.get_plan(store, plan.id, "alice")
        return current.model_dump_json().encode()

    def read_budget() -> float:
        body = asyncio.run(cache.cached_read(MEAL_PLANS, sig, load))
        return MealPlan.model_validate_json(body).budget

    assert read_budget() == 10.0
    writes = store.writes

    with pytest.raises(NotFound):
        asyncio.run(
            meal_plans.update_plan(
                store, cache, plan.id, "alice", {"budget": 99.0, "meals": [slot("ghost")]}
            )
        )
    assert store.writes == writes
    assert store.plans[plan.id].budget == 10.0
    assert store.plans[plan.id].meals == plan.meals

    assert read_budget() == store.plans[plan.id].budget

    asyncio.run(
        meal_plans.update_plan(store, cache, plan.id, "alice", {"budget": 99.0, "meals": [slot("c")]})
    )
    assert read_budget() == 99.0


def test_failed_write_still_invalidates(store, cache, monkeypatch):
    plan = _derive(store, cache, [slot("a")])
    before = asyncio.run(cache.store.generation(MEAL_PLANS))

    async def broken(*args, **kwargs):
        raise UpstreamUnavailable("connection reset mid-commit", upstream="store")

    monkeypatch.setattr(store, "replace_plan_meals", broken)
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(meal_plans.regenerate_plan(store, cache, plan, [slot("c")]))
    assert asyncio.run(cache.store.generation(MEAL_PLANS)) == before + 1

"""
core/shopping_list.py
────────────────────────────────────────────────────────────────────────
Shopping-list consolidation engine.

1.   `recipes_for_slots()` – expand meal slots into the ordered recipe
     multiset (one entry per slot, so a recipe planned twice counts twice).
2.   `consolidate()`       – merge ingredients on the exact (name, unit)
     key and sum their amounts, keeping first-appearance order.
3.   `total_calories()`    – calorie snapshot, same multiplicity rule.
4.   `reconcile()`         – carry `purchased` + item ids forward when a
     plan is regenerated.

Everything here is pure: no store, no cache, no clock.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Mapping, Sequence

from core.errors import NotFound
from core.models import (
    MealSlot,
    Recipe,
    ShoppingListEntry,
    ShoppingListItem,
    Unit,
)

Key = tuple[str, Unit]


def new_item_id() -> str:
    return uuid.uuid4().hex


# ─────────────────────────────── expand ─────────────────────────── #
def recipes_for_slots(
    slots: Sequence[MealSlot],
    recipes_by_id: Mapping[str, Recipe],
) -> list[Recipe]:
    """
    Map every slot to its recipe, in slot order.

    `recipes_by_id` is usually built from an unordered store query, so the
    slot list – not the store – decides the order.
    """
    missing = [s.recipe_id for s in slots if s.recipe_id not in recipes_by_id]
    if missing:
        raise NotFound(f"Recipe not found: {', '.join(dict.fromkeys(missing))}")
    return [recipes_by_id[s.recipe_id] for s in slots]


# ───────────────────────────── consolidate ──────────────────────── #
def consolidate(recipes: Iterable[Recipe]) -> list[ShoppingListEntry]:
    merged: dict[Key, ShoppingListEntry] = {}
    for recipe in recipes:
        for ing in recipe.ingredients:
            key = (ing.name, ing.unit)
            entry = merged.get(key)
            if entry is None:
                merged[key] = ShoppingListEntry(
                    name=ing.name, amount=ing.amount, unit=ing.unit
                )
            else:
                entry.amount += ing.amount
    # dicts keep insertion order → first appearance wins
    return list(merged.values())


def total_calories(recipes: Iterable[Recipe]) -> int:
    return sum(r.calories for r in recipes)


# ───────────────────────────── reconcile ────────────────────────── #
def reconcile(
    previous: Sequence[ShoppingListItem],
    fresh: Sequence[ShoppingListEntry],
) -> list[ShoppingListItem]:
    """
    Give `fresh` entries identities.

    A key that survives regeneration keeps its old id and `purchased`
    flag; a new key starts unpurchased with a new id; keys that vanished
    are simply not in the result.
    """
    by_key: dict[Key, ShoppingListItem] = {i.key: i for i in previous}
    out: list[ShoppingListItem] = []
    for entry in fresh:
        old = by_key.get(entry.key)
        out.append(
            ShoppingListItem(
                id=old.id if old else new_item_id(),
                name=entry.name,
                amount=entry.amount,
                unit=entry.unit,
                purchased=old.purchased if old else False,
            )
        )
    return out

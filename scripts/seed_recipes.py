"""
Create the tables and seed a few demo recipes.

Usage
-----

    # default hard-coded trio, authored by <AUTHOR_ID>
    python -m scripts.seed_recipes <AUTHOR_ID>

    # custom list (RecipeIn schema) in a JSON file
    python -m scripts.seed_recipes <AUTHOR_ID> --file path/to/recipes.json

Prints a bearer token for the author so the API can be tried right away.
"""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, List

from api.v1.schemas import RecipeIn
from core import recipes
from services.auth import create_token
from services.cache import close_cache, connect_cache
from services.db import create_schema, dispose_engine, sessions
from services.store import SqlDocumentStore

# ────────────────────────────────────────────────────────────────────
_DEFAULT_RECIPES: List[dict[str, Any]] = [
    {
        "title": "Overnight Oats",
        "description": "No-cook oats with milk and berries.",
        "ingredients": [
            {"name": "rolled oats", "amount": 80, "unit": "g"},
            {"name": "milk", "amount": 200, "unit": "ml"},
            {"name": "blueberries", "amount": 50, "unit": "g"},
        ],
        "instructions": ["Mix oats and milk.", "Refrigerate overnight.", "Top with berries."],
        "prep_time": 5, "cook_time": 0, "servings": 1,
        "difficulty": "easy", "calories": 380,
        "dietary_tags": ["vegetarian"],
    },
    {
        "title": "Chickpea Curry",
        "description": "Weeknight curry with spinach.",
        "ingredients": [
            {"name": "chickpeas", "amount": 400, "unit": "g"},
            {"name": "coconut milk", "amount": 400, "unit": "ml"},
            {"name": "spinach", "amount": 100, "unit": "g"},
            {"name": "curry paste", "amount": 2, "unit": "tbsp"},
        ],
        "instructions": ["Fry the paste.", "Add chickpeas and coconut milk.", "Wilt in spinach."],
        "prep_time": 10, "cook_time": 20, "servings": 4,
        "difficulty": "easy", "calories": 520,
        "dietary_tags": ["vegan", "gluten-free"],
    },
    {
        "title": "Pancakes",
        "description": "Classic fluffy pancakes.",
        "ingredients": [
            {"name": "flour", "amount": 200, "unit": "g"},
            {"name": "milk", "amount": 300, "unit": "ml"},
            {"name": "egg", "amount": 2, "unit": "piece"},
        ],
        "instructions": ["Whisk everything.", "Cook ladlefuls in a hot pan."],
        "prep_time": 10, "cook_time": 15, "servings": 4,
        "difficulty": "medium", "calories": 450,
        "dietary_tags": ["vegetarian"],
    },
]


async def _seed(author_id: str, items: list[dict[str, Any]]) -> None:
    await create_schema()
    cache = connect_cache()   # same store as the API → its cached lists go stale
    async with sessions()() as db:
        store = SqlDocumentStore(db)
        for raw in items:
            body = RecipeIn.model_validate(raw)
            await recipes.create_recipe(store, cache, author_id, body.model_dump())
    await close_cache()
    await dispose_engine()
    print(f"✓ inserted {len(items)} recipes for author {author_id}")
    print(f"token: {create_token(author_id)}")


def _main() -> None:
    ap = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("author_id")
    ap.add_argument("--file", type=Path, help="JSON list of recipes")
    args = ap.parse_args()

    items = json.loads(args.file.read_text()) if args.file else _DEFAULT_RECIPES
    asyncio.run(_seed(args.author_id, items))


if __name__ == "__main__":
    _main()

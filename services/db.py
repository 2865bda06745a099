"""
services/db.py
────────────────────────────────────────────────────────────────────────
* Async SQLAlchemy v2 setup
* Models for recipes, meal plans and their shopping-list items
* Session dependency used by routers
"""
from __future__ import annotations

from datetime import date, datetime
from typing import AsyncGenerator

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

from config import settings

# ───────── connection helper ────────────────────────────────────────
_ENGINE: AsyncEngine | None = None
_SESSIONS: async_sessionmaker[AsyncSession] | None = None


def engine() -> AsyncEngine:
    global _ENGINE
    if _ENGINE is None:
        if not settings.database_url:
            raise RuntimeError("Set DATABASE_URL env var")
        _ENGINE = create_async_engine(settings.database_url, pool_pre_ping=True)
    return _ENGINE


def sessions() -> async_sessionmaker[AsyncSession]:
    global _SESSIONS
    if _SESSIONS is None:
        _SESSIONS = async_sessionmaker(engine(), expire_on_commit=False)
    return _SESSIONS


async def dispose_engine() -> None:
    global _ENGINE, _SESSIONS
    if _ENGINE is not None:
        await _ENGINE.dispose()
    _ENGINE = None
    _SESSIONS = None


# ───────── declarative base ──────────────────────────────────────────
Base = declarative_base(cls=AsyncAttrs)


class RecipeRow(Base):
    __tablename__ = "recipes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String)
    description: Mapped[str] = mapped_column(Text)
    ingredients: Mapped[list] = mapped_column(JSON, default=list)   # [{name, amount, unit}]
    instructions: Mapped[list] = mapped_column(JSON, default=list)
    prep_time: Mapped[int] = mapped_column(Integer)
    cook_time: Mapped[int] = mapped_column(Integer)
    servings: Mapped[int] = mapped_column(Integer)
    difficulty: Mapped[str] = mapped_column(String)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    dietary_tags: Mapped[list] = mapped_column(JSON, default=list)
    calories: Mapped[int] = mapped_column(Integer)
    image: Mapped[str] = mapped_column(String)
    author_id: Mapped[str] = mapped_column(String, index=True)
    likes: Mapped[list] = mapped_column(JSON, default=list)         # user ids
    comments: Mapped[list] = mapped_column(JSON, default=list)      # [{id, user_id, text, created_at}]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class MealPlanRow(Base):
    __tablename__ = "meal_plans"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, index=True)
    week_start_date: Mapped[date] = mapped_column(Date)
    meals: Mapped[list] = mapped_column(JSON, default=list)         # [{day, meal_type, recipe_id, notes}]
    total_calories: Mapped[int] = mapped_column(Integer)
    dietary_preferences: Mapped[list] = mapped_column(JSON, default=list)
    budget: Mapped[float] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    shopping_list: Mapped[list["ShoppingListItemRow"]] = relationship(
        order_by="ShoppingListItemRow.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class ShoppingListItemRow(Base):
    """One row per item so a toggle is a single targeted UPDATE."""

    __tablename__ = "shopping_list_items"

    plan_id: Mapped[str] = mapped_column(
        ForeignKey("meal_plans.id", ondelete="CASCADE"), primary_key=True
    )
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    position: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String)
    amount: Mapped[float] = mapped_column(Float)
    unit: Mapped[str] = mapped_column(String)
    purchased: Mapped[bool] = mapped_column(Boolean, default=False)


async def create_schema() -> None:
    async with engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ───────── session helper ────────────────────────────────────────────

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with sessions()() as session:
        yield session

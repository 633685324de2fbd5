"""Read-only category and tag lookups."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.db_models import Category, Tag

# Catch-all category, always listed last
OTHER_CATEGORY = "Other"


def _tag_to_dict(tag: Tag) -> dict:
    return {"id": tag.id, "name": tag.name}


async def _tags_by_category(session: AsyncSession, category_ids: list[str]) -> dict[str, list]:
    if not category_ids:
        return {}
    result = await session.execute(
        select(Tag).where(Tag.category_id.in_(category_ids)).order_by(Tag.name.asc())
    )
    grouped: dict[str, list] = {cid: [] for cid in category_ids}
    for tag in result.scalars().all():
        grouped[tag.category_id].append(_tag_to_dict(tag))
    return grouped


async def get_categories(session: AsyncSession) -> list[dict]:
    result = await session.execute(select(Category).order_by(Category.name.asc()))
    categories = list(result.scalars().all())
    categories.sort(key=lambda c: (c.name == OTHER_CATEGORY, c.name.lower()))

    tags = await _tags_by_category(session, [c.id for c in categories])
    return [{"id": c.id, "name": c.name, "tags": tags.get(c.id, [])} for c in categories]


async def get_category_by_id(session: AsyncSession, category_id: str) -> dict | None:
    category = await session.get(Category, category_id)
    if not category:
        return None
    tags = await _tags_by_category(session, [category.id])
    return {"id": category.id, "name": category.name, "tags": tags[category.id]}


async def get_tags(session: AsyncSession, category_id: str | None = None) -> list[dict]:
    query = select(Tag, Category).join(Category, Tag.category_id == Category.id)
    if category_id:
        query = query.where(Tag.category_id == category_id)
    result = await session.execute(query.order_by(Tag.name.asc()))
    return [
        {
            "id": tag.id,
            "name": tag.name,
            "category_id": tag.category_id,
            "category": {"id": category.id, "name": category.name},
        }
        for tag, category in result.all()
    ]


async def get_tag_by_id(session: AsyncSession, tag_id: str) -> dict | None:
    tag = await session.get(Tag, tag_id)
    if not tag:
        return None
    category = await session.get(Category, tag.category_id)
    return {
        "id": tag.id,
        "name": tag.name,
        "category_id": tag.category_id,
        "category": {"id": category.id, "name": category.name} if category else None,
    }

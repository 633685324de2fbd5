"""
Reference data seeder.

Creates the default categories and their tags on a fresh database, plus the
admin account when TASKMARKET_ADMIN_EMAIL / TASKMARKET_ADMIN_PASSWORD are set.
Safe to run on every startup: existing categories are left untouched.
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.config import settings
from taskmarket.db_models import Category, Tag
from taskmarket.ids import category_id, tag_id
from taskmarket.services.catalog import OTHER_CATEGORY
from taskmarket.services.users import ensure_admin

logger = logging.getLogger("taskmarket.seeder")

DEFAULT_CATEGORIES: dict[str, list[str]] = {
    "Analytics and strategy": ["Niche analysis", "Competitor research", "Unit economics"],
    "SEO and listing optimisation": ["Keywords", "Listing copy", "Rich content"],
    "Content": ["Product photos", "Infographics", "Video"],
    "Advertising": ["Internal ads", "External traffic", "Bloggers"],
    "Logistics and operations": ["Supplies", "Warehouse", "FBS / FBO"],
    "Ratings and reviews": ["Review replies", "Rating management"],
    "Store management": ["Account management", "Pricing", "Reports"],
    OTHER_CATEGORY: [],
}


async def seed_categories(session: AsyncSession) -> int:
    """Insert the default categories with tags. Returns categories created."""
    result = await session.execute(select(func.count()).select_from(Category))
    if result.scalar_one():
        return 0

    for name, tag_names in DEFAULT_CATEGORIES.items():
        category = Category(id=category_id(), name=name)
        session.add(category)
        for tag_name in tag_names:
            session.add(Tag(id=tag_id(), name=tag_name, category_id=category.id))
    await session.commit()
    return len(DEFAULT_CATEGORIES)


async def seed_reference_data(session: AsyncSession) -> None:
    created = await seed_categories(session)
    if created:
        logger.info("Seeded %d categories", created)

    if settings.admin_email and settings.admin_password:
        if await ensure_admin(session, settings.admin_email, settings.admin_password):
            logger.info("Admin account created for %s", settings.admin_email)

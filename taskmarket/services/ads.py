"""Positioned promotional blocks shown in listings."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.db_models import Ad
from taskmarket.effects import FileDeletion, Outcome
from taskmarket.errors import NotFound
from taskmarket.files import AD_IMAGES, check_uploads, is_managed_url
from taskmarket.ids import ad_id


def _ad_to_dict(ad: Ad) -> dict:
    return {
        "id": ad.id,
        "image_url": ad.image_url,
        "link": ad.link,
        "position": ad.position,
        "is_active": ad.is_active,
        "created_at": ad.created_at.isoformat() if ad.created_at else None,
        "updated_at": ad.updated_at.isoformat() if ad.updated_at else None,
    }


async def get_active_ads(session: AsyncSession) -> list[dict]:
    result = await session.execute(
        select(Ad).where(Ad.is_active == True).order_by(Ad.position.asc())  # noqa: E712
    )
    return [_ad_to_dict(ad) for ad in result.scalars().all()]


async def get_all_ads(session: AsyncSession) -> list[dict]:
    """Active ads first, each group by position."""
    result = await session.execute(select(Ad).order_by(Ad.is_active.desc(), Ad.position.asc()))
    return [_ad_to_dict(ad) for ad in result.scalars().all()]


async def get_ad_by_id(session: AsyncSession, aid: str) -> dict | None:
    ad = await session.get(Ad, aid)
    return _ad_to_dict(ad) if ad else None


async def _next_position(session: AsyncSession) -> int:
    result = await session.execute(select(func.max(Ad.position)))
    current = result.scalar_one_or_none()
    return 0 if current is None else current + 1


async def create_ad(
    session: AsyncSession,
    image_url: str,
    link: str | None,
    position: int | None = None,
    is_active: bool = True,
) -> dict:
    check_uploads([image_url], AD_IMAGES)
    if position is None:
        position = await _next_position(session)

    ad = Ad(id=ad_id(), image_url=image_url, link=link, position=position, is_active=is_active)
    session.add(ad)
    await session.commit()
    return _ad_to_dict(ad)


async def update_ad(session: AsyncSession, aid: str, patch: dict) -> Outcome:
    ad = await session.get(Ad, aid)
    if not ad:
        raise NotFound("ad not found")

    effects = []
    new_image = patch.get("image_url")
    if new_image:
        check_uploads([new_image], AD_IMAGES)
    if new_image and new_image != ad.image_url and is_managed_url(ad.image_url, AD_IMAGES):
        effects.append(FileDeletion(ad.image_url))

    for key in ("image_url", "link", "position", "is_active"):
        if key in patch and (patch[key] is not None or key == "link"):
            setattr(ad, key, patch[key])
    ad.updated_at = datetime.now(UTC)
    session.add(ad)
    await session.commit()
    return Outcome(_ad_to_dict(ad), effects)


async def delete_ad(session: AsyncSession, aid: str) -> Outcome:
    ad = await session.get(Ad, aid)
    if not ad:
        raise NotFound("ad not found")

    effects = [FileDeletion(ad.image_url)] if is_managed_url(ad.image_url, AD_IMAGES) else []
    await session.delete(ad)
    await session.commit()
    return Outcome({"id": aid}, effects)

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import ShortenedURL, ClickEvent
from typing import Optional
import uuid

# ShortenedURL CRUD
async def create_short_url(db: AsyncSession, short_url: ShortenedURL) -> ShortenedURL:
    db.add(short_url)
    await db.commit()
    await db.refresh(short_url)
    return short_url

async def get_short_url_by_code(db: AsyncSession, short_code: str) -> Optional[ShortenedURL]:
    result = await db.execute(select(ShortenedURL).where(ShortenedURL.short_code == short_code))
    return result.scalar_one_or_none()

async def get_enabled_short_url_by_long_url(db: AsyncSession, long_url: str) -> Optional[ShortenedURL]:
    result = await db.execute(
        select(ShortenedURL).where(ShortenedURL.long_url == long_url, ShortenedURL.enabled.is_(True))
    )
    return result.scalars().first()

# No commit: runs inside the caller's transaction
async def increment_click_count(db: AsyncSession, short_url_id: uuid.UUID) -> int:
    result = await db.execute(
        update(ShortenedURL)
        .where(ShortenedURL.id == short_url_id)
        .values(click_count=ShortenedURL.click_count + 1)
    )
    return result.rowcount

# ClickEvent CRUD
def add_click_event(db: AsyncSession, click: ClickEvent) -> ClickEvent:
    db.add(click)
    return click

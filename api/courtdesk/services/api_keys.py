"""Provider API key cache.

The cache is a plain value: whoever needs keys holds an ApiKeyCache, asks
it whether it is stale, and swaps in the one refresh_api_keys() returns.
Nothing is cached at module level.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courtdesk.models.coupon import ApiKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiKeyCache:
    entries: dict[str, str] = field(default_factory=dict)
    last_fetched_at: datetime | None = None

    def is_stale(self, now: datetime, ttl: timedelta) -> bool:
        return self.last_fetched_at is None or now - self.last_fetched_at >= ttl

    def get(self, provider: str) -> str | None:
        """Key for a provider (case-insensitive); None when unset or blank."""
        return self.entries.get(provider.lower()) or None

    @property
    def providers(self) -> list[str]:
        return sorted(p for p, key in self.entries.items() if key)


async def fetch_api_keys(db: AsyncSession, club_id: int) -> dict[str, str]:
    """Active keys for a club, keyed by lower-cased provider name."""
    result = await db.execute(
        select(ApiKey.provider, ApiKey.key)
        .where(ApiKey.club_id == club_id, ApiKey.is_active.is_(True))
        .order_by(ApiKey.id)
    )
    return {provider.lower(): key for provider, key in result.all()}


async def refresh_api_keys(
    db: AsyncSession,
    club_id: int,
    cache: ApiKeyCache,
    now: datetime,
    ttl: timedelta,
) -> ApiKeyCache:
    """Return cache unchanged while fresh, otherwise a newly fetched one."""
    if not cache.is_stale(now, ttl):
        return cache

    entries = await fetch_api_keys(db, club_id)
    logger.info("Loaded %d API keys for club %s", len(entries), club_id)
    return ApiKeyCache(entries=entries, last_fetched_at=now)

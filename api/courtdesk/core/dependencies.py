"""FastAPI dependencies for injection into route handlers."""

from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from courtdesk.core.config import settings
from courtdesk.core.database import get_db
from courtdesk.models.club import Club
from courtdesk.services import store


async def get_club(
    slug: str = Path(...),
    db: AsyncSession = Depends(get_db),
) -> Club:
    """Resolve the club identified by URL slug."""
    club = await store.get_club(db, slug)
    if club is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Club not found")
    return club


def club_timezone(club: Club) -> ZoneInfo:
    """The club's own locale timezone, or the deployment default."""
    return ZoneInfo((club.locale or {}).get("timezone") or settings.timezone)


def get_now(club: Club = Depends(get_club)) -> datetime:
    """Current wall-clock time in the club timezone. Overridden in tests."""
    return datetime.now(club_timezone(club))

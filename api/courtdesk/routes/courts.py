"""Court routes: listing, slot availability, club overview, quotes and stats."""

from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from courtdesk.core.config import settings
from courtdesk.core.database import get_db
from courtdesk.core.dependencies import get_club, get_now
from courtdesk.models.club import Club, Court
from courtdesk.records import LocaleConfig
from courtdesk.schemas import (
    ClubOut,
    CourtOut,
    CourtSlotsOut,
    IntegrationsOut,
    PricedSlotOut,
    QuoteOut,
    QuoteRequest,
)
from courtdesk.services import store
from courtdesk.services.api_keys import ApiKeyCache, refresh_api_keys
from courtdesk.services.availability import ClubOverview, club_overview, court_availability
from courtdesk.services.coupons import apply_coupon, validate_coupon
from courtdesk.services.pricing import price_for_slot, total_price
from courtdesk.services.statistics import ReservationStats, month_window, reservation_stats

router = APIRouter(prefix="/clubs/{slug}", tags=["courts"])


async def get_club_court(db: AsyncSession, club: Club, court_id: int) -> Court:
    court = await store.get_court(db, club.id, court_id)
    if court is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Court not found")
    return court


@router.get("", response_model=ClubOut)
async def get_club_details(club: Club = Depends(get_club)):
    return ClubOut(id=club.id, name=club.name, slug=club.slug, locale=LocaleConfig.model_validate(club.locale or {}))


@router.get("/courts", response_model=list[CourtOut])
async def list_courts(club: Club = Depends(get_club), db: AsyncSession = Depends(get_db)):
    return await store.list_courts(db, club.id)


@router.get("/courts/{court_id}/slots", response_model=CourtSlotsOut)
async def court_slots(
    court_id: int,
    day: date = Query(alias="date"),
    role_id: str | None = None,
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    court = await get_club_court(db, club, court_id)
    record = store.court_record(court)
    reservations = await store.load_reservations(db, club.id, day, court_id=court.id)

    availability = court_availability(record, day, reservations, now)
    role = role_id or settings.default_role_id

    return CourtSlotsOut(
        court_id=court.id,
        court_name=court.name,
        date=day,
        slots=[PricedSlotOut(slot=s, price=price_for_slot(record, s.time, role)) for s in availability.slots],
        occupancy=availability.occupancy,
    )


@router.get("/overview", response_model=ClubOverview)
async def overview(
    day: date = Query(alias="date"),
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    courts = [store.court_record(c) for c in await store.list_courts(db, club.id)]
    reservations = await store.load_reservations(db, club.id, day)
    return club_overview(courts, day, reservations, now)


@router.post("/courts/{court_id}/quote", response_model=QuoteOut)
async def quote(
    court_id: int,
    body: QuoteRequest,
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    court = await get_club_court(db, club, court_id)
    price = total_price(
        store.court_record(court),
        body.slots,
        role_id=body.role_id or settings.default_role_id,
        heater=body.heater,
        light=body.light,
    )

    coupon_result = None
    if body.coupon_code:
        coupon = await store.get_coupon(db, club.id, body.coupon_code)
        if coupon is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")

        violation = validate_coupon(coupon, body.user_id or "", price.total, now)
        if violation:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=[{"rule": violation.rule, "message": violation.message}],
            )
        coupon_result = apply_coupon(price.total, coupon)

    return QuoteOut(
        price=price,
        coupon=coupon_result,
        amount_due=coupon_result.final_price if coupon_result else price.total,
    )


@router.get("/stats", response_model=ReservationStats)
async def stats(
    month: str | None = Query(None, pattern=r"^\d{4}-\d{2}$"),
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Reservation statistics for one calendar month (default: the current one)."""
    if month:
        try:
            first_day = datetime.strptime(month, "%Y-%m").date()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid month")
    else:
        first_day = now.date()

    start, end = month_window(first_day)
    courts = [store.court_record(c) for c in await store.list_courts(db, club.id, include_inactive=True)]
    reservations = await store.load_reservations(db, club.id, start, end)
    return reservation_stats(reservations, courts, start, end)


@router.get("/integrations", response_model=IntegrationsOut)
async def integrations(
    request: Request,
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Which providers have an API key configured for the club."""
    caches: dict[int, ApiKeyCache] = request.app.state.api_key_caches
    cache = await refresh_api_keys(
        db,
        club.id,
        caches.get(club.id, ApiKeyCache()),
        now,
        timedelta(seconds=settings.api_key_cache_ttl_seconds),
    )
    caches[club.id] = cache
    return IntegrationsOut(providers=cache.providers, last_fetched_at=cache.last_fetched_at)

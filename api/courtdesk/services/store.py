"""Loading clubs, courts and reservations from the database as records.

This is the read boundary: ORM rows become validated CourtRecord /
ReservationRecord values here, and everything downstream is pure.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courtdesk.models.club import Club, Court
from courtdesk.models.coupon import Coupon
from courtdesk.models.reservation import Reservation
from courtdesk.records import CourtRecord, CourtStatus, ReservationRecord, ingest_court, ingest_reservation


def court_record(court: Court) -> CourtRecord:
    return ingest_court(
        {
            "id": str(court.id),
            "name": court.name,
            "status": court.status,
            "available_from": court.available_from,
            "available_until": court.available_until,
            "time_slot_interval": court.time_slot_interval,
            "hourly_rate": court.hourly_rate,
            "heating_cost": court.heating_cost,
            "lighting_cost": court.lighting_cost,
            "price_schedules": court.price_schedules,
            "applied_discounts": court.applied_discounts,
            "discounts": court.discounts,
        }
    )


def reservation_record(reservation: Reservation, court_name: str | None = None) -> ReservationRecord:
    return ingest_reservation(
        {
            "id": str(reservation.id),
            "court_id": str(reservation.court_id),
            "court_name": court_name,
            "user_id": reservation.user_id,
            "date": reservation.reservation_date,
            "time": reservation.start_time,
            "end_time": reservation.end_time,
            "duration": reservation.duration_minutes,
            "slots": reservation.slots,
            "status": reservation.status,
            "is_training": reservation.is_training,
            "is_lesson": reservation.is_lesson,
            "is_challenge": reservation.is_challenge,
            "is_gift": reservation.is_gift,
            "is_guest_reservation": reservation.is_guest_reservation,
            "heater": reservation.heater,
            "light": reservation.light,
            "amount_paid": reservation.amount_paid,
            "original_price": reservation.original_price,
            "discount_applied": reservation.discount_applied,
            "discount_percentage": reservation.discount_percentage,
            "coupon_applied": reservation.coupon_applied,
            "coupon_code": reservation.coupon_code,
            "coupon_discount_amount": reservation.coupon_discount_amount,
            "negative_balance_used": reservation.negative_balance_used,
            "joint_payment": reservation.joint_payment,
            "joint_amount": reservation.joint_amount,
        }
    )


async def get_club(db: AsyncSession, slug: str) -> Club | None:
    result = await db.execute(select(Club).where(Club.slug == slug, Club.is_active.is_(True)))
    return result.scalar_one_or_none()


async def list_courts(db: AsyncSession, club_id: int, include_inactive: bool = False) -> list[Court]:
    query = select(Court).where(Court.club_id == club_id)
    if not include_inactive:
        query = query.where(Court.status != CourtStatus.INACTIVE)
    result = await db.execute(query.order_by(Court.sort_order, Court.name))
    return list(result.scalars().all())


async def get_court(db: AsyncSession, club_id: int, court_id: int) -> Court | None:
    result = await db.execute(select(Court).where(Court.id == court_id, Court.club_id == club_id))
    return result.scalar_one_or_none()


async def get_coupon(db: AsyncSession, club_id: int, code: str, for_update: bool = False) -> Coupon | None:
    """Look up a coupon by code. Codes are stored upper-case, so the lookup is case-insensitive."""
    query = select(Coupon).where(Coupon.club_id == club_id, Coupon.code == code.strip().upper())
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def load_reservations(
    db: AsyncSession,
    club_id: int,
    start: date,
    end: date | None = None,
    court_id: int | None = None,
) -> list[ReservationRecord]:
    """Reservations (cancelled included) for a club between start and end inclusive."""
    query = select(Reservation, Court.name).join(Court, Reservation.court_id == Court.id).where(
        Reservation.club_id == club_id,
        Reservation.reservation_date >= start,
        Reservation.reservation_date <= (end or start),
    )
    if court_id is not None:
        query = query.where(Reservation.court_id == court_id)

    result = await db.execute(query.order_by(Reservation.reservation_date, Reservation.start_time, Reservation.id))
    return [reservation_record(r, court_name) for r, court_name in result.all()]

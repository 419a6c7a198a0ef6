"""Reservation routes: create and cancel, with rules enforcement and wallet payment."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courtdesk.core.config import settings
from courtdesk.core.database import get_db
from courtdesk.core.dependencies import get_club, get_now
from courtdesk.models.club import Club
from courtdesk.models.reservation import Reservation, SlotClaim
from courtdesk.records import ReservationStatus
from courtdesk.routes.courts import get_club_court
from courtdesk.schemas import ReservationCreate, ReservationOut
from courtdesk.services import store
from courtdesk.services.booking_rules import BookingViolation, check_affordable, validate_booking, validate_cancellation
from courtdesk.services.coupons import apply_coupon, record_coupon_use, validate_coupon
from courtdesk.services.pricing import price_for_slot, total_price
from courtdesk.services.time_grid import calculate_end_time, slot_interval
from courtdesk.services.wallet import InsufficientBalance, charge_reservation, get_wallet, refund_cancellation, wallet_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clubs/{slug}/reservations", tags=["reservations"])


def _reject(violations: list[BookingViolation]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=[{"rule": v.rule, "message": v.message} for v in violations],
    )


@router.post("", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    body: ReservationCreate,
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    court = await get_club_court(db, club, body.court_id)
    record = store.court_record(court)
    reservations = await store.load_reservations(db, club.id, body.date, court_id=court.id)

    # Run all booking rules
    violations = validate_booking(record, body.date, body.slots, reservations, now)
    if violations:
        raise _reject(violations)

    role = body.role_id or settings.default_role_id
    price = total_price(record, body.slots, role_id=role, heater=body.heater, light=body.light)
    amount = price.total

    coupon = None
    coupon_discount = 0.0
    if body.coupon_code:
        coupon = await store.get_coupon(db, club.id, body.coupon_code)
        if coupon is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
        violation = validate_coupon(coupon, body.user_id, amount, now)
        if violation:
            raise _reject([violation])
        result = apply_coupon(amount, coupon)
        coupon_discount = result.discount_amount
        amount = result.final_price

    wallet = await get_wallet(db, club.id, body.user_id)
    violation = check_affordable(amount, wallet_state(wallet, body.allow_negative_balance) if wallet else None)
    if violation:
        raise _reject([violation])

    interval = slot_interval(record)
    discount_pct = max(price_for_slot(record, s, role, interval).discount_percentage for s in body.slots)

    reservation = Reservation(
        club_id=club.id,
        court_id=court.id,
        user_id=body.user_id,
        reservation_date=body.date,
        start_time=body.slots[0],
        end_time=calculate_end_time(body.slots[-1], interval),
        duration_minutes=interval * len(body.slots),
        slots=list(body.slots),
        status=ReservationStatus.ACTIVE,
        is_training=body.is_training,
        is_lesson=body.is_lesson,
        is_challenge=body.is_challenge,
        is_gift=body.is_gift,
        is_guest_reservation=body.is_guest_reservation,
        joint_payment=body.joint_payment,
        joint_amount=body.joint_amount if body.joint_payment else 0,
        heater=body.heater,
        light=body.light,
        amount_paid=amount,
        original_price=price.total + price.breakdown.discount_amount,
        discount_applied=price.breakdown.discount_amount > 0,
        discount_percentage=discount_pct or None,
        coupon_applied=coupon is not None,
        coupon_code=coupon.code if coupon else None,
        coupon_discount_amount=coupon_discount,
        notes=body.notes,
        claims=[SlotClaim(court_id=court.id, claim_date=body.date, start_time=s) for s in body.slots],
    )
    db.add(reservation)

    # The unique slot claim is what stops two bookings racing for the same slot
    try:
        await db.flush()
    except IntegrityError:
        logger.info("Slot conflict on court %s %s %s", body.court_id, body.date, body.slots)
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slot already booked")

    # Usage limits are checked again under the coupon row lock, then the use is counted
    if coupon is not None:
        coupon = await store.get_coupon(db, club.id, coupon.code, for_update=True)
        violation = validate_coupon(coupon, body.user_id, price.total, now) if coupon else None
        if coupon is None or violation:
            raise _reject([violation or BookingViolation("coupon_inactive", "Coupon is no longer available.")])
        record_coupon_use(coupon, body.user_id)

    try:
        paid = await charge_reservation(
            db, club.id, body.user_id, amount, reservation.id, allow_negative=body.allow_negative_balance
        )
    except InsufficientBalance:
        raise _reject([BookingViolation("insufficient_balance", "Your balance does not cover this reservation.")])

    reservation.negative_balance_used = paid.negative_balance_amount

    await db.flush()
    await db.refresh(reservation)
    logger.info("Reservation %s created on court %s for %s", reservation.id, court.id, body.user_id)
    return reservation


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_reservation(
    reservation_id: int,
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    result = await db.execute(
        select(Reservation).where(Reservation.id == reservation_id, Reservation.club_id == club.id)
    )
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")

    violation = validate_cancellation(store.reservation_record(reservation), now)
    if violation:
        raise _reject([violation])

    # Everything paid goes back to the wallet
    await refund_cancellation(db, club.id, reservation.user_id, reservation.amount_paid, reservation.id)

    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_at = now
    # Free the slots for rebooking
    reservation.claims.clear()
    logger.info("Reservation %s cancelled", reservation.id)

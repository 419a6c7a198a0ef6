"""Reservation statistics for a reporting window (usually a month).

Cancelled reservations only count towards total and cancelled; everything
else (revenue, types, add-ons, peak hours) is over the non-cancelled ones.
"""

import calendar
from collections import Counter
from datetime import date

from pydantic import BaseModel, Field

from courtdesk.records import CourtRecord, ReservationKind, ReservationRecord, ReservationStatus

PEAK_HOURS_SHOWN = 5


class CourtRevenue(BaseModel):
    court_id: str
    court_name: str
    count: int = 0
    revenue: float = 0


class KindStats(BaseModel):
    count: int = 0
    revenue: float = 0


class PeakHour(BaseModel):
    hour: str  # "HH:00"
    count: int


class ReservationStats(BaseModel):
    total: int = 0
    active: int = 0
    cancelled: int = 0
    pending: int = 0

    total_revenue: float = 0
    original_revenue: float = 0
    total_discount: float = 0
    avg_revenue: float = 0
    revenue_by_court: list[CourtRevenue] = Field(default_factory=list)
    by_kind: dict[ReservationKind, KindStats] = Field(default_factory=dict)

    heater_count: int = 0
    light_count: int = 0
    guest_count: int = 0
    discount_used: int = 0
    coupon_used: int = 0
    total_coupon_discount: float = 0
    joint_payments: int = 0
    joint_payment_amount: float = 0
    negative_balance_payments: int = 0

    peak_hours: list[PeakHour] = Field(default_factory=list)


def month_window(day: date) -> tuple[date, date]:
    """First and last day of day's month."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def reservation_stats(
    reservations: list[ReservationRecord],
    courts: list[CourtRecord],
    start: date | None = None,
    end: date | None = None,
) -> ReservationStats:
    """Summarise reservations, optionally limited to start..end (inclusive)."""
    window = [
        r for r in reservations if (start is None or r.date >= start) and (end is None or r.date <= end)
    ]
    active = [r for r in window if not r.is_cancelled]

    total_revenue = sum(r.amount_paid for r in active)
    original_revenue = sum(r.original_price or r.amount_paid for r in active)

    # Every known court appears, even with no bookings
    by_court: dict[str, CourtRevenue] = {c.id: CourtRevenue(court_id=c.id, court_name=c.name or c.id) for c in courts}
    for r in active:
        row = by_court.setdefault(r.court_id, CourtRevenue(court_id=r.court_id, court_name=r.court_name or r.court_id))
        row.count += 1
        row.revenue += r.amount_paid

    by_kind = {kind: KindStats() for kind in ReservationKind}
    for r in active:
        by_kind[r.kind].count += 1
        by_kind[r.kind].revenue += r.amount_paid

    # Counter keeps first-seen order, and sorted() is stable, so ties keep it too
    hours = Counter(r.hour for r in active)
    peak = sorted(hours.items(), key=lambda item: item[1], reverse=True)[:PEAK_HOURS_SHOWN]

    coupons = [r for r in active if r.coupon_applied]
    joint = [r for r in active if r.joint_payment]

    return ReservationStats(
        total=len(window),
        active=len(active),
        cancelled=len(window) - len(active),
        pending=sum(1 for r in window if r.status == ReservationStatus.PENDING),
        total_revenue=total_revenue,
        original_revenue=original_revenue,
        total_discount=original_revenue - total_revenue,
        avg_revenue=total_revenue / len(active) if active else 0,
        revenue_by_court=sorted(by_court.values(), key=lambda row: row.revenue, reverse=True),
        by_kind=by_kind,
        heater_count=sum(1 for r in active if r.heater),
        light_count=sum(1 for r in active if r.light),
        guest_count=sum(1 for r in active if r.is_guest_reservation),
        discount_used=sum(1 for r in active if r.discount_applied),
        coupon_used=len(coupons),
        total_coupon_discount=sum(r.coupon_discount_amount for r in coupons),
        joint_payments=len(joint),
        joint_payment_amount=sum(r.joint_amount for r in joint),
        negative_balance_payments=sum(1 for r in active if r.negative_balance_used > 0),
        peak_hours=[PeakHour(hour=f"{hour:02d}:00", count=count) for hour, count in peak],
    )

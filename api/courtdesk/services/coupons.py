"""Coupon validation and application.

Coupons stack on top of court discounts: the court discount is applied per
slot by the pricing service, the coupon then comes off the resulting total
(add-ons included). A fixed coupon never takes the price below zero.
"""

from datetime import UTC, datetime

from pydantic import BaseModel

from courtdesk.models.coupon import Coupon, CouponStatus, CouponType
from courtdesk.services.booking_rules import BookingViolation


class CouponResult(BaseModel):
    code: str
    price_before_coupon: float
    discount_amount: float
    final_price: float


def _aware(dt: datetime) -> datetime:
    """Stored timestamps without tzinfo are UTC."""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def validate_coupon(coupon: Coupon, user_id: str, amount: float, now: datetime) -> BookingViolation | None:
    """Check a coupon can be used by user_id on a purchase of amount."""
    if coupon.status != CouponStatus.ACTIVE:
        return BookingViolation("coupon_inactive", f"Coupon {coupon.code} is {coupon.status.value}.")

    if now < _aware(coupon.valid_from):
        return BookingViolation("coupon_not_started", f"Coupon {coupon.code} is not valid yet.")
    if now > _aware(coupon.valid_until):
        return BookingViolation("coupon_expired", f"Coupon {coupon.code} has expired.")

    assigned = coupon.assigned_user_ids or []
    if assigned and user_id not in assigned:
        return BookingViolation("coupon_not_assigned", f"Coupon {coupon.code} is not available to you.")

    if coupon.max_uses and coupon.current_uses >= coupon.max_uses:
        return BookingViolation("coupon_used_up", f"Coupon {coupon.code} has no uses left.")

    used_by_user = (coupon.used_by_user_ids or []).count(user_id)
    if coupon.max_uses_per_user and used_by_user >= coupon.max_uses_per_user:
        return BookingViolation("coupon_already_used", f"You have already used coupon {coupon.code}.")

    if coupon.min_purchase_amount and amount < coupon.min_purchase_amount:
        return BookingViolation(
            "coupon_min_purchase",
            f"Coupon {coupon.code} needs a purchase of at least {coupon.min_purchase_amount}.",
        )

    return None


def apply_coupon(amount: float, coupon: Coupon) -> CouponResult:
    if coupon.coupon_type == CouponType.PERCENTAGE:
        discount = amount * (coupon.value / 100)
    else:
        discount = min(coupon.value, amount)

    return CouponResult(
        code=coupon.code,
        price_before_coupon=amount,
        discount_amount=discount,
        final_price=amount - discount,
    )


def record_coupon_use(coupon: Coupon, user_id: str) -> None:
    """Count one use of the coupon by user_id. Marks it used up at max_uses."""
    coupon.current_uses += 1
    # Reassign so the JSON column change is detected
    coupon.used_by_user_ids = [*(coupon.used_by_user_ids or []), user_id]
    if coupon.max_uses and coupon.current_uses >= coupon.max_uses:
        coupon.status = CouponStatus.USED

"""All models imported here so Base.metadata sees every table."""

from courtdesk.models.base import Base
from courtdesk.models.club import Club, Court
from courtdesk.models.coupon import ApiKey, Coupon, CouponStatus, CouponType
from courtdesk.models.reservation import Reservation, SlotClaim
from courtdesk.models.wallet import TransactionType, Wallet, WalletTransaction

__all__ = [
    "Base",
    "Club",
    "Court",
    "Reservation",
    "SlotClaim",
    "Wallet",
    "WalletTransaction",
    "TransactionType",
    "Coupon",
    "CouponType",
    "CouponStatus",
    "ApiKey",
]

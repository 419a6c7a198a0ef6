"""Coupon and provider API key models."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from courtdesk.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from courtdesk.models.club import Club


class CouponType(enum.StrEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponStatus(enum.StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    USED = "used"
    DISABLED = "disabled"


class Coupon(TimestampMixin, Base):
    __tablename__ = "coupons"

    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    coupon_type: Mapped[CouponType] = mapped_column(
        Enum(CouponType, name="coupon_type", values_callable=lambda e: [x.value for x in e]),
        default=CouponType.PERCENTAGE,
        nullable=False,
    )
    value: Mapped[float] = mapped_column(nullable=False)  # percentage (0-100) or fixed amount
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[CouponStatus] = mapped_column(
        Enum(CouponStatus, name="coupon_status", values_callable=lambda e: [x.value for x in e]),
        default=CouponStatus.ACTIVE,
        nullable=False,
    )

    # Validity
    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    min_purchase_amount: Mapped[float | None] = mapped_column()

    # Usage limits; max_uses 0 means unlimited
    max_uses: Mapped[int] = mapped_column(default=0, nullable=False)
    max_uses_per_user: Mapped[int] = mapped_column(default=1, nullable=False)
    current_uses: Mapped[int] = mapped_column(default=0, nullable=False)
    assigned_user_ids: Mapped[list | None] = mapped_column(JSON, default=list)  # empty = everyone
    used_by_user_ids: Mapped[list | None] = mapped_column(JSON, default=list)  # one entry per use

    club: Mapped["Club"] = relationship(back_populates="coupons")

    __table_args__ = (Index("ix_coupons_club_code", "club_id", "code", unique=True),)

    @validates("code")
    def _normalize_code(self, key: str, code: str) -> str:
        # Lookups upper-case the entered code, so stored codes are upper-case too
        return code.strip().upper()

    def __repr__(self) -> str:
        return f"<Coupon {self.code} {self.coupon_type.value}={self.value}>"


class ApiKey(TimestampMixin, Base):
    """Third-party provider key configured by a club (weather, AI, maps...)."""

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_api_keys_club", "club_id"),)

    def __repr__(self) -> str:
        return f"<ApiKey {self.provider} @ club {self.club_id}>"

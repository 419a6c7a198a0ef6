"""Reservation model.

A reservation books one or more consecutive slots of a court for a user on a
given date. Slot ownership is recorded separately in slot_claims: one row per
(court, date, slot start), unique, so two bookings can never both hold the
same slot even when they race.
"""

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courtdesk.models.base import Base, TimestampMixin
from courtdesk.records import ReservationStatus


class Reservation(TimestampMixin, Base):
    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id"), nullable=False)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)  # owned by the auth provider

    # When
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(nullable=False)
    slots: Mapped[list] = mapped_column(JSON, default=list)

    # Status
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status", values_callable=lambda e: [x.value for x in e]),
        default=ReservationStatus.ACTIVE,
        nullable=False,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Type
    is_training: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_lesson: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_challenge: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_gift: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_guest_reservation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Add-ons
    heater: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    light: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Payment
    amount_paid: Mapped[float] = mapped_column(default=0, nullable=False)
    original_price: Mapped[float | None] = mapped_column()
    discount_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    discount_percentage: Mapped[float | None] = mapped_column()
    coupon_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(50))
    coupon_discount_amount: Mapped[float] = mapped_column(default=0, nullable=False)
    negative_balance_used: Mapped[float] = mapped_column(default=0, nullable=False)
    joint_payment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    joint_amount: Mapped[float] = mapped_column(default=0, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    court: Mapped["Court"] = relationship()
    claims: Mapped[list["SlotClaim"]] = relationship(
        back_populates="reservation", cascade="all, delete-orphan", lazy="selectin"
    )

    __table_args__ = (
        # The reservation grid: one club, one day
        Index("ix_reservations_club_date", "club_id", "reservation_date"),
        Index("ix_reservations_user", "user_id", "reservation_date"),
    )

    def __repr__(self) -> str:
        return f"<Reservation {self.reservation_date} {self.start_time}-{self.end_time} court={self.court_id}>"


class SlotClaim(Base):
    """Occupancy record for a single slot. Inserting it is the booking's claim on the slot."""

    __tablename__ = "slot_claims"

    id: Mapped[int] = mapped_column(primary_key=True)
    reservation_id: Mapped[int] = mapped_column(ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    claim_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)

    reservation: Mapped["Reservation"] = relationship(back_populates="claims")

    __table_args__ = (UniqueConstraint("court_id", "claim_date", "start_time", name="uq_slot_claims_slot"),)

    def __repr__(self) -> str:
        return f"<SlotClaim court={self.court_id} {self.claim_date} {self.start_time}>"


# Import for type hints
from courtdesk.models.club import Court  # noqa: E402

"""Club and court models.

Club = a tenant (a tennis/padel club) identified by its slug.
Court = an individual bookable court at a club, with its own opening hours,
slot interval, price schedules and discounts.
"""

from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courtdesk.models.base import Base, TimestampMixin
from courtdesk.records import CourtStatus

if TYPE_CHECKING:
    from courtdesk.models.coupon import Coupon


class Club(TimestampMixin, Base):
    __tablename__ = "clubs"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Display settings for the presentation layer (LocaleConfig shape)
    locale: Mapped[dict | None] = mapped_column(JSON, default=dict)

    # Relationships
    courts: Mapped[list["Court"]] = relationship(back_populates="club", lazy="selectin")
    coupons: Mapped[list["Coupon"]] = relationship(back_populates="club", lazy="raise")

    def __repr__(self) -> str:
        return f"<Club {self.slug}>"


class Court(TimestampMixin, Base):
    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[CourtStatus] = mapped_column(
        Enum(CourtStatus, name="court_status", values_callable=lambda e: [x.value for x in e]),
        default=CourtStatus.ACTIVE,
        nullable=False,
    )
    surface: Mapped[str | None] = mapped_column(String(50))  # hard, clay, grass, artificial
    is_indoor: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Display ordering
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)

    # Operating window and slot grid (HH:MM, minutes); NULL means club default
    available_from: Mapped[str | None] = mapped_column(String(5))
    available_until: Mapped[str | None] = mapped_column(String(5))
    time_slot_interval: Mapped[int | None] = mapped_column()

    # Pricing (per hour)
    hourly_rate: Mapped[float] = mapped_column(default=0, nullable=False)
    heating_cost: Mapped[float] = mapped_column(default=0, nullable=False)
    lighting_cost: Mapped[float] = mapped_column(default=0, nullable=False)
    price_schedules: Mapped[list | None] = mapped_column(JSON, default=list)
    applied_discounts: Mapped[list | None] = mapped_column(JSON, default=list)
    discounts: Mapped[list | None] = mapped_column(JSON, default=list)

    # Relationships
    club: Mapped["Club"] = relationship(back_populates="courts")

    __table_args__ = (Index("ix_courts_club", "club_id", "sort_order"),)

    def __repr__(self) -> str:
        return f"<Court {self.name} @ club {self.club_id}>"

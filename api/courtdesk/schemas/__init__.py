"""Pydantic schemas for API serialisation."""

from datetime import date, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from courtdesk.records import LocaleConfig, normalize_hhmm
from courtdesk.services.availability import CourtOccupancy, SlotAvailability
from courtdesk.services.coupons import CouponResult
from courtdesk.services.pricing import PriceInfo, PriceTotal
from courtdesk.services.wallet import Affordability


def _normalize_slots(slots: list[str]) -> list[str]:
    return [normalize_hhmm(s, "slots") for s in slots]


SlotList = Annotated[list[str], AfterValidator(_normalize_slots)]


# --- Club ---


class ClubOut(BaseModel):
    id: int
    name: str
    slug: str
    locale: LocaleConfig


class CourtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    status: str
    surface: str | None
    is_indoor: bool
    available_from: str | None
    available_until: str | None
    time_slot_interval: int | None
    hourly_rate: float


# --- Availability ---


class PricedSlotOut(BaseModel):
    slot: SlotAvailability
    price: PriceInfo


class CourtSlotsOut(BaseModel):
    court_id: int
    court_name: str
    date: date
    slots: list[PricedSlotOut]
    occupancy: CourtOccupancy


# --- Pricing ---


class QuoteRequest(BaseModel):
    date: date
    slots: SlotList
    role_id: str | None = None
    heater: bool = False
    light: bool = False
    coupon_code: str | None = None
    user_id: str | None = None


class QuoteOut(BaseModel):
    price: PriceTotal
    coupon: CouponResult | None = None
    amount_due: float


# --- Reservation ---


class ReservationCreate(BaseModel):
    court_id: int
    date: date
    slots: SlotList = Field(min_length=1)
    user_id: str
    role_id: str | None = None
    heater: bool = False
    light: bool = False
    allow_negative_balance: bool = False
    coupon_code: str | None = None
    is_training: bool = False
    is_lesson: bool = False
    is_challenge: bool = False
    is_gift: bool = False
    is_guest_reservation: bool = False
    joint_payment: bool = False
    joint_amount: float = Field(0, ge=0)
    notes: str | None = None


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int
    user_id: str
    reservation_date: date
    start_time: str
    end_time: str
    duration_minutes: int
    slots: list[str]
    status: str
    heater: bool
    light: bool
    amount_paid: float
    original_price: float | None
    discount_applied: bool
    discount_percentage: float | None
    coupon_applied: bool
    coupon_code: str | None
    coupon_discount_amount: float
    negative_balance_used: float
    joint_payment: bool
    joint_amount: float
    created_at: datetime


# --- Wallet ---


class WalletOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    balance: float
    negative_balance_limit: float
    is_blocked: bool
    currency: str


class TopUpRequest(BaseModel):
    amount: float = Field(gt=0)
    description: str = "Top-up"


class AffordabilityOut(BaseModel):
    total: float
    result: Affordability


# --- Integrations ---


class IntegrationsOut(BaseModel):
    providers: list[str]
    last_fetched_at: datetime | None

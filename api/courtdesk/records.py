"""Court, reservation and wallet records as they arrive from the store.

Records are validated once, at the read boundary. The document store uses
camelCase field names (availableFrom, timeSlotInterval, ...); these are
accepted as aliases and Python code uses the snake_case attributes.

Dates are canonicalised to datetime.date here. Reservations written by older
clients carry either "2026-03-14" or "14.03.2026"; nothing past this module
compares date strings.
"""

import enum
import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")
_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y")

MINUTES_PER_DAY = 24 * 60


class InvalidRecord(ValueError):
    """A record is missing a required field or carries an unusable value."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


# ---------------------------------------------------------------------------
# Time-of-day and date values
# ---------------------------------------------------------------------------


def parse_hhmm(value: str, field: str = "time") -> int:
    """Parse "HH:MM" into minutes since midnight.

    "24:00" is accepted as the end of the day (1440).
    """
    match = _HHMM.match(value) if isinstance(value, str) else None
    if match is None:
        raise InvalidRecord(field, f"expected HH:MM, got {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        raise InvalidRecord(field, f"{value!r} is not a time of day")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM", wrapping past midnight."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_hhmm(value: str, field: str = "time") -> str:
    """Zero-pad a time string ("9:00" -> "09:00"). Keeps "24:00" as is."""
    minutes = parse_hhmm(value, field)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_record_date(value, field: str = "date") -> date:
    """Accept a date, a datetime, "YYYY-MM-DD" or "DD.MM.YYYY"."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(value.strip(), fmt).date()
            except ValueError:
                continue
    raise InvalidRecord(field, f"unrecognised date {value!r}")


# ---------------------------------------------------------------------------
# Court
# ---------------------------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CourtStatus(enum.StrEnum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class PriceSchedule(_Record):
    """Hourly price for the [from, until) window, optionally per role."""

    from_: str = Field(alias="from")
    until: str
    base_price: float = Field(ge=0)
    role_prices: dict[str, float] = Field(default_factory=dict)

    @field_validator("from_", "until")
    @classmethod
    def _hhmm(cls, v: str, info) -> str:
        return normalize_hhmm(v, info.field_name)

    @field_validator("role_prices", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return v or {}


class TimeRange(_Record):
    from_: str = Field(alias="from")
    until: str

    @field_validator("from_", "until")
    @classmethod
    def _hhmm(cls, v: str, info) -> str:
        return normalize_hhmm(v, info.field_name)


class AppliedDiscount(_Record):
    """Discount applied from the club's discount screen: all day or a time range."""

    id: str | None = None
    percentage: float = Field(ge=0, le=100)
    is_all_hours: bool = False
    time_range: TimeRange | None = None


class CourtDiscount(_Record):
    """Time-based discount for whole hours [from_hour, to_hour)."""

    id: str | None = None
    from_hour: int = Field(ge=0, le=24)
    to_hour: int = Field(ge=0, le=24)
    percentage: float = Field(ge=0, le=100)
    description: str | None = None


class DiscountRule(BaseModel):
    """A discount in the one shape the resolver understands."""

    percentage: float
    is_all_hours: bool = False
    from_hour: int = 0
    to_hour: int = 0

    def applies_to(self, hour: int) -> bool:
        return self.is_all_hours or self.from_hour <= hour < self.to_hour


class CourtRecord(_Record):
    id: str = Field(min_length=1)
    name: str = ""
    status: CourtStatus = CourtStatus.ACTIVE

    # Operating window and grid; defaults are applied by the time grid
    available_from: str | None = None
    available_until: str | None = None
    time_slot_interval: int | None = None

    # Pricing
    hourly_rate: float = Field(default=0, ge=0)
    heating_cost: float = Field(default=0, ge=0)
    lighting_cost: float = Field(default=0, ge=0)
    price_schedules: list[PriceSchedule] = Field(default_factory=list)
    applied_discounts: list[AppliedDiscount] = Field(default_factory=list)
    discounts: list[CourtDiscount] = Field(default_factory=list)

    # Derived: both discount lists, applied discounts first, stored order kept
    discount_rules: list[DiscountRule] = Field(default_factory=list, exclude=True)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("available_from", "available_until")
    @classmethod
    def _window(cls, v: str | None, info) -> str | None:
        return normalize_hhmm(v, info.field_name) if v else None

    @field_validator("time_slot_interval")
    @classmethod
    def _interval(cls, v: int | None) -> int | None:
        if v is None or v == 0:
            return None
        if v < 0:
            raise InvalidRecord("time_slot_interval", f"must be positive, got {v}")
        return v

    @field_validator("hourly_rate", "heating_cost", "lighting_cost", mode="before")
    @classmethod
    def _none_is_zero(cls, v):
        return 0 if v is None else v

    @field_validator("price_schedules", "applied_discounts", "discounts", mode="before")
    @classmethod
    def _none_is_empty_list(cls, v):
        return v or []

    @model_validator(mode="after")
    def _collect_discount_rules(self) -> "CourtRecord":
        rules: list[DiscountRule] = []
        for applied in self.applied_discounts:
            if applied.is_all_hours:
                rules.append(DiscountRule(percentage=applied.percentage, is_all_hours=True))
            elif applied.time_range is not None:
                rules.append(
                    DiscountRule(
                        percentage=applied.percentage,
                        from_hour=parse_hhmm(applied.time_range.from_) // 60,
                        to_hour=parse_hhmm(applied.time_range.until) // 60,
                    )
                )
        for discount in self.discounts:
            rules.append(
                DiscountRule(percentage=discount.percentage, from_hour=discount.from_hour, to_hour=discount.to_hour)
            )
        self.discount_rules = rules
        return self


# ---------------------------------------------------------------------------
# Reservation
# ---------------------------------------------------------------------------


class ReservationStatus(enum.StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    CANCELLED = "cancelled"
    DECLINED = "declined"


class ReservationKind(enum.StrEnum):
    NORMAL = "normal"
    TRAINING = "training"
    LESSON = "lesson"
    CHALLENGE = "challenge"
    GIFT = "gift"


class ReservationRecord(_Record):
    id: str | None = None
    court_id: str
    court_name: str | None = None
    date: date
    time: str
    end_time: str | None = None
    duration: int | None = None
    slots: list[str] = Field(default_factory=list)
    status: ReservationStatus = ReservationStatus.ACTIVE
    user_id: str | None = None

    # Type flags
    is_training: bool = False
    is_lesson: bool = False
    is_challenge: bool = False
    is_gift: bool = False
    is_guest_reservation: bool = False
    heater: bool = False
    light: bool = False

    # Payment
    amount_paid: float = 0
    original_price: float | None = None
    discount_applied: bool = False
    discount_percentage: float | None = None
    coupon_applied: bool = False
    coupon_code: str | None = None
    coupon_discount_amount: float = 0
    joint_payment: bool = False
    joint_amount: float = 0
    negative_balance_used: float = 0

    # Set once from the flags above
    kind: ReservationKind = ReservationKind.NORMAL

    @field_validator("id", "court_id", "user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("date", mode="before")
    @classmethod
    def _canonical_date(cls, v):
        return parse_record_date(v)

    @field_validator("time")
    @classmethod
    def _start(cls, v: str) -> str:
        return normalize_hhmm(v, "time")

    @field_validator("end_time")
    @classmethod
    def _end(cls, v: str | None) -> str | None:
        return normalize_hhmm(v, "end_time") if v else None

    @field_validator("slots", mode="before")
    @classmethod
    def _slots(cls, v):
        return [normalize_hhmm(s, "slots") for s in v or []]

    @field_validator(
        "amount_paid", "coupon_discount_amount", "joint_amount", "negative_balance_used", mode="before"
    )
    @classmethod
    def _none_is_zero(cls, v):
        return 0 if v is None else v

    @model_validator(mode="after")
    def _classify(self) -> "ReservationRecord":
        if self.is_training:
            self.kind = ReservationKind.TRAINING
        elif self.is_lesson:
            self.kind = ReservationKind.LESSON
        elif self.is_challenge:
            self.kind = ReservationKind.CHALLENGE
        elif self.is_gift:
            self.kind = ReservationKind.GIFT
        else:
            self.kind = ReservationKind.NORMAL
        return self

    @property
    def is_cancelled(self) -> bool:
        return self.status == ReservationStatus.CANCELLED

    @property
    def hour(self) -> int:
        return parse_hhmm(self.time) // 60

    def covers(self, time: str) -> bool:
        """True when this reservation starts at, or spans, the given slot."""
        return time == self.time or time in self.slots


# ---------------------------------------------------------------------------
# Wallet and locale
# ---------------------------------------------------------------------------


class WalletState(_Record):
    balance: float = 0
    negative_balance_limit: float = Field(default=0, ge=0)
    allow_negative_balance: bool = False
    is_blocked: bool = False


class LocaleConfig(_Record):
    """Display settings handed to the presentation layer untouched."""

    date_format: str = "dd.MM.yyyy"
    time_format: str = "HH:mm"
    currency: str = "TRY"
    currency_symbol: str = "₺"
    number_format: str = "tr-TR"
    timezone: str = "Europe/Istanbul"


# ---------------------------------------------------------------------------
# Read boundary
# ---------------------------------------------------------------------------


def _invalid(exc: ValidationError) -> InvalidRecord:
    """Turn the first pydantic error into an InvalidRecord naming the field."""
    error = exc.errors()[0]
    cause = error.get("ctx", {}).get("error")
    if isinstance(cause, InvalidRecord):
        return cause
    field = ".".join(str(part) for part in error["loc"]) or "record"
    return InvalidRecord(field, error["msg"])


def ingest_court(raw: dict) -> CourtRecord:
    try:
        return CourtRecord.model_validate(raw)
    except ValidationError as exc:
        raise _invalid(exc) from exc


def ingest_reservation(raw: dict) -> ReservationRecord:
    try:
        return ReservationRecord.model_validate(raw)
    except ValidationError as exc:
        raise _invalid(exc) from exc

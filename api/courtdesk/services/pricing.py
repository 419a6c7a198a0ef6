"""Pricing service for court slot and reservation prices.

Resolves the hourly price for a slot from the court's price schedules (with
per-role overrides), applies the court discount for that hour and prorates
by the slot interval. Amounts are plain floats; rounding and currency
formatting belong to the presentation layer.
"""

from pydantic import BaseModel, ConfigDict, Field

from courtdesk.records import CourtRecord, parse_hhmm
from courtdesk.services.discounts import resolve_discount
from courtdesk.services.time_grid import slot_interval

DEFAULT_ROLE = "member"


class PriceInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_price: float = 0
    heater_cost: float = 0
    light_cost: float = 0
    discount_percentage: float = 0
    discounted_price: float = 0
    original_price: float = 0


class PriceBreakdown(BaseModel):
    court_fee: float = 0
    heater_fee: float = 0
    light_fee: float = 0
    discount_amount: float = 0


class PriceTotal(BaseModel):
    total: float = 0
    breakdown: PriceBreakdown = Field(default_factory=PriceBreakdown)


def hourly_price(court: CourtRecord, hour: int, role_id: str = DEFAULT_ROLE) -> float:
    """Undiscounted hourly price for the hour starting at hour:00.

    The first schedule whose [from, until) window contains hour:00 sets the
    price; a role price on that schedule overrides its base price. Without a
    matching schedule the court's hourly rate applies.
    """
    hour_start = hour * 60
    for schedule in court.price_schedules:
        if parse_hhmm(schedule.from_) <= hour_start < parse_hhmm(schedule.until):
            role_price = schedule.role_prices.get(role_id)
            return role_price if role_price is not None else schedule.base_price
    return court.hourly_rate


def price_for_slot(
    court: CourtRecord | None,
    time: str,
    role_id: str = DEFAULT_ROLE,
    interval_minutes: int | None = None,
) -> PriceInfo:
    """Price one slot starting at time ("HH:MM").

    original_price is taken after schedule/role resolution and before the
    discount. Every figure is scaled by interval / 60.
    """
    if court is None:
        return PriceInfo()

    hour = parse_hhmm(time) // 60
    interval = interval_minutes or slot_interval(court)
    ratio = interval / 60

    price = hourly_price(court, hour, role_id)
    original = price

    discount_pct = 0
    rule = resolve_discount(court, hour)
    if rule:
        discount_pct = rule.percentage
        price = price * ((100 - discount_pct) / 100)

    return PriceInfo(
        base_price=price * ratio,
        heater_cost=court.heating_cost * ratio,
        light_cost=court.lighting_cost * ratio,
        discount_percentage=discount_pct,
        discounted_price=price * ratio,
        original_price=original * ratio,
    )


def slot_price(court: CourtRecord | None, time: str, role_id: str = DEFAULT_ROLE) -> float:
    """Discounted price of a single slot at the court's own interval."""
    if court is None:
        return 0
    return price_for_slot(court, time, role_id).discounted_price


def total_price(
    court: CourtRecord | None,
    slots: list[str],
    role_id: str = DEFAULT_ROLE,
    heater: bool = False,
    light: bool = False,
) -> PriceTotal:
    """Total for a set of slots on one court.

    Heater and light are whole-reservation add-ons: charged once at the
    court's flat cost, however many slots are booked.
    """
    if court is None or not slots:
        return PriceTotal()

    interval = slot_interval(court)
    court_fee = 0.0
    discount_amount = 0.0

    for slot in slots:
        info = price_for_slot(court, slot, role_id, interval)
        court_fee += info.discounted_price
        discount_amount += info.original_price - info.discounted_price

    heater_fee = court.heating_cost if heater else 0
    light_fee = court.lighting_cost if light else 0

    return PriceTotal(
        total=court_fee + heater_fee + light_fee,
        breakdown=PriceBreakdown(
            court_fee=court_fee,
            heater_fee=heater_fee,
            light_fee=light_fee,
            discount_amount=discount_amount,
        ),
    )

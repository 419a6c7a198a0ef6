"""Booking rules enforcement.

All reservation validation logic lives here, separate from the route
handlers. Each rule returns a BookingViolation or None if the rule passes.
validate_booking() runs all rules and collects violations.

Rules work on records only; the caller loads the court, the day's
reservations and the wallet first.
"""

from datetime import date, datetime

from courtdesk.records import CourtRecord, CourtStatus, ReservationRecord, ReservationStatus, WalletState, parse_hhmm
from courtdesk.services.availability import SlotStatus, classify_slot, is_slot_past
from courtdesk.services.time_grid import generate_slots, slot_interval
from courtdesk.services.wallet import check_wallet


class BookingViolation(Exception):
    """Raised when a booking rule is violated."""

    def __init__(self, rule: str, message: str):
        self.rule = rule
        self.message = message
        super().__init__(message)


def validate_booking(
    court: CourtRecord,
    booking_date: date,
    slots: list[str],
    reservations: list[ReservationRecord],
    now: datetime,
) -> list[BookingViolation]:
    """Run all slot rules and return a list of violations (empty = valid).

    Affordability is checked separately, once the price (and any coupon) is
    known.
    """
    violations: list[BookingViolation] = []

    # 1. Court open for booking
    v = check_court_bookable(court)
    if v:
        violations.append(v)

    # 2. At least one slot, all on the court's grid
    v = check_slots_on_grid(court, slots)
    if v:
        violations.append(v)
        # Remaining rules assume valid slots
        return violations

    # 3. One continuous block
    v = check_consecutive(court, slots)
    if v:
        violations.append(v)

    # 4. Not in the past
    v = check_not_in_past(booking_date, slots, now)
    if v:
        violations.append(v)

    # 5. Nobody else holds any of the slots
    v = check_slots_free(court, booking_date, slots, reservations, now)
    if v:
        violations.append(v)

    return violations


def check_court_bookable(court: CourtRecord) -> BookingViolation | None:
    if court.status != CourtStatus.ACTIVE:
        return BookingViolation("court_unavailable", f"{court.name or 'Court'} is {court.status.value}.")
    return None


def check_slots_on_grid(court: CourtRecord, slots: list[str]) -> BookingViolation | None:
    """Every requested slot must be one the court actually offers."""
    if not slots:
        return BookingViolation("no_slots", "Choose at least one time slot.")

    grid = set(generate_slots(court))
    off_grid = [s for s in slots if s not in grid]
    if off_grid:
        return BookingViolation(
            "slot_not_offered",
            f"{', '.join(off_grid)} {'is' if len(off_grid) == 1 else 'are'} not bookable on {court.name or 'this court'}.",
        )
    return None


def check_consecutive(court: CourtRecord, slots: list[str]) -> BookingViolation | None:
    """Multi-slot bookings must be one unbroken block, in order."""
    interval = slot_interval(court)
    starts = [parse_hhmm(s) for s in slots]
    for previous, current in zip(starts, starts[1:], strict=False):
        if current - previous != interval:
            return BookingViolation("slots_not_consecutive", "Selected time slots must follow each other.")
    return None


def check_not_in_past(booking_date: date, slots: list[str], now: datetime) -> BookingViolation | None:
    """Cannot book a slot that has already started."""
    if any(is_slot_past(booking_date, s, now) for s in slots):
        return BookingViolation("past_booking", "Cannot book a slot in the past.")
    return None


def check_slots_free(
    court: CourtRecord,
    booking_date: date,
    slots: list[str],
    reservations: list[ReservationRecord],
    now: datetime,
) -> BookingViolation | None:
    """No requested slot may already be held by a non-cancelled reservation."""
    taken = [
        s for s in slots if classify_slot(court, booking_date, s, reservations, now).status == SlotStatus.RESERVED
    ]
    if taken:
        return BookingViolation("slot_taken", f"Already booked: {', '.join(taken)}.")
    return None


def check_affordable(total: float, wallet: WalletState | None) -> BookingViolation | None:
    """The wallet must cover the total, within its negative limit if allowed."""
    if wallet is None:
        return BookingViolation("no_wallet", "You do not have a wallet at this club.")
    if wallet.is_blocked:
        return BookingViolation("wallet_blocked", "Your wallet is blocked.")

    result = check_wallet(total, wallet)
    if not result.can_afford:
        return BookingViolation(
            "insufficient_balance",
            f"Balance {wallet.balance:.2f} does not cover {total:.2f}.",
        )
    return None


def validate_cancellation(reservation: ReservationRecord, now: datetime) -> BookingViolation | None:
    """Only live reservations that have not started yet can be cancelled."""
    if reservation.status not in (ReservationStatus.ACTIVE, ReservationStatus.PENDING):
        return BookingViolation("not_cancellable", f"Reservation is {reservation.status.value}.")

    if is_slot_past(reservation.date, reservation.time, now):
        return BookingViolation("cancellation_too_late", "Cannot cancel a reservation that has already started.")

    return None

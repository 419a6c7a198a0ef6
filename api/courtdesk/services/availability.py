"""Slot availability and court occupancy.

Pure calculation module. Classifies each slot of a court's grid against
existing reservations and the current wall-clock time, and summarises how
full each court is on a given day.

Reservations are matched on (court, date, slot). At most one non-cancelled
reservation is expected per slot; if the store ever holds two, the first one
in input order is reported.
"""

import enum
import logging
from datetime import date, datetime, time

from pydantic import BaseModel

from courtdesk.records import CourtRecord, ReservationRecord, parse_hhmm
from courtdesk.services.discounts import discount_percentage
from courtdesk.services.time_grid import calculate_end_time, generate_slots, slot_interval, union_slots

logger = logging.getLogger(__name__)


class SlotStatus(enum.StrEnum):
    AVAILABLE = "available"
    PAST = "past"
    RESERVED = "reserved"
    CLOSED = "closed"  # outside this court's grid (club overview only)


class SlotAvailability(BaseModel):
    time: str
    end_time: str
    status: SlotStatus
    reservation: ReservationRecord | None = None
    cancelled_reservation: ReservationRecord | None = None
    discount_percentage: float = 0

    @property
    def is_bookable(self) -> bool:
        return self.status == SlotStatus.AVAILABLE

    @property
    def is_cancelled(self) -> bool:
        """A cancelled booking once held this slot; it is free again."""
        return self.cancelled_reservation is not None


class CourtOccupancy(BaseModel):
    court_id: str
    total_slots: int
    reserved_count: int
    available_count: int
    occupancy_rate: float
    inconsistent: bool = False


class CourtAvailability(BaseModel):
    court_id: str
    court_name: str
    slots: list[SlotAvailability]
    occupancy: CourtOccupancy


class ClubOverview(BaseModel):
    date: date
    times: list[str]
    courts: list[CourtAvailability]
    total_slots: int
    reserved_count: int
    available_count: int
    occupancy_rate: float


def is_slot_past(slot_date: date, start_time: str, now: datetime) -> bool:
    """Past if the day is over, or it is today and the slot has started.

    Dates compare by day only; today's slots compare against now's
    wall-clock time.
    """
    today = now.date()
    if slot_date < today:
        return True
    if slot_date > today:
        return False

    minutes = parse_hhmm(start_time)
    return time(minutes // 60 % 24, minutes % 60) < now.time()


def _day_reservations(
    court_id: str, slot_date: date, reservations: list[ReservationRecord]
) -> list[ReservationRecord]:
    return [r for r in reservations if r.court_id == court_id and r.date == slot_date]


def classify_slot(
    court: CourtRecord,
    slot_date: date,
    start_time: str,
    reservations: list[ReservationRecord],
    now: datetime,
) -> SlotAvailability:
    """Classify one slot of a court as available, past or reserved.

    A past slot stays PAST even when booked; the reservation is still
    attached. Cancelled reservations never make a slot RESERVED, they only
    show up as cancelled_reservation.
    """
    # Raises InvalidRecord("time") for anything that is not HH:MM
    minutes = parse_hhmm(start_time, "time")
    start_time = f"{minutes // 60:02d}:{minutes % 60:02d}"

    reservation = None
    cancelled = None
    for r in _day_reservations(court.id, slot_date, reservations):
        if not r.covers(start_time):
            continue
        if r.is_cancelled:
            cancelled = cancelled or r
        elif reservation is None:
            reservation = r

    if is_slot_past(slot_date, start_time, now):
        status = SlotStatus.PAST
    elif reservation is not None:
        status = SlotStatus.RESERVED
    else:
        status = SlotStatus.AVAILABLE

    return SlotAvailability(
        time=start_time,
        end_time=calculate_end_time(start_time, slot_interval(court)),
        status=status,
        reservation=reservation,
        cancelled_reservation=cancelled,
        discount_percentage=discount_percentage(court, minutes // 60) if status == SlotStatus.AVAILABLE else 0,
    )


def court_slots(
    court: CourtRecord,
    slot_date: date,
    reservations: list[ReservationRecord],
    now: datetime,
) -> list[SlotAvailability]:
    """Classify every slot in the court's grid for the day."""
    day = _day_reservations(court.id, slot_date, reservations)
    return [classify_slot(court, slot_date, slot, day, now) for slot in generate_slots(court)]


def court_occupancy(
    court: CourtRecord,
    slot_date: date,
    reservations: list[ReservationRecord],
) -> CourtOccupancy:
    """Reserved vs available slot counts for a court on a day.

    More reservations than grid slots (e.g. bookings left over from an old
    opening window) clamps available_count to zero and marks the result
    inconsistent rather than failing.
    """
    total = len(generate_slots(court))
    reserved = sum(1 for r in _day_reservations(court.id, slot_date, reservations) if not r.is_cancelled)

    available = total - reserved
    inconsistent = available < 0
    if inconsistent:
        logger.warning(
            "Court %s has %d reservations on %s but only %d slots", court.id, reserved, slot_date, total
        )
        available = 0

    return CourtOccupancy(
        court_id=court.id,
        total_slots=total,
        reserved_count=reserved,
        available_count=available,
        occupancy_rate=reserved / total if total else 0,
        inconsistent=inconsistent,
    )


def court_availability(
    court: CourtRecord,
    slot_date: date,
    reservations: list[ReservationRecord],
    now: datetime,
) -> CourtAvailability:
    return CourtAvailability(
        court_id=court.id,
        court_name=court.name,
        slots=court_slots(court, slot_date, reservations, now),
        occupancy=court_occupancy(court, slot_date, reservations),
    )


def club_overview(
    courts: list[CourtRecord],
    slot_date: date,
    reservations: list[ReservationRecord],
    now: datetime,
) -> ClubOverview:
    """All courts on one grid.

    Rows are the union of every court's slot starts. A court gets a CLOSED
    cell for any row outside its own grid (different hours or interval).
    """
    times = union_slots(courts)
    court_rows: list[CourtAvailability] = []

    for court in courts:
        own_slots = set(generate_slots(court))
        day = _day_reservations(court.id, slot_date, reservations)
        interval = slot_interval(court)

        cells = []
        for slot in times:
            if slot in own_slots:
                cells.append(classify_slot(court, slot_date, slot, day, now))
            else:
                cells.append(
                    SlotAvailability(
                        time=slot, end_time=calculate_end_time(slot, interval), status=SlotStatus.CLOSED
                    )
                )

        court_rows.append(
            CourtAvailability(
                court_id=court.id,
                court_name=court.name,
                slots=cells,
                occupancy=court_occupancy(court, slot_date, day),
            )
        )

    total = sum(c.occupancy.total_slots for c in court_rows)
    reserved = sum(c.occupancy.reserved_count for c in court_rows)
    available = sum(c.occupancy.available_count for c in court_rows)

    return ClubOverview(
        date=slot_date,
        times=times,
        courts=court_rows,
        total_slots=total,
        reserved_count=reserved,
        available_count=available,
        occupancy_rate=reserved / total if total else 0,
    )

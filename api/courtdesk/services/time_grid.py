"""Operating window and slot grid for a court.

Pure calculation module with no database, async or FastAPI dependencies.
A court's grid starts at its opening time and steps by its slot interval for
as long as the slot would still start before closing. A trailing partial
slot is never generated.
"""

from typing import TYPE_CHECKING

from courtdesk.records import format_minutes, parse_hhmm

if TYPE_CHECKING:
    from collections.abc import Iterable

    from courtdesk.records import CourtRecord

DEFAULT_OPEN = "08:00"
DEFAULT_CLOSE = "22:00"
DEFAULT_INTERVAL = 60


def slot_interval(court: "CourtRecord") -> int:
    return court.time_slot_interval or DEFAULT_INTERVAL


def slot_window(court: "CourtRecord") -> tuple[int, int, int]:
    """Return (open_minutes, close_minutes, interval) with defaults applied."""
    open_minutes = parse_hhmm(court.available_from or DEFAULT_OPEN, "available_from")
    close_minutes = parse_hhmm(court.available_until or DEFAULT_CLOSE, "available_until")
    return open_minutes, close_minutes, slot_interval(court)


def generate_slots(court: "CourtRecord") -> list[str]:
    """Generate the ordered slot start times ("HH:MM") for a court.

    An inverted or empty window yields an empty list.
    """
    current, close, interval = slot_window(court)

    slots: list[str] = []
    while current < close:
        slots.append(format_minutes(current))
        current += interval
    return slots


def calculate_end_time(start_time: str, interval_minutes: int) -> str:
    """Add interval_minutes to an "HH:MM" start, wrapping past midnight."""
    return format_minutes(parse_hhmm(start_time) + interval_minutes)


def union_slots(courts: "Iterable[CourtRecord]") -> list[str]:
    """Distinct slot starts across courts, in time order.

    Fixed-width "HH:MM" strings sort lexicographically in time order.
    """
    seen: set[str] = set()
    for court in courts:
        seen.update(generate_slots(court))
    return sorted(seen)

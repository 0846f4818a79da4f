from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Union

from utils.errors import InvalidDuration, InvalidRange, ValidationError

TimeLike = Union[str, time]

# any fixed date works: only the time-of-day arithmetic matters
_ANCHOR = date(2000, 1, 1)
_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


@dataclass(frozen=True)
class Slot:
    start_time: time
    end_time: time

    def to_dict(self) -> Dict[str, str]:
        return {
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
        }


def parse_time(value: TimeLike) -> time:
    """Accept "HH:MM", "HH:MM:SS" or a ``time`` instance."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Invalid time. Use HH:MM")
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"Invalid time '{value}'. Use HH:MM")


def generate_slots(start_time: TimeLike, end_time: TimeLike, slot_duration_minutes: int) -> List[Slot]:
    """Split [start_time, end_time) into consecutive slots of a fixed length.

    A trailing remainder shorter than the duration produces no slot. An empty
    range gives an empty list; a reversed range raises InvalidRange.
    """
    if isinstance(slot_duration_minutes, bool) or not isinstance(slot_duration_minutes, int):
        raise InvalidDuration("slot duration must be a positive integer (minutes)")
    if slot_duration_minutes <= 0:
        raise InvalidDuration("slot duration must be a positive integer (minutes)")

    start = parse_time(start_time)
    end = parse_time(end_time)
    if start > end:
        raise InvalidRange("end_time must not be before start_time")

    step = timedelta(minutes=slot_duration_minutes)
    cursor = datetime.combine(_ANCHOR, start)
    end_dt = datetime.combine(_ANCHOR, end)

    slots: List[Slot] = []
    while cursor + step <= end_dt:
        slots.append(Slot(start_time=cursor.time(), end_time=(cursor + step).time()))
        cursor += step
    return slots

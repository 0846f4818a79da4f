from .slot_generator import Slot, generate_slots, parse_time
from .recurrence import dates_for_weekday, materialize_month, materialize_next_month
from .booking import AppointmentStatus, book_appointment, cancel_appointment, cancel_by_phone

__all__ = [
    "Slot",
    "generate_slots",
    "parse_time",
    "dates_for_weekday",
    "materialize_month",
    "materialize_next_month",
    "AppointmentStatus",
    "book_appointment",
    "cancel_appointment",
    "cancel_by_phone",
]

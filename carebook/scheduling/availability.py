"""Doctor availability and appointment-slot computation.

Everything here is a pure function of its arguments: no I/O, no state kept
between calls, and inputs are never mutated.

Dates may be ISO-8601 strings (``2023-06-15``, ``2023-06-15T14:30:00Z``,
offsets allowed) or ``date``/``datetime`` objects. They are compared by the
UTC calendar day they fall on; a value without an offset is read as UTC.
Unparseable dates never raise here, they turn into sentinel values that match
nothing (``""`` for day keys, ``-1`` for weekdays).
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Iterable

from carebook.scheduling.schedule import DAY_NAMES, AvailabilityWindow, DoctorProfile, TimeSlot

logger = logging.getLogger(__name__)

DEFAULT_SLOT_DURATION_MINUTES = 30


class InvalidDateError(ValueError):
    """Raised by :func:`parse_date` for values that are not a date."""


def parse_date(value: str | date | datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidDateError(f'Unparseable date: {value!r}') from exc
    else:
        raise InvalidDateError(f'Unsupported date value: {value!r}')

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)

    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as exc:
        raise InvalidDateError(f'Date out of range in UTC: {value!r}') from exc


def format_date_for_comparison(value: str | date | datetime) -> str:
    """Return the ``YYYY-MM-DD`` key of the UTC day, or ``""`` when unparseable."""
    try:
        return parse_date(value).date().isoformat()
    except InvalidDateError as exc:
        logger.warning('Error parsing date: %s', exc)
        return ''


def get_day_of_week(value: str | date | datetime) -> int:
    """Return the UTC weekday, 0 = Sunday through 6 = Saturday, or -1."""
    try:
        parsed = parse_date(value)
    except InvalidDateError:
        return -1
    return (parsed.weekday() + 1) % 7


def get_day_name(day_index: int) -> str:
    if 0 <= day_index <= 6:
        return DAY_NAMES[day_index]
    return ''


def is_date_blocked(value: str | date | datetime, blocked_dates: Iterable[str] | None = None) -> bool:
    if not blocked_dates:
        return False

    date_key = format_date_for_comparison(value)
    if not date_key:
        return False

    return any(format_date_for_comparison(blocked_date) == date_key for blocked_date in blocked_dates)


def is_time_in_range(start_time: str, end_time: str, window: AvailabilityWindow) -> bool:
    return (
        window.is_available is True
        and window.start_time <= start_time
        and end_time <= window.end_time
    )


def _windows_for_date(doctor: DoctorProfile, value: str | date | datetime) -> list[AvailabilityWindow]:
    # Shared by is_slot_available and get_available_slots_for_date so both
    # resolve a date to the same weekday schedule.
    day_name = get_day_name(get_day_of_week(value))
    if not day_name or doctor.weekly_schedule is None:
        return []
    return doctor.weekly_schedule.windows_for(day_name)


def is_slot_available(
    doctor: DoctorProfile | None,
    appointment_date: str | date | datetime,
    start_time: str,
    end_time: str,
) -> bool:
    """Check the slot against blocked dates and the weekly schedule only.

    Existing bookings are not considered; see :func:`has_appointment_conflict`.
    """
    if doctor is None:
        return False

    if is_date_blocked(appointment_date, doctor.blocked_dates):
        return False

    return any(
        is_time_in_range(start_time, end_time, window)
        for window in _windows_for_date(doctor, appointment_date)
    )


def _status_value(status) -> str:
    return getattr(status, 'value', status)


def has_appointment_conflict(
    doctor_id: str,
    appointment_date: str | date | datetime,
    start_time: str,
    end_time: str,
    appointments: Iterable,
    excluded_statuses: Iterable = (),
) -> bool:
    """Return True when ``[start_time, end_time)`` overlaps a booking of the doctor that day.

    ``appointments`` are read by attribute (``doctor_id``, ``appointment_date``,
    ``start_time``, ``end_time``, ``status``), so ORM rows work as well as
    :class:`~carebook.scheduling.schedule.Appointment`. Appointments whose
    status is in ``excluded_statuses`` are ignored; by default every status
    blocks its time.
    """
    date_key = format_date_for_comparison(appointment_date)
    if not date_key:
        return False

    ignored_statuses = {_status_value(status) for status in excluded_statuses}

    for appointment in appointments or ():
        if appointment.doctor_id != doctor_id:
            continue
        if _status_value(appointment.status) in ignored_statuses:
            continue
        if format_date_for_comparison(appointment.appointment_date) != date_key:
            continue
        if start_time < appointment.end_time and appointment.start_time < end_time:
            return True

    return False


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def minutes_to_time(total_minutes: int) -> str:
    return f'{total_minutes // 60:02d}:{total_minutes % 60:02d}'


def get_available_slots_for_date(
    doctor: DoctorProfile | None,
    value: str | date | datetime,
    appointments: Iterable,
    slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
    excluded_statuses: Iterable = (),
) -> list[TimeSlot]:
    """List the bookable slots of ``doctor`` on the day of ``value``.

    Each available window is cut into back-to-back slots of
    ``slot_duration_minutes`` starting at the window start; a trailing piece
    shorter than the duration is dropped. Slots overlapping an appointment are
    left out. Order follows the schedule's window order, then time.
    """
    if doctor is None:
        return []

    if slot_duration_minutes <= 0:
        logger.warning('Ignoring non-positive slot duration: %s', slot_duration_minutes)
        return []

    if is_date_blocked(value, doctor.blocked_dates):
        return []

    appointments = list(appointments or ())
    excluded_statuses = tuple(excluded_statuses)
    available_slots: list[TimeSlot] = []

    for window in _windows_for_date(doctor, value):
        if not window.is_available:
            continue

        try:
            window_start = time_to_minutes(window.start_time)
            window_end = time_to_minutes(window.end_time)
        except ValueError:
            logger.warning(
                'Skipping availability window with unparseable times: %s-%s',
                window.start_time,
                window.end_time,
            )
            continue

        slot_start = window_start
        while slot_start + slot_duration_minutes <= window_end:
            start_time = minutes_to_time(slot_start)
            end_time = minutes_to_time(slot_start + slot_duration_minutes)

            if not has_appointment_conflict(
                doctor.user_id,
                value,
                start_time,
                end_time,
                appointments,
                excluded_statuses,
            ):
                available_slots.append(TimeSlot(start_time=start_time, end_time=end_time))

            slot_start += slot_duration_minutes

    return available_slots

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carebook.core import config
from carebook.database import get_db
from carebook.models.doctor import DoctorProfile as DoctorProfileRecord
from carebook.models.enums import UserRole, VerificationStatus
from carebook.models.user import User
from carebook.routes.dependencies import database_unavailable, ensure_database_ready
from carebook.scheduling.availability import (
    format_date_for_comparison,
    get_available_slots_for_date,
    has_appointment_conflict,
    is_slot_available,
)
from carebook.scheduling.readers import load_doctor_appointments, load_doctor_profile
from carebook.scheduling.schedule import (
    DAY_NAMES,
    TIME_PATTERN,
    AvailabilityWindow,
    DoctorProfile,
    TimeSlot,
    WeeklySchedule,
)

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)

MIN_SLOT_DURATION_MINUTES = 5
MAX_SLOT_DURATION_MINUTES = 240
INVALID_DATE_DETAIL = 'Invalid date format. Use YYYY-MM-DD or ISO date format.'


class SetAvailabilityRequest(BaseModel):
    weekly_schedule: dict[str, list[AvailabilityWindow]] | None = None
    blocked_dates: list[str] | None = None

    @field_validator('weekly_schedule')
    @classmethod
    def validate_weekly_schedule(
        cls,
        value: dict[str, list[AvailabilityWindow]] | None,
    ) -> dict[str, list[AvailabilityWindow]] | None:
        if value is None:
            return None

        normalized: dict[str, list[AvailabilityWindow]] = {}
        for day, windows in value.items():
            day_name = day.strip().lower()
            if day_name not in DAY_NAMES:
                raise ValueError(f'Unknown weekday: {day}.')
            if day_name in normalized:
                raise ValueError(f'Weekday given more than once: {day_name}.')

            open_windows = sorted(
                (window for window in windows if window.is_available),
                key=lambda window: window.start_time,
            )
            for previous, current in zip(open_windows, open_windows[1:]):
                if current.start_time < previous.end_time:
                    raise ValueError(f'Availability windows overlap on {day_name}.')

            normalized[day_name] = windows

        return normalized

    @field_validator('blocked_dates')
    @classmethod
    def validate_blocked_dates(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None

        day_keys: set[str] = set()
        for blocked_date in value:
            day_key = format_date_for_comparison(blocked_date)
            if not day_key:
                raise ValueError(f'Invalid blocked date: {blocked_date}.')
            day_keys.add(day_key)

        return sorted(day_keys)


class AvailabilityResponse(BaseModel):
    doctor_id: str
    weekly_schedule: WeeklySchedule
    blocked_dates: list[str]


class SetAvailabilityResponse(AvailabilityResponse):
    updated: bool


class SlotCheckResponse(BaseModel):
    is_available: bool
    has_conflict: bool
    bookable: bool


def get_verified_doctor(doctor_id: str, db: Session) -> DoctorProfile:
    doctor = load_doctor_profile(db, doctor_id)
    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found.',
        )

    if config.REQUIRE_VERIFIED_DOCTORS and doctor.verification_status != VerificationStatus.VERIFIED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Doctor is not verified.',
        )

    return doctor


@router.get('/doctors/{doctor_id}', response_model=AvailabilityResponse)
def get_doctor_availability(doctor_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctor = load_doctor_profile(db, doctor_id)
        if doctor is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Doctor profile not found.',
            )

        return AvailabilityResponse(
            doctor_id=doctor.user_id,
            weekly_schedule=doctor.weekly_schedule,
            blocked_dates=doctor.blocked_dates,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/doctors/{doctor_id}', response_model=SetAvailabilityResponse)
def set_doctor_availability(
    doctor_id: str,
    data: SetAvailabilityRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        user = db.get(User, doctor_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Doctor not found.',
            )
        if user.role != UserRole.DOCTOR.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only doctors can set availability.',
            )

        record = db.get(DoctorProfileRecord, doctor_id)
        if record is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Doctor profile not found.',
            )

        current = DoctorProfile.model_validate(record)
        current_schedule = current.weekly_schedule.model_dump()

        # Days left out of the request keep their windows.
        new_schedule = dict(current_schedule)
        for day_name, windows in (data.weekly_schedule or {}).items():
            new_schedule[day_name] = [window.model_dump() for window in windows]

        new_blocked_dates = current.blocked_dates if data.blocked_dates is None else data.blocked_dates

        updated = (
            new_schedule != current_schedule
            or sorted(new_blocked_dates) != sorted(current.blocked_dates)
        )

        if updated:
            record.weekly_schedule = new_schedule
            record.blocked_dates = list(new_blocked_dates)
            record.updated_at = datetime.now(timezone.utc)
            db.commit()
            logger.info(
                'Updated availability for doctor %s (%d blocked dates)',
                doctor_id,
                len(new_blocked_dates),
            )

        return SetAvailabilityResponse(
            doctor_id=doctor_id,
            weekly_schedule=WeeklySchedule.model_validate(new_schedule),
            blocked_dates=list(new_blocked_dates),
            updated=updated,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update availability for doctor %s', doctor_id)
        raise database_unavailable() from exc


@router.get('/doctors/{doctor_id}/slots', response_model=list[TimeSlot])
def list_available_slots(
    doctor_id: str,
    date: str = Query(...),
    duration_minutes: int | None = Query(
        default=None,
        ge=MIN_SLOT_DURATION_MINUTES,
        le=MAX_SLOT_DURATION_MINUTES,
    ),
    db: Session = Depends(get_db),
):
    if not format_date_for_comparison(date):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_DATE_DETAIL,
        )

    ensure_database_ready()

    try:
        doctor = get_verified_doctor(doctor_id, db)
        appointments = load_doctor_appointments(db, doctor_id)

        slots = get_available_slots_for_date(
            doctor,
            date,
            appointments,
            duration_minutes or config.DEFAULT_SLOT_DURATION_MINUTES,
            config.CONFLICT_EXCLUDED_STATUSES,
        )
        logger.info('Generated %d slots for doctor %s on %s', len(slots), doctor_id, date)

        return slots
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/doctors/{doctor_id}/check', response_model=SlotCheckResponse)
def check_slot(
    doctor_id: str,
    date: str = Query(...),
    start_time: str = Query(..., pattern=TIME_PATTERN),
    end_time: str = Query(..., pattern=TIME_PATTERN),
    db: Session = Depends(get_db),
):
    if not format_date_for_comparison(date):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_DATE_DETAIL,
        )
    if end_time <= start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='end_time must be after start_time.',
        )

    ensure_database_ready()

    try:
        doctor = get_verified_doctor(doctor_id, db)

        available = is_slot_available(doctor, date, start_time, end_time)
        conflict = has_appointment_conflict(
            doctor_id,
            date,
            start_time,
            end_time,
            load_doctor_appointments(db, doctor_id),
            config.CONFLICT_EXCLUDED_STATUSES,
        )

        return SlotCheckResponse(
            is_available=available,
            has_conflict=conflict,
            bookable=available and not conflict,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

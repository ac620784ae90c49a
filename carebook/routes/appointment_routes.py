import logging
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carebook.core import config
from carebook.database import get_db
from carebook.models.appointment import Appointment
from carebook.models.enums import AppointmentStatus, AppointmentType, UserRole
from carebook.models.user import User
from carebook.routes.availability_routes import get_verified_doctor
from carebook.routes.dependencies import database_unavailable, ensure_database_ready
from carebook.scheduling.availability import (
    format_date_for_comparison,
    has_appointment_conflict,
    is_slot_available,
)
from carebook.scheduling.readers import load_doctor_appointments, lock_doctor_profile
from carebook.scheduling.schedule import TIME_PATTERN

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_TEXT_LENGTH = 600

CANCELLABLE_STATUSES = {
    AppointmentStatus.PENDING.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.SCHEDULED.value,
}
COMPLETABLE_STATUSES = {
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.SCHEDULED.value,
}


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_TEXT_LENGTH:
        raise ValueError(f'Text must be {MAX_APPOINTMENT_TEXT_LENGTH} characters or fewer.')

    return normalized


class BookAppointmentRequest(BaseModel):
    patient_id: str
    doctor_id: str
    appointment_date: str
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    reason: str | None = None
    appointment_type: AppointmentType = AppointmentType.IN_PERSON

    @field_validator('patient_id', 'doctor_id')
    @classmethod
    def validate_ids(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient and doctor IDs are required.')
        return normalized

    @field_validator('appointment_date')
    @classmethod
    def validate_appointment_date(cls, value: str) -> str:
        normalized = value.strip()
        if not format_date_for_comparison(normalized):
            raise ValueError('Invalid date format. Use YYYY-MM-DD or ISO date format.')
        return normalized

    @field_validator('end_time')
    @classmethod
    def validate_end_after_start(cls, value: str, info) -> str:
        start_time = info.data.get('start_time')
        if start_time and value <= start_time:
            raise ValueError('end_time must be after start_time.')
        return value

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class ConfirmAppointmentRequest(BaseModel):
    user_id: str


class CancelAppointmentRequest(BaseModel):
    user_id: str
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class CompleteAppointmentRequest(BaseModel):
    user_id: str
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    appointment_date: str
    start_time: str
    end_time: str
    status: str
    appointment_type: str | None = None
    reason: str | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


def get_appointment_or_404(appointment_id: str, db: Session) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(data: BookAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        patient = db.get(User, data.patient_id)
        if patient is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Patient not found.',
            )
        if patient.role != UserRole.PATIENT.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only patients can book appointments.',
            )

        doctor = get_verified_doctor(data.doctor_id, db)

        if not is_slot_available(doctor, data.appointment_date, data.start_time, data.end_time):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Requested time is outside the doctor's availability.",
            )

        lock_doctor_profile(db, data.doctor_id)
        existing_appointments = load_doctor_appointments(db, data.doctor_id)
        if has_appointment_conflict(
            data.doctor_id,
            data.appointment_date,
            data.start_time,
            data.end_time,
            existing_appointments,
            config.CONFLICT_EXCLUDED_STATUSES,
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This time is already booked.',
            )

        now = datetime.now(timezone.utc)
        appointment = Appointment(
            id=f'appt-{uuid4().hex}',
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            appointment_date=data.appointment_date,
            start_time=data.start_time,
            end_time=data.end_time,
            status=AppointmentStatus.PENDING.value,
            appointment_type=data.appointment_type.value,
            reason=data.reason,
            created_at=now,
            updated_at=now,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info(
            'Booked appointment %s with doctor %s on %s %s-%s',
            appointment.id,
            data.doctor_id,
            data.appointment_date,
            data.start_time,
            data.end_time,
        )

        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to book appointment with doctor %s', data.doctor_id)
        raise database_unavailable() from exc


def _is_admin(user_id: str, db: Session) -> bool:
    user = db.get(User, user_id)
    return user is not None and user.role == UserRole.ADMIN.value


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: str,
    data: ConfirmAppointmentRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)

        if data.user_id != appointment.doctor_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the doctor of this appointment can confirm it.',
            )

        if appointment.status == AppointmentStatus.CONFIRMED.value:
            return appointment

        if appointment.status != AppointmentStatus.PENDING.value:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot confirm an appointment with status: {appointment.status}.',
            )

        appointment.status = AppointmentStatus.CONFIRMED.value
        appointment.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(appointment)

        logger.info('Confirmed appointment %s', appointment_id)

        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    data: CancelAppointmentRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)

        if data.user_id not in (appointment.patient_id, appointment.doctor_id) and not _is_admin(data.user_id, db):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the patient or doctor of this appointment, or an admin, can cancel it.',
            )

        if appointment.status == AppointmentStatus.CANCELLED.value:
            return appointment

        if appointment.status not in CANCELLABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot cancel an appointment with status: {appointment.status}.',
            )

        appointment.status = AppointmentStatus.CANCELLED.value
        if data.reason:
            appointment.notes = f'Cancelled: {data.reason}'
        appointment.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(appointment)

        logger.info('Cancelled appointment %s by user %s', appointment_id, data.user_id)

        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: str,
    data: CompleteAppointmentRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)

        if data.user_id != appointment.doctor_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the doctor of this appointment can complete it.',
            )

        if appointment.status == AppointmentStatus.COMPLETED.value:
            return appointment

        if appointment.status not in COMPLETABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot complete an appointment with status: {appointment.status}.',
            )

        appointment.status = AppointmentStatus.COMPLETED.value
        if data.notes:
            appointment.notes = data.notes
        appointment.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(appointment)

        logger.info('Completed appointment %s', appointment_id)

        return appointment
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/doctor/{doctor_id}', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    doctor_id: str,
    appointment_status: str | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
):
    query_filters = [Appointment.doctor_id == doctor_id]

    if appointment_status is not None:
        normalized_status = appointment_status.strip().upper()
        if normalized_status not in {member.value for member in AppointmentStatus}:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Invalid appointment status.',
            )
        query_filters.append(Appointment.status == normalized_status)

    ensure_database_ready()

    try:
        return db.query(Appointment).filter(*query_filters).order_by(
            Appointment.appointment_day.asc(),
            Appointment.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/patient/{patient_id}', response_model=list[AppointmentResponse])
def list_patient_appointments(patient_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Appointment).filter(Appointment.patient_id == patient_id).order_by(
            Appointment.appointment_day.asc(),
            Appointment.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

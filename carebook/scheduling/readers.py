"""Load engine inputs from the database."""

from sqlalchemy.orm import Session

from carebook.models.appointment import Appointment
from carebook.models.doctor import DoctorProfile as DoctorProfileRecord
from carebook.scheduling.schedule import DoctorProfile


def load_doctor_profile(db: Session, doctor_id: str) -> DoctorProfile | None:
    record = db.get(DoctorProfileRecord, doctor_id)
    if record is None:
        return None
    return DoctorProfile.model_validate(record)


def load_doctor_appointments(db: Session, doctor_id: str) -> list[Appointment]:
    return db.query(Appointment).filter(Appointment.doctor_id == doctor_id).all()


def lock_doctor_profile(db: Session, doctor_id: str) -> DoctorProfileRecord | None:
    """Lock the doctor's profile row until the current transaction ends.

    Bookings for one doctor take this lock before re-reading appointments, so
    concurrent bookings are checked one after another.
    """
    return (
        db.query(DoctorProfileRecord)
        .filter(DoctorProfileRecord.user_id == doctor_id)
        .with_for_update()
        .one_or_none()
    )

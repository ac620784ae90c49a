"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, String
from carebook.database import Base
from carebook.scheduling.availability import format_date_for_comparison


def _day_key_default(context) -> str:
    return format_date_for_comparison(context.get_current_parameters().get('appointment_date') or '')


class Appointment(Base):
    """Represents a booked appointment."""
    __tablename__ = "appointments"

    id = Column(String, primary_key=True)
    patient_id = Column(String, ForeignKey("users.id"))
    doctor_id = Column(String, ForeignKey("users.id"))
    appointment_date = Column(String)  # ISO date or timestamp as sent by the client
    appointment_day = Column(String, default=_day_key_default)  # UTC YYYY-MM-DD, used for ordering
    start_time = Column(String)  # HH:MM
    end_time = Column(String)  # HH:MM
    status = Column(String)
    appointment_type = Column(String)
    reason = Column(String)
    notes = Column(String)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

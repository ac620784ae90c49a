"""Doctor profile model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String
from carebook.database import Base


class DoctorProfile(Base):
    """A doctor's recurring weekly schedule and blocked days."""
    __tablename__ = "doctor_profiles"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    specialty = Column(String)
    verification_status = Column(String, default="PENDING")
    weekly_schedule = Column(JSON, default=dict)  # {"monday": [{"start_time", "end_time", "is_available"}], ...}
    blocked_dates = Column(JSON, default=list)  # ["YYYY-MM-DD", ...]
    updated_at = Column(DateTime)

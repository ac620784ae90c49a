"""Data model consumed and produced by the availability engine.

Times of day are zero-padded 24-hour ``HH:MM`` strings. The pattern check
below is what keeps plain string comparison a valid ordering for them, so
every model that carries a time goes through it.
"""

from pydantic import BaseModel, Field, field_validator

from carebook.models.enums import AppointmentStatus, VerificationStatus

TIME_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'

# Index matches the weekday numbering used by the engine (0 = Sunday).
DAY_NAMES = ('sunday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday')


class AvailabilityWindow(BaseModel):
    """A contiguous bookable range on one weekday."""

    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    is_available: bool = True

    @field_validator('end_time')
    @classmethod
    def validate_end_after_start(cls, value: str, info) -> str:
        start_time = info.data.get('start_time')
        if start_time and value <= start_time:
            raise ValueError('end_time must be after start_time.')
        return value

    class Config:
        from_attributes = True


class WeeklySchedule(BaseModel):
    sunday: list[AvailabilityWindow] = Field(default_factory=list)
    monday: list[AvailabilityWindow] = Field(default_factory=list)
    tuesday: list[AvailabilityWindow] = Field(default_factory=list)
    wednesday: list[AvailabilityWindow] = Field(default_factory=list)
    thursday: list[AvailabilityWindow] = Field(default_factory=list)
    friday: list[AvailabilityWindow] = Field(default_factory=list)
    saturday: list[AvailabilityWindow] = Field(default_factory=list)

    @field_validator(*DAY_NAMES, mode='before')
    @classmethod
    def default_missing_day(cls, value):
        return [] if value is None else value

    def windows_for(self, day_name: str) -> list[AvailabilityWindow]:
        if day_name not in DAY_NAMES:
            return []
        return getattr(self, day_name)


class DoctorProfile(BaseModel):
    user_id: str
    weekly_schedule: WeeklySchedule = Field(default_factory=WeeklySchedule)
    blocked_dates: list[str] = Field(default_factory=list)
    verification_status: VerificationStatus = VerificationStatus.PENDING

    @field_validator('weekly_schedule', mode='before')
    @classmethod
    def default_missing_schedule(cls, value):
        return {} if value is None else value

    @field_validator('blocked_dates', mode='before')
    @classmethod
    def default_missing_blocked_dates(cls, value):
        return [] if value is None else value

    @field_validator('verification_status', mode='before')
    @classmethod
    def default_missing_verification_status(cls, value):
        return VerificationStatus.PENDING if value is None else value

    class Config:
        from_attributes = True


class Appointment(BaseModel):
    id: str | None = None
    patient_id: str | None = None
    doctor_id: str
    appointment_date: str
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    status: AppointmentStatus = AppointmentStatus.PENDING

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    start_time: str
    end_time: str
    is_available: bool = True

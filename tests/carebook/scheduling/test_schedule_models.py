from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from carebook.models.enums import VerificationStatus
from carebook.scheduling.schedule import AvailabilityWindow, DoctorProfile, WeeklySchedule


@pytest.mark.parametrize(
    ('start_time', 'end_time'),
    [
        ('9:00', '10:00'),
        ('09:00', '24:00'),
        ('09:60', '10:00'),
        ('10:00', '10:00'),
        ('11:00', '10:00'),
    ],
)
def test_availability_window_rejects_malformed_or_inverted_times(start_time: str, end_time: str) -> None:
    with pytest.raises(ValidationError):
        AvailabilityWindow(start_time=start_time, end_time=end_time)


def test_availability_window_defaults_to_available() -> None:
    window = AvailabilityWindow(start_time='00:00', end_time='23:59')

    assert window.is_available is True


def test_weekly_schedule_always_has_every_day() -> None:
    schedule = WeeklySchedule.model_validate({'monday': [{'start_time': '09:00', 'end_time': '10:00'}], 'friday': None})

    assert set(schedule.model_dump()) == {
        'sunday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday',
    }
    assert schedule.friday == []
    assert len(schedule.windows_for('monday')) == 1


@pytest.mark.parametrize('day_name', ['', 'Monday', 'windows_for', 'model_dump'])
def test_weekly_schedule_lookup_ignores_unknown_day_names(day_name: str) -> None:
    schedule = WeeklySchedule.model_validate({'monday': [{'start_time': '09:00', 'end_time': '10:00'}]})

    assert schedule.windows_for(day_name) == []


def test_doctor_profile_treats_missing_fields_as_empty() -> None:
    record = SimpleNamespace(
        user_id='doctor123',
        weekly_schedule=None,
        blocked_dates=None,
        verification_status=None,
    )

    doctor = DoctorProfile.model_validate(record)

    assert doctor.blocked_dates == []
    assert doctor.weekly_schedule == WeeklySchedule()
    assert doctor.verification_status == VerificationStatus.PENDING

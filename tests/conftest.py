import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from carebook.database import Base  # noqa: E402
from carebook.models.appointment import Appointment  # noqa: E402
from carebook.models.doctor import DoctorProfile  # noqa: E402
from carebook.models.user import User  # noqa: E402


MONDAY_SCHEDULE = {
    'monday': [
        {'start_time': '09:00', 'end_time': '12:00', 'is_available': True},
        {'start_time': '13:00', 'end_time': '15:00', 'is_available': True},
    ],
    'tuesday': [],
    'wednesday': [],
    'thursday': [],
    'friday': [],
    'saturday': [],
    'sunday': [],
}


@pytest.fixture
def appointment_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, DoctorProfile.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture
def clinic_db(appointment_db):
    """Two doctors (one verified), two patients and an admin."""
    appointment_db.add_all([
        User(id='doctor123', email='smith@example.com', first_name='Ann', last_name='Smith', role='doctor'),
        User(id='doctor456', email='jones@example.com', first_name='Bob', last_name='Jones', role='doctor'),
        User(id='patient1', email='john@example.com', first_name='John', last_name='Doe', role='patient'),
        User(id='patient2', email='jane@example.com', first_name='Jane', last_name='Doe', role='patient'),
        User(id='admin1', email='admin@example.com', first_name='Ada', last_name='Admin', role='admin'),
    ])
    appointment_db.add_all([
        DoctorProfile(
            user_id='doctor123',
            specialty='Cardiology',
            verification_status='VERIFIED',
            weekly_schedule=MONDAY_SCHEDULE,
            blocked_dates=['2023-06-19T00:00:00Z'],
        ),
        DoctorProfile(
            user_id='doctor456',
            specialty='Dermatology',
            verification_status='PENDING',
            weekly_schedule=MONDAY_SCHEDULE,
            blocked_dates=[],
        ),
    ])
    appointment_db.commit()
    return appointment_db


@pytest.fixture
def database_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('carebook.routes.availability_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('carebook.routes.appointment_routes.ensure_database_ready', lambda: None)

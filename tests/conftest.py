import os

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hms_scheduling.database import Base  # noqa: E402
from hms_scheduling.models.appointment import Appointment  # noqa: E402
from hms_scheduling.models.doctor_schedule import DoctorSchedule  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[DoctorSchedule.__table__, Appointment.__table__])
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, DoctorSchedule.__table__])
        engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def schedule_db(db_session_factory):
    db = db_session_factory()
    try:
        yield db
    finally:
        db.close()

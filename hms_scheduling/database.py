from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from hms_scheduling.core import config


DATABASE_URL = config.DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_checked_tables: set[str] = set()

SCHEDULE_MIGRATIONS = [
    ('full_day_leaves', 'ALTER TABLE doctor_schedules ADD COLUMN full_day_leaves JSON'),
    ('leave_time_slots', 'ALTER TABLE doctor_schedules ADD COLUMN leave_time_slots JSON'),
    ('updated_at', 'ALTER TABLE doctor_schedules ADD COLUMN updated_at TIMESTAMP'),
]

APPOINTMENT_MIGRATIONS = [
    ('reason', 'ALTER TABLE appointments ADD COLUMN reason VARCHAR'),
    ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
    ('admin_confirmed', 'ALTER TABLE appointments ADD COLUMN admin_confirmed BOOLEAN DEFAULT FALSE'),
    ('status_update_reason', 'ALTER TABLE appointments ADD COLUMN status_update_reason VARCHAR'),
]

APPOINTMENT_INDEXES = [
    'CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, date)',
    'CREATE INDEX IF NOT EXISTS idx_appointments_status_start ON appointments(status, appointment_date_time)',
]


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _ensure_table_schema(table_name: str, migrations: list[tuple[str, str]], indexes: list[str] | None = None) -> None:
    """Add missing columns (and indexes) to a table created by an older release. Runs once per process."""
    if table_name in _checked_tables:
        return

    with _schema_lock:
        if table_name in _checked_tables:
            return

        inspector = inspect(engine)

        # create_all builds fresh tables with every column already present
        if table_name not in inspector.get_table_names():
            _checked_tables.add(table_name)
            return

        existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

        with engine.begin() as connection:
            for column_name, statement in migrations:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            for statement in indexes or []:
                connection.execute(text(statement))

        _checked_tables.add(table_name)


def ensure_schedule_schema() -> None:
    _ensure_table_schema('doctor_schedules', SCHEDULE_MIGRATIONS)


def ensure_appointment_schema() -> None:
    _ensure_table_schema('appointments', APPOINTMENT_MIGRATIONS, APPOINTMENT_INDEXES)

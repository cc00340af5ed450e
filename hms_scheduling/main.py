import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from hms_scheduling.core import config
from hms_scheduling.database import Base, engine, ensure_appointment_schema, ensure_schedule_schema
from hms_scheduling.models import appointment, doctor_schedule  # noqa: F401
from hms_scheduling.routes import appointment_routes, availability_routes, schedule_routes

logging.basicConfig(level=logging.INFO)

config.validate_runtime_config()

app = FastAPI(title='HMS Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'HMS Scheduling API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(schedule_routes.router, prefix='/schedules')
app.include_router(appointment_routes.router, prefix='/appointments')

import os

from dotenv import load_dotenv

load_dotenv()



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./hms_scheduling.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))
SAME_DAY_BUFFER_MINUTES = int(os.getenv("SAME_DAY_BUFFER_MINUTES", "30"))
BOOKING_WINDOW_DAYS = int(os.getenv("BOOKING_WINDOW_DAYS", "30"))
MAX_APPOINTMENT_REASON_LENGTH = int(os.getenv("MAX_APPOINTMENT_REASON_LENGTH", "600"))

UNDO_DEPTH = int(os.getenv("UNDO_DEPTH", "1"))
SCHEDULE_CACHE_ENABLED = _get_bool(os.getenv("SCHEDULE_CACHE_ENABLED"), default=False)
SCHEDULE_CACHE_TTL_SECONDS = float(os.getenv("SCHEDULE_CACHE_TTL_SECONDS", "30"))
SLOT_MANAGER_SESSION_TTL_MINUTES = int(os.getenv("SLOT_MANAGER_SESSION_TTL_MINUTES", "60"))

NO_SHOW_CONFIRMATION_WINDOW_HOURS = int(os.getenv("NO_SHOW_CONFIRMATION_WINDOW_HOURS", "24"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SAME_DAY_BUFFER_MINUTES < 0:
        raise RuntimeError("SAME_DAY_BUFFER_MINUTES cannot be negative.")
    if UNDO_DEPTH < 1:
        raise RuntimeError("UNDO_DEPTH must be at least 1.")
    if SCHEDULE_CACHE_TTL_SECONDS <= 0:
        raise RuntimeError("SCHEDULE_CACHE_TTL_SECONDS must be positive.")

from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hms_scheduling.auth import jwt_handler

security = HTTPBearer()

ROLES = {"patient", "doctor", "admin"}


@dataclass(frozen=True)
class Principal:
    subject: str
    role: str


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    role = str(payload.get("role", "")).strip().lower()
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid token role")
    return Principal(subject=subject, role=role)


def require_role(*roles: str):
    def dependency(user: Principal = Depends(get_current_user)) -> Principal:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        return user

    return dependency


def ensure_doctor_owns_schedule(user: Principal, doctor_id: str) -> None:
    if user.role != "doctor" or user.subject != doctor_id:
        raise HTTPException(status_code=403, detail="Doctors can only manage their own schedule.")

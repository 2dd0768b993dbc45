from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request

from config.settings import Settings
from db.database import Database
from db.models import UserProfile
from services.diagnosis import DiagnosisAssistant
from services.facilities import FacilityFinder
from services.records import VerificationRecords
from services.sos import SOSMonitor
from services.verification import DrugVerifier


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_verifier(request: Request) -> DrugVerifier:
    return request.app.state.verifier


def get_records(request: Request) -> VerificationRecords:
    return request.app.state.records


def get_sos_monitor(request: Request) -> SOSMonitor:
    return request.app.state.sos_monitor


def get_facility_finder(request: Request) -> FacilityFinder:
    return request.app.state.facility_finder


def require_admin(
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings_dep),
    database: Database = Depends(get_database),
) -> str:
    if user_id in settings.admin_user_ids:
        return user_id
    with database.session() as session:
        user = session.get(UserProfile, user_id)
    if user is None or user.role != "admin":
        raise HTTPException(status_code=403, detail="Unauthorized. Admin access required.")
    return user_id


def get_diagnosis_assistant(request: Request) -> DiagnosisAssistant:
    return request.app.state.diagnosis_assistant

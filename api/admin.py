# internal imports
import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session, func, select

# external imports
from api.deps import require_admin
from db.database import get_session
from db.models import Diagnosis, DrugVerificationRecord, HospitalRecommendation, SOSSession, UserProfile, utc_now


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])

VALID_ROLES = {"user", "admin"}
VERDICTS = ("verified", "expired", "unverified", "invalid")


class RoleUpdate(BaseModel):
    role: str


def _count(session: Session, model, *conditions) -> int:
    statement = select(func.count()).select_from(model)
    for condition in conditions:
        statement = statement.where(condition)
    return session.exec(statement).one()


@router.get("/users")
def list_users(
    limit: int = Query(100, ge=1, le=500),
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
):
    users = session.exec(
        select(UserProfile).order_by(UserProfile.updated_at.desc()).limit(limit)
    ).all()
    return {"users": [user.model_dump(mode="json") for user in users]}


@router.patch("/users/{user_id}")
def update_user_role(
    user_id: str,
    body: RoleUpdate,
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if body.role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail='Invalid role. Must be "user" or "admin"')
    if body.role == "user" and user_id == admin_id:
        raise HTTPException(status_code=400, detail="You cannot remove your own admin status")

    user = session.get(UserProfile, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    user.role = body.role
    user.updated_at = utc_now()
    session.add(user)
    session.commit()

    logger.info("User %s role set to %s by %s", user_id, body.role, admin_id)
    return {"message": "User role updated successfully", "role": body.role}


@router.get("/stats")
def platform_stats(
    admin_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
):
    total_users = _count(session, UserProfile)
    admin_users = _count(session, UserProfile, UserProfile.role == "admin")

    by_result = dict(
        session.exec(
            select(DrugVerificationRecord.result, func.count()).group_by(DrugVerificationRecord.result)
        ).all()
    )

    return {
        "users": {
            "total": total_users,
            "admin": admin_users,
            "regular": total_users - admin_users,
        },
        "diagnoses": {
            "total": _count(session, Diagnosis),
        },
        "drug_verifications": {
            "total": sum(by_result.values()),
            **{verdict: by_result.get(verdict, 0) for verdict in VERDICTS},
        },
        "sos": {
            "total": _count(session, SOSSession),
            "active": _count(session, SOSSession, SOSSession.status == "active"),
            "resolved": _count(session, SOSSession, SOSSession.status == "resolved"),
        },
        "hospital_recommendations": {
            "total": _count(session, HospitalRecommendation),
        },
    }

# internal imports
import logging
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel

# external imports
from api.deps import get_current_user_id, get_sos_monitor
from db.models import SOSSession
from services.sos import SOSMonitor


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sos", tags=["sos"])


class SOSCheck(BaseModel):
    heartbeat: bool = False
    check: bool = False


def serialize_session(sos: SOSSession | None) -> dict | None:
    if sos is None:
        return None
    return {
        "id": sos.id,
        "user_id": sos.user_id,
        "status": sos.status,
        "activated_at": sos.activated_at.isoformat(),
        "last_heartbeat_at": sos.last_heartbeat_at.isoformat() if sos.last_heartbeat_at else None,
        "help_requested_at": sos.help_requested_at.isoformat() if sos.help_requested_at else None,
        "contacts_notified": list(sos.contacts_notified or []),
        "facilities_notified": list(sos.facilities_notified or []),
        "resolved_at": sos.resolved_at.isoformat() if sos.resolved_at else None,
    }


@router.post("/activate")
def activate_sos(
    user_id: str = Depends(get_current_user_id),
    monitor: SOSMonitor = Depends(get_sos_monitor),
):
    """Start an emergency session, or return the one already active."""
    sos = monitor.activate(user_id)
    return {"success": True, "sos_event": serialize_session(sos)}


@router.post("/check")
async def check_sos(
    body: SOSCheck,
    user_id: str = Depends(get_current_user_id),
    monitor: SOSMonitor = Depends(get_sos_monitor),
):
    """
    Heartbeat from the client (``{"heartbeat": true}``) or an inactivity sweep
    requested by the service worker timer (``{"check": true}``).
    """
    if body.heartbeat:
        updated = monitor.heartbeat(user_id)
        return {"success": True, "active": updated}

    if body.check:
        reports = await monitor.sweep()
        return {"success": True, "escalated": [report.session_id for report in reports]}

    raise HTTPException(status_code=400, detail="Invalid request")


@router.post("/resolve")
def resolve_sos(
    user_id: str = Depends(get_current_user_id),
    monitor: SOSMonitor = Depends(get_sos_monitor),
):
    resolved = monitor.resolve(user_id)
    return {"success": True, "resolved": resolved}


@router.get("/status")
def sos_status(
    user_id: str = Depends(get_current_user_id),
    monitor: SOSMonitor = Depends(get_sos_monitor),
):
    sos = monitor.get_active(user_id)
    return {"active": sos is not None, "sos_event": serialize_session(sos)}

# internal imports
import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel, Field
from sqlmodel import Session, select

# external imports
from api.deps import get_current_user_id, get_diagnosis_assistant
from db.database import get_session
from db.models import Diagnosis, utc_now
from services.diagnosis import DiagnosisAssistant
from services.errors import AdapterFailure, ConfigurationError


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    diagnosis_id: str | None = None


def _turn(role: str, content: str) -> dict:
    return {"role": role, "content": content, "timestamp": utc_now().isoformat()}


def _owned(session: Session, diagnosis_id: str, user_id: str) -> Diagnosis:
    diagnosis = session.get(Diagnosis, diagnosis_id)
    if diagnosis is None or diagnosis.user_id != user_id:
        raise HTTPException(status_code=404, detail="Diagnosis not found")
    return diagnosis


@router.post("/diagnosis")
async def chat_diagnosis(
    body: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    assistant: DiagnosisAssistant = Depends(get_diagnosis_assistant),
):
    """Send one symptom message; starts a conversation unless ``diagnosis_id`` continues one."""
    message = body.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")

    diagnosis = _owned(session, body.diagnosis_id, user_id) if body.diagnosis_id else None
    history = list(diagnosis.chat_history) if diagnosis else []
    history.append(_turn("user", message))

    try:
        reply = await assistant.reply(history)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AdapterFailure as e:
        logger.error("Chat diagnosis error: %s", e)
        raise HTTPException(status_code=502, detail="Failed to get diagnosis")

    history.append(_turn("assistant", reply))

    if diagnosis is None:
        diagnosis = Diagnosis(user_id=user_id, symptoms=message)
    diagnosis.diagnosis = reply
    diagnosis.chat_history = history
    diagnosis.updated_at = utc_now()
    session.add(diagnosis)
    session.commit()
    session.refresh(diagnosis)

    return {"response": reply, "diagnosis_id": diagnosis.id}


@router.get("/history")
def chat_history(
    diagnosis_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """One conversation's turns, or the caller's recent conversations without ``diagnosis_id``."""
    if diagnosis_id:
        return {"chat_history": _owned(session, diagnosis_id, user_id).chat_history}

    diagnoses = session.exec(
        select(Diagnosis)
        .where(Diagnosis.user_id == user_id)
        .order_by(Diagnosis.created_at.desc())
        .limit(limit)
    ).all()
    return {
        "diagnoses": [
            {
                "id": diagnosis.id,
                "symptoms": diagnosis.symptoms,
                "diagnosis": diagnosis.diagnosis,
                "created_at": diagnosis.created_at.isoformat(),
                "updated_at": diagnosis.updated_at.isoformat(),
            }
            for diagnosis in diagnoses
        ]
    }

# internal imports
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session, select

# external imports
from api.deps import get_current_user_id
from db.database import get_session
from db.models import EmergencyContact, UserProfile, utc_now


router = APIRouter(prefix="/api/profile", tags=["profile"])


class ProfileUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = None


class ContactCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str | None = None
    relationship: str | None = None


def _contacts(session: Session, user_id: str) -> list[EmergencyContact]:
    return list(
        session.exec(
            select(EmergencyContact)
            .where(EmergencyContact.user_id == user_id)
            .order_by(EmergencyContact.created_at, EmergencyContact.id)
        ).all()
    )


def _serialize(user: UserProfile | None, user_id: str, contacts: list[EmergencyContact]) -> dict:
    location = None
    if user is not None and user.latitude is not None and user.longitude is not None:
        location = {"lat": user.latitude, "lng": user.longitude, "address": user.address}
    return {
        "id": user_id,
        "name": user.name if user else None,
        "email": user.email if user else None,
        "role": user.role if user else "user",
        "location": location,
        "emergency_contacts": [contact.model_dump(exclude={"user_id"}) for contact in contacts],
    }


@router.get("")
def get_profile(
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return _serialize(session.get(UserProfile, user_id), user_id, _contacts(session, user_id))


@router.put("")
def update_profile(
    body: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    if (body.lat is None) != (body.lng is None):
        raise HTTPException(status_code=400, detail="Both lat and lng are required for a location")

    user = session.get(UserProfile, user_id) or UserProfile(id=user_id)
    for field_name in ("name", "email", "address"):
        value = getattr(body, field_name)
        if value is not None:
            setattr(user, field_name, value.strip())
    if body.lat is not None:
        user.latitude = body.lat
        user.longitude = body.lng
    user.updated_at = utc_now()

    session.add(user)
    session.commit()
    session.refresh(user)
    return _serialize(user, user_id, _contacts(session, user_id))


@router.post("/emergency-contacts", status_code=201)
def add_emergency_contact(
    body: ContactCreate,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    contact = EmergencyContact(
        user_id=user_id,
        name=body.name.strip(),
        phone=body.phone.strip(),
        email=(body.email or "").strip() or None,
        relationship=body.relationship,
    )
    session.add(contact)
    session.commit()
    session.refresh(contact)
    return contact.model_dump(exclude={"user_id"})


@router.delete("/emergency-contacts/{contact_id}")
def delete_emergency_contact(
    contact_id: str,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    contact = session.get(EmergencyContact, contact_id)
    if contact is None or contact.user_id != user_id:
        raise HTTPException(status_code=404, detail="Emergency contact not found")
    session.delete(contact)
    session.commit()
    return {"success": True}

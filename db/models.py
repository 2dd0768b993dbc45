import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.

    Values are written as naive UTC, so SQLite and PostgreSQL store the same
    thing, and come back aware. Naive input is taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

# -------------------
# DRUG VERIFICATION AUDIT
# -------------------
class DrugVerificationRecord(SQLModel, table=True):
    __tablename__ = "drug_verifications"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    verification_method: str  # "code", "text" or "image"
    nafdac_code: Optional[str] = Field(default=None, index=True)
    drug_name: Optional[str] = None
    manufacturer: Optional[str] = None
    status: Optional[str] = None
    expiry_date: Optional[str] = None
    batch_number: Optional[str] = None
    result: str = Field(index=True)  # verdict
    source: str
    ipfs_cid: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)


# -------------------
# IPFS INDEX (NAFDAC code -> CID)
# -------------------
class IPFSIndexEntry(SQLModel, table=True):
    __tablename__ = "ipfs_index"

    id: Optional[int] = Field(default=None, primary_key=True)
    nafdac_code: str = Field(index=True)
    ipfs_cid: str
    registered_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


# -------------------
# SOS
# -------------------
class SOSSession(SQLModel, table=True):
    __tablename__ = "sos_events"
    __table_args__ = (
        # at most one active session per user
        Index(
            "uq_sos_events_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    status: str = Field(default="active")  # "active" or "resolved"
    activated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    last_heartbeat_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    help_requested_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    contacts_notified: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    facilities_notified: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    resolved_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


# -------------------
# USERS
# -------------------
class UserProfile(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: Optional[str] = None
    email: Optional[str] = None
    role: str = Field(default="user")  # "user" or "admin"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class EmergencyContact(SQLModel, table=True):
    __tablename__ = "emergency_contacts"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    name: str
    phone: str
    email: Optional[str] = None
    relationship: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


# -------------------
# HOSPITAL RECOMMENDATIONS
# -------------------
class HospitalRecommendation(SQLModel, table=True):
    __tablename__ = "hospital_recommendations"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    symptoms: str = ""
    latitude: float
    longitude: float
    recommended_hospitals: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


# -------------------
# SYMPTOM CHAT
# -------------------
class Diagnosis(SQLModel, table=True):
    __tablename__ = "diagnoses"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    symptoms: str  # first user message
    diagnosis: str = ""  # latest assistant reply
    chat_history: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

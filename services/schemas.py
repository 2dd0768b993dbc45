from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


VerificationSource = Literal["external_api", "ipfs", "database", "unknown"]
Verdict = Literal["verified", "expired", "unverified", "invalid"]

UNKNOWN_MANUFACTURER = "Unknown Manufacturer"


class DrugRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    manufacturer: Optional[str] = None
    # raw status as reported by a source; the classifier turns it into a verdict
    status: Optional[str] = None
    expiry_date: Optional[str] = None
    batch_number: Optional[str] = None


class VerificationResult(BaseModel):
    drug_info: DrugRecord
    source: VerificationSource
    ipfs_cid: Optional[str] = None
    extracted_code: Optional[str] = None


class PinnedDrugDocument(BaseModel):
    """JSON document pinned to IPFS for a registered drug."""

    nafdac_code: str
    name: str
    manufacturer: str
    status: str = "unverified"
    expiry_date: str
    batch_number: str
    registered_at: datetime
    registered_by: Optional[str] = None

    def to_record(self) -> DrugRecord:
        return DrugRecord(
            name=self.name,
            manufacturer=self.manufacturer,
            status=self.status,
            expiry_date=self.expiry_date,
            batch_number=self.batch_number,
        )


class Facility(BaseModel):
    name: str
    address: str = ""
    lat: float
    lng: float
    distance: Optional[float] = None  # meters from the query point
    rating: Optional[float] = None
    phone: Optional[str] = None
    place_id: Optional[str] = None


class NotificationOutcome(BaseModel):
    recipient: str
    channel: str
    delivered: bool
    error: Optional[str] = None


class EscalationReport(BaseModel):
    session_id: str
    user_id: str
    help_requested_at: datetime
    contacts_notified: list[str] = Field(default_factory=list)
    facilities_notified: list[str] = Field(default_factory=list)
    outcomes: list[NotificationOutcome] = Field(default_factory=list)


def unverified_placeholder(name: str) -> DrugRecord:
    return DrugRecord(name=name, manufacturer=UNKNOWN_MANUFACTURER, status="unverified")

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from services.schemas import DrugRecord, Verdict


def _parse_expiry(value: str) -> Optional[datetime]:
    value = value.strip()
    if value[-1:] in ("Z", "z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        # timestamps with fractions fromisoformat rejects still carry a usable day
        try:
            parsed = datetime.fromisoformat(value[:10])
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def classify(record: DrugRecord, now: Optional[datetime] = None) -> Verdict:
    """
    Map a source-reported status and expiry date onto a final verdict.

    A ``verified`` record whose expiry date (midnight UTC for a bare date) lies
    strictly before ``now`` is ``expired``. Unparseable expiry dates are ignored.
    Unknown statuses are ``invalid``.
    """
    status = record.status
    if not status or status == "unverified":
        return "unverified"

    if status == "expired":
        return "expired"

    if status == "verified":
        if record.expiry_date:
            expiry = _parse_expiry(record.expiry_date)
            current = now or datetime.now(timezone.utc)
            if current.tzinfo is None:
                current = current.replace(tzinfo=timezone.utc)
            if expiry is not None and expiry < current:
                return "expired"
        return "verified"

    return "invalid"

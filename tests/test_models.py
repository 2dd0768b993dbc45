from __future__ import annotations

from datetime import datetime, timedelta, timezone

from db.models import DrugVerificationRecord, SOSSession, utc_now


def test_utc_now_is_timezone_aware():
    assert utc_now().tzinfo is not None
    assert utc_now().utcoffset() == timedelta(0)


def test_timestamps_are_written_and_read_back_as_aware_utc(database):
    lagos = timezone(timedelta(hours=1))
    activated_at = datetime(2026, 1, 1, 13, 0, tzinfo=lagos)

    with database.session() as session:
        sos = SOSSession(user_id="user-a", activated_at=activated_at, last_heartbeat_at=utc_now())
        session.add(sos)
        session.commit()
        sos_id = sos.id

    with database.session() as session:
        stored = session.get(SOSSession, sos_id)

    assert stored.activated_at == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert stored.activated_at.tzinfo is not None
    assert stored.last_heartbeat_at.tzinfo is not None
    assert stored.help_requested_at is None


def test_naive_timestamps_are_taken_as_utc(database):
    with database.session() as session:
        record = DrugVerificationRecord(
            user_id="user-a",
            verification_method="code",
            result="unverified",
            source="unknown",
            created_at=datetime(2026, 3, 1, 8, 30),
        )
        session.add(record)
        session.commit()
        session.refresh(record)

    assert record.created_at == datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

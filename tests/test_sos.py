from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from db.models import SOSSession
from services.sos import SOSMonitor

from conftest import FakeFacilityFinder, RecordingNotifier, make_facility


def test_activate_is_idempotent(monitor):
    first = monitor.activate("user-a")
    second = monitor.activate("user-a")

    assert first.id == second.id
    assert second.status == "active"
    assert second.contacts_notified == []


def test_activate_then_resolve_leaves_no_active_session(monitor):
    monitor.activate("user-a")

    assert monitor.resolve("user-a") is True
    assert monitor.get_active("user-a") is None
    assert monitor.resolve("user-a") is False


def test_reactivation_after_resolve_starts_a_new_session(monitor):
    first = monitor.activate("user-a")
    monitor.resolve("user-a")

    second = monitor.activate("user-a")

    assert second.id != first.id


def test_heartbeat_without_active_session_is_a_noop(monitor):
    assert monitor.heartbeat("nobody") is False


def test_heartbeat_advances_last_heartbeat(monitor, clock):
    monitor.activate("user-a")
    clock.advance(seconds=90)

    assert monitor.heartbeat("user-a") is True
    assert monitor.get_active("user-a").last_heartbeat_at == clock.now


def test_store_rejects_second_active_session(database):
    with database.session() as session:
        session.add(SOSSession(user_id="user-a"))
        session.add(SOSSession(user_id="user-a"))
        with pytest.raises(IntegrityError):
            session.commit()


def test_concurrent_activation_returns_the_winning_session(monitor, monkeypatch):
    winner = monitor.activate("user-a")
    real_active = SOSMonitor._active
    calls = {"count": 0}

    def stale_active(session, user_id):
        # the first check runs before the competing insert became visible
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return real_active(session, user_id)

    monkeypatch.setattr(SOSMonitor, "_active", staticmethod(stale_active))

    loser = monitor.activate("user-a")

    assert loser.id == winner.id


def test_inactive_session_is_escalated_to_contacts(monitor, clock, add_user, notifier):
    add_user("user-a", contacts=("Ada", "Tunde"))
    monitor.activate("user-a")
    clock.advance(minutes=3)

    reports = asyncio.run(monitor.sweep())

    assert len(reports) == 1
    sos = monitor.get_active("user-a")
    assert sos.help_requested_at == clock.now
    assert sos.contacts_notified == ["user-a-contact-0", "user-a-contact-1"]
    assert sos.facilities_notified == []
    assert notifier.contacts == ["Ada", "Tunde"]


def test_recent_heartbeat_prevents_escalation(monitor, clock, add_user):
    add_user("user-a", contacts=("Ada",))
    monitor.activate("user-a")
    clock.advance(minutes=1)
    monitor.heartbeat("user-a")
    clock.advance(minutes=1, seconds=30)

    assert asyncio.run(monitor.sweep()) == []
    assert monitor.get_active("user-a").help_requested_at is None


def test_missing_heartbeat_is_treated_as_inactive(monitor, database, add_user):
    add_user("user-a", contacts=("Ada",))
    with database.session() as session:
        session.add(SOSSession(user_id="user-a", last_heartbeat_at=None))
        session.commit()

    reports = asyncio.run(monitor.sweep())

    assert [report.user_id for report in reports] == ["user-a"]


def test_resolved_sessions_are_not_swept(monitor, clock, add_user, notifier):
    add_user("user-a", contacts=("Ada",))
    monitor.activate("user-a")
    monitor.resolve("user-a")
    clock.advance(minutes=10)

    assert asyncio.run(monitor.sweep()) == []
    assert notifier.contacts == []


def test_nearest_three_facilities_are_notified(monitor, clock, add_user, finder, notifier):
    finder.facilities = [
        make_facility("Closest", 300, place_id="p1"),
        make_facility("Second", 800, place_id="p2"),
        make_facility("Third", 1200),
        make_facility("Fourth", 2500, place_id="p4"),
    ]
    add_user("user-a", contacts=("Ada",), lat=6.45, lng=3.39)
    monitor.activate("user-a")
    clock.advance(minutes=3)

    asyncio.run(monitor.sweep())

    sos = monitor.get_active("user-a")
    assert sos.facilities_notified == ["p1", "p2", "Third"]
    assert notifier.facilities == ["Closest", "Second", "Third"]
    assert finder.calls == [(6.45, 3.39, 5000)]


def test_facility_lookup_failure_does_not_break_sweep(database, clock, add_user):
    finder = FakeFacilityFinder(error=RuntimeError("Places API quota exceeded"))
    monitor = SOSMonitor(database, finder, RecordingNotifier(), clock=clock)
    add_user("user-a", contacts=("Ada",), lat=6.45, lng=3.39)
    monitor.activate("user-a")
    clock.advance(minutes=3)

    reports = asyncio.run(monitor.sweep())

    assert len(reports) == 1
    sos = monitor.get_active("user-a")
    assert sos.help_requested_at is not None
    assert sos.facilities_notified == []
    assert sos.contacts_notified == ["user-a-contact-0"]


def test_failed_contact_notification_does_not_stop_the_rest(database, clock, add_user, finder):
    notifier = RecordingNotifier(failing_recipients=("Ada",))
    monitor = SOSMonitor(database, finder, notifier, clock=clock)
    add_user("user-a", contacts=("Ada", "Tunde"))
    monitor.activate("user-a")
    clock.advance(minutes=3)

    [report] = asyncio.run(monitor.sweep())

    assert notifier.contacts == ["Ada", "Tunde"]
    assert report.contacts_notified == ["user-a-contact-0", "user-a-contact-1"]
    assert [outcome.delivered for outcome in report.outcomes] == [False, True]


def test_one_failing_session_does_not_block_others(monitor, clock, add_user, monkeypatch):
    add_user("user-a", contacts=("Ada",))
    add_user("user-b", contacts=("Bola",))
    monitor.activate("user-a")
    monitor.activate("user-b")
    clock.advance(minutes=3)

    real_escalate = monitor.escalate

    async def flaky_escalate(sos):
        if sos.user_id == "user-a":
            raise RuntimeError("database hiccup")
        return await real_escalate(sos)

    monkeypatch.setattr(monitor, "escalate", flaky_escalate)

    reports = asyncio.run(monitor.sweep())

    assert [report.user_id for report in reports] == ["user-b"]


def test_still_inactive_session_is_escalated_again(monitor, clock, add_user, notifier):
    add_user("user-a", contacts=("Ada",))
    monitor.activate("user-a")
    clock.advance(minutes=3)
    asyncio.run(monitor.sweep())
    first_escalation = monitor.get_active("user-a").help_requested_at

    clock.advance(minutes=1)
    asyncio.run(monitor.sweep())

    assert notifier.contacts == ["Ada", "Ada"]
    assert monitor.get_active("user-a").help_requested_at > first_escalation


def test_user_without_profile_is_still_marked_escalated(monitor, clock):
    monitor.activate("ghost")
    clock.advance(minutes=3)

    [report] = asyncio.run(monitor.sweep())

    assert report.contacts_notified == []
    assert monitor.get_active("ghost").help_requested_at == clock.now


def test_escalation_keeps_a_heartbeat_that_arrived_mid_sweep(monitor, clock, add_user):
    add_user("user-a", contacts=("Ada",))
    monitor.activate("user-a")
    clock.advance(minutes=3)
    stale = monitor.get_active("user-a")

    clock.advance(seconds=5)
    assert monitor.heartbeat("user-a") is True
    heartbeat_at = clock.now

    asyncio.run(monitor.escalate(stale))

    sos = monitor.get_active("user-a")
    assert sos.last_heartbeat_at == heartbeat_at
    assert sos.help_requested_at == heartbeat_at
    assert sos.contacts_notified == ["user-a-contact-0"]


def test_escalation_does_not_touch_a_session_resolved_mid_sweep(monitor, database, clock, add_user):
    add_user("user-a", contacts=("Ada",))
    monitor.activate("user-a")
    clock.advance(minutes=3)
    stale = monitor.get_active("user-a")
    monitor.resolve("user-a")

    asyncio.run(monitor.escalate(stale))

    with database.session() as session:
        sos = session.get(SOSSession, stale.id)
    assert sos.status == "resolved"
    assert sos.help_requested_at is None
    assert sos.contacts_notified == []
    assert monitor.get_active("user-a") is None

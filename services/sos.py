from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from db.database import Database
from db.models import EmergencyContact, SOSSession, UserProfile, utc_now
from services.facilities import FacilityFinder
from services.notifications import AlertNotifier, SOSAlert
from services.schemas import EscalationReport, Facility, NotificationOutcome


logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_THRESHOLD = timedelta(minutes=2)


class SOSMonitor:
    """
    Per-user emergency sessions: inactive -> active -> (escalated) -> resolved.

    ``sweep`` is driven by an external timer. A session whose last heartbeat is
    older than the inactivity threshold is escalated on every sweep until it is
    resolved or a heartbeat arrives.
    """

    def __init__(
        self,
        database: Database,
        facility_finder: FacilityFinder,
        notifier: AlertNotifier,
        inactivity_threshold: timedelta = DEFAULT_INACTIVITY_THRESHOLD,
        facility_radius_m: int = 5000,
        max_facilities: int = 3,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.database = database
        self.facility_finder = facility_finder
        self.notifier = notifier
        self.inactivity_threshold = inactivity_threshold
        self.facility_radius_m = facility_radius_m
        self.max_facilities = max_facilities
        self.clock = clock

    @staticmethod
    def _active(session: Session, user_id: str) -> Optional[SOSSession]:
        return session.exec(
            select(SOSSession)
            .where(SOSSession.user_id == user_id)
            .where(SOSSession.status == "active")
        ).first()

    def get_active(self, user_id: str) -> Optional[SOSSession]:
        with self.database.session() as session:
            return self._active(session, user_id)

    def activate(self, user_id: str) -> SOSSession:
        with self.database.session() as session:
            existing = self._active(session, user_id)
            if existing:
                return existing

            now = self.clock()
            sos = SOSSession(
                user_id=user_id,
                status="active",
                activated_at=now,
                last_heartbeat_at=now,
                contacts_notified=[],
                facilities_notified=[],
            )
            session.add(sos)
            try:
                session.commit()
            except IntegrityError:
                # a concurrent activation won the partial unique index
                session.rollback()
                existing = self._active(session, user_id)
                if existing is None:
                    raise
                return existing

            session.refresh(sos)
            logger.info("SOS activated for user %s (session %s)", user_id, sos.id)
            return sos

    def heartbeat(self, user_id: str) -> bool:
        with self.database.session() as session:
            result = session.execute(
                update(SOSSession)
                .where(SOSSession.user_id == user_id)
                .where(SOSSession.status == "active")
                .values(last_heartbeat_at=self.clock())
            )
            session.commit()
        return result.rowcount > 0

    def resolve(self, user_id: str) -> bool:
        with self.database.session() as session:
            result = session.execute(
                update(SOSSession)
                .where(SOSSession.user_id == user_id)
                .where(SOSSession.status == "active")
                .values(status="resolved", resolved_at=self.clock())
            )
            session.commit()
        resolved = result.rowcount > 0
        if resolved:
            logger.info("SOS resolved for user %s", user_id)
        return resolved

    async def sweep(self) -> list[EscalationReport]:
        cutoff = self.clock() - self.inactivity_threshold
        try:
            with self.database.session() as session:
                inactive = session.exec(
                    select(SOSSession)
                    .where(SOSSession.status == "active")
                    .where(
                        or_(
                            SOSSession.last_heartbeat_at < cutoff,
                            SOSSession.last_heartbeat_at.is_(None),
                        )
                    )
                ).all()
        except Exception:
            logger.exception("SOS sweep could not load active sessions")
            return []

        reports = []
        for sos in inactive:
            try:
                reports.append(await self.escalate(sos))
            except Exception:
                logger.exception("Escalation failed for SOS session %s", sos.id)
        if reports:
            logger.info("SOS sweep escalated %d session(s)", len(reports))
        return reports

    def _load_user(self, user_id: str) -> tuple[Optional[UserProfile], list[EmergencyContact]]:
        with self.database.session() as session:
            user = session.get(UserProfile, user_id)
            contacts = session.exec(
                select(EmergencyContact)
                .where(EmergencyContact.user_id == user_id)
                .order_by(EmergencyContact.created_at, EmergencyContact.id)
            ).all()
        return user, list(contacts)

    async def _find_facilities(self, user: Optional[UserProfile]) -> list[Facility]:
        if user is None or user.latitude is None or user.longitude is None:
            return []
        try:
            candidates = await self.facility_finder.find_nearby(
                user.latitude, user.longitude, self.facility_radius_m
            )
        except Exception:
            logger.exception("Error finding hospitals for SOS of user %s", user.id)
            return []
        return list(candidates)[: self.max_facilities]

    @staticmethod
    async def _dispatch(call: Awaitable[NotificationOutcome], recipient: str, channel: str) -> NotificationOutcome:
        try:
            return await call
        except Exception as exc:
            logger.exception("SOS notification to %s failed", recipient)
            return NotificationOutcome(recipient=recipient, channel=channel, delivered=False, error=str(exc))

    async def escalate(self, sos: SOSSession) -> EscalationReport:
        """Notify the user's emergency contacts and the nearest facilities."""
        help_requested_at = self.clock()
        user, contacts = self._load_user(sos.user_id)
        facilities = await self._find_facilities(user)
        alert = SOSAlert(user, sos.user_id, sos.activated_at, facilities)

        outcomes: list[NotificationOutcome] = []
        contacts_notified: list[str] = []
        for contact in contacts:
            outcomes.append(await self._dispatch(self.notifier.notify_contact(contact, alert), contact.id, "contact"))
            contacts_notified.append(contact.id)

        facilities_notified: list[str] = []
        for facility in facilities:
            facility_id = facility.place_id or facility.name
            outcomes.append(await self._dispatch(self.notifier.notify_facility(facility, alert), facility_id, "facility"))
            facilities_notified.append(facility_id)

        # only escalation-owned columns, so a concurrent heartbeat is not overwritten
        with self.database.session() as session:
            session.execute(
                update(SOSSession)
                .where(SOSSession.id == sos.id)
                .where(SOSSession.status == "active")
                .values(
                    help_requested_at=help_requested_at,
                    contacts_notified=contacts_notified,
                    facilities_notified=facilities_notified,
                )
            )
            session.commit()

        logger.warning(
            "SOS escalated for user %s: %d contact(s), %d facility(ies) notified",
            sos.user_id,
            len(contacts_notified),
            len(facilities_notified),
        )
        return EscalationReport(
            session_id=sos.id,
            user_id=sos.user_id,
            help_requested_at=help_requested_at,
            contacts_notified=contacts_notified,
            facilities_notified=facilities_notified,
            outcomes=outcomes,
        )

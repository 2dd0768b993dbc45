from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from pydantic import SecretStr

from config.alert_html import HTML
from config.settings import Settings
from db.models import EmergencyContact, UserProfile
from services.errors import ConfigurationError
from services.schemas import Facility, NotificationOutcome


logger = logging.getLogger(__name__)


class SOSAlert:
    """What a recipient needs to know about an escalated SOS session."""

    def __init__(
        self,
        user: Optional[UserProfile],
        user_id: str,
        activated_at: datetime,
        facilities: Optional[list[Facility]] = None,
    ):
        self.user_name = (user.name if user and user.name else None) or "A Delphi user"
        self.user_id = user_id
        self.activated_at = activated_at
        self.location = self._describe_location(user)
        self.facilities = facilities or []

    @staticmethod
    def _describe_location(user: Optional[UserProfile]) -> str:
        if user is None or user.latitude is None or user.longitude is None:
            return "Unknown"
        coords = f"{user.latitude:.5f}, {user.longitude:.5f}"
        return f"{user.address} ({coords})" if user.address else coords


class AlertNotifier:
    """
    Best-effort SOS alert dispatch.

    Every call returns a NotificationOutcome; nothing here raises, so one
    failing recipient never stops the others from being tried.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.dev_mode = settings.dev_mode
        self._mailer: Optional[FastMail] = None

    def _get_mailer(self) -> FastMail:
        if self._mailer is None:
            settings = self.settings
            if not settings.mail_from or not settings.mail_username:
                raise ConfigurationError("Mail is not configured. Set MAIL_FROM and MAIL_USERNAME.")
            conf = ConnectionConfig(
                MAIL_USERNAME=settings.mail_username,
                MAIL_PASSWORD=SecretStr(settings.mail_password),
                MAIL_FROM=settings.mail_from,
                MAIL_PORT=settings.mail_port,
                MAIL_SERVER=settings.mail_server,
                MAIL_FROM_NAME=settings.mail_from_name,
                MAIL_STARTTLS=True,
                MAIL_SSL_TLS=False,
                USE_CREDENTIALS=True,
                VALIDATE_CERTS=True,
            )
            self._mailer = FastMail(conf)
        return self._mailer

    def _render(self, contact: EmergencyContact, alert: SOSAlert) -> str:
        facilities = ", ".join(f.name for f in alert.facilities) or "None yet"
        return HTML.format(
            contact_name=contact.name or "N/A",
            user_name=alert.user_name,
            activated_at=alert.activated_at.strftime("%Y-%m-%d %H:%M UTC"),
            relationship=contact.relationship or "emergency contact",
            location=alert.location,
            facilities=facilities,
        )

    async def notify_contact(self, contact: EmergencyContact, alert: SOSAlert) -> NotificationOutcome:
        recipient = contact.id

        if self.dev_mode:
            logger.info("DEV MODE: SOS alert for user %s to contact %s (not sent)", alert.user_id, contact.name)
            return NotificationOutcome(recipient=recipient, channel="log", delivered=True)

        if not contact.email:
            # TODO: dispatch SMS to contact.phone once an SMS gateway is configured
            logger.warning("Contact %s has no email address; SOS alert not delivered", contact.name)
            return NotificationOutcome(
                recipient=recipient, channel="sms", delivered=False, error="No SMS gateway configured"
            )

        try:
            mailer = self._get_mailer()
            message = MessageSchema(
                subject=f"EMERGENCY: SOS alert from {alert.user_name}",
                recipients=[contact.email],
                body=self._render(contact, alert),
                subtype=MessageType.html,
            )
            await mailer.send_message(message)
        except Exception as exc:
            logger.error("Error sending SOS alert to contact %s: %s", contact.name, exc)
            return NotificationOutcome(recipient=recipient, channel="email", delivered=False, error=str(exc))

        logger.info("SOS alert emailed to contact %s", contact.name)
        return NotificationOutcome(recipient=recipient, channel="email", delivered=True)

    async def notify_facility(self, facility: Facility, alert: SOSAlert) -> NotificationOutcome:
        recipient = facility.place_id or facility.name

        if self.dev_mode:
            logger.info("DEV MODE: SOS alert for user %s to facility %s (not sent)", alert.user_id, facility.name)
            return NotificationOutcome(recipient=recipient, channel="log", delivered=True)

        logger.warning("No dispatch channel for facility %s; SOS alert logged only", facility.name)
        return NotificationOutcome(
            recipient=recipient, channel="log", delivered=False, error="No facility dispatch channel"
        )

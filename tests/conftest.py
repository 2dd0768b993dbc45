from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from config.settings import Settings  # noqa: E402
from db.database import Database  # noqa: E402
from db.models import EmergencyContact, UserProfile  # noqa: E402
from services.errors import ConfigurationError  # noqa: E402
from services.ipfs import IPFSStore  # noqa: E402
from services.records import VerificationRecords  # noqa: E402
from services.registry import RegistryClient  # noqa: E402
from services.schemas import DrugRecord, Facility, NotificationOutcome  # noqa: E402
from services.sos import SOSMonitor  # noqa: E402
from services.verification import DrugVerifier  # noqa: E402


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubIPFSStore(IPFSStore):
    """IPFSStore with the gateway and Pinata calls replaced by a dict."""

    def __init__(self, settings: Settings, database: Database):
        super().__init__(settings, database)
        self.documents: dict[str, DrugRecord] = {}
        self.fetched: list[str] = []

    async def fetch(self, cid: str) -> Optional[DrugRecord]:
        self.fetched.append(cid)
        return self.documents.get(cid)

    async def pin(self, document) -> str:
        if not self.configured:
            raise ConfigurationError("IPFS is not configured")
        cid = f"bafy-{document.nafdac_code}"
        self.documents[cid] = document.to_record()
        return cid


class FakeOCR:
    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self.text = text
        self.error = error

    async def extract_text(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> Optional[str]:
        if self.error:
            raise self.error
        return self.text


class FakeFacilityFinder:
    def __init__(self, facilities: Optional[list[Facility]] = None, error: Optional[Exception] = None):
        self.facilities = facilities or []
        self.error = error
        self.calls: list[tuple[float, float, int]] = []

    async def find_nearby(self, lat: float, lng: float, radius: int = 5000) -> list[Facility]:
        self.calls.append((lat, lng, radius))
        if self.error:
            raise self.error
        return self.facilities


class RecordingNotifier:
    def __init__(self, failing_recipients: tuple[str, ...] = ()):
        self.failing_recipients = failing_recipients
        self.contacts: list[str] = []
        self.facilities: list[str] = []

    async def notify_contact(self, contact, alert) -> NotificationOutcome:
        self.contacts.append(contact.name)
        if contact.name in self.failing_recipients:
            raise RuntimeError("SMTP connection refused")
        return NotificationOutcome(recipient=contact.id, channel="email", delivered=True)

    async def notify_facility(self, facility, alert) -> NotificationOutcome:
        self.facilities.append(facility.name)
        return NotificationOutcome(recipient=facility.place_id or facility.name, channel="log", delivered=True)


class FakeAssistant:
    def __init__(self, reply: str = "Rest, drink fluids and see a doctor if the fever lasts.", error: Optional[Exception] = None):
        self.reply_text = reply
        self.error = error
        self.histories: list[list[dict]] = []

    async def reply(self, history: list[dict]) -> str:
        self.histories.append([dict(turn) for turn in history])
        if self.error:
            raise self.error
        return self.reply_text


def make_facility(name: str, distance: float, place_id: Optional[str] = None) -> Facility:
    return Facility(name=name, address="Lagos", lat=6.5, lng=3.4, distance=distance, place_id=place_id)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        dev_mode=True,
        log_level="WARNING",
        adapter_timeout_seconds=1.0,
        pinata_api_key="test-key",
        pinata_secret_key="test-secret",
        admin_user_ids=["admin-1"],
    )


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def records(database) -> VerificationRecords:
    return VerificationRecords(database)


@pytest.fixture
def ipfs(settings, database) -> StubIPFSStore:
    return StubIPFSStore(settings, database)


@pytest.fixture
def ocr() -> FakeOCR:
    return FakeOCR()


@pytest.fixture
def verifier(settings, ipfs, records, ocr) -> DrugVerifier:
    return DrugVerifier(RegistryClient(settings), ipfs, records, ocr, timeout=settings.adapter_timeout_seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def finder() -> FakeFacilityFinder:
    return FakeFacilityFinder()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def monitor(database, finder, notifier, clock) -> SOSMonitor:
    return SOSMonitor(database, finder, notifier, inactivity_threshold=timedelta(minutes=2), clock=clock)


@pytest.fixture
def add_user(database):
    def _add(user_id: str, contacts: tuple[str, ...] = (), lat: float | None = None, lng: float | None = None):
        with database.session() as session:
            session.add(UserProfile(id=user_id, name=f"User {user_id}", latitude=lat, longitude=lng))
            for index, name in enumerate(contacts):
                session.add(
                    EmergencyContact(
                        id=f"{user_id}-contact-{index}",
                        user_id=user_id,
                        name=name,
                        phone=f"+23480000000{index}",
                        relationship="family",
                    )
                )
            session.commit()

    return _add


@pytest.fixture
def assistant() -> FakeAssistant:
    return FakeAssistant()


@pytest.fixture
def app(settings, ocr, finder, notifier, assistant):
    from main import create_app

    application = create_app(settings)
    # keep the tests off the network
    application.state.verifier.ipfs = StubIPFSStore(settings, application.state.database)
    application.state.verifier.ocr = ocr
    application.state.facility_finder = finder
    application.state.sos_monitor.facility_finder = finder
    application.state.sos_monitor.notifier = notifier
    application.state.diagnosis_assistant = assistant
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    def _make(user_id: str) -> dict[str, str]:
        return {"X-User-Id": user_id}

    return _make

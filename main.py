# local imports
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# external imports
from api import admin, chat, hospitals, profile, register, sos, verify
from config.logging_config import setup_logging
from config.settings import Settings, get_settings
from db.database import Database
from services.diagnosis import DiagnosisAssistant
from services.facilities import FacilityFinder
from services.ipfs import IPFSStore
from services.notifications import AlertNotifier
from services.ocr import GeminiOCR
from services.records import VerificationRecords
from services.registry import RegistryClient
from services.sos import SOSMonitor
from services.verification import DrugVerifier


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.database.init_db()
    logger.info("%s started (%s)", app.state.settings.app_name, app.state.settings.environment)
    yield
    app.state.database.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description="""
        **Delphi Health** verifies medications and watches over emergency SOS sessions.

        ## Features

        * **NAFDAC Verification** - Resolves a drug by NAFDAC number, name or package photo
        * **Multi-source Resolution** - Drug registry API, then IPFS, then verified history
        * **Drug Registration** - Admins pin authoritative records to IPFS
        * **Emergency SOS** - Escalates to emergency contacts and nearby hospitals on inactivity
        * **Hospital Lookup** - Nearby hospitals from Google Places
        * **Symptom Chat** - Preliminary health guidance from Gemini
        * **Administration** - User roles and platform statistics
        """,
        version="1.0.0",
        contact={
            "name": "Delphi Health Team",
        },
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,  # Must be False when allow_origins=["*"]
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # one database (and connection pool) per process, shared by every service
    database = Database(settings.database_url)
    records = VerificationRecords(database)
    facility_finder = FacilityFinder(settings)

    app.state.settings = settings
    app.state.database = database
    app.state.records = records
    app.state.facility_finder = facility_finder
    app.state.verifier = DrugVerifier(
        registry=RegistryClient(settings),
        ipfs=IPFSStore(settings, database),
        records=records,
        ocr=GeminiOCR(settings),
        timeout=settings.adapter_timeout_seconds,
    )
    app.state.diagnosis_assistant = DiagnosisAssistant(settings)
    app.state.sos_monitor = SOSMonitor(
        database,
        facility_finder,
        AlertNotifier(settings),
        inactivity_threshold=timedelta(seconds=settings.sos_inactivity_seconds),
        facility_radius_m=settings.sos_facility_radius_m,
        max_facilities=settings.sos_max_facilities,
    )

    app.include_router(verify.router)
    app.include_router(register.router)
    app.include_router(sos.router)
    app.include_router(hospitals.router)
    app.include_router(profile.router)
    app.include_router(chat.router)
    app.include_router(admin.router)

    @app.get("/health", tags=["health"])
    def health_check() -> dict:
        return {"status": "healthy"}

    return app


app = create_app()

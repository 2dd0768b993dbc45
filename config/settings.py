from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env", override=False)

SQLITE_DATABASE_NAME = "delphi_health.db"
SQLITE_DATABASE_URL = f"sqlite:///{SQLITE_DATABASE_NAME}"


TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _as_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"Expected boolean value, got: {value!r}")


def _as_int(value: str | None, *, default: int, min_value: int | None = None) -> int:
    if value is None or not value.strip():
        parsed = default
    else:
        try:
            parsed = int(value.strip())
        except ValueError as exc:
            raise ValueError(f"Expected integer value, got: {value!r}") from exc

    if min_value is not None and parsed < min_value:
        raise ValueError(f"Integer value {parsed} is less than allowed minimum {min_value}.")
    return parsed


def _as_float(value: str | None, *, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise ValueError(f"Expected numeric value, got: {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"Expected a positive value, got: {parsed}")
    return parsed


def _as_list(value: str | None, *, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _clean(value: str | None) -> str:
    return (value or "").strip()


@dataclass(frozen=True)
class Settings:
    app_name: str = "Delphi Health API"
    environment: str = "development"
    dev_mode: bool = True
    log_level: str = "INFO"

    database_url: str = SQLITE_DATABASE_URL

    google_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    google_maps_api_key: str = ""

    emdex_api_url: str = ""
    emdex_api_key: str = ""

    pinata_api_key: str = ""
    pinata_secret_key: str = ""
    pinata_api_url: str = "https://api.pinata.cloud/pinning/pinFileToIPFS"
    ipfs_gateway: str = "https://gateway.pinata.cloud/ipfs"

    adapter_timeout_seconds: float = 10.0
    sos_inactivity_seconds: int = 120
    sos_facility_radius_m: int = 5000
    sos_max_facilities: int = 3

    mail_server: str = "smtp.gmail.com"
    mail_port: int = 587
    mail_username: str = ""
    mail_password: str = ""
    mail_from: str = ""
    mail_from_name: str = "Delphi SOS"

    admin_user_ids: list[str] = field(default_factory=list)
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    environment = _clean(os.getenv("APP_ENV")).lower() or "development"
    database_url = _clean(os.getenv("DATABASE_URL")) or _clean(os.getenv("RENDER_DATABASE_URL"))

    return Settings(
        app_name=_clean(os.getenv("APP_NAME")) or "Delphi Health API",
        environment=environment,
        dev_mode=_as_bool(os.getenv("DEV_MODE"), default=environment != "production"),
        log_level=_clean(os.getenv("LOG_LEVEL")).upper() or "INFO",
        database_url=database_url or SQLITE_DATABASE_URL,
        google_api_key=_clean(os.getenv("GOOGLE_API_KEY")),
        gemini_model=_clean(os.getenv("GEMINI_MODEL")) or "gemini-2.5-flash",
        google_maps_api_key=_clean(os.getenv("GOOGLE_MAPS_API_KEY")),
        emdex_api_url=_clean(os.getenv("EMDEX_API_URL")).rstrip("/"),
        emdex_api_key=_clean(os.getenv("EMDEX_API_KEY")),
        pinata_api_key=_clean(os.getenv("PINATA_API_KEY")),
        pinata_secret_key=_clean(os.getenv("PINATA_SECRET_KEY")),
        pinata_api_url=_clean(os.getenv("PINATA_API_URL"))
        or "https://api.pinata.cloud/pinning/pinFileToIPFS",
        ipfs_gateway=(_clean(os.getenv("IPFS_GATEWAY")) or "https://gateway.pinata.cloud/ipfs").rstrip("/"),
        adapter_timeout_seconds=_as_float(os.getenv("ADAPTER_TIMEOUT_SECONDS"), default=10.0),
        sos_inactivity_seconds=_as_int(os.getenv("SOS_INACTIVITY_SECONDS"), default=120, min_value=1),
        sos_facility_radius_m=_as_int(os.getenv("SOS_FACILITY_RADIUS_M"), default=5000, min_value=1),
        sos_max_facilities=_as_int(os.getenv("SOS_MAX_FACILITIES"), default=3, min_value=0),
        mail_server=_clean(os.getenv("MAIL_SERVER")) or "smtp.gmail.com",
        mail_port=_as_int(os.getenv("MAIL_PORT"), default=587, min_value=1),
        mail_username=_clean(os.getenv("MAIL_USERNAME")) or _clean(os.getenv("MAIL_EMAIL")),
        mail_password=_clean(os.getenv("MAIL_PASSWORD")),
        mail_from=_clean(os.getenv("MAIL_FROM")) or _clean(os.getenv("MAIL_EMAIL")),
        mail_from_name=_clean(os.getenv("MAIL_FROM_NAME")) or "Delphi SOS",
        admin_user_ids=_as_list(os.getenv("ADMIN_USER_IDS"), default=[]),
        cors_origins=_as_list(os.getenv("CORS_ORIGINS"), default=["*"]),
    )

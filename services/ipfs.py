from __future__ import annotations

import json
import logging
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import select

from config.settings import Settings
from db.database import Database
from db.models import IPFSIndexEntry
from services.errors import AdapterFailure, ConfigurationError
from services.schemas import DrugRecord, PinnedDrugDocument


logger = logging.getLogger(__name__)

PLACEHOLDER_KEYS = {"your_pinata_api_key", "your_pinata_secret_key"}


class IPFSStore:
    """
    Drug records pinned to IPFS through Pinata.

    IPFS cannot be searched, so every pinned record is indexed locally by its
    NAFDAC code; lookups without an index entry never touch the network.
    """

    def __init__(self, settings: Settings, database: Database, timeout: float = 15.0):
        self.api_key = settings.pinata_api_key
        self.secret_key = settings.pinata_secret_key
        self.pin_url = settings.pinata_api_url
        self.gateway = settings.ipfs_gateway
        self.database = database
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(
            self.api_key
            and self.secret_key
            and self.api_key not in PLACEHOLDER_KEYS
            and self.secret_key not in PLACEHOLDER_KEYS
        )

    def latest_cid(self, nafdac_code: str) -> Optional[str]:
        with self.database.session() as session:
            entry = session.exec(
                select(IPFSIndexEntry)
                .where(IPFSIndexEntry.nafdac_code == nafdac_code)
                .order_by(IPFSIndexEntry.created_at.desc(), IPFSIndexEntry.id.desc())
            ).first()
        return entry.ipfs_cid if entry else None

    async def fetch(self, cid: str) -> Optional[DrugRecord]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.gateway}/{cid}")

        if response.status_code >= 400:
            logger.warning("IPFS gateway returned HTTP %s for %s", response.status_code, cid)
            return None

        try:
            document = PinnedDrugDocument.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise AdapterFailure(f"IPFS document {cid} is not a drug record") from exc
        return document.to_record()

    async def lookup(self, nafdac_code: str) -> Optional[tuple[DrugRecord, str]]:
        if not self.configured:
            return None

        cid = self.latest_cid(nafdac_code)
        if cid is None:
            return None

        record = await self.fetch(cid)
        if record is None:
            return None
        return record, cid

    async def pin(self, document: PinnedDrugDocument) -> str:
        if not self.configured:
            raise ConfigurationError(
                "IPFS is not configured. Please set PINATA_API_KEY and PINATA_SECRET_KEY"
            )

        headers = {
            "pinata_api_key": self.api_key,
            "pinata_secret_api_key": self.secret_key,
        }
        metadata = {
            "name": f"Drug-{document.nafdac_code}",
            "keyvalues": {"nafdacCode": document.nafdac_code, "drugName": document.name},
        }
        files = {
            "file": (
                f"{document.nafdac_code}.json",
                document.model_dump_json().encode("utf-8"),
                "application/json",
            )
        }
        data = {
            "pinataMetadata": json.dumps(metadata),
            "pinataOptions": json.dumps({"cidVersion": 1}),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.pin_url, headers=headers, files=files, data=data)
        except httpx.HTTPError as exc:
            raise AdapterFailure(f"Failed to reach Pinata: {exc}") from exc

        if response.status_code >= 400:
            raise AdapterFailure(f"Pinata upload failed: {response.text}")

        cid = response.json().get("IpfsHash")
        if not cid:
            raise AdapterFailure("Pinata response did not include a CID")
        return cid

    def index(self, nafdac_code: str, cid: str, registered_by: Optional[str] = None) -> IPFSIndexEntry:
        entry = IPFSIndexEntry(nafdac_code=nafdac_code, ipfs_cid=cid, registered_by=registered_by)
        with self.database.session() as session:
            session.add(entry)
            session.commit()
            session.refresh(entry)
        return entry

from __future__ import annotations

import logging
from typing import Optional

import httpx

from config.settings import Settings
from services.errors import AdapterFailure
from services.schemas import DrugRecord


logger = logging.getLogger(__name__)

# Development catalogue used until EMDEX credentials are configured.
DEVELOPMENT_CATALOGUE: dict[str, DrugRecord] = {
    "04-1234": DrugRecord(
        name="Paracetamol 500mg",
        manufacturer="Emzor Pharmaceuticals",
        status="verified",
        expiry_date="2030-12-31",
        batch_number="BATCH-2024-001",
    ),
    "05-5678": DrugRecord(
        name="Amoxicillin 250mg",
        manufacturer="Fidson Healthcare",
        status="verified",
        expiry_date="2024-06-30",
        batch_number="BATCH-2023-045",
    ),
}

# Name fragments the text search recognises, mapped to catalogue codes.
KNOWN_TERMS: dict[str, str] = {
    "paracetamol": "04-1234",
    "amoxicillin": "05-5678",
}


class RegistryClient:
    """Authoritative drug registry (EMDEX) lookups by NAFDAC code."""

    def __init__(self, settings: Settings, timeout: float = 15.0):
        self.base_url = settings.emdex_api_url
        self.api_key = settings.emdex_api_key
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def lookup(self, nafdac_code: str) -> Optional[DrugRecord]:
        if not self.configured:
            return DEVELOPMENT_CATALOGUE.get(nafdac_code)

        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.base_url}/verify/{nafdac_code}", headers=headers)

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise AdapterFailure(f"EMDEX returned HTTP {response.status_code} for {nafdac_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise AdapterFailure("EMDEX returned a non-JSON body") from exc

        if not data or not data.get("name"):
            return None

        return DrugRecord(
            name=data.get("name"),
            manufacturer=data.get("manufacturer"),
            status=data.get("status"),
            expiry_date=data.get("expiryDate") or data.get("expiry_date"),
            batch_number=data.get("batchNumber") or data.get("batch_number"),
        )

    def search_by_name(self, text: str) -> Optional[DrugRecord]:
        """Substring match of free text against the known product names."""
        lowered = text.lower()
        for term, code in KNOWN_TERMS.items():
            if term in lowered:
                logger.info("Text search matched known term %r", term)
                return DEVELOPMENT_CATALOGUE[code]
        return None

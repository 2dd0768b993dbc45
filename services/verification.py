from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Optional

from db.models import IPFSIndexEntry
from services.errors import ValidationError
from services.ipfs import IPFSStore
from services.ocr import GeminiOCR
from services.records import VerificationRecords
from services.registry import RegistryClient
from services.schemas import (
    DrugRecord,
    PinnedDrugDocument,
    VerificationResult,
    unverified_placeholder,
)


logger = logging.getLogger(__name__)

# NAFDAC registration number: two digits, a hyphen, four digits (e.g. 04-1234)
NAFDAC_CODE_RE = re.compile(r"\d{2}-\d{4}")
NAFDAC_CODE_WORD_RE = re.compile(r"\b\d{2}-\d{4}\b")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class DrugVerifier:
    """
    Resolves a NAFDAC code against progressively less authoritative sources.

    Order: drug registry API, IPFS (via the local CID index), local history of
    verified lookups, and finally an ``unverified`` placeholder. The first hit
    wins. A source that raises or exceeds ``timeout`` counts as a miss.
    """

    def __init__(
        self,
        registry: RegistryClient,
        ipfs: IPFSStore,
        records: VerificationRecords,
        ocr: GeminiOCR,
        timeout: float = 10.0,
    ):
        self.registry = registry
        self.ipfs = ipfs
        self.records = records
        self.ocr = ocr
        self.timeout = timeout

    async def _attempt(self, source: str, call: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s lookup timed out after %.1fs", source, self.timeout)
        except Exception:
            logger.exception("%s lookup failed", source)
        return None

    async def verify_by_code(self, nafdac_code: str) -> VerificationResult:
        code = normalize_code(nafdac_code)

        # Step 1: drug registry (EMDEX)
        record = await self._attempt("Registry", self.registry.lookup(code))
        if record:
            return VerificationResult(drug_info=record, source="external_api")

        # Step 2: IPFS
        pinned = await self._attempt("IPFS", self.ipfs.lookup(code))
        if pinned:
            record, cid = pinned
            return VerificationResult(drug_info=record, source="ipfs", ipfs_cid=cid)

        # Step 3: previously verified lookups
        record = await self._attempt("Database", self.records.latest_verified(code))
        if record:
            return VerificationResult(drug_info=record, source="database")

        logger.info("No source knows NAFDAC code %s", code)
        return VerificationResult(drug_info=unverified_placeholder(f"Drug {code}"), source="unknown")

    async def verify_by_text(self, text: str) -> VerificationResult:
        match = NAFDAC_CODE_RE.search(text)
        if match:
            return await self.verify_by_code(match.group(0))

        # TODO: query the EMDEX name search once the paid API is available
        record = self.registry.search_by_name(text)
        if record is None:
            record = unverified_placeholder(text)
        return VerificationResult(drug_info=record, source="database")

    async def verify_by_image(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> VerificationResult:
        try:
            extracted_text = await self.ocr.extract_text(image_bytes, mime_type)
            if not extracted_text:
                return VerificationResult(drug_info=unverified_placeholder("Unknown Drug"), source="unknown")

            match = NAFDAC_CODE_WORD_RE.search(extracted_text)
            if match:
                nafdac_code = match.group(0)
                logger.info("Extracted NAFDAC code from image: %s", nafdac_code)
                result = await self.verify_by_code(nafdac_code)
                return result.model_copy(update={"extracted_code": nafdac_code})

            logger.info("No NAFDAC code found in image, attempting text search")
            return await self.verify_by_text(extracted_text)
        except Exception:
            logger.exception("Image verification error")
            return VerificationResult(drug_info=unverified_placeholder("Unknown Drug"), source="unknown")

    async def register(
        self,
        nafdac_code: str,
        drug_info: DrugRecord,
        registered_by: Optional[str] = None,
    ) -> IPFSIndexEntry:
        """Pin a drug record to IPFS and index it. Admin only."""
        code = normalize_code(nafdac_code)
        if not code:
            raise ValidationError("NAFDAC code is required")
        if not drug_info.name or not drug_info.manufacturer:
            raise ValidationError("Drug name and manufacturer are required")

        document = PinnedDrugDocument(
            nafdac_code=code,
            name=drug_info.name.strip(),
            manufacturer=drug_info.manufacturer.strip(),
            status=drug_info.status or "unverified",
            expiry_date=drug_info.expiry_date or date.today().isoformat(),
            batch_number=drug_info.batch_number or f"BATCH-{code}",
            registered_at=datetime.now(timezone.utc),
            registered_by=registered_by,
        )

        cid = await self.ipfs.pin(document)
        entry = self.ipfs.index(code, cid, registered_by)
        logger.info("Registered NAFDAC code %s on IPFS as %s", code, cid)
        return entry

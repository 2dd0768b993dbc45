from __future__ import annotations

import asyncio
from typing import Optional

from sqlmodel import func, select

from db.database import Database
from db.models import DrugVerificationRecord
from services.schemas import DrugRecord, Verdict, VerificationResult


class VerificationRecords:
    """Local history of verification requests, also the last-resort source."""

    def __init__(self, database: Database):
        self.database = database

    def _latest_verified_row(self, nafdac_code: str) -> Optional[DrugVerificationRecord]:
        with self.database.session() as session:
            return session.exec(
                select(DrugVerificationRecord)
                .where(DrugVerificationRecord.nafdac_code == nafdac_code)
                .where(DrugVerificationRecord.result == "verified")
                .where(DrugVerificationRecord.drug_name.is_not(None))
                .where(DrugVerificationRecord.drug_name != "")
                .order_by(DrugVerificationRecord.created_at.desc())
            ).first()

    async def latest_verified(self, nafdac_code: str) -> Optional[DrugRecord]:
        # runs off the event loop so the chain timeout also bounds this step
        row = await asyncio.to_thread(self._latest_verified_row, nafdac_code)
        if row is None:
            return None

        return DrugRecord(
            name=row.drug_name,
            manufacturer=row.manufacturer,
            status=row.status,
            expiry_date=row.expiry_date,
            batch_number=row.batch_number,
        )

    def save(
        self,
        user_id: str,
        method: str,
        nafdac_code: Optional[str],
        result: VerificationResult,
        verdict: Verdict,
    ) -> DrugVerificationRecord:
        info = result.drug_info
        record = DrugVerificationRecord(
            user_id=user_id,
            verification_method=method,
            nafdac_code=nafdac_code,
            drug_name=info.name,
            manufacturer=info.manufacturer,
            status=info.status,
            expiry_date=info.expiry_date,
            batch_number=info.batch_number,
            result=verdict,
            source=result.source,
            ipfs_cid=result.ipfs_cid,
        )
        with self.database.session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        return record

    def history(self, user_id: str, limit: int = 50, skip: int = 0) -> tuple[list[DrugVerificationRecord], int]:
        with self.database.session() as session:
            rows = session.exec(
                select(DrugVerificationRecord)
                .where(DrugVerificationRecord.user_id == user_id)
                .order_by(DrugVerificationRecord.created_at.desc())
                .offset(skip)
                .limit(limit)
            ).all()
            total = session.exec(
                select(func.count()).select_from(DrugVerificationRecord).where(
                    DrugVerificationRecord.user_id == user_id
                )
            ).one()
        return list(rows), total

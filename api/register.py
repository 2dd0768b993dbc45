# internal imports
import logging
from fastapi import APIRouter, HTTPException, Form, Depends

# external imports
from api.deps import get_verifier, require_admin
from services.errors import AdapterFailure, ConfigurationError, ValidationError
from services.schemas import DrugRecord
from services.verification import DrugVerifier


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/register-drug", tags=["register drug"])

VALID_STATUSES = ["verified", "expired", "unverified"]


@router.post("/")
async def register_drug(
    nafdac_code: str = Form(""),
    drug_name: str = Form(""),
    manufacturer: str = Form(""),
    status: str = Form("verified"),
    expiry_date: str | None = Form(None),
    batch_number: str | None = Form(None),
    admin_id: str = Depends(require_admin),
    verifier: DrugVerifier = Depends(get_verifier),
):
    """
    Register a drug on IPFS and index its CID under the NAFDAC code. Admin only.

    Args:
        nafdac_code: The NAFDAC registration number
        drug_name: Name of the drug (e.g., "Paracetamol 500mg")
        manufacturer: Manufacturer name
        status: One of "verified", "expired" or "unverified"
        expiry_date: ISO expiry date (defaults to today)
        batch_number: Batch number (defaults to BATCH-<code>)
    """

    # 1. Validate status format
    status_lower = status.lower().strip()
    if status_lower not in VALID_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}."
        )

    drug_info = DrugRecord(
        name=drug_name.strip() or None,
        manufacturer=manufacturer.strip() or None,
        status=status_lower,
        expiry_date=(expiry_date or "").strip() or None,
        batch_number=(batch_number or "").strip() or None,
    )

    # 2. Pin to IPFS and index
    try:
        entry = await verifier.register(nafdac_code, drug_info, registered_by=admin_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AdapterFailure as e:
        logger.error("Admin drug registration error: %s", e)
        raise HTTPException(status_code=502, detail=f"Failed to register drug: {str(e)}")

    return {
        "status": "success",
        "message": "Drug registered to IPFS successfully",
        "data": {
            "nafdac_code": entry.nafdac_code,
            "ipfs_cid": entry.ipfs_cid,
            "registered_by": entry.registered_by,
            "created_at": entry.created_at.isoformat(),
        }
    }

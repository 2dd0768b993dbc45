# internal imports
import logging
from fastapi import APIRouter, HTTPException, File, Form, UploadFile, Depends, Query

# external imports
from api.deps import get_current_user_id, get_records, get_verifier
from db.models import DrugVerificationRecord
from services.classifier import classify
from services.records import VerificationRecords
from services.verification import DrugVerifier, normalize_code


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/verify", tags=["verify"])

VALID_METHODS = ["code", "text", "image"]


def serialize_record(record: DrugVerificationRecord) -> dict:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "nafdac_code": record.nafdac_code,
        "verification_method": record.verification_method,
        "drug_info": {
            "name": record.drug_name,
            "manufacturer": record.manufacturer,
            "status": record.status,
            "expiry_date": record.expiry_date,
            "batch_number": record.batch_number,
        },
        "result": record.result,
        "verification_source": record.source,
        "ipfs_cid": record.ipfs_cid,
        "created_at": record.created_at.isoformat(),
    }


@router.post("/")
async def verify_drug(
    method: str = Form(...),
    nafdac_code: str | None = Form(None),
    text: str | None = Form(None),
    image: UploadFile | None = File(None),
    user_id: str = Depends(get_current_user_id),
    verifier: DrugVerifier = Depends(get_verifier),
    records: VerificationRecords = Depends(get_records),
):
    """
    The main verification endpoint. Accepts multipart/form-data.

    Args:
        method: How the drug is identified - "code", "text" or "image"
        nafdac_code: The NAFDAC registration number (method "code")
        text: Free text such as a drug name (method "text")
        image: Photo of the package (method "image")
    """

    # 0. Normalize input
    method_lower = (method or "").lower().strip()
    code = normalize_code(nafdac_code or "")
    search_text = (text or "").strip()

    # 1. Validate method and its payload
    if method_lower not in VALID_METHODS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid verification method '{method}'. Must be one of: {', '.join(VALID_METHODS)}."
        )

    # 2. Run the resolution chain for the chosen method
    if method_lower == "code":
        if not code:
            raise HTTPException(status_code=400, detail="Invalid verification method or missing data")
        result = await verifier.verify_by_code(code)

    elif method_lower == "text":
        if not search_text:
            raise HTTPException(status_code=400, detail="Invalid verification method or missing data")
        result = await verifier.verify_by_text(search_text)

    else:
        if image is None:
            raise HTTPException(status_code=400, detail="Invalid verification method or missing data")
        try:
            image_bytes = await image.read()
        except Exception as e:
            logger.error("File read error: %s", e)
            raise HTTPException(status_code=400, detail="Error reading uploaded files.")
        result = await verifier.verify_by_image(image_bytes, image.content_type or "image/jpeg")

    # 3. Classify and keep an audit record
    verdict = classify(result.drug_info)
    stored_code = code if method_lower == "code" else result.extracted_code

    try:
        record = records.save(user_id, method_lower, stored_code, result, verdict)
    except Exception as e:
        logger.exception("Failed to store verification record")
        raise HTTPException(status_code=500, detail=f"Failed to verify drug: {str(e)}")

    response = serialize_record(record)
    response["extracted_nafdac_code"] = result.extracted_code
    return response


@router.get("/history")
def verification_history(
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    records: VerificationRecords = Depends(get_records),
):
    """The caller's past verifications, newest first."""
    rows, total = records.history(user_id, limit=limit, skip=skip)
    return {
        "verifications": [serialize_record(row) for row in rows],
        "total": total,
        "limit": limit,
        "skip": skip,
    }

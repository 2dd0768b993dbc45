# internal imports
import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel, Field

# external imports
from api.deps import get_current_user_id, get_database, get_facility_finder
from db.database import Database
from db.models import HospitalRecommendation, UserProfile, utc_now
from services.errors import AdapterFailure, ConfigurationError
from services.facilities import FacilityFinder


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/hospitals", tags=["hospitals"])

DEFAULT_RADIUS_M = 10000


class RecommendRequest(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    radius: int = Field(default=DEFAULT_RADIUS_M, gt=0, le=50000)
    symptoms: str = ""


async def _search(finder: FacilityFinder, lat: float, lng: float, radius: int) -> list[dict]:
    try:
        hospitals = await finder.find_nearby(lat, lng, radius)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except AdapterFailure as e:
        logger.error("Hospital recommendation error: %s", e)
        raise HTTPException(status_code=502, detail="Failed to get hospital recommendations")
    return [hospital.model_dump() for hospital in hospitals]


@router.get("/nearby")
async def nearby_hospitals(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: int = Query(DEFAULT_RADIUS_M, gt=0, le=50000),
    user_id: str = Depends(get_current_user_id),
    finder: FacilityFinder = Depends(get_facility_finder),
):
    return {"hospitals": await _search(finder, lat, lng, radius)}


@router.post("/recommend")
async def recommend_hospitals(
    body: RecommendRequest,
    user_id: str = Depends(get_current_user_id),
    finder: FacilityFinder = Depends(get_facility_finder),
    database: Database = Depends(get_database),
):
    """Nearby hospitals for the caller, saved as a recommendation; also remembers the caller's location for SOS."""
    hospitals = await _search(finder, body.lat, body.lng, body.radius)
    recommendation = HospitalRecommendation(
        user_id=user_id,
        symptoms=body.symptoms,
        latitude=body.lat,
        longitude=body.lng,
        recommended_hospitals=hospitals,
    )

    with database.session() as session:
        session.add(recommendation)
        user = session.get(UserProfile, user_id) or UserProfile(id=user_id)
        user.latitude = body.lat
        user.longitude = body.lng
        user.updated_at = utc_now()
        session.add(user)
        session.commit()
        recommendation_id = recommendation.id

    return {"hospitals": hospitals, "symptoms": body.symptoms, "recommendation_id": recommendation_id}

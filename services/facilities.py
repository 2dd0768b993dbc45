from __future__ import annotations

import logging
import math

import httpx

from config.settings import Settings
from services.errors import AdapterFailure, ConfigurationError
from services.schemas import Facility


logger = logging.getLogger(__name__)

PLACES_NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
EARTH_RADIUS_M = 6_371_000


def distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle (haversine) distance in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _development_hospitals(lat: float, lng: float) -> list[Facility]:
    candidates = [
        ("Lagos University Teaching Hospital", "Idi-Araba, Surulere, Lagos", 0.01, 0.01, 4.5, "+234-1-123-4567"),
        ("National Hospital Abuja", "Central Business District, Abuja", 0.02, 0.02, 4.7, "+234-9-123-4567"),
        ("Eko Hospital", "31 Mobolaji Bank Anthony Way, Ikeja, Lagos", -0.01, 0.015, 4.3, "+234-1-234-5678"),
    ]
    hospitals = [
        Facility(
            name=name,
            address=address,
            lat=lat + d_lat,
            lng=lng + d_lng,
            distance=distance_m(lat, lng, lat + d_lat, lng + d_lng),
            rating=rating,
            phone=phone,
        )
        for name, address, d_lat, d_lng, rating, phone in candidates
    ]
    hospitals.sort(key=lambda h: h.distance or 0)
    return hospitals


class FacilityFinder:
    """Nearby hospital search backed by the Google Places API."""

    def __init__(self, settings: Settings, timeout: float = 15.0):
        self.api_key = settings.google_maps_api_key
        self.dev_mode = settings.dev_mode
        self.timeout = timeout

    async def find_nearby(self, lat: float, lng: float, radius: int = 5000) -> list[Facility]:
        """Hospitals within ``radius`` meters, nearest first."""
        if not self.api_key:
            raise ConfigurationError("Google Maps API key not configured")

        params = {
            "location": f"{lat},{lng}",
            "radius": radius,
            "type": "hospital",
            "key": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(PLACES_NEARBY_URL, params=params)
            response.raise_for_status()
            data = response.json()
            if data.get("status") not in ("OK", "ZERO_RESULTS"):
                raise AdapterFailure(f"Google Places API error: {data.get('status')}")
        except (httpx.HTTPError, ValueError, AdapterFailure) as exc:
            if not self.dev_mode:
                raise AdapterFailure(f"Failed to fetch hospitals: {exc}") from exc
            logger.warning("Hospital search failed (%s); using development hospitals", exc)
            return _development_hospitals(lat, lng)

        hospitals = []
        for place in data.get("results", []):
            location = place["geometry"]["location"]
            hospitals.append(
                Facility(
                    name=place.get("name", "Unnamed facility"),
                    address=place.get("vicinity") or place.get("formatted_address") or "",
                    lat=location["lat"],
                    lng=location["lng"],
                    distance=distance_m(lat, lng, location["lat"], location["lng"]),
                    rating=place.get("rating"),
                    place_id=place.get("place_id"),
                )
            )

        hospitals.sort(key=lambda h: h.distance or 0)
        return hospitals

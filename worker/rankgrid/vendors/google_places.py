"""Client utilities for resolving a business name with the Google Places API."""

import logging
from typing import Any, Dict, List, Optional

import requests

from rankgrid.models import Coordinate

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
_BASE_URL = "https://maps.googleapis.com/maps/api/place"

DEFAULT_BIAS_RADIUS_M = 25000
MIN_BIAS_RADIUS_M = 1000
MAX_BIAS_RADIUS_M = 50000


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def _get(url: str, params: Dict[str, Any], action: str) -> Dict[str, Any]:
    response = _SESSION.get(url, params=params, timeout=10)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("%s failed: status=%s, error_message=%s", action, status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload


def geocode(text: str, api_key: str) -> Optional[Coordinate]:
    payload = _get(_GEOCODE_URL, {"address": text, "key": api_key}, "geocode")
    results = payload.get("results") or []
    if not results:
        return None
    location = results[0].get("geometry", {}).get("location", {})
    if location.get("lat") is None or location.get("lng") is None:
        return None
    return Coordinate(latitude=float(location["lat"]), longitude=float(location["lng"]))


def clamp_radius(radius_m: Any) -> int:
    try:
        radius = int(float(radius_m))
    except (TypeError, ValueError):
        radius = DEFAULT_BIAS_RADIUS_M
    if radius <= 0:
        radius = DEFAULT_BIAS_RADIUS_M
    return max(MIN_BIAS_RADIUS_M, min(MAX_BIAS_RADIUS_M, radius))


def find_place(
    name: str,
    api_key: str,
    bias: Optional[Coordinate] = None,
    radius_m: Any = DEFAULT_BIAS_RADIUS_M,
) -> List[Dict[str, Any]]:
    params = {
        "input": name,
        "inputtype": "textquery",
        "fields": "place_id,name,geometry,formatted_address",
        "key": api_key,
    }
    if bias is not None:
        params["locationbias"] = f"circle:{clamp_radius(radius_m)}@{bias.latitude},{bias.longitude}"
    payload = _get(f"{_BASE_URL}/findplacefromtext/json", params, "find_place")
    return payload.get("candidates") or []


def place_details(place_id: str, api_key: str) -> Dict[str, Any]:
    fields = "place_id,name,formatted_address,formatted_phone_number,international_phone_number,website,geometry"
    params = {"place_id": place_id, "key": api_key, "fields": fields}
    payload = _get(f"{_BASE_URL}/details/json", params, "place_details")
    return payload.get("result", {})


def _to_candidate(raw: Dict[str, Any]) -> Dict[str, Any]:
    location = raw.get("geometry", {}).get("location", {})
    return {
        "place_id": raw.get("place_id"),
        "name": raw.get("name"),
        "address": raw.get("formatted_address") or None,
        "lat": location.get("lat"),
        "lng": location.get("lng"),
    }


def resolve_by_name(
    name: str,
    api_key: str,
    location_text: str = "",
    radius_m: Any = DEFAULT_BIAS_RADIUS_M,
    with_details: bool = True,
) -> Dict[str, Any]:
    """Resolve a business name (optionally biased to a geocoded area) to Places candidates.

    The best candidate is enriched with phone and website so it can be used
    directly as the rank tracking target.
    """
    if not name or not name.strip():
        raise ValueError("Business name must be provided.")
    if not api_key:
        raise GooglePlacesError("GOOGLE_PLACES_API_KEY is required")

    bias = None
    if location_text and location_text.strip():
        bias = geocode(location_text.strip(), api_key)
        if bias is None:
            logger.info("Could not geocode location bias %r; searching without it", location_text)

    raw_candidates = find_place(name.strip(), api_key, bias=bias, radius_m=radius_m)
    if not raw_candidates:
        raise GooglePlacesError(f"No candidates for {name!r}")

    candidates = [_to_candidate(raw) for raw in raw_candidates]
    best = dict(candidates[0])
    if with_details and best.get("place_id"):
        details = place_details(best["place_id"], api_key)
        best["phone"] = details.get("international_phone_number") or details.get("formatted_phone_number")
        best["website"] = details.get("website")

    logger.info("Resolved %r to place_id=%s (%d candidates)", name, best.get("place_id"), len(candidates))
    return {"best": best, "candidates": candidates}

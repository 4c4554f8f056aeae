from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from config import Configuration
from errors import LocationNotFound, ProviderError
from models import LocationResult

GEOCODE_PATH = "/maps/api/geocode/json"
NEARBY_PATH = "/maps/api/place/nearbysearch/json"
PHOTO_PATH = "/maps/api/place/photo"

NEARBY_OK_STATUSES = ("OK", "ZERO_RESULTS")


class PlacesClient:
    """Google Geocoding + Places Nearby Search over a shared HTTP session.

    The API key is looked up on every call so rotating ``PLACES_API_KEY``
    takes effect without a restart; no tournament data is held here.
    """

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.places_base_url.rstrip("/")
        self.session = session or requests.Session()

    def _get(self, path: str, params: dict) -> dict:
        key = self.cfg.require_places_key()
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        logger.debug("GET {} params={}", path, {k: v for k, v in params.items()})
        params = {**params, "key": key}
        try:
            resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.places_timeout)
        except requests.Timeout as exc:
            raise ProviderError(f"request timed out after {self.cfg.places_timeout}s: {exc}") from exc
        except requests.RequestException as exc:  # network error
            raise ProviderError(f"request error: {exc}") from exc

        if not resp.ok:
            snippet = resp.text[:300]
            raise ProviderError(f"upstream {resp.status_code} {resp.reason}: {snippet}")

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError("invalid json response") from exc

    def resolve_location(self, query: str) -> LocationResult:
        payload = self._get(GEOCODE_PATH, {"address": query})
        results = payload.get("results") or []
        if payload.get("status") != "OK" or not results:
            logger.info("geocode miss query={!r} status={}", query, payload.get("status"))
            raise LocationNotFound(
                f"Could not find location: {query}. Please try a different location or be more specific."
            )
        first = results[0]
        loc = (first.get("geometry") or {}).get("location") or {}
        if loc.get("lat") is None or loc.get("lng") is None:
            raise LocationNotFound(f"Could not find location: {query}. Please try a different location.")
        return LocationResult(
            lat=float(loc["lat"]),
            lng=float(loc["lng"]),
            formatted_address=str(first.get("formatted_address") or query),
        )

    def find_nearby_cafes(self, lat: float, lng: float, radius_m: Optional[int] = None) -> List[Dict[str, Any]]:
        radius = int(radius_m if radius_m is not None else self.cfg.default_radius_m)
        params = {
            "location": f"{lat},{lng}",
            "radius": radius,
            "type": "cafe",
            "keyword": "coffee",
        }
        payload = self._get(NEARBY_PATH, params)
        status = payload.get("status")
        if status not in NEARBY_OK_STATUSES:
            detail = payload.get("error_message") or "Unknown error"
            raise ProviderError(f"Google Places API error: {status} - {detail}")
        results = payload.get("results") or []
        logger.debug("nearby search lat={} lng={} radius={} results={}", lat, lng, radius, len(results))
        return list(results)

    def photo_url(self, photo_reference: str) -> str:
        key = self.cfg.require_places_key()
        req = requests.Request(
            "GET",
            f"{self.base}{PHOTO_PATH}",
            params={
                "maxwidth": self.cfg.photo_max_width,
                "photo_reference": photo_reference,
                "key": key,
            },
        )
        return req.prepare().url or ""

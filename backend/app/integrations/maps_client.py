"""Distance and duration lookups for trip pricing."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

import httpx

from app.core.config import get_settings
from app.core.errors import DistanceLookupError, OutOfServiceAreaError

logger = logging.getLogger(__name__)

METERS_PER_MILE = Decimal("1609.344")
EARTH_RADIUS_MILES = 3958.8
ROAD_FACTOR = 1.25
FALLBACK_SPEED_MPH = 30.0


@dataclass(frozen=True, slots=True)
class Location:
    """A geocoded trip endpoint."""

    address: str
    lat: float
    lng: float
    is_airport: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "lat": self.lat,
            "lng": self.lng,
            "is_airport": self.is_airport,
        }


@dataclass(frozen=True, slots=True)
class DistanceResult:
    meters: Decimal
    seconds: int

    @property
    def miles(self) -> Decimal:
        return (self.meters / METERS_PER_MILE).quantize(Decimal("0.01"))

    @property
    def minutes(self) -> int:
        return math.ceil(self.seconds / 60)


class DistanceOracle(Protocol):
    async def distance(self, origin: Location, destination: Location) -> DistanceResult:
        ...


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points, in miles."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(a))


class HaversineDistanceOracle:
    """Offline estimate: great-circle distance stretched by a road factor."""

    async def distance(self, origin: Location, destination: Location) -> DistanceResult:
        miles = haversine_miles(origin.lat, origin.lng, destination.lat, destination.lng)
        road_miles = miles * ROAD_FACTOR
        meters = (Decimal(str(road_miles)) * METERS_PER_MILE).quantize(Decimal("1"))
        seconds = int(math.ceil(road_miles / FALLBACK_SPEED_MPH * 3600))
        if road_miles > 0 and meters == 0:
            meters = Decimal("1")
        return DistanceResult(meters=meters, seconds=max(seconds, 60 if road_miles > 0 else 0))


class GoogleMapsDistanceOracle:
    """Distance Matrix API client."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self._transport = transport

    async def distance(self, origin: Location, destination: Location) -> DistanceResult:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "units": "imperial",
            "key": self._api_key,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(self._base_url, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Distance lookup failed: %s", exc)
            raise DistanceLookupError("Distance service unavailable") from exc

        if response.status_code != 200:
            raise DistanceLookupError(
                "Distance service returned an error", status=response.status_code
            )
        try:
            payload = response.json()
            element = payload["rows"][0]["elements"][0]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise DistanceLookupError("Malformed distance response") from exc

        if payload.get("status") != "OK":
            raise DistanceLookupError(
                "Distance service rejected the request", status=payload.get("status")
            )
        element_status = element.get("status")
        if element_status in {"ZERO_RESULTS", "NOT_FOUND"}:
            raise OutOfServiceAreaError(
                "No route between pickup and dropoff", status=element_status
            )
        if element_status != "OK":
            raise DistanceLookupError("Route lookup failed", status=element_status)
        try:
            meters = Decimal(str(element["distance"]["value"]))
            seconds = int(element["duration"]["value"])
        except (KeyError, TypeError, ValueError) as exc:
            raise DistanceLookupError("Malformed distance response") from exc
        return DistanceResult(meters=meters, seconds=seconds)


_fallback_warned = False


def build_distance_oracle() -> DistanceOracle:
    """Return the configured oracle, falling back to haversine without a key."""
    global _fallback_warned
    settings = get_settings()
    if settings.google_maps_api_key:
        return GoogleMapsDistanceOracle(
            settings.google_maps_api_key,
            base_url=settings.maps_distance_url,
            timeout=settings.maps_timeout_seconds,
        )
    if not _fallback_warned:
        logger.warning("GOOGLE_MAPS_API_KEY not set; using haversine distance estimates")
        _fallback_warned = True
    return HaversineDistanceOracle()

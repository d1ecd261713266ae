"""Integration shortcuts."""

from .maps_client import (
    DistanceOracle,
    DistanceResult,
    GoogleMapsDistanceOracle,
    HaversineDistanceOracle,
    Location,
    build_distance_oracle,
    haversine_miles,
)

__all__ = [
    "DistanceOracle",
    "DistanceResult",
    "GoogleMapsDistanceOracle",
    "HaversineDistanceOracle",
    "Location",
    "build_distance_oracle",
    "haversine_miles",
]

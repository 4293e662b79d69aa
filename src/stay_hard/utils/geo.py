"""Great-circle distance and geofence tests."""

import math

from ..models.geo import GeoPoint, Target

EARTH_RADIUS_METERS = 6_371_000.0


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance between two points in meters."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Clamp against float drift for antipodal points
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def within_radius(a: GeoPoint, b: GeoPoint, radius_meters: float) -> bool:
    """True if ``a`` lies within ``radius_meters`` of ``b`` (inclusive)."""
    return distance_meters(a, b) <= radius_meters


def within_target(point: GeoPoint, target: Target) -> bool:
    return within_radius(point, target.location, target.radius_meters)

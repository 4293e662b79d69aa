"""Location value types."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in degrees."""

    lat: float
    lng: float

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Target:
    """Circular geofence around a gym."""

    location: GeoPoint
    radius_meters: float
    name: str = ""

    def with_radius(self, radius_meters: float) -> "Target":
        """Same location with a different radius."""
        return Target(location=self.location, radius_meters=radius_meters, name=self.name)


@dataclass(frozen=True)
class PositionReading:
    """A single fix from a position provider."""

    point: GeoPoint
    accuracy: float | None  # meters
    timestamp: datetime
    source: str = ""

    def age_seconds(self, now: datetime) -> float:
        """Seconds elapsed since the fix was taken."""
        return (now - self.timestamp).total_seconds()

    def to_dict(self) -> dict:
        return {
            "lat": self.point.lat,
            "lng": self.point.lng,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }

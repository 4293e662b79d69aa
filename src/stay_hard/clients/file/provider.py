"""Position provider backed by a location fix file.

A phone companion or GPS logger writes its latest fix as JSON::

    {"lat": 40.7128, "lng": -74.006, "accuracy": 8.0,
     "timestamp": "2026-10-18T18:05:00+00:00"}

``latitude``/``longitude`` are accepted as aliases for ``lat``/``lng``.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path

from ...exceptions import PositionCause, PositionUnavailable
from ...models.geo import GeoPoint, PositionReading
from ..base import BasePositionProvider


class FilePositionProvider(BasePositionProvider):
    """Reads the most recent fix from a JSON file."""

    def __init__(self, path: Path, max_age_seconds: float = 600.0):
        self.path = Path(path)
        self.max_age_seconds = max_age_seconds

    @property
    def source_name(self) -> str:
        return "file"

    async def read(self) -> PositionReading:
        if not self.path.exists():
            raise PositionUnavailable(
                PositionCause.UNSUPPORTED, f"No location fix file at {self.path}"
            )

        try:
            text = await asyncio.to_thread(self.path.read_text)
            data = json.loads(text)
        except (OSError, json.JSONDecodeError) as e:
            raise PositionUnavailable(PositionCause.PROVIDER_ERROR, str(e)) from e

        reading = self._parse(data)

        now = datetime.now().astimezone()
        if reading.age_seconds(now) > self.max_age_seconds:
            raise PositionUnavailable(
                PositionCause.PROVIDER_ERROR,
                f"Location fix is stale ({reading.age_seconds(now):.0f}s old)",
            )
        return reading

    def _parse(self, data: dict) -> PositionReading:
        """Convert a fix document to a reading."""
        try:
            lat = float(data.get("lat", data.get("latitude")))
            lng = float(data.get("lng", data.get("longitude")))
            point = GeoPoint(lat, lng)
            timestamp = datetime.now().astimezone()
            if data.get("timestamp"):
                timestamp = datetime.fromisoformat(data["timestamp"])
                if timestamp.tzinfo is None:
                    timestamp = timestamp.astimezone()
        except (AttributeError, TypeError, ValueError) as e:
            raise PositionUnavailable(
                PositionCause.PROVIDER_ERROR, f"Malformed location fix: {e}"
            ) from e

        accuracy = data.get("accuracy")
        return PositionReading(
            point=point,
            accuracy=float(accuracy) if accuracy is not None else None,
            timestamp=timestamp,
            source=self.source_name,
        )

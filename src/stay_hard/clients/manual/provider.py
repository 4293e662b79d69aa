"""Fixed-coordinate position provider."""

from datetime import datetime

from ...models.geo import GeoPoint, PositionReading
from ..base import BasePositionProvider


class StaticPositionProvider(BasePositionProvider):
    """Reports coordinates supplied by the user.

    Used for explicit check-ins from the command line (``--lat/--lng``)
    and for driving the engine without a device.
    """

    def __init__(self, point: GeoPoint, accuracy: float | None = None):
        self.point = point
        self.accuracy = accuracy

    @property
    def source_name(self) -> str:
        return "manual"

    async def read(self) -> PositionReading:
        return PositionReading(
            point=self.point,
            accuracy=self.accuracy,
            timestamp=datetime.now().astimezone(),
            source=self.source_name,
        )

"""Utility functions for stay-hard."""

from .geo import EARTH_RADIUS_METERS, distance_meters, within_radius, within_target

__all__ = [
    "EARTH_RADIUS_METERS",
    "distance_meters",
    "within_radius",
    "within_target",
]

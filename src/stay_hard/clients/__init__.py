"""Position and voice-call clients."""

from .base import BasePositionProvider, PositionProvider
from .file.provider import FilePositionProvider
from .manual.provider import StaticPositionProvider
from .position import PositionSource
from .retell.client import RetellClient

__all__ = [
    "BasePositionProvider",
    "FilePositionProvider",
    "PositionProvider",
    "PositionSource",
    "RetellClient",
    "StaticPositionProvider",
]

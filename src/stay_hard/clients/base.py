"""Base protocol for position providers."""

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from ..models.geo import PositionReading


@runtime_checkable
class PositionProvider(Protocol):
    """Protocol for location providers.

    Providers are allowed to be slow and unreliable. ``read`` may raise
    ``PositionUnavailable``, ``PermissionError`` or ``NotImplementedError``;
    the position source maps everything else to a provider error.
    """

    @property
    def source_name(self) -> str:
        """Return the name of this provider."""
        ...

    async def read(self) -> PositionReading:
        """Take a single position fix."""
        ...


class BasePositionProvider(ABC):
    """Base class for position providers with common functionality."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this provider."""
        pass

    @abstractmethod
    async def read(self) -> PositionReading:
        """Take a single position fix."""
        pass

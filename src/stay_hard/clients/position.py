"""Fallible position source with timeout and short-lived caching."""

import asyncio
from typing import Callable

from loguru import logger

from ..exceptions import PositionCause, PositionUnavailable
from ..models.geo import PositionReading
from ..services.scheduler import Clock
from .base import PositionProvider

ReadingCallback = Callable[[PositionReading], None]
ErrorCallback = Callable[[PositionUnavailable], None]
Unsubscribe = Callable[[], None]


class PositionSource:
    """Wraps a position provider behind a single failure type.

    ``current_position`` is bounded by ``timeout`` seconds and reuses a
    reading younger than ``max_age`` seconds. Nothing here retries; the
    caller owns retry policy.
    """

    def __init__(
        self,
        provider: PositionProvider,
        clock: Clock,
        timeout: float = 10.0,
        max_age: float = 60.0,
    ):
        self.provider = provider
        self.clock = clock
        self.timeout = timeout
        self.max_age = max_age
        self._cached: PositionReading | None = None

    @property
    def cached(self) -> PositionReading | None:
        return self._cached

    def _fresh_cache(self) -> PositionReading | None:
        if self._cached is None:
            return None
        if self._cached.age_seconds(self.clock.now()) > self.max_age:
            return None
        return self._cached

    async def current_position(self, use_cache: bool = True) -> PositionReading:
        """Read the current position once.

        Args:
            use_cache: Reuse a recent reading instead of asking the provider

        Returns:
            The position reading

        Raises:
            PositionUnavailable: On permission denial, unsupported provider,
                timeout, or any provider failure
        """
        if use_cache:
            cached = self._fresh_cache()
            if cached is not None:
                return cached

        try:
            reading = await asyncio.wait_for(self.provider.read(), timeout=self.timeout)
        except PositionUnavailable:
            raise
        except asyncio.TimeoutError as e:
            raise PositionUnavailable(
                PositionCause.TIMEOUT, f"No fix within {self.timeout:g}s"
            ) from e
        except PermissionError as e:
            raise PositionUnavailable(PositionCause.PERMISSION_DENIED, str(e)) from e
        except NotImplementedError as e:
            raise PositionUnavailable(PositionCause.UNSUPPORTED, str(e)) from e
        except Exception as e:
            raise PositionUnavailable(PositionCause.PROVIDER_ERROR, str(e)) from e

        self._cached = reading
        return reading

    def subscribe(
        self,
        on_reading: ReadingCallback,
        on_error: ErrorCallback,
        interval: float = 5.0,
    ) -> Unsubscribe:
        """Stream readings until the returned function is called.

        Each update is an independent provider read; a failure is passed to
        ``on_error`` and the stream carries on.

        Args:
            on_reading: Called with every successful reading
            on_error: Called with every failure
            interval: Seconds between reads

        Returns:
            A function that stops the stream
        """

        async def _watch() -> None:
            while True:
                try:
                    reading = await self.current_position(use_cache=False)
                except PositionUnavailable as e:
                    on_error(e)
                else:
                    on_reading(reading)
                await asyncio.sleep(interval)

        task = asyncio.create_task(_watch(), name=f"watch-{self.provider.source_name}")
        logger.bind(provider=self.provider.source_name).debug("Position subscription started")

        def unsubscribe() -> None:
            if not task.done():
                task.cancel()
                logger.bind(provider=self.provider.source_name).debug(
                    "Position subscription stopped"
                )

        return unsubscribe

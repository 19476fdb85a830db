import asyncio
from typing import Awaitable, Callable

import structlog

from quotabar.engine import UsageEngine
from quotabar.errors import QuotaError
from quotabar.models import StatusPayload

logger = structlog.get_logger()


class Refresher:
    """
    Refresher drives periodic refresh cycles until stop() is called.
    A failed cycle is reported through on_error and the loop keeps
    going; the next cycle is the retry.
    """

    def __init__(
        self,
        engine: "UsageEngine",
        on_payload: "Callable[[StatusPayload], Awaitable[None] | None]",
        interval_seconds: "float" = 30,
        on_error: "Callable[[QuotaError], None] | None" = None,
    ) -> "None":
        self._engine = engine
        self._on_payload = on_payload
        self._on_error = on_error
        self._interval = interval_seconds
        self._stop_event: "asyncio.Event" = asyncio.Event()

    def stop(self) -> "None":
        """
        signals the loop to stop after the current cycle.
        """
        self._stop_event.set()

    async def run_once(self) -> "None":
        try:
            payload = await self._engine.refresh()
        except QuotaError as e:
            logger.error("refresh_failed", error=str(e))
            if self._on_error is not None:
                self._on_error(e)
            return

        result = self._on_payload(payload)
        if asyncio.iscoroutine(result):
            await result

    async def run(self) -> "None":
        while not self._stop_event.is_set():
            logger.debug("refresh_cycle_start")
            await self.run_once()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

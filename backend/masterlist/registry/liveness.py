"""Background sweep that evicts servers which stopped sending heartbeats."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from masterlist.registry.store import RegistryStore

LIVENESS_WINDOW_SECONDS = 30.0
SWEEP_INTERVAL_SECONDS = 5.0

logger = structlog.get_logger()


class LivenessMonitor:
    """Periodically evict records older than the liveness window.

    Call start() on app startup and stop() on shutdown.
    """

    def __init__(
        self,
        store: RegistryStore,
        *,
        liveness_window: float = LIVENESS_WINDOW_SECONDS,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._liveness_window = liveness_window
        self._sweep_interval = sweep_interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self) -> list[str]:
        """Run one eviction pass. Return the evicted server ids."""
        return await self._store.evict(self._liveness_window)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("liveness sweep failed")

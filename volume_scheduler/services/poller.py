"""
Fixed-interval driver for the reconciliation loop.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
import asyncio
import logging
import time

from ..schemas import TickReport
from .reconciler import ReconciliationService

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


class PollingScheduler:
    """
    Runs one tick immediately, then one tick every ``interval`` seconds until
    asked to stop. Ticks execute in a worker thread and are serialized by a
    lock, so a slow tick delays (never overlaps) the next one.
    """

    def __init__(self, service: ReconciliationService, interval: float = 60.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.service = service
        self.interval = interval
        self.state = PollerState.STOPPED
        self.last_tick_at: Optional[str] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._tick_lock: Optional[asyncio.Lock] = None

    @property
    def tick_running(self) -> bool:
        return self._tick_lock is not None and self._tick_lock.locked()

    async def run(self) -> None:
        """Drive ticks until request_stop() is called, then release resources."""
        if self.state is not PollerState.STOPPED:
            raise RuntimeError(f"poller is already {self.state.value}")
        # Created here so they bind to the running loop.
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()
        self.state = PollerState.STARTING
        logger.info("poller.start interval=%.1fs", self.interval)

        try:
            await self.tick()
            if not self._stop_event.is_set():
                self.state = PollerState.RUNNING
            next_due = time.monotonic() + self.interval

            while not self._stop_event.is_set():
                delay = next_due - time.monotonic()
                if delay > 0:
                    try:
                        await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    except asyncio.TimeoutError:
                        pass
                    if self._stop_event.is_set():
                        break

                await self.tick()

                now = time.monotonic()
                next_due += self.interval
                if next_due <= now:
                    skipped = int((now - next_due) // self.interval) + 1
                    logger.warning("poller.overrun skipped_ticks=%s", skipped)
                    next_due += skipped * self.interval
        finally:
            self.state = PollerState.STOPPING
            logger.info("poller.stopping")
            await asyncio.to_thread(self.service.close)
            self.state = PollerState.STOPPED
            logger.info("poller.stopped")

    async def tick(self) -> TickReport:
        """Run one tick, waiting for any tick already in progress."""
        if self._tick_lock is None:
            self._tick_lock = asyncio.Lock()
        async with self._tick_lock:
            report = await asyncio.to_thread(self.service.run_once)
            self.last_tick_at = report.finished_at or report.started_at
            return report

    async def trigger_tick(self) -> Optional[TickReport]:
        """Run an extra tick now; returns None if one is already running."""
        if self.tick_running:
            return None
        return await self.tick()

    def request_stop(self) -> None:
        """
        Stop scheduling new ticks. Safe to call from a signal handler; the
        tick in progress, if any, is allowed to finish.
        """
        if self._stop_event is None or self._stop_event.is_set():
            return
        logger.info("poller.stop_requested")
        if self.state is PollerState.RUNNING:
            self.state = PollerState.STOPPING
        self._stop_event.set()

"""
Background reclamation of links that can no longer be redeemed.
"""

import asyncio
import logging
import time
from typing import Optional

from ..metrics.collector import MetricsCollector
from .engine import LinkEngine


logger = logging.getLogger(__name__)


class ReclamationSweeper:
    """Periodically deletes expired, exhausted and deactivated links."""

    def __init__(self, engine: LinkEngine, interval: float = 60.0,
                 metrics: Optional[MetricsCollector] = None):
        """
        Initialize the sweeper.

        Args:
            engine: Engine whose links namespace is swept
            interval: Seconds between sweeps
            metrics: Optional metrics collector
        """
        self.engine = engine
        self.interval = interval
        self.metrics = metrics
        self._running = False
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweep loop."""
        if self._running:
            logger.warning("Reclamation sweeper already running")
            return

        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Reclamation sweeper started (interval: {self.interval}s)")

    async def stop(self) -> None:
        """Stop the sweep loop and wait for it to exit."""
        if not self._running:
            return

        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        logger.info("Reclamation sweeper stopped")

    async def sweep_once(self) -> int:
        """
        Run one sweep.

        Returns:
            Number of link records removed
        """
        started = time.monotonic()
        removed, remaining = await self.engine.reclaim()
        duration = time.monotonic() - started

        if self.metrics:
            await self.metrics.observe_sweep(duration, remaining)

        if removed:
            logger.info(f"Sweep removed {removed} link(s), {remaining} remaining")
        else:
            logger.debug(f"Sweep found nothing to remove ({remaining} links)")
        return removed

    async def _sweep_loop(self) -> None:
        """Main sweep loop; a failed run is logged and the next one still happens."""
        try:
            while self._running:
                await asyncio.sleep(self.interval)
                try:
                    await self.sweep_once()
                except Exception as e:
                    logger.error(f"Reclamation sweep failed: {e}")
        except asyncio.CancelledError:
            logger.debug("Reclamation sweep loop cancelled")
            raise

"""Periodic log monitor cycles with overlap protection."""

import asyncio
import threading
from typing import Any, Callable, Optional

from intel_service.core import get_logger, get_monitoring_config
from intel_service.services.log_monitor_service import LogMonitorService

logger = get_logger(__name__)

DEFAULT_INTERVAL_MINUTES = 10


class CycleRunner:
    """
    Run the log monitor cycle on a timer and on demand.

    At most one cycle runs at a time: the slot is a lock acquired without
    blocking, so a trigger that arrives while a cycle is running is dropped.
    """

    def __init__(
        self,
        cycle: Optional[Callable[[], Any]] = None,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
    ):
        self._cycle = cycle
        self.interval_minutes = interval_minutes
        self._slot = threading.Lock()
        self._timer_task: Optional[asyncio.Task] = None
        self._triggered: set = set()

    def _get_cycle(self) -> Callable[[], Any]:
        if self._cycle is None:
            self._cycle = LogMonitorService().run
        return self._cycle

    @property
    def is_running(self) -> bool:
        return self._slot.locked()

    async def _run_holding_slot(self) -> Any:
        try:
            return await asyncio.to_thread(self._get_cycle())
        except Exception as e:
            logger.error(f"Log monitor cycle failed: {e}", exc_info=True)
            return None
        finally:
            self._slot.release()

    async def run_once(self) -> Any:
        """
        Run one cycle now and wait for it.

        Returns:
            The cycle result, or None if a cycle was already running or it failed
        """
        if not self._slot.acquire(blocking=False):
            logger.info("Log monitor cycle already running, skipping trigger")
            return None
        return await self._run_holding_slot()

    def try_start(self) -> bool:
        """
        Start a cycle in the background.

        Returns:
            False if a cycle is already running
        """
        if not self._slot.acquire(blocking=False):
            logger.info("Log monitor cycle already running, manual trigger rejected")
            return False
        task = asyncio.get_running_loop().create_task(self._run_holding_slot())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)
        return True

    async def start(self) -> None:
        """Start the periodic timer."""
        if self._timer_task and not self._timer_task.done():
            return
        self._timer_task = asyncio.get_running_loop().create_task(self._timer())
        logger.info(f"Log monitor scheduled every {self.interval_minutes} minutes")

    async def stop(self) -> None:
        """Stop the timer and wait for a triggered cycle to finish."""
        if self._timer_task:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            finally:
                self._timer_task = None
                logger.info("Log monitor schedule stopped")
        if self._triggered:
            await asyncio.gather(*self._triggered, return_exceptions=True)

    async def _timer(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_minutes * 60)
                await self.run_once()
        except asyncio.CancelledError:
            logger.debug("Log monitor timer cancelled")
            raise


# Global runner instance
_cycle_runner: Optional[CycleRunner] = None


def get_cycle_runner() -> CycleRunner:
    """Get global cycle runner instance."""
    global _cycle_runner
    if _cycle_runner is None:
        _cycle_runner = CycleRunner(
            interval_minutes=get_monitoring_config().get(
                "polling_interval_minutes", DEFAULT_INTERVAL_MINUTES
            )
        )
    return _cycle_runner

"""In-process investigation queue with bounded retries."""

import asyncio
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from intel_service.core import get_logger, get_monitoring_config
from intel_service.core.metrics import investigation_queue_jobs
from intel_service.models import AlertContext
from intel_service.services.investigation_service import InvestigationService

logger = get_logger(__name__)

Handler = Callable[[AlertContext, Optional[str]], Any]


@dataclass
class InvestigationJob:
    id: str
    alert: AlertContext
    source: Optional[str] = None
    attempts_made: int = 0


class InvestigationQueue:
    """
    At-least-once queue decoupling webhook receipt from investigation.

    Jobs run the (blocking) handler in a worker thread. A job whose handler
    raises is retried up to `attempts` times in total, waiting
    `backoff_delay * 2 ** (attempt - 1)` seconds between tries.
    """

    def __init__(
        self,
        handler: Optional[Handler] = None,
        concurrency: int = 1,
        attempts: int = 3,
        backoff_delay: float = 2.0,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self._handler = handler
        self.concurrency = max(1, concurrency)
        self.attempts = max(1, attempts)
        self.backoff_delay = backoff_delay
        self._sleep = sleep

        self._queue: "asyncio.Queue[InvestigationJob]" = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._counts: Counter = Counter()

    def _get_handler(self) -> Handler:
        if self._handler is None:
            self._handler = InvestigationService().investigate
        return self._handler

    def _publish_depth(self) -> None:
        investigation_queue_jobs.labels(state="waiting").set(self._queue.qsize())
        investigation_queue_jobs.labels(state="active").set(self._counts["active"])

    @property
    def is_started(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Start the worker tasks."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index)) for index in range(self.concurrency)
        ]
        logger.info(
            f"Investigation queue started (concurrency={self.concurrency}, attempts={self.attempts})"
        )

    async def stop(self) -> None:
        """Cancel the workers. Waiting jobs are dropped."""
        if not self._workers:
            return
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Investigation queue stopped")

    def enqueue(self, alert: AlertContext, source: Optional[str] = None) -> str:
        """
        Queue an alert for investigation.

        Returns:
            Job ID
        """
        job = InvestigationJob(id=uuid.uuid4().hex, alert=alert, source=source)
        self._queue.put_nowait(job)
        self._publish_depth()
        logger.info(f"Queued investigation job {job.id} for alert: {alert.alert_name}")
        return job.id

    async def join(self) -> None:
        """Wait until every queued job has completed or failed."""
        await self._queue.join()

    def get_counts(self) -> Dict[str, int]:
        return {
            "waiting": self._queue.qsize(),
            "active": self._counts["active"],
            "completed": self._counts["completed"],
            "failed": self._counts["failed"],
        }

    async def _worker(self, index: int) -> None:
        try:
            while True:
                job = await self._queue.get()
                self._counts["active"] += 1
                self._publish_depth()
                try:
                    await self._process(job)
                finally:
                    self._counts["active"] -= 1
                    self._queue.task_done()
                    self._publish_depth()
        except asyncio.CancelledError:
            logger.debug(f"Investigation worker {index} cancelled")
            raise

    async def _process(self, job: InvestigationJob) -> None:
        handler = self._get_handler()
        while True:
            job.attempts_made += 1
            try:
                await asyncio.to_thread(handler, job.alert, job.source)
            except Exception as e:
                if job.attempts_made >= self.attempts:
                    self._counts["failed"] += 1
                    logger.error(
                        f"Investigation job {job.id} failed after {job.attempts_made} attempts: {e}",
                        exc_info=True,
                    )
                    return
                delay = self.backoff_delay * 2 ** (job.attempts_made - 1)
                logger.warning(
                    f"Investigation job {job.id} failed (attempt {job.attempts_made}/{self.attempts}): "
                    f"{e}. Retrying in {delay}s..."
                )
                await self._sleep(delay)
                continue

            self._counts["completed"] += 1
            logger.info(f"Investigation job {job.id} completed")
            return


# Global queue instance
_investigation_queue: Optional[InvestigationQueue] = None


def get_investigation_queue() -> InvestigationQueue:
    """Get global investigation queue instance."""
    global _investigation_queue
    if _investigation_queue is None:
        settings = get_monitoring_config().get("queue", {})
        _investigation_queue = InvestigationQueue(
            concurrency=settings.get("concurrency", 1),
            attempts=settings.get("attempts", 3),
            backoff_delay=settings.get("backoff_delay_seconds", 2),
        )
    return _investigation_queue

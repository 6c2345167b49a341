"""Background work: investigation queue and log monitor schedule."""
from intel_service.jobs.queue import InvestigationQueue, get_investigation_queue
from intel_service.jobs.scheduler import CycleRunner, get_cycle_runner

__all__ = ["InvestigationQueue", "get_investigation_queue", "CycleRunner", "get_cycle_runner"]

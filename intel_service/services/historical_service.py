"""Prior occurrences of an alert."""
from typing import Optional
from intel_service.core import get_logger
from intel_service.models import AlertContext, HistoricalContext
from intel_service.repositories.alert_event_repository import AlertEventRepository

logger = get_logger(__name__)

HISTORY_DEPTH = 10


class HistoricalService:
    """Summarize recent alert events with the same name."""

    def __init__(self, repository: Optional[AlertEventRepository] = None):
        self.repository = repository or AlertEventRepository()

    def check_historical_data(self, alert: AlertContext) -> HistoricalContext:
        """
        Build the historical context of an alert.

        Raises:
            DatabaseError: If the history query fails
        """
        logger.info(f"Checking historical data for alert: {alert.alert_name}")
        previous = self.repository.list_by_alert_name(alert.alert_name, limit=HISTORY_DEPTH)

        total = len(previous)
        if total == 0:
            return HistoricalContext()

        # Newest first; an issue counts as open until its record is resolved
        open_issue = next(
            (
                row["github_issue_number"]
                for row in previous
                if row.get("github_issue_number") and not row.get("issue_resolved")
            ),
            None,
        )

        mean_gap = None
        if total > 1:
            times = [row["received_at"] for row in previous]
            gaps = [(newer - older).total_seconds() for newer, older in zip(times, times[1:])]
            mean_gap = sum(gaps) / len(gaps)

        context = HistoricalContext(
            is_recurring=total > 1,
            last_occurrence=previous[0]["received_at"],
            open_github_issue=open_issue,
            total_occurrences=total,
            mean_time_between_occurrences=mean_gap,
        )
        logger.info(
            f"Historical analysis complete: recurring={context.is_recurring}, "
            f"total={total}, open_issue={open_issue}"
        )
        return context

"""Repository layer for data access."""
from intel_service.repositories.alert_event_repository import AlertEventRepository
from intel_service.repositories.checkpoint_repository import CheckpointRepository
from intel_service.repositories.issue_repository import IssueRepository
from intel_service.repositories.known_issue_repository import KnownIssueRepository
from intel_service.repositories.remediation_repository import RemediationRepository

__all__ = [
    "AlertEventRepository",
    "CheckpointRepository",
    "IssueRepository",
    "KnownIssueRepository",
    "RemediationRepository",
]

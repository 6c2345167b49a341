"""Matching of log evidence against the known issue catalog."""
import re
from typing import Dict, List, Optional
from intel_service.core import get_logger, get_known_issue_catalog
from intel_service.models import KnownIssue, LogAnalysis
from intel_service.repositories.known_issue_repository import KnownIssueRepository
from intel_service.rules import first_match

logger = get_logger(__name__)


def matches_pattern(log_analysis: LogAnalysis, pattern: str) -> bool:
    """Case-insensitive regex search over error messages and the error pattern."""
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.error(f"Invalid known issue pattern '{pattern}': {e}")
        return False

    candidates = list(log_analysis.error_messages)
    if log_analysis.error_pattern:
        candidates.append(log_analysis.error_pattern)
    return any(regex.search(text) for text in candidates)


class KnownIssueService:
    """Known issue lookup and seeding."""

    def __init__(self, repository: Optional[KnownIssueRepository] = None):
        self.repository = repository or KnownIssueRepository()

    def list_known_issues(self) -> List[KnownIssue]:
        return [KnownIssue(**row) for row in self.repository.list_all()]

    def match_known_issue(
        self, log_analysis: LogAnalysis, record: bool = True
    ) -> Optional[KnownIssue]:
        """
        Find the first catalog entry whose pattern matches the evidence.

        Args:
            log_analysis: Evidence to match
            record: Bump the entry's occurrence counter on a match

        Returns:
            Matched KnownIssue or None

        Raises:
            DatabaseError: If the catalog cannot be read
        """
        issue = first_match(
            self.list_known_issues(), lambda k: matches_pattern(log_analysis, k.error_pattern)
        )
        if issue is None:
            logger.info("No known issue matched")
            return None

        logger.info(f"Matched known issue {issue.id}: {issue.title}")
        if record and issue.id is not None:
            self.repository.record_match(issue.id)
            issue = issue.model_copy(update={"occurrences": issue.occurrences + 1})
        return issue

    def seed_known_issues(self, catalog: Optional[List[Dict]] = None) -> int:
        """
        Insert catalog entries that are missing (keyed by title).

        Returns:
            Number of entries processed
        """
        catalog = catalog if catalog is not None else get_known_issue_catalog()
        for entry in catalog:
            self.repository.upsert(entry)
        logger.info(f"Seeded {len(catalog)} known issues")
        return len(catalog)

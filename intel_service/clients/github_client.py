"""GitHub REST client for issue creation and comments."""
import os
import requests
from typing import Dict, List, Optional
from intel_service.core import get_logger, TicketingError
from intel_service.clients.http import request_with_retry

logger = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


class GitHubClient:
    """Client for the issues of one GitHub repository."""

    def __init__(
        self,
        token: Optional[str] = None,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        timeout: float = 10,
        api_url: str = GITHUB_API_URL,
    ):
        self.token = token or os.getenv("GITHUB_TOKEN")
        self.owner = owner or os.getenv("GITHUB_OWNER")
        self.repo = repo or os.getenv("GITHUB_REPO")
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.token and self.owner and self.repo)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    @property
    def _issues_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/issues"

    def create_issue(self, title: str, body: str, labels: List[str]) -> Dict:
        """
        Open a new issue.

        Not retried: a timed-out create may still have succeeded upstream.

        Returns:
            Dict with "number" and "html_url"

        Raises:
            TicketingError: If GitHub is not configured or the call fails
        """
        if not self.is_configured():
            raise TicketingError("GitHub is not configured (GITHUB_TOKEN/OWNER/REPO missing)")

        try:
            response = request_with_retry(
                "POST",
                self._issues_url,
                max_retries=1,
                timeout=self.timeout,
                headers=self._headers,
                json={"title": title, "body": body, "labels": labels},
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"GitHub issue creation failed: {e}")
            raise TicketingError(f"GitHub issue creation failed: {e}") from e

        logger.info(f"Created GitHub issue #{data['number']}: {title}")
        return {"number": data["number"], "html_url": data["html_url"]}

    def add_comment(self, issue_number: int, body: str) -> None:
        """
        Comment on an existing issue.

        Raises:
            TicketingError: If GitHub is not configured or the call fails
        """
        if not self.is_configured():
            raise TicketingError("GitHub is not configured (GITHUB_TOKEN/OWNER/REPO missing)")

        try:
            request_with_retry(
                "POST",
                f"{self._issues_url}/{issue_number}/comments",
                timeout=self.timeout,
                headers=self._headers,
                json={"body": body},
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"GitHub comment on #{issue_number} failed: {e}")
            raise TicketingError(f"GitHub comment on #{issue_number} failed: {e}") from e

        logger.info(f"Commented on GitHub issue #{issue_number}")


_github_client: Optional[GitHubClient] = None


def get_github_client() -> GitHubClient:
    """Get or create GitHub client instance."""
    global _github_client
    if _github_client is None:
        _github_client = GitHubClient()
    return _github_client

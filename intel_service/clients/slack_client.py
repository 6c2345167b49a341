"""Slack Web API client (chat.postMessage)."""
import os
import requests
from typing import Dict, List, Optional
from intel_service.core import get_logger, NotificationError
from intel_service.clients.http import request_with_retry

logger = get_logger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class SlackClient:
    """Minimal Slack bot client."""

    def __init__(self, token: Optional[str] = None, timeout: float = 10):
        self.token = token or os.getenv("SLACK_BOT_TOKEN")
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.token)

    def post_message(
        self,
        channel: str,
        text: str,
        blocks: Optional[List[Dict]] = None,
        thread_ts: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Post a message, optionally as a thread reply.

        Returns:
            Dict with the message "ts" and resolved "channel"

        Raises:
            NotificationError: If the HTTP call fails or Slack answers ok=false
        """
        payload: Dict = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        if thread_ts:
            payload["thread_ts"] = thread_ts

        try:
            response = request_with_retry(
                "POST",
                SLACK_POST_MESSAGE_URL,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
                json=payload,
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise NotificationError(f"Slack request failed: {e}") from e

        # Slack reports API errors with HTTP 200
        if not data.get("ok"):
            raise NotificationError(f"Slack API error: {data.get('error', 'unknown')}")

        return {"ts": data["ts"], "channel": data.get("channel", channel)}


_slack_client: Optional[SlackClient] = None


def get_slack_client() -> SlackClient:
    """Get or create Slack client instance."""
    global _slack_client
    if _slack_client is None:
        _slack_client = SlackClient()
    return _slack_client

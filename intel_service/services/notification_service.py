"""Slack notifications for investigated alerts."""
import os
from typing import Dict, List, Optional
from intel_service.clients.slack_client import SlackClient, get_slack_client
from intel_service.core import get_logger, get_notification_config
from intel_service.models import (
    AlertContext,
    ErrorSeverity,
    IssueCategorization,
    RemediationResult,
    SlackHandle,
    TicketRef,
    ValidationResult,
    utcnow,
)

logger = get_logger(__name__)

SEVERITY_EMOJI = {
    ErrorSeverity.CRITICAL: "🚨",
    ErrorSeverity.HIGH: "⚠️",
    ErrorSeverity.MEDIUM: "⚡",
    ErrorSeverity.LOW: "ℹ️",
}

DISABLED_CHANNEL = "slack-disabled"


class NotificationService:
    """Post alerts, thread updates and resolution notices to Slack.

    Without a bot token the service only logs what it would send. No method
    raises: chat failures are logged and the pipeline continues.
    """

    def __init__(self, client: Optional[SlackClient] = None, settings: Optional[Dict] = None):
        self.client = client or get_slack_client()
        self.settings = settings if settings is not None else get_notification_config()
        self.grafana_url = os.getenv("GRAFANA_URL", "https://grafana.railway.app")

    @property
    def enabled(self) -> bool:
        return self.client.is_configured()

    def channel_for(self, key: str) -> Optional[str]:
        env_name = self.settings.get("channels", {}).get(key)
        return os.getenv(env_name) if env_name else None

    def build_alert_blocks(
        self,
        alert: AlertContext,
        validation: ValidationResult,
        categorization: IssueCategorization,
    ) -> List[Dict]:
        emoji = SEVERITY_EMOJI.get(categorization.severity, "📢")
        severity = categorization.severity.value
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"{emoji} {severity.upper()}: {alert.alert_name}"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Severity:*\n{severity}"},
                    {"type": "mrkdwn", "text": f"*Component:*\n{categorization.component.value}"},
                    {"type": "mrkdwn", "text": f"*Service:*\n{alert.affected_service}"},
                    {"type": "mrkdwn", "text": f"*Confidence:*\n{validation.confidence}%"},
                ],
            },
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*Reason:*\n{validation.reason}"}},
        ]
        if validation.should_attempt_remediation:
            blocks.append(
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": "*Auto-Remediation:*\n⚙️ Attempting automatic fix..."},
                }
            )
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "View in Grafana"},
                        "url": self.grafana_url,
                        "action_id": "view_grafana",
                    },
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "View Logs"},
                        "url": f"{self.grafana_url}/explore",
                        "action_id": "view_logs",
                    },
                ],
            }
        )
        return blocks

    def send_alert(
        self,
        alert: AlertContext,
        validation: ValidationResult,
        categorization: IssueCategorization,
    ) -> Optional[SlackHandle]:
        """
        Post the alert to the severity channel.

        Returns:
            Handle for threaded updates (placeholder when Slack is disabled),
            or None when posting failed
        """
        severity = categorization.severity.value
        if not self.enabled:
            logger.info(
                f"[SLACK DISABLED] Would send alert: {alert.alert_name} "
                f"(severity={severity}, reason={validation.reason})"
            )
            return SlackHandle(
                message_id=f"disabled-{int(utcnow().timestamp() * 1000)}",
                channel=DISABLED_CHANNEL,
            )

        channel = self.channel_for(severity) or self.channel_for(ErrorSeverity.MEDIUM.value)
        if not channel:
            logger.warning(f"No Slack channel configured for severity {severity}")
            return None

        emoji = SEVERITY_EMOJI.get(categorization.severity, "📢")
        try:
            result = self.client.post_message(
                channel,
                f"{emoji} {severity.upper()}: {alert.alert_name}",
                blocks=self.build_alert_blocks(alert, validation, categorization),
            )
        except Exception as e:
            logger.error(f"Failed to send Slack alert: {e}")
            return None
        return SlackHandle(message_id=result["ts"], channel=result["channel"])

    @staticmethod
    def build_thread_text(
        remediation: Optional[RemediationResult] = None, ticket: Optional[TicketRef] = None
    ) -> str:
        text = ""
        if remediation:
            if remediation.success:
                text = (
                    f"✅ *Auto-Remediation Successful*\nAction: {remediation.action}\n"
                    "Service restarted and health checks passing\n_No issue created_"
                )
            else:
                logs = "\n".join(remediation.logs)
                text = (
                    f"❌ *Auto-Remediation Failed*\nAction: {remediation.action}\n"
                    f"Issue persisted after remediation attempt\n```\n{logs}\n```"
                )
        if ticket:
            verb = "Created" if ticket.created else "Updated"
            text += f"\n\n📋 *GitHub Issue {verb}*\n<{ticket.url}|#{ticket.number}>"
        return text

    def update_thread(
        self,
        handle: SlackHandle,
        remediation: Optional[RemediationResult] = None,
        ticket: Optional[TicketRef] = None,
    ) -> None:
        """Reply in the alert's thread with remediation and ticket results."""
        text = self.build_thread_text(remediation, ticket)
        if not text:
            return
        if not self.enabled:
            logger.info(f"[SLACK DISABLED] Would update thread {handle.message_id}: {text}")
            return
        try:
            self.client.post_message(handle.channel, text, thread_ts=handle.message_id)
            logger.info(f"Updated Slack thread {handle.message_id} in {handle.channel}")
        except Exception as e:
            logger.error(f"Failed to update Slack thread {handle.message_id}: {e}")

    def send_resolution_notification(self, alert: AlertContext, remediation: RemediationResult) -> None:
        """Announce an alert that was fixed by remediation."""
        text = (
            f"✅ *Alert Auto-Resolved*\n*Alert:* {alert.alert_name}\n"
            f"*Action:* {remediation.action}\n*Service:* {alert.affected_service}\n\n"
            "Service restarted successfully and health checks are passing."
        )
        if not self.enabled:
            logger.info(f"[SLACK DISABLED] Would send resolution notification: {alert.alert_name}")
            return
        channel = self.channel_for("resolved")
        if not channel:
            return
        try:
            self.client.post_message(channel, text)
            logger.info(f"Sent resolution notification for {alert.alert_name}")
        except Exception as e:
            logger.error(f"Failed to send resolution notification: {e}")

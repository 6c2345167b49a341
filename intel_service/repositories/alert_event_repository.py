"""Repository for investigated alert events."""
import json
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional
from db.connection import get_db_connection_context
from intel_service.core import AlertNotFoundError, DatabaseError, get_logger

logger = get_logger(__name__)

# Columns that may be set after the event is created
UPDATABLE_COLUMNS = {
    "slack_message_id",
    "slack_channel",
    "remediation_attempted",
    "remediation_success",
    "remediation_strategy",
    "github_issue_number",
    "github_issue_url",
    "created_issue_at",
}

HISTORY_COLUMNS = """
    id, alert_name, severity, affected_service, received_at, is_real_issue,
    confidence, github_issue_number, github_issue_url,
    remediation_attempted, remediation_success
"""


class AlertEventRepository:
    """Repository for alert_events operations."""

    @staticmethod
    def create(
        alert: dict,
        source: Optional[str],
        severity: str,
        error_signature: Optional[str],
        validation: dict,
        categorization: dict,
        log_analysis: dict,
        health_check: dict,
        historical_context: dict,
    ) -> int:
        """
        Persist an investigated alert.

        Args:
            alert: AlertContext dictionary (JSON mode)
            source: Webhook source (grafana, alertmanager)
            severity: Categorized severity
            error_signature: Deduplication signature of the alert
            validation: ValidationResult dictionary
            categorization: IssueCategorization dictionary
            log_analysis: LogAnalysis dictionary
            health_check: HealthCheck dictionary
            historical_context: HistoricalContext dictionary

        Returns:
            Alert event ID

        Raises:
            DatabaseError: If database operation fails
        """
        alert_name = alert.get("alert_name", "unknown")
        logger.debug(f"Creating alert event for: {alert_name}")
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                now = datetime.now(timezone.utc)
                cur.execute(
                    """
                    INSERT INTO alert_events (
                        alert_id, alert_name, source, severity, affected_service,
                        received_at, investigated_at, error_signature,
                        is_real_issue, confidence, validation_reason, validation_rule,
                        issue_type, component,
                        log_analysis, health_check, historical_context, raw_alert
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                            %s::jsonb, %s::jsonb, %s::jsonb, %s::jsonb)
                    RETURNING id
                    """,
                    (
                        f"{alert_name}-{uuid.uuid4().hex[:12]}",
                        alert_name,
                        source,
                        severity,
                        alert.get("affected_service", "unknown"),
                        alert.get("timestamp") or now,
                        now,
                        error_signature,
                        validation.get("is_real_issue", False),
                        validation.get("confidence", 0),
                        validation.get("reason", ""),
                        validation.get("rule"),
                        categorization.get("type"),
                        categorization.get("component"),
                        json.dumps(log_analysis, default=str),
                        json.dumps(health_check, default=str),
                        json.dumps(historical_context, default=str),
                        json.dumps(alert, default=str),
                    ),
                )
                event_id = cur.fetchone()["id"]
                conn.commit()
                logger.info(f"Alert event created: {event_id} ({alert_name})")
                return event_id
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to create alert event: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to create alert event: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def update(event_id: int, **fields) -> None:
        """
        Update post-investigation fields of an alert event.

        Raises:
            ValueError: If an unknown column is passed
            DatabaseError: If database operation fails
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update alert event columns: {', '.join(sorted(unknown))}")
        if not fields:
            return

        assignments = ", ".join(f"{column} = %s" for column in fields)
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"UPDATE alert_events SET {assignments} WHERE id = %s",
                    (*fields.values(), event_id),
                )
                conn.commit()
                logger.debug(f"Alert event {event_id} updated: {', '.join(fields)}")
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to update alert event {event_id}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to update alert event: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def get_by_id(event_id: int) -> Dict:
        """
        Get an alert event with its remediation attempts.

        Raises:
            AlertNotFoundError: If the event does not exist
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute("SELECT * FROM alert_events WHERE id = %s", (event_id,))
                row = cur.fetchone()
                if not row:
                    logger.warning(f"Alert event not found: {event_id}")
                    raise AlertNotFoundError(f"Alert {event_id} not found")

                event = dict(row)
                cur.execute(
                    """
                    SELECT ra.*, ki.title AS known_issue_title
                    FROM remediation_attempts ra
                    LEFT JOIN known_issues ki ON ki.id = ra.known_issue_id
                    WHERE ra.alert_event_id = %s
                    ORDER BY ra.attempted_at
                    """,
                    (event_id,),
                )
                event["remediation_attempts"] = [dict(r) for r in cur.fetchall()]
                return event
            except AlertNotFoundError:
                raise
            except Exception as e:
                logger.error(f"Failed to get alert event {event_id}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to get alert event: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def list_recent(limit: int = 20) -> List[Dict]:
        """List the most recently received alert events."""
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"SELECT {HISTORY_COLUMNS} FROM alert_events ORDER BY received_at DESC LIMIT %s",
                    (limit,),
                )
                return [dict(row) for row in cur.fetchall()]
            except Exception as e:
                logger.error(f"Failed to list alert events: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to list alert events: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def list_by_alert_name(alert_name: str, limit: int = 10) -> List[Dict]:
        """
        List prior events of an alert, newest first.

        Each row carries "issue_resolved" from the linked detected issue
        (NULL when the event has no linked issue record).
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    SELECT ae.id, ae.received_at, ae.github_issue_number,
                           di.resolved AS issue_resolved
                    FROM alert_events ae
                    LEFT JOIN detected_issues di
                        ON di.github_issue_number = ae.github_issue_number
                    WHERE ae.alert_name = %s
                    ORDER BY ae.received_at DESC
                    LIMIT %s
                    """,
                    (alert_name, limit),
                )
                return [dict(row) for row in cur.fetchall()]
            except Exception as e:
                logger.error(f"Failed to list events for {alert_name}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to list alert history: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def get_stats() -> Dict:
        """Alert totals: all events, real issues, auto-resolved."""
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    SELECT COUNT(*) AS total,
                           COUNT(*) FILTER (WHERE is_real_issue) AS real_issues,
                           COUNT(*) FILTER (WHERE remediation_success) AS auto_resolved
                    FROM alert_events
                    """
                )
                return dict(cur.fetchone())
            except Exception as e:
                logger.error(f"Failed to count alert events: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to count alert events: {str(e)}") from e
            finally:
                cur.close()

"""Repository for the append-only remediation attempt history."""
import json
from typing import List, Optional
from db.connection import get_db_connection_context
from intel_service.core import DatabaseError, get_logger

logger = get_logger(__name__)


class RemediationRepository:
    """Repository for remediation_attempts operations. Rows are never updated."""

    @staticmethod
    def create_attempt(
        alert_event_id: Optional[int],
        known_issue_id: Optional[int],
        strategy: str,
        success: bool,
        logs: List[str],
        error_message: Optional[str] = None,
    ) -> int:
        """
        Record one remediation attempt.

        Returns:
            Attempt ID

        Raises:
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO remediation_attempts (
                        alert_event_id, known_issue_id, strategy, success, error_message, logs
                    )
                    VALUES (%s, %s, %s, %s, %s, %s::jsonb)
                    RETURNING id
                    """,
                    (alert_event_id, known_issue_id, strategy, success, error_message, json.dumps(logs)),
                )
                attempt_id = cur.fetchone()["id"]
                conn.commit()
                logger.info(
                    f"Remediation attempt recorded: {attempt_id} "
                    f"(strategy={strategy}, success={success})"
                )
                return attempt_id
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to record remediation attempt: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to record remediation attempt: {str(e)}") from e
            finally:
                cur.close()

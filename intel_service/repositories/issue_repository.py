"""Repository for detected issue records (one row per error signature)."""
from datetime import datetime
from typing import Dict, List, Optional
from db.connection import get_db_connection_context
from intel_service.core import DatabaseError, get_logger

logger = get_logger(__name__)


class IssueRepository:
    """Repository for detected_issues operations."""

    @staticmethod
    def find_by_signature(error_signature: str) -> Optional[Dict]:
        """
        Get the issue record for a signature.

        Returns:
            Issue record dictionary, or None if the signature is new

        Raises:
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    "SELECT * FROM detected_issues WHERE error_signature = %s",
                    (error_signature,),
                )
                row = cur.fetchone()
                return dict(row) if row else None
            except Exception as e:
                logger.error(f"Failed to find issue by signature: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to find issue: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def find_by_number(github_issue_number: int) -> Optional[Dict]:
        """Get the issue record for a GitHub issue number, or None."""
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    "SELECT * FROM detected_issues WHERE github_issue_number = %s",
                    (github_issue_number,),
                )
                row = cur.fetchone()
                return dict(row) if row else None
            except Exception as e:
                logger.error(f"Failed to find issue #{github_issue_number}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to find issue: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def record_occurrence(
        error_signature: str,
        github_issue_number: int,
        github_issue_url: str,
        service_name: str,
        error_message: str,
        first_seen: datetime,
        last_seen: datetime,
        occurrence_count: int,
    ) -> Dict:
        """
        Insert the issue record for a signature, or atomically add to its counter.

        Concurrent writers for one signature converge on a single row whose
        occurrence_count is the sum of their counts.

        Returns:
            The stored record, with "inserted" set when the row was created

        Raises:
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO detected_issues (
                        error_signature, github_issue_number, github_issue_url,
                        service_name, error_message, occurrence_count,
                        first_seen, last_seen
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (error_signature) DO UPDATE SET
                        occurrence_count = detected_issues.occurrence_count + EXCLUDED.occurrence_count,
                        last_seen = GREATEST(detected_issues.last_seen, EXCLUDED.last_seen),
                        updated_at = now()
                    RETURNING *, (xmax = 0) AS inserted
                    """,
                    (
                        error_signature,
                        github_issue_number,
                        github_issue_url,
                        service_name,
                        error_message,
                        occurrence_count,
                        first_seen,
                        last_seen,
                    ),
                )
                row = dict(cur.fetchone())
                conn.commit()
                logger.info(
                    f"Issue record {'created' if row['inserted'] else 'updated'} for "
                    f"#{row['github_issue_number']} (count={row['occurrence_count']})"
                )
                return row
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to record issue occurrence: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to record issue occurrence: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def increment_occurrence(
        error_signature: str, additional_occurrences: int, last_seen: datetime
    ) -> Optional[Dict]:
        """
        Atomically add occurrences to an existing record and extend last_seen.

        Returns:
            Updated record, or None if no record exists for the signature

        Raises:
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    UPDATE detected_issues
                    SET occurrence_count = occurrence_count + %s,
                        last_seen = GREATEST(last_seen, %s),
                        updated_at = now()
                    WHERE error_signature = %s
                    RETURNING *
                    """,
                    (additional_occurrences, last_seen, error_signature),
                )
                row = cur.fetchone()
                conn.commit()
                return dict(row) if row else None
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to increment issue occurrence: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to increment issue occurrence: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def _set_flag(github_issue_number: int, column: str) -> bool:
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"UPDATE detected_issues SET {column} = TRUE, updated_at = now() "
                    f"WHERE github_issue_number = %s",
                    (github_issue_number,),
                )
                updated = cur.rowcount > 0
                conn.commit()
                return updated
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to set {column} on issue #{github_issue_number}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to update issue: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def mark_analyzed(github_issue_number: int) -> bool:
        """Flag an issue as analyzed. Returns False if the issue is unknown."""
        return IssueRepository._set_flag(github_issue_number, "analyzed")

    @staticmethod
    def mark_resolved(github_issue_number: int) -> bool:
        """Flag an issue as resolved. Returns False if the issue is unknown."""
        return IssueRepository._set_flag(github_issue_number, "resolved")

    @staticmethod
    def list_unanalyzed() -> List[Dict]:
        """List open issues not yet analyzed, newest first."""
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    SELECT github_issue_number, github_issue_url, error_signature,
                           service_name, occurrence_count, last_seen
                    FROM detected_issues
                    WHERE analyzed = FALSE AND resolved = FALSE
                    ORDER BY created_at DESC
                    """
                )
                return [dict(row) for row in cur.fetchall()]
            except Exception as e:
                logger.error(f"Failed to list unanalyzed issues: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to list unanalyzed issues: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def get_stats() -> Dict:
        """
        Get issue totals.

        Returns:
            Dictionary with total_issues, analyzed_issues, unresolved_issues, by_service
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    SELECT COUNT(*) AS total_issues,
                           COUNT(*) FILTER (WHERE analyzed) AS analyzed_issues,
                           COUNT(*) FILTER (WHERE NOT resolved) AS unresolved_issues
                    FROM detected_issues
                    """
                )
                stats = dict(cur.fetchone())
                cur.execute(
                    "SELECT service_name, COUNT(*) AS count FROM detected_issues GROUP BY service_name"
                )
                stats["by_service"] = {row["service_name"]: row["count"] for row in cur.fetchall()}
                return stats
            except Exception as e:
                logger.error(f"Failed to get issue stats: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to get issue stats: {str(e)}") from e
            finally:
                cur.close()

"""Repository for the known issue catalog."""
from typing import Dict, List
from db.connection import get_db_connection_context
from intel_service.core import DatabaseError, get_logger

logger = get_logger(__name__)


class KnownIssueRepository:
    """Repository for known_issues operations."""

    @staticmethod
    def list_all() -> List[Dict]:
        """
        List catalog entries in insertion order.

        Raises:
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute("SELECT * FROM known_issues ORDER BY id")
                return [dict(row) for row in cur.fetchall()]
            except Exception as e:
                logger.error(f"Failed to list known issues: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to list known issues: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def record_match(known_issue_id: int) -> None:
        """Increment the occurrence counter of a matched entry and stamp last_seen."""
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    UPDATE known_issues
                    SET occurrences = occurrences + 1, last_seen = now(), updated_at = now()
                    WHERE id = %s
                    """,
                    (known_issue_id,),
                )
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to record known issue match {known_issue_id}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to record known issue match: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def record_fix_outcome(known_issue_id: int, success: bool) -> None:
        """Bump the auto-fix success or failure counter."""
        column = "auto_fix_success_count" if success else "auto_fix_fail_count"
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"UPDATE known_issues SET {column} = {column} + 1, updated_at = now() WHERE id = %s",
                    (known_issue_id,),
                )
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to record fix outcome for {known_issue_id}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to record fix outcome: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def upsert(entry: Dict) -> int:
        """
        Insert or refresh a catalog entry keyed by title. Counters are preserved.

        Returns:
            Known issue ID
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO known_issues (
                        title, error_pattern, description, solution, auto_remediable,
                        remediation_script, category, component, severity
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (title) DO UPDATE SET
                        error_pattern = EXCLUDED.error_pattern,
                        description = EXCLUDED.description,
                        solution = EXCLUDED.solution,
                        auto_remediable = EXCLUDED.auto_remediable,
                        remediation_script = EXCLUDED.remediation_script,
                        category = EXCLUDED.category,
                        component = EXCLUDED.component,
                        severity = EXCLUDED.severity,
                        updated_at = now()
                    RETURNING id
                    """,
                    (
                        entry["title"],
                        entry["error_pattern"],
                        entry.get("description", ""),
                        entry.get("solution", ""),
                        entry.get("auto_remediable", False),
                        entry.get("remediation_script"),
                        entry["category"],
                        entry["component"],
                        entry["severity"],
                    ),
                )
                known_issue_id = cur.fetchone()["id"]
                conn.commit()
                return known_issue_id
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to upsert known issue '{entry.get('title')}': {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to upsert known issue: {str(e)}") from e
            finally:
                cur.close()

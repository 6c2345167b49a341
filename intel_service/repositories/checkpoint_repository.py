"""Repository for per-service log checkpoints."""
from datetime import datetime
from typing import Optional
from db.connection import get_db_connection_context
from intel_service.core import DatabaseError, get_logger

logger = get_logger(__name__)


class CheckpointRepository:
    """Repository for log_checkpoints operations."""

    @staticmethod
    def get(service_name: str) -> Optional[datetime]:
        """
        Get the last check time of a service.

        Args:
            service_name: Monitored service name

        Returns:
            Last check time, or None if the service has no checkpoint

        Raises:
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    "SELECT last_check_time FROM log_checkpoints WHERE service_name = %s",
                    (service_name,),
                )
                row = cur.fetchone()
                return row["last_check_time"] if row else None
            except Exception as e:
                logger.error(f"Failed to get checkpoint for {service_name}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to get checkpoint: {str(e)}") from e
            finally:
                cur.close()

    @staticmethod
    def upsert(service_name: str, check_time: datetime) -> None:
        """
        Insert or move the checkpoint of a service.

        Raises:
            DatabaseError: If database operation fails
        """
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO log_checkpoints (service_name, last_check_time, updated_at)
                    VALUES (%s, %s, now())
                    ON CONFLICT (service_name)
                    DO UPDATE SET last_check_time = EXCLUDED.last_check_time, updated_at = now()
                    """,
                    (service_name, check_time),
                )
                conn.commit()
                logger.debug(f"Checkpoint for {service_name} moved to {check_time.isoformat()}")
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to update checkpoint for {service_name}: {str(e)}", exc_info=True)
                raise DatabaseError(f"Failed to update checkpoint: {str(e)}") from e
            finally:
                cur.close()

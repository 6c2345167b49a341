"""Database connection utilities with connection pooling and retries."""

import os
import time
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout
from dotenv import load_dotenv
from contextlib import contextmanager

from intel_service.core import get_logger, sanitize_log_message

load_dotenv()

logger = get_logger(__name__)

# Global connection pool
_db_pool: ConnectionPool = None

# Retry configuration (can be overridden via environment variables)
DB_CONN_RETRIES = int(os.getenv("DB_CONN_RETRIES", "3"))
DB_CONN_RETRY_BASE_DELAY = float(os.getenv("DB_CONN_RETRY_BASE_DELAY", "1.0"))
DB_CONN_RETRY_MAX_DELAY = float(os.getenv("DB_CONN_RETRY_MAX_DELAY", "5.0"))


def _build_conninfo(timeout: int = 30) -> str:
    """
    Build the libpq connection string.

    DATABASE_URL wins when set; otherwise POSTGRES_* variables are used.
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    dbname = os.getenv("POSTGRES_DB", "issue_intel")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    return (
        f"host={host} port={port} dbname={dbname} user={user} "
        f"password={password} connect_timeout={timeout}"
    )


def init_db_pool(min_size: int = 2, max_size: int = 10, timeout: int = 30):
    """
    Initialize the database connection pool.

    Args:
        min_size: Minimum number of connections in pool (default: 2)
        max_size: Maximum number of connections in pool (default: 10)
        timeout: Connection timeout in seconds (default: 30)
    """
    global _db_pool
    if _db_pool is not None:
        logger.warning("Database pool already initialized")
        return

    # Wait up to 10s for an available connection
    wait_timeout = int(os.getenv("DB_POOL_WAIT_TIMEOUT", "10"))

    try:
        _db_pool = ConnectionPool(
            _build_conninfo(timeout),
            min_size=min_size,
            max_size=max_size,
            kwargs={"row_factory": dict_row},
            open=False,
            timeout=wait_timeout,
        )
        _db_pool.open()
        logger.info(
            f"Database connection pool initialized: min={min_size}, max={max_size}, "
            f"connect_timeout={timeout}s, wait_timeout={wait_timeout}s"
        )

        if ping_db():
            logger.debug("Database pool connection test successful")
        else:
            # Pool may still recover once the database comes up
            logger.warning("Database pool connection test failed")
    except Exception as e:
        logger.error(
            f"Failed to initialize database pool: {sanitize_log_message(str(e))}", exc_info=True
        )
        raise


def close_db_pool():
    """Close the database connection pool."""
    global _db_pool
    if _db_pool is not None:
        _db_pool.close()
        _db_pool = None
        logger.info("Database connection pool closed")


def is_pool_initialized() -> bool:
    return _db_pool is not None


def ping_db() -> bool:
    """
    Run a trivial query to verify connectivity.

    Returns:
        True if SELECT 1 succeeded, False otherwise
    """
    try:
        with get_db_connection_context() as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1")
            cur.fetchone()
            cur.close()
        return True
    except Exception as e:
        logger.warning(f"Database ping failed: {sanitize_log_message(str(e))}")
        return False


def _create_direct_connection():
    """
    Create a direct database connection (bypassing connection pool).

    Used when the pool is not initialized (scripts, tests).

    Returns:
        psycopg.Connection: Database connection object
    """
    logger.debug("Connecting to database directly (pool not initialized)")
    return psycopg.connect(_build_conninfo(), row_factory=dict_row)


def _get_db_connection():
    """
    Get a database connection from the pool, retrying transient failures.

    Falls back to a direct connection if the pool is not initialized.
    Use get_db_connection_context() instead of calling this directly.
    """
    last_error = None
    for attempt in range(DB_CONN_RETRIES):
        delay = min(DB_CONN_RETRY_BASE_DELAY * (2**attempt), DB_CONN_RETRY_MAX_DELAY)
        try:
            if _db_pool is not None:
                return _db_pool.getconn()
            return _create_direct_connection()
        except PoolTimeout as exc:
            last_error = exc
            logger.warning(
                f"Connection pool timeout (attempt {attempt + 1}/{DB_CONN_RETRIES}): {exc}. "
                f"Pool may be exhausted. Retrying..."
            )
        except psycopg.OperationalError as exc:
            last_error = exc
            logger.warning(
                "Database connection attempt %s/%s failed: %s. Retrying in %.2fs",
                attempt + 1,
                DB_CONN_RETRIES,
                sanitize_log_message(str(exc)),
                delay,
            )
        if attempt < DB_CONN_RETRIES - 1:
            time.sleep(delay)
    raise last_error


@contextmanager
def get_db_connection_context():
    """
    Context manager for database connections.
    Automatically returns connection to pool when done.
    """
    conn = _get_db_connection()
    try:
        yield conn
    finally:
        # The pool rolls back or discards connections left in a bad state
        if _db_pool is not None:
            try:
                _db_pool.putconn(conn)
            except Exception as e:
                logger.warning(f"Error returning connection to pool: {e}")
        else:
            conn.close()

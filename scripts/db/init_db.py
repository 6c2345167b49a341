"""Initialize the database schema."""

import sys
import os

# Add project root to path (go up 3 levels: scripts/db -> scripts -> project root)
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from dotenv import load_dotenv  # noqa: E402
from db.connection import get_db_connection_context  # noqa: E402

TABLES = ["log_checkpoints", "detected_issues", "known_issues", "alert_events", "remediation_attempts"]


def init_schema():
    """Apply db/schema.sql (idempotent)."""
    schema_path = os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "db", "schema.sql"
    )
    with open(schema_path, "r") as f:
        schema_sql = f.read()

    with get_db_connection_context() as conn:
        cur = conn.cursor()
        try:
            cur.execute(schema_sql)
            conn.commit()
        finally:
            cur.close()

    print(" Database schema initialized successfully")
    print(f" Tables: {', '.join(TABLES)}")


if __name__ == "__main__":
    load_dotenv()
    try:
        init_schema()
    except Exception as e:
        print(f"Error initializing database: {e}")
        sys.exit(1)

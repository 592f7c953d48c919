"""
Lightweight SQLite database wrapper.

Handles:
- Database initialization
- Schema creation
- Connection management

The PostgreSQL deployment uses the same column names (see postgres_store).
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import logging


logger = logging.getLogger(__name__)


class Database:
    """
    SQLite database wrapper for grants and user preferences.

    Usage:
        db = Database("grants.db")
        with db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM grants")
    """

    def __init__(self, path: str = "grants.db"):
        """
        Initialize database.

        Args:
            path: Path to SQLite database file
        """
        self.path = path

        # Ensure parent directory exists
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        # Initialize schema
        self._init_db()

        logger.info(f"Database initialized: {self.path}")

    def _init_db(self):
        """Create database schema if it doesn't exist."""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            # Grants table (list columns hold JSON arrays, dates ISO strings)
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS grants (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    agency_name TEXT,
                    agency_subdivision TEXT,
                    description TEXT,
                    award_ceiling INTEGER,
                    award_floor INTEGER,
                    close_date TEXT,
                    post_date TEXT,
                    activity_category TEXT,
                    eligible_applicants TEXT,
                    grant_type TEXT,
                    funding_type TEXT,
                    category TEXT,
                    cost_sharing INTEGER NOT NULL DEFAULT 0,
                    status TEXT,
                    data_source TEXT,
                    source_url TEXT,
                    match_score REAL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

            # Indexes for the common filter and sort columns
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_grants_close_date
                ON grants(close_date);
                """
            )

            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_grants_award_ceiling
                ON grants(award_ceiling);
                """
            )

            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_grants_agency_name
                ON grants(agency_name);
                """
            )

            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_grants_post_date
                ON grants(post_date);
                """
            )

            # User preferences table
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS user_preferences (
                    user_id TEXT PRIMARY KEY,
                    topics_json TEXT,
                    agencies_json TEXT,
                    funding_min INTEGER,
                    funding_max INTEGER,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

            conn.commit()
            logger.debug("Database schema created/verified (grants and user_preferences)")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Get a database connection context manager.

        Automatically commits on success, closes on exit.

        Yields:
            sqlite3.Connection
        """
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row  # Enable column access by name
        conn.create_function("casefold", 1, _casefold, deterministic=True)

        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            conn.close()


def _casefold(value):
    """Unicode case folding for case-insensitive search (SQL casefold())."""
    return value.casefold() if isinstance(value, str) else value

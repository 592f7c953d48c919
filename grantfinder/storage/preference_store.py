"""
Storage for user ranking preferences.

Missing users (and anonymous requests) get DEFAULT_PREFERENCES rather than
an error, matching how the web client treats a user who has not yet filled
in the preferences page.
"""

import json
import logging
from typing import Optional

from grantfinder.core.domain_models import UserPreferences
from .db import Database


logger = logging.getLogger(__name__)

DEFAULT_FUNDING_MIN = 0
DEFAULT_FUNDING_MAX = 1_000_000


def default_preferences() -> UserPreferences:
    return UserPreferences(
        preferred_categories=[],
        preferred_agencies=[],
        funding_min=DEFAULT_FUNDING_MIN,
        funding_max=DEFAULT_FUNDING_MAX,
    )


class PreferenceStore:
    """
    Persistent storage for UserPreferences.

    Usage:
        store = PreferenceStore("grants.db")
        store.upsert_preferences("user-1", prefs)
        prefs = store.get_preferences("user-1")
    """

    def __init__(self, db_path: str = "grants.db"):
        """
        Initialize preference store.

        Args:
            db_path: Path to SQLite database
        """
        self.db = Database(db_path)

    def upsert_preferences(self, user_id: str, prefs: UserPreferences) -> None:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO user_preferences (
                    user_id, topics_json, agencies_json, funding_min, funding_max, updated_at
                )
                VALUES (:user_id, :topics_json, :agencies_json, :funding_min, :funding_max, CURRENT_TIMESTAMP)
                ON CONFLICT(user_id) DO UPDATE SET
                    topics_json=excluded.topics_json,
                    agencies_json=excluded.agencies_json,
                    funding_min=excluded.funding_min,
                    funding_max=excluded.funding_max,
                    updated_at=CURRENT_TIMESTAMP;
                """,
                {
                    "user_id": user_id,
                    "topics_json": json.dumps(list(prefs.preferred_categories)),
                    "agencies_json": json.dumps(list(prefs.preferred_agencies)),
                    "funding_min": prefs.funding_min,
                    "funding_max": prefs.funding_max,
                },
            )

            logger.debug(f"Upserted preferences for user: {user_id}")

    def get_preferences(self, user_id: Optional[str]) -> UserPreferences:
        """
        Retrieve a user's preferences.

        Args:
            user_id: User ID, or None for anonymous requests

        Returns:
            Stored preferences, or defaults when none are stored
        """
        if not user_id:
            return default_preferences()

        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM user_preferences WHERE user_id = ? LIMIT 1",
                (user_id,)
            )
            row = cursor.fetchone()

        if not row:
            logger.debug(f"No stored preferences for user {user_id}, using defaults")
            return default_preferences()

        funding_min = row["funding_min"]
        funding_max = row["funding_max"]
        return UserPreferences(
            preferred_categories=json.loads(row["topics_json"] or "[]"),
            preferred_agencies=json.loads(row["agencies_json"] or "[]"),
            funding_min=DEFAULT_FUNDING_MIN if funding_min is None else funding_min,
            funding_max=DEFAULT_FUNDING_MAX if funding_max is None else funding_max,
        )

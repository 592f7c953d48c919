"""
Storage layer for Grant records.

Handles:
- Persisting Grant objects (used by ingestion and test fixtures)
- Counting and fetching grants that match compiled predicates
- Full scans for the statistics job
"""

import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from grantfinder.core.domain_models import Grant
from grantfinder.core.utils import parse_date_maybe
from grantfinder.search.predicates import Predicate, SortClause
from .db import Database
from .sql import GRANT_COLUMNS, LIST_COLUMNS, SQLiteDialect, build_count, build_select, column


logger = logging.getLogger(__name__)


class GrantStore:
    """
    SQLite-backed record store for grants.

    Usage:
        store = GrantStore("grants.db")
        store.upsert_grant(grant)
        total = store.count(predicates)
        page = store.fetch(predicates, sort, offset=0, limit=10)
    """

    dialect = SQLiteDialect()

    def __init__(self, db_path: str = "grants.db"):
        """
        Initialize grant store.

        Args:
            db_path: Path to SQLite database
        """
        self.db = Database(db_path)

    def upsert_grant(self, grant: Grant) -> None:
        """Insert or update a single grant."""
        self.upsert_grants([grant])

    def upsert_grants(self, grants: Iterable[Grant]) -> int:
        """
        Insert or update grants.

        Uses UPSERT (INSERT ... ON CONFLICT) to handle updates.

        Args:
            grants: Grant objects to persist

        Returns:
            Number of grants written
        """
        written = 0
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            for grant in grants:
                cursor.execute(
                    """
                    INSERT INTO grants (
                        id, title, agency_name, agency_subdivision, description,
                        award_ceiling, award_floor, close_date, post_date,
                        activity_category, eligible_applicants, grant_type,
                        funding_type, category, cost_sharing, status,
                        data_source, source_url, match_score,
                        created_at, updated_at
                    )
                    VALUES (
                        :id, :title, :agency_name, :agency_subdivision, :description,
                        :award_ceiling, :award_floor, :close_date, :post_date,
                        :activity_category, :eligible_applicants, :grant_type,
                        :funding_type, :category, :cost_sharing, :status,
                        :data_source, :source_url, :match_score,
                        CURRENT_TIMESTAMP, CURRENT_TIMESTAMP
                    )
                    ON CONFLICT(id) DO UPDATE SET
                        title=excluded.title,
                        agency_name=excluded.agency_name,
                        agency_subdivision=excluded.agency_subdivision,
                        description=excluded.description,
                        award_ceiling=excluded.award_ceiling,
                        award_floor=excluded.award_floor,
                        close_date=excluded.close_date,
                        post_date=excluded.post_date,
                        activity_category=excluded.activity_category,
                        eligible_applicants=excluded.eligible_applicants,
                        grant_type=excluded.grant_type,
                        funding_type=excluded.funding_type,
                        category=excluded.category,
                        cost_sharing=excluded.cost_sharing,
                        status=excluded.status,
                        data_source=excluded.data_source,
                        source_url=excluded.source_url,
                        match_score=excluded.match_score,
                        updated_at=CURRENT_TIMESTAMP;
                    """,
                    {
                        "id": grant.id,
                        "title": grant.title,
                        "agency_name": grant.agency_name,
                        "agency_subdivision": grant.agency_subdivision,
                        "description": grant.description or "",
                        "award_ceiling": grant.award_ceiling,
                        "award_floor": grant.award_floor,
                        "close_date": grant.close_date.isoformat() if grant.close_date else None,
                        "post_date": grant.post_date.isoformat() if grant.post_date else None,
                        "activity_category": json.dumps(list(grant.activity_category)),
                        "eligible_applicants": json.dumps(list(grant.eligible_applicants)),
                        "grant_type": grant.grant_type,
                        "funding_type": grant.funding_type,
                        "category": grant.category,
                        "cost_sharing": 1 if grant.cost_sharing else 0,
                        "status": grant.status,
                        "data_source": grant.data_source,
                        "source_url": grant.source_url,
                        "match_score": grant.match_score,
                    },
                )
                written += 1

        logger.debug(f"Upserted {written} grants")
        return written

    def get_grant(self, grant_id: str) -> Optional[Grant]:
        """
        Retrieve grant by ID.

        Args:
            grant_id: Grant ID

        Returns:
            Grant object or None if not found
        """
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM grants WHERE id = ? LIMIT 1",
                (grant_id,)
            )
            row = cursor.fetchone()

            if not row:
                return None

            return row_to_grant(row)

    def count(self, predicates: Sequence[Predicate]) -> int:
        """
        Count grants matching all predicates.

        Args:
            predicates: AND-combined predicates

        Returns:
            Number of matching grants
        """
        sql, params = build_count(predicates, self.dialect)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return int(cursor.fetchone()[0])

    def fetch(
        self,
        predicates: Sequence[Predicate],
        sort: Sequence[SortClause],
        offset: int,
        limit: int,
    ) -> List[Grant]:
        """
        Fetch one window of matching grants.

        Args:
            predicates: AND-combined predicates
            sort: Ordering clauses
            offset: Number of matching grants to skip
            limit: Maximum number of grants to return

        Returns:
            List of Grant objects
        """
        sql, params = build_select(predicates, sort, offset, limit, self.dialect)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return [row_to_grant(row) for row in cursor.fetchall()]

    def scan(self, columns: Optional[Sequence[str]] = None, batch_size: int = 1000) -> Iterator[Dict[str, Any]]:
        """
        Stream every grant as a dict, for offline statistics.

        List columns are decoded; dates are left as stored.

        Args:
            columns: Columns to read (default: all)
            batch_size: Rows fetched per round trip

        Yields:
            Row dicts
        """
        selected = [column(c) for c in columns] if columns else list(GRANT_COLUMNS)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {', '.join(selected)} FROM grants ORDER BY id")
            while True:
                rows = cursor.fetchmany(batch_size)
                if not rows:
                    break
                for row in rows:
                    yield {c: decode_list(row[c]) if c in LIST_COLUMNS else row[c] for c in selected}


def decode_list(value: Any) -> List[str]:
    """List column value from SQLite (JSON text) or Postgres (list)."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return list(json.loads(value))
    return list(value)


def row_to_grant(row: Mapping[str, Any]) -> Grant:
    """
    Convert a database row to a Grant object.

    Args:
        row: sqlite3.Row or dict row

    Returns:
        Grant object
    """
    keys = set(row.keys())

    def get(name: str) -> Any:
        return row[name] if name in keys else None

    return Grant(
        id=str(row["id"]),
        title=row["title"],
        agency_name=get("agency_name"),
        agency_subdivision=get("agency_subdivision"),
        description=get("description") or "",
        award_ceiling=get("award_ceiling"),
        award_floor=get("award_floor"),
        close_date=parse_date_maybe(get("close_date")),
        post_date=parse_date_maybe(get("post_date")),
        activity_category=tuple(decode_list(get("activity_category"))),
        eligible_applicants=tuple(decode_list(get("eligible_applicants"))),
        grant_type=get("grant_type"),
        funding_type=get("funding_type"),
        category=get("category"),
        cost_sharing=bool(get("cost_sharing")),
        status=get("status"),
        data_source=get("data_source"),
        source_url=get("source_url"),
        match_score=get("match_score"),
    )

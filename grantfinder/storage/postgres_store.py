"""
PostgreSQL record store for the production grants table.

Same interface as GrantStore (count / fetch / scan); predicates are rendered
with the PostgreSQL dialect, where list columns are text[] and dates are
native DATE values.
"""

import logging
from contextlib import closing, contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.extras

from grantfinder.config import DATABASE_URL
from grantfinder.core.domain_models import Grant
from grantfinder.search.predicates import Predicate, SortClause
from .grant_store import decode_list, row_to_grant
from .sql import GRANT_COLUMNS, LIST_COLUMNS, PostgresDialect, build_count, build_select, column


logger = logging.getLogger(__name__)


class PostgresGrantStore:
    """
    Read-only access to grants in PostgreSQL.

    Usage:
        store = PostgresGrantStore(os.getenv("DATABASE_URL"))
        total = store.count(predicates)
    """

    dialect = PostgresDialect()

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or DATABASE_URL
        if not self.dsn:
            raise ValueError("DATABASE_URL is not set")

    @contextmanager
    def get_connection(self):
        """One connection per call; rolled back and closed on exit."""
        with closing(psycopg2.connect(self.dsn)) as conn:
            try:
                yield conn
            except psycopg2.Error as e:
                conn.rollback()
                logger.error(f"PostgreSQL error: {e}")
                raise

    def count(self, predicates: Sequence[Predicate]) -> int:
        sql, params = build_count(predicates, self.dialect)
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(sql, params)
                return int(cursor.fetchone()[0])

    def fetch(
        self,
        predicates: Sequence[Predicate],
        sort: Sequence[SortClause],
        offset: int,
        limit: int,
    ) -> List[Grant]:
        sql, params = build_select(predicates, sort, offset, limit, self.dialect)
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                cursor.execute(sql, params)
                return [row_to_grant(row) for row in cursor.fetchall()]

    def scan(self, columns: Optional[Sequence[str]] = None, batch_size: int = 1000) -> Iterator[Dict[str, Any]]:
        """Stream every grant using a server-side cursor."""
        selected = [column(c) for c in columns] if columns else list(GRANT_COLUMNS)
        with self.get_connection() as conn:
            with conn.cursor("grant_scan", cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                cursor.itersize = batch_size
                cursor.execute(f"SELECT {', '.join(selected)} FROM grants ORDER BY id")
                for row in cursor:
                    yield {c: decode_list(row[c]) if c in LIST_COLUMNS else row[c] for c in selected}

"""
Render search predicates as parameterised SQL.

The same predicate tuple renders for SQLite (qmark params, list columns
stored as JSON text) and PostgreSQL (pyformat params, list columns stored
as text[]). Column names are checked against the grants schema, so no
caller-controlled text ever reaches the SQL string.
"""

from datetime import date
from typing import Any, List, Sequence, Tuple

from grantfinder.core.exceptions import UnsupportedFilterError
from grantfinder.search.predicates import (
    AnyOf,
    Contains,
    Equals,
    In,
    IsNull,
    Overlaps,
    Predicate,
    Range,
    SortClause,
)


GRANT_COLUMNS = (
    "id",
    "title",
    "agency_name",
    "agency_subdivision",
    "description",
    "award_ceiling",
    "award_floor",
    "close_date",
    "post_date",
    "activity_category",
    "eligible_applicants",
    "grant_type",
    "funding_type",
    "category",
    "cost_sharing",
    "status",
    "data_source",
    "source_url",
    "match_score",
)

LIST_COLUMNS = frozenset({"activity_category", "eligible_applicants"})


class SQLiteDialect:
    placeholder = "?"

    def adapt(self, value: Any) -> Any:
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, bool):
            return int(value)
        return value

    def overlaps(self, column: str, values: Sequence[Any], params: List[Any]) -> str:
        params.extend(self.adapt(v) for v in values)
        marks = ", ".join(self.placeholder for _ in values)
        return (
            f"EXISTS (SELECT 1 FROM json_each(COALESCE({column}, '[]')) "
            f"WHERE json_each.value IN ({marks}))"
        )

    def contains(self, column: str, text: str, params: List[Any]) -> str:
        # casefold() is registered on every connection by Database; LOWER() only folds ASCII
        params.append(f"%{escape_like(text.casefold())}%")
        return f"casefold(COALESCE({column}, '')) LIKE {self.placeholder} ESCAPE '\\'"


class PostgresDialect(SQLiteDialect):
    placeholder = "%s"

    def adapt(self, value: Any) -> Any:
        # psycopg2 adapts dates and booleans natively
        return value

    def overlaps(self, column: str, values: Sequence[Any], params: List[Any]) -> str:
        params.append(list(values))
        return f"{column} && {self.placeholder}::text[]"

    def contains(self, column: str, text: str, params: List[Any]) -> str:
        params.append(f"%{escape_like(text)}%")
        return f"{column} ILIKE {self.placeholder}"


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the search term matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def column(name: str) -> str:
    if name not in GRANT_COLUMNS:
        raise UnsupportedFilterError(f"Unknown grant column: {name!r}")
    return name


def render_predicate(predicate: Predicate, dialect, params: List[Any]) -> str:
    """Render one predicate, appending its parameters to params."""
    ph = dialect.placeholder

    if isinstance(predicate, AnyOf):
        if not predicate.clauses:
            return "1 = 0"
        return "(" + " OR ".join(render_predicate(c, dialect, params) for c in predicate.clauses) + ")"

    col = column(predicate.field)

    if isinstance(predicate, Range):
        parts = []
        if predicate.lower is not None:
            params.append(dialect.adapt(predicate.lower))
            parts.append(f"{col} >= {ph}")
        if predicate.upper is not None:
            params.append(dialect.adapt(predicate.upper))
            parts.append(f"{col} <= {ph}")
        if not parts:
            return f"{col} IS NOT NULL"
        return "(" + " AND ".join(parts) + ")"

    if isinstance(predicate, IsNull):
        return f"{col} IS NOT NULL" if predicate.negate else f"{col} IS NULL"

    if isinstance(predicate, Equals):
        params.append(dialect.adapt(predicate.value))
        return f"{col} = {ph}"

    if isinstance(predicate, In):
        if not predicate.values:
            return "1 = 1" if predicate.negate else "1 = 0"
        params.extend(dialect.adapt(v) for v in predicate.values)
        marks = ", ".join(ph for _ in predicate.values)
        return f"{col} {'NOT IN' if predicate.negate else 'IN'} ({marks})"

    if isinstance(predicate, Overlaps):
        if col not in LIST_COLUMNS:
            raise UnsupportedFilterError(f"{col} is not a list column")
        if not predicate.values:
            return "1 = 0"
        return dialect.overlaps(col, predicate.values, params)

    if isinstance(predicate, Contains):
        return dialect.contains(col, predicate.text, params)

    raise UnsupportedFilterError(f"Unsupported predicate: {predicate!r}")


def render_where(predicates: Sequence[Predicate], dialect) -> Tuple[str, List[Any]]:
    params: List[Any] = []
    if not predicates:
        return "", params
    clauses = [render_predicate(p, dialect, params) for p in predicates]
    return " WHERE " + " AND ".join(clauses), params


def render_order_by(sort: Sequence[SortClause]) -> str:
    if not sort:
        return ""
    parts = []
    for clause in sort:
        col = column(clause.field)
        if clause.nulls_last:
            parts.append(f"({col} IS NULL)")
        parts.append(f"{col} {'DESC' if clause.descending else 'ASC'}")
    return " ORDER BY " + ", ".join(parts)


def build_select(
    predicates: Sequence[Predicate],
    sort: Sequence[SortClause],
    offset: int,
    limit: int,
    dialect,
    table: str = "grants",
) -> Tuple[str, List[Any]]:
    where, params = render_where(predicates, dialect)
    sql = f"SELECT * FROM {table}{where}{render_order_by(sort)}"
    sql += f" LIMIT {dialect.placeholder} OFFSET {dialect.placeholder}"
    params.extend([int(limit), int(offset)])
    return sql, params


def build_count(predicates: Sequence[Predicate], dialect, table: str = "grants") -> Tuple[str, List[Any]]:
    where, params = render_where(predicates, dialect)
    return f"SELECT COUNT(*) FROM {table}{where}", params

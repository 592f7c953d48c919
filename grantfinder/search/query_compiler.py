"""
Compile a NormalizedFilter into store predicates, a sort order and a page
window.

Every active filter dimension becomes one top-level predicate; the store
AND-combines them. Within a nullable dimension the "or null" case is an
AnyOf of the range and an IS NULL test.

Deadline convention: expired grants (close date before today) are never
returned, so the close-date lower bound is always today + deadline_min_days.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from grantfinder.core.exceptions import InvalidFilterError, UnsupportedFilterError
from grantfinder.core.time_utils import offset_date
from grantfinder.search.filters import CostSharing, NormalizedFilter, NullPolicy, SortKey
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
    describe,
)


logger = logging.getLogger(__name__)

# Columns matched by the free-text search
SEARCH_FIELDS = ("title", "agency_name", "description")

# Stable tiebreaker appended to every ordering
ID_ORDER = SortClause("id")

SORT_COLUMNS = {
    SortKey.DEADLINE: SortClause("close_date"),
    SortKey.DEADLINE_LATEST: SortClause("close_date", descending=True),
    SortKey.AMOUNT: SortClause("award_ceiling", descending=True),
    SortKey.AMOUNT_ASC: SortClause("award_ceiling"),
    SortKey.RECENT: SortClause("post_date", descending=True),
    SortKey.TITLE_ASC: SortClause("title"),
    SortKey.TITLE_DESC: SortClause("title", descending=True),
}


@dataclass(frozen=True)
class CountQuery:
    """Same predicates as the page query, without sort or pagination."""
    predicates: Tuple[Predicate, ...]


@dataclass(frozen=True)
class CompiledQuery:
    predicates: Tuple[Predicate, ...]
    sort: Tuple[SortClause, ...]
    offset: int
    limit: int
    # Ordering happens in memory after scoring
    rank_by_relevance: bool = False

    def count_query(self) -> CountQuery:
        return CountQuery(predicates=self.predicates)


def compile_filter(nf: NormalizedFilter, page_size: int, today: date) -> CompiledQuery:
    """
    Translate a normalized filter into a page query.

    Args:
        nf: Normalized filter
        page_size: Records per page (caller supplied)
        today: Reference date for the relative deadline bounds

    Returns:
        CompiledQuery with offset (page-1)*page_size and limit page_size

    Raises:
        InvalidFilterError: If page_size is not positive
        UnsupportedFilterError: If the sort key has no column mapping
    """
    if page_size < 1:
        raise InvalidFilterError(f"page_size must be >= 1, got {page_size}")

    predicates = compile_predicates(nf, today)
    sort = resolve_sort(nf.sort_by)

    query = CompiledQuery(
        predicates=predicates,
        sort=sort,
        offset=(nf.page - 1) * page_size,
        limit=page_size,
        rank_by_relevance=nf.sort_by is SortKey.RELEVANCE,
    )

    logger.debug(
        f"Compiled filter: WHERE {' AND '.join(describe(p) for p in predicates) or 'TRUE'} "
        f"ORDER BY {[(s.field, 'desc' if s.descending else 'asc') for s in sort]} "
        f"OFFSET {query.offset} LIMIT {query.limit}"
    )
    return query


def compile_predicates(nf: NormalizedFilter, today: date) -> Tuple[Predicate, ...]:
    """Build the AND-combined predicate list for a normalized filter."""
    predicates: List[Predicate] = []

    # --- Free text ---
    if nf.search_term:
        predicates.append(AnyOf(tuple(Contains(f, nf.search_term) for f in SEARCH_FIELDS)))

    # --- Funding ---
    funding = _null_policy_predicate(
        "award_ceiling",
        nf.funding_nulls,
        lower=nf.funding_min if nf.funding_min > 0 else None,
        upper=nf.funding_max,
    )
    if funding is not None:
        predicates.append(funding)

    # --- Deadline ---
    upper = offset_date(today, nf.deadline_max_days) if nf.deadline_max_days is not None else None
    deadline = _null_policy_predicate(
        "close_date",
        nf.deadline_nulls,
        lower=offset_date(today, nf.deadline_min_days),
        upper=upper,
    )
    if deadline is not None:
        predicates.append(deadline)

    # --- Set membership ---
    for field_name, values in (
        ("agency_name", nf.agencies),
        ("agency_subdivision", nf.agency_subdivisions),
        ("grant_type", nf.grant_types),
        ("status", nf.statuses),
        ("data_source", nf.data_sources),
    ):
        if values:
            predicates.append(In(field_name, values))

    for field_name, values in (
        ("activity_category", nf.activity_categories),
        ("eligible_applicants", nf.eligible_applicants),
    ):
        if values:
            predicates.append(Overlaps(field_name, values))

    # --- Cost sharing ---
    if nf.cost_sharing is CostSharing.REQUIRED:
        predicates.append(Equals("cost_sharing", True))
    elif nf.cost_sharing is CostSharing.NOT_REQUIRED:
        predicates.append(Equals("cost_sharing", False))

    # --- Interactions ---
    if nf.exclude_ids:
        predicates.append(In("id", nf.exclude_ids, negate=True))

    return tuple(predicates)


def resolve_sort(sort_by: SortKey) -> Tuple[SortClause, ...]:
    """
    Map a sort key to concrete store ordering.

    Relevance is not a stored column: the store orders by id only and the
    relevance scorer reorders the candidates.
    """
    if sort_by is SortKey.RELEVANCE:
        return (ID_ORDER,)
    clause = SORT_COLUMNS.get(sort_by)
    if clause is None:
        raise UnsupportedFilterError(f"No sort column for {sort_by!r}")
    return (clause, ID_ORDER)


def _null_policy_predicate(
    field_name: str,
    policy: NullPolicy,
    lower=None,
    upper=None,
) -> Optional[Predicate]:
    if policy is NullPolicy.NULL_ONLY:
        return IsNull(field_name)

    bounded = lower is not None or upper is not None

    if policy is NullPolicy.BOUNDED_OR_NULL:
        if not bounded:
            return None
        return AnyOf((Range(field_name, lower, upper), IsNull(field_name)))

    # BOUNDED: nulls are excluded even when the range itself is open
    if not bounded:
        return IsNull(field_name, negate=True)
    return Range(field_name, lower, upper)

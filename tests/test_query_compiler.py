"""Tests for compiling normalized filters into predicates, ordering and page windows."""

from datetime import timedelta

import pytest

from grantfinder.core.exceptions import InvalidFilterError
from grantfinder.search.filters import FilterSpec, SortKey, normalize_filter
from grantfinder.search.predicates import (
    AnyOf,
    Contains,
    Equals,
    In,
    IsNull,
    Overlaps,
    Range,
    SortClause,
    describe,
)
from grantfinder.search.query_compiler import ID_ORDER, compile_filter, resolve_sort

from conftest import TODAY


def compile_spec(page_size=10, **kwargs):
    return compile_filter(normalize_filter(FilterSpec(**kwargs)), page_size, TODAY)


# ============================================================
# Predicates
# ============================================================

class TestPredicates:
    def test_empty_filter_only_excludes_expired(self):
        query = compile_spec()
        assert query.predicates == (
            AnyOf((Range("close_date", TODAY, None), IsNull("close_date"))),
        )

    def test_funding_range_without_nulls(self):
        query = compile_spec(funding_min=1_000, funding_max=2_000, include_funding_null=False)
        assert Range("award_ceiling", 1_000, 2_000) in query.predicates

    def test_funding_range_with_nulls(self):
        query = compile_spec(funding_min=1_000, funding_max=2_000)
        assert AnyOf((Range("award_ceiling", 1_000, 2_000), IsNull("award_ceiling"))) in query.predicates

    def test_unbounded_funding_without_nulls_requires_a_value(self):
        query = compile_spec(include_funding_null=False)
        assert IsNull("award_ceiling", negate=True) in query.predicates

    def test_only_no_funding(self):
        query = compile_spec(only_no_funding=True, funding_min=5)
        assert IsNull("award_ceiling") in query.predicates
        assert not any(isinstance(p, Range) and p.field == "award_ceiling" for p in query.predicates)

    def test_deadline_window_is_relative_to_today(self):
        query = compile_spec(deadline_min_days=7, deadline_max_days=30, include_no_deadline=False)
        assert Range("close_date", TODAY + timedelta(days=7), TODAY + timedelta(days=30)) in query.predicates

    def test_only_no_deadline(self):
        query = compile_spec(only_no_deadline=True)
        assert query.predicates == (IsNull("close_date"),)

    def test_search_term_matches_title_agency_or_description(self):
        query = compile_spec(search_term="  water  ")
        assert query.predicates[0] == AnyOf((
            Contains("title", "water"),
            Contains("agency_name", "water"),
            Contains("description", "water"),
        ))

    def test_set_filters(self):
        query = compile_spec(agencies="NSF", activity_categories=["Health"], eligible_applicants="Nonprofits")
        assert In("agency_name", ("NSF",)) in query.predicates
        assert Overlaps("activity_category", ("Health",)) in query.predicates
        assert Overlaps("eligible_applicants", ("Nonprofits",)) in query.predicates

    def test_cost_sharing(self):
        assert Equals("cost_sharing", True) in compile_spec(cost_sharing="required").predicates
        assert Equals("cost_sharing", False) in compile_spec(cost_sharing="not required").predicates

    def test_exclude_ids(self):
        query = compile_spec(exclude_ids=["b", "a"])
        assert In("id", ("a", "b"), negate=True) in query.predicates

    def test_describe_is_readable(self):
        text = describe(AnyOf((Range("award_ceiling", 1, 2), IsNull("award_ceiling"))))
        assert text == "(award_ceiling >= 1 AND award_ceiling <= 2 OR award_ceiling IS NULL)"


# ============================================================
# Pagination and Ordering
# ============================================================

class TestPagination:
    def test_offset_and_limit(self):
        query = compile_spec(page=3, page_size=10)
        assert query.offset == 20
        assert query.limit == 10

    def test_first_page(self):
        query = compile_spec(page_size=25)
        assert (query.offset, query.limit) == (0, 25)

    def test_bad_page_size(self):
        with pytest.raises(InvalidFilterError):
            compile_spec(page_size=0)

    def test_count_query_shares_predicates(self):
        query = compile_spec(search_term="water", agencies="NSF")
        assert query.count_query().predicates == query.predicates


class TestOrdering:
    @pytest.mark.parametrize("sort_by,clause", [
        (SortKey.DEADLINE, SortClause("close_date")),
        (SortKey.DEADLINE_LATEST, SortClause("close_date", descending=True)),
        (SortKey.AMOUNT, SortClause("award_ceiling", descending=True)),
        (SortKey.AMOUNT_ASC, SortClause("award_ceiling")),
        (SortKey.RECENT, SortClause("post_date", descending=True)),
        (SortKey.TITLE_ASC, SortClause("title")),
        (SortKey.TITLE_DESC, SortClause("title", descending=True)),
    ])
    def test_sort_key_has_id_tiebreaker(self, sort_by, clause):
        assert resolve_sort(sort_by) == (clause, ID_ORDER)

    def test_relevance_is_ranked_in_memory(self):
        query = compile_spec(sort_by="relevance")
        assert query.rank_by_relevance
        assert query.sort == (ID_ORDER,)

    def test_column_sorts_are_not_ranked(self):
        assert not compile_spec(sort_by="deadline").rank_by_relevance

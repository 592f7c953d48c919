"""Tests for the SQLite grant and preference stores."""

from datetime import timedelta

import pytest

from grantfinder.core.domain_models import UserPreferences
from grantfinder.search.filters import FilterSpec, normalize_filter
from grantfinder.search.predicates import matches_all
from grantfinder.search.query_compiler import compile_filter
from grantfinder.storage.preference_store import DEFAULT_FUNDING_MAX, PreferenceStore

from conftest import GRANTS, TODAY, make_grant


def compile_spec(spec: FilterSpec, page_size: int = 100):
    return compile_filter(normalize_filter(spec), page_size, TODAY)


# ============================================================
# Persistence
# ============================================================

class TestPersistence:
    def test_get_grant_round_trips_every_field(self, grant_store):
        original = GRANTS[7]
        assert grant_store.get_grant("G-007") == original

    def test_missing_grant(self, grant_store):
        assert grant_store.get_grant("nope") is None

    def test_upsert_is_idempotent(self, grant_store):
        grant_store.upsert_grants(GRANTS)
        assert grant_store.count(()) == len(GRANTS)

    def test_upsert_updates_existing(self, grant_store):
        grant_store.upsert_grant(make_grant("G-000", title="Renamed"))
        assert grant_store.get_grant("G-000").title == "Renamed"
        assert grant_store.count(()) == len(GRANTS)

    def test_scan_decodes_list_columns(self, grant_store):
        rows = list(grant_store.scan(batch_size=7))
        assert len(rows) == len(GRANTS)
        assert rows[0]["id"] == "G-000"
        assert rows[1]["activity_category"] == ["Health"]

    def test_scan_selected_columns(self, grant_store):
        row = next(grant_store.scan(columns=["id", "award_ceiling"]))
        assert set(row) == {"id", "award_ceiling"}


# ============================================================
# Store results agree with in-memory predicate evaluation
# ============================================================

SPECS = [
    FilterSpec(),
    FilterSpec(search_term="WATER"),
    FilterSpec(funding_min=60_000, funding_max=90_000, include_funding_null=False),
    FilterSpec(funding_min=60_000, funding_max=90_000),
    FilterSpec(only_no_funding=True),
    FilterSpec(include_funding_null=False),
    FilterSpec(deadline_min_days=20, deadline_max_days=100, include_no_deadline=False),
    FilterSpec(only_no_deadline=True),
    FilterSpec(agencies="NIH,DOE", activity_categories="Health"),
    FilterSpec(eligible_applicants="Nonprofits", cost_sharing="not required"),
    FilterSpec(cost_sharing="required", data_sources="grants.gov"),
    FilterSpec(exclude_ids=["G-001", "G-002"], statuses="posted"),
]


@pytest.mark.parametrize("spec", SPECS)
def test_store_matches_predicates(grant_store, spec):
    query = compile_spec(spec)
    expected = {g.id for g in GRANTS if matches_all(query.predicates, g)}

    fetched = grant_store.fetch(query.predicates, query.sort, 0, 100)

    assert {g.id for g in fetched} == expected
    assert grant_store.count(query.predicates) == len(expected)


@pytest.mark.parametrize("spec", [
    FilterSpec(funding_min=60_000, funding_max=150_000, include_funding_null=False),
    FilterSpec(funding_min=60_000, funding_max=150_000),
    FilterSpec(only_no_funding=True),
], ids=["bounded", "bounded-or-null", "null-only"])
def test_funding_filter_is_idempotent(grant_store, spec):
    query = compile_spec(spec)
    fetched = grant_store.fetch(query.predicates, query.sort, 0, 100)

    assert fetched
    refiltered = {g.id for g in fetched if matches_all(query.predicates, g)}
    assert refiltered == {g.id for g in fetched}


class TestTextSearch:
    @pytest.mark.parametrize("term", ["école", "ÉCOLE", "École Research"])
    def test_non_ascii_search_ignores_case(self, grant_store, term):
        grant_store.upsert_grant(make_grant("G-ECOLE", title="École Research Fund"))
        query = compile_spec(FilterSpec(search_term=term))

        fetched = grant_store.fetch(query.predicates, query.sort, 0, 100)

        assert [g.id for g in fetched] == ["G-ECOLE"]
        assert grant_store.count(query.predicates) == 1
        assert matches_all(query.predicates, fetched[0])

    def test_search_matches_description(self, grant_store):
        query = compile_spec(FilterSpec(search_term="water QUALITY"))
        ids = sorted(g.id for g in grant_store.fetch(query.predicates, query.sort, 0, 100))
        assert ids == ["G-003", "G-007"]


class TestBoundaries:
    def test_funding_bounds_are_inclusive(self, grant_store):
        query = compile_spec(FilterSpec(funding_min=60_000, funding_max=90_000, include_funding_null=False))
        ids = [g.id for g in grant_store.fetch(query.predicates, query.sort, 0, 100)]
        assert sorted(ids) == ["G-006", "G-007", "G-008", "G-009"]

    def test_deadline_bounds_are_inclusive(self, grant_store):
        # G-002 closes in exactly 20 days and G-010 in exactly 100
        query = compile_spec(FilterSpec(deadline_min_days=20, deadline_max_days=100, include_no_deadline=False))
        ids = sorted(g.id for g in grant_store.fetch(query.predicates, query.sort, 0, 100))
        assert ids[0] == "G-002"
        assert ids[-1] == "G-010"

    def test_expired_grants_are_never_returned(self, grant_store):
        grant_store.upsert_grant(make_grant("G-OLD", close_date=TODAY - timedelta(days=1)))
        query = compile_spec(FilterSpec())
        assert grant_store.count(query.predicates) == len(GRANTS)

    def test_grant_closing_today_is_returned(self, grant_store):
        grant_store.upsert_grant(make_grant("G-TODAY", close_date=TODAY))
        query = compile_spec(FilterSpec())
        assert grant_store.count(query.predicates) == len(GRANTS) + 1


class TestOrdering:
    def test_deadline_sort_puts_rolling_last(self, grant_store):
        query = compile_spec(FilterSpec(sort_by="deadline"))
        grants = grant_store.fetch(query.predicates, query.sort, 0, 100)
        assert grants[0].id == "G-001"
        assert all(g.close_date is None for g in grants[-5:])

    def test_amount_sort_puts_unknown_funding_last(self, grant_store):
        query = compile_spec(FilterSpec(sort_by="amount"))
        grants = grant_store.fetch(query.predicates, query.sort, 0, 100)
        assert grants[0].id == "G-024"
        assert all(g.award_ceiling is None for g in grants[-5:])

    def test_recent_sort(self, grant_store):
        query = compile_spec(FilterSpec(sort_by="recent"))
        grants = grant_store.fetch(query.predicates, query.sort, 0, 3)
        assert [g.id for g in grants] == ["G-000", "G-001", "G-002"]

    def test_pages_do_not_overlap(self, grant_store):
        seen = []
        for page in (1, 2, 3):
            query = compile_spec(FilterSpec(sort_by="title_asc", page=page), page_size=10)
            seen.extend(g.id for g in grant_store.fetch(query.predicates, query.sort, query.offset, query.limit))
        assert len(seen) == len(set(seen)) == len(GRANTS)


# ============================================================
# Preferences
# ============================================================

class TestPreferenceStore:
    def test_missing_user_gets_defaults(self, db_path):
        prefs = PreferenceStore(db_path).get_preferences("ghost")
        assert prefs.preferred_categories == []
        assert prefs.funding_max == DEFAULT_FUNDING_MAX

    def test_anonymous_user_gets_defaults(self, db_path):
        assert PreferenceStore(db_path).get_preferences(None).is_empty()

    def test_round_trip(self, db_path):
        store = PreferenceStore(db_path)
        prefs = UserPreferences(["Health"], ["NIH"], 1_000, 2_000)
        store.upsert_preferences("u", prefs)
        assert store.get_preferences("u") == prefs

    def test_upsert_replaces(self, db_path):
        store = PreferenceStore(db_path)
        store.upsert_preferences("u", UserPreferences(["Health"], [], 0, 10))
        store.upsert_preferences("u", UserPreferences(["Energy"], [], 0, 10))
        assert store.get_preferences("u").preferred_categories == ["Energy"]

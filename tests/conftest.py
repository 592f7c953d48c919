"""
Pytest configuration and shared fixtures.

Every test runs against a fixed reference date so deadline offsets are
reproducible.
"""

from datetime import date, timedelta

import pytest

from grantfinder.core.domain_models import Grant, UserPreferences
from grantfinder.search.engine import GrantSearchEngine
from grantfinder.storage.grant_store import GrantStore
from grantfinder.storage.preference_store import PreferenceStore

TODAY = date(2025, 1, 1)

AGENCIES = ["NSF", "NIH", "DOE"]
CATEGORIES = ["Education", "Health", "Energy", "Science & Technology"]


# ============================================================
# Factories
# ============================================================


def make_grant(grant_id: str = "G-X", **overrides) -> Grant:
    """Build a Grant with sensible defaults; keyword overrides win."""
    fields = {
        "id": grant_id,
        "title": f"Grant {grant_id}",
        "agency_name": "NSF",
        "description": "",
        "award_ceiling": 100_000,
        "close_date": TODAY + timedelta(days=30),
        "post_date": TODAY - timedelta(days=1),
        "activity_category": ("Science & Technology",),
        "eligible_applicants": ("Universities",),
        "status": "posted",
        "data_source": "grants.gov",
    }
    fields.update(overrides)
    return Grant(**fields)


def build_fixture_grants():
    """
    25 open grants with a known layout:

    - award_ceiling is None for i % 5 == 0, otherwise i * 10,000
    - close_date is None for i % 6 == 0, otherwise TODAY + i * 10 days
    - post_date is TODAY - i days, so "recent" order is G-000, G-001, ...
    - G-003 and G-007 mention "water" in their description
    """
    grants = []
    for i in range(25):
        grants.append(make_grant(
            f"G-{i:03d}",
            title=f"Grant {i:02d}",
            agency_name=AGENCIES[i % 3],
            description="Water quality research" if i in (3, 7) else "General research support",
            award_ceiling=None if i % 5 == 0 else i * 10_000,
            award_floor=None,
            close_date=None if i % 6 == 0 else TODAY + timedelta(days=i * 10),
            post_date=TODAY - timedelta(days=i),
            activity_category=(CATEGORIES[i % 4],),
            eligible_applicants=("Nonprofits",) if i % 2 else ("Universities",),
            grant_type="discretionary",
            cost_sharing=i % 4 == 0,
            data_source="grants.gov" if i % 2 == 0 else "sam.gov",
        ))
    return grants


GRANTS = build_fixture_grants()


# ============================================================
# Storage Fixtures
# ============================================================


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "grants.db")


@pytest.fixture
def grant_store(db_path):
    """SQLite store seeded with the 25 fixture grants."""
    store = GrantStore(db_path)
    store.upsert_grants(GRANTS)
    return store


@pytest.fixture
def preference_store(db_path):
    store = PreferenceStore(db_path)
    store.upsert_preferences("user-1", UserPreferences(
        preferred_categories=["Health"],
        preferred_agencies=["NIH"],
        funding_min=50_000,
        funding_max=150_000,
    ))
    store.upsert_preferences("user-nomatch", UserPreferences(
        preferred_categories=["Agriculture"],
        preferred_agencies=[],
        funding_min=0,
        funding_max=1_000_000,
    ))
    return store


@pytest.fixture
def engine(grant_store, preference_store):
    return GrantSearchEngine(
        grant_store,
        preference_store,
        page_size=10,
        clock=lambda: TODAY,
    )

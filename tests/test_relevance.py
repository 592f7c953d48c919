"""Tests for preference-based relevance scoring and ranking."""

import random
from datetime import timedelta

import pytest

from grantfinder.core.domain_models import UserPreferences
from grantfinder.search.relevance import MAX_SCORE, RelevanceScorer, SearchHit

from conftest import GRANTS, TODAY, make_grant


PREFS = UserPreferences(
    preferred_categories=["Health"],
    preferred_agencies=["NIH"],
    funding_min=50_000,
    funding_max=100_000,
)


@pytest.fixture
def scorer():
    return RelevanceScorer(TODAY)


# ============================================================
# Score factors
# ============================================================

class TestScore:
    def test_perfect_match_hits_the_maximum(self, scorer):
        grant = make_grant(
            activity_category=("Health",),
            agency_name="NIH",
            award_ceiling=75_000,
            close_date=TODAY,
        )
        assert scorer.score(grant, PREFS) == MAX_SCORE

    def test_no_match_scores_zero(self, scorer):
        grant = make_grant(activity_category=("Energy",), agency_name="DOE", award_ceiling=None, close_date=None)
        assert scorer.score(grant, PREFS) == 0.0

    def test_scores_are_bounded(self, scorer):
        for grant in GRANTS:
            assert 0.0 <= scorer.score(grant, PREFS) <= MAX_SCORE

    def test_funding_decays_outside_band(self, scorer):
        doubled = make_grant(award_ceiling=200_000, close_date=None, activity_category=(), agency_name=None)
        too_big = make_grant(award_ceiling=250_000, close_date=None, activity_category=(), agency_name=None)
        assert scorer.breakdown(doubled, PREFS)["funding"] == pytest.approx(10.0)
        assert scorer.breakdown(too_big, PREFS)["funding"] == 0.0

    def test_deadline_urgency_halves_every_half_life(self, scorer):
        grant = make_grant(close_date=TODAY + timedelta(days=30))
        assert scorer.breakdown(grant, PREFS)["deadline"] == pytest.approx(10.0)

    def test_rolling_deadline_has_no_urgency(self, scorer):
        assert scorer.breakdown(make_grant(close_date=None), PREFS)["deadline"] == 0.0

    def test_partial_category_overlap(self, scorer):
        prefs = UserPreferences(["Health", "Energy"], [], 0, 0)
        grant = make_grant(activity_category=("Health", "Education", "Arts"), close_date=None, award_ceiling=None)
        assert scorer.breakdown(grant, prefs)["category"] == pytest.approx(20.0)

    def test_empty_preferences_rank_on_deadline_only(self, scorer):
        prefs = UserPreferences([], [], 0, 0)
        grant = make_grant(close_date=TODAY, award_ceiling=None)
        assert scorer.score(grant, prefs) == 20.0


# ============================================================
# Ranking
# ============================================================

class TestRank:
    def test_ordered_by_score(self, scorer):
        hits = scorer.rank(GRANTS, PREFS)
        scores = [hit.match_score for hit in hits]
        assert scores == sorted(scores, reverse=True)

    def test_deterministic_regardless_of_input_order(self, scorer):
        shuffled = list(GRANTS)
        random.Random(7).shuffle(shuffled)
        assert scorer.rank(shuffled, PREFS) == scorer.rank(GRANTS, PREFS)

    def test_equal_rolling_grants_order_by_id(self, scorer):
        prefs = UserPreferences([], [], 0, 0)
        first = make_grant("A", close_date=None, award_ceiling=None)
        second = make_grant("B", close_date=None, award_ceiling=None)
        # Equal scores (zero) and both rolling: id decides
        assert [h.grant.id for h in scorer.rank([second, first], prefs)] == ["A", "B"]

    def test_rolling_deadlines_rank_after_dated_ties(self):
        scorer = RelevanceScorer(TODAY, half_life_days=1e-9)
        prefs = UserPreferences([], [], 0, 0)
        rolling = make_grant("A", close_date=None, award_ceiling=None)
        dated = make_grant("B", close_date=TODAY + timedelta(days=400), award_ceiling=None)
        assert [h.grant.id for h in scorer.rank([rolling, dated], prefs)] == ["B", "A"]

    def test_input_is_not_modified(self, scorer):
        grants = list(GRANTS)
        scorer.rank(grants, PREFS)
        assert grants == GRANTS
        assert all(g.match_score is None for g in grants)

    def test_hit_serialization_carries_score(self):
        hit = SearchHit(make_grant("G-1"), 42.5)
        assert hit.to_dict()["match_score"] == 42.5
        assert SearchHit(make_grant("G-1")).to_dict()["match_score"] is None

"""
Score grants against a user's preferences for relevance ordering.

The score is a deterministic, explainable sum of four weighted factors and
is bounded by MAX_SCORE:

- Category overlap (40): share of preferred categories found on the grant
- Agency match (20): grant agency is one of the preferred agencies
- Funding proximity (20): full inside the preferred band, decaying with the
  ratio to the nearest band edge, zero beyond half/double the band
- Deadline urgency (20): halves every DEADLINE_HALF_LIFE_DAYS; zero for
  expired or rolling grants
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from grantfinder.core.domain_models import Grant, UserPreferences
from grantfinder.core.time_utils import days_until


CATEGORY_WEIGHT = 40.0
AGENCY_WEIGHT = 20.0
FUNDING_WEIGHT = 20.0
DEADLINE_WEIGHT = 20.0
MAX_SCORE = CATEGORY_WEIGHT + AGENCY_WEIGHT + FUNDING_WEIGHT + DEADLINE_WEIGHT

# Below this ratio to the preferred band a ceiling earns no funding points
MIN_FUNDING_RATIO = 0.5

DEADLINE_HALF_LIFE_DAYS = 30.0


@dataclass(frozen=True)
class SearchHit:
    """
    A single ranked result.

    Attributes:
        grant: The untouched record
        match_score: Relevance score (0-MAX_SCORE), None when not ranked
    """
    grant: Grant
    match_score: Optional[float] = None

    def to_dict(self) -> dict:
        data = self.grant.to_dict()
        if self.match_score is not None:
            data["match_score"] = self.match_score
        return data


class RelevanceScorer:
    """
    Rank grants by preference match.

    Usage:
        scorer = RelevanceScorer(today=date(2025, 1, 1))
        hits = scorer.rank(grants, preferences)
    """

    def __init__(self, today: date, half_life_days: float = DEADLINE_HALF_LIFE_DAYS):
        self.today = today
        self.half_life_days = half_life_days

    def breakdown(self, grant: Grant, prefs: UserPreferences) -> Dict[str, float]:
        """Per-factor contribution, useful for explaining a score."""
        return {
            "category": self._category_score(grant, prefs),
            "agency": self._agency_score(grant, prefs),
            "funding": self._funding_score(grant, prefs),
            "deadline": self._deadline_score(grant),
        }

    def score(self, grant: Grant, prefs: UserPreferences) -> float:
        total = sum(self.breakdown(grant, prefs).values())
        return round(min(MAX_SCORE, max(0.0, total)), 2)

    def rank(self, grants: Iterable[Grant], prefs: UserPreferences) -> List[SearchHit]:
        """
        Score and order grants.

        Order: score descending, then closer deadline (rolling last), then id.
        """
        hits = [SearchHit(grant, self.score(grant, prefs)) for grant in grants]
        hits.sort(key=_rank_key)
        return hits

    def _category_score(self, grant: Grant, prefs: UserPreferences) -> float:
        preferred = set(prefs.preferred_categories)
        categories = set(grant.activity_category)
        if not preferred or not categories:
            return 0.0
        matching = preferred & categories
        return CATEGORY_WEIGHT * len(matching) / min(len(preferred), len(categories))

    def _agency_score(self, grant: Grant, prefs: UserPreferences) -> float:
        if grant.agency_name and grant.agency_name in set(prefs.preferred_agencies):
            return AGENCY_WEIGHT
        return 0.0

    def _funding_score(self, grant: Grant, prefs: UserPreferences) -> float:
        ceiling = grant.award_ceiling
        if ceiling is None:
            return 0.0
        band_min, band_max = prefs.preferred_funding_band
        if band_min <= ceiling <= band_max:
            return FUNDING_WEIGHT

        if ceiling > band_max:
            ratio = band_max / ceiling
        else:
            ratio = ceiling / band_min
        if ratio < MIN_FUNDING_RATIO:
            return 0.0
        return FUNDING_WEIGHT * ratio

    def _deadline_score(self, grant: Grant) -> float:
        days_left = days_until(grant.close_date, self.today)
        if days_left is None or days_left < 0:
            return 0.0
        return DEADLINE_WEIGHT * 0.5 ** (days_left / self.half_life_days)


def _rank_key(hit: SearchHit):
    close_date = hit.grant.close_date
    return (
        -hit.match_score,
        close_date is None,
        close_date or date.min,
        hit.grant.id,
    )

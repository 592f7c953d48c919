"""
Canonical domain models for the grant search engine.

These models are the read-only records the engine filters, ranks and
summarises. They are produced by an external ingestion pipeline and are
never mutated here.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List, Tuple


@dataclass(frozen=True)
class Grant:
    """
    Canonical funding opportunity record.

    Funding amounts are whole US dollars. A missing ceiling or close date is
    meaningful (unknown funding / rolling deadline) and is kept as None.
    """
    # Required fields
    id: str
    title: str

    agency_name: Optional[str] = None
    agency_subdivision: Optional[str] = None
    description: str = ""

    # Funding information
    award_ceiling: Optional[int] = None
    award_floor: Optional[int] = None

    # Dates
    close_date: Optional[date] = None
    post_date: Optional[date] = None

    # Classification
    activity_category: Tuple[str, ...] = ()
    eligible_applicants: Tuple[str, ...] = ()
    grant_type: Optional[str] = None
    funding_type: Optional[str] = None
    category: Optional[str] = None
    cost_sharing: bool = False
    status: Optional[str] = None
    data_source: Optional[str] = None
    source_url: Optional[str] = None

    # Precomputed by an external job; read-only input
    match_score: Optional[float] = None

    def to_dict(self) -> dict:
        """Flat JSON-friendly representation."""
        return {
            "id": self.id,
            "title": self.title,
            "agency_name": self.agency_name,
            "agency_subdivision": self.agency_subdivision,
            "description": self.description,
            "award_ceiling": self.award_ceiling,
            "award_floor": self.award_floor,
            "close_date": self.close_date.isoformat() if self.close_date else None,
            "post_date": self.post_date.isoformat() if self.post_date else None,
            "activity_category": list(self.activity_category),
            "eligible_applicants": list(self.eligible_applicants),
            "grant_type": self.grant_type,
            "funding_type": self.funding_type,
            "category": self.category,
            "cost_sharing": self.cost_sharing,
            "status": self.status,
            "data_source": self.data_source,
            "source_url": self.source_url,
            "match_score": self.match_score,
        }


@dataclass
class UserPreferences:
    """
    A user's ranking preferences, as kept by the preference store.

    An empty preference set is valid: anonymous users rank on deadline
    urgency alone.
    """
    preferred_categories: List[str] = field(default_factory=list)
    preferred_agencies: List[str] = field(default_factory=list)
    funding_min: int = 0
    funding_max: int = 1_000_000

    @property
    def preferred_funding_band(self) -> Tuple[int, int]:
        return self.funding_min, self.funding_max

    def is_empty(self) -> bool:
        return not self.preferred_categories and not self.preferred_agencies

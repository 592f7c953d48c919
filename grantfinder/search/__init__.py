"""
Filter model, query compilation, relevance ranking and the search engine.
"""

from .engine import GrantSearchEngine
from .filters import FilterSpec, NormalizedFilter, NullPolicy, SortKey, normalize_filter
from .results import ResultEnvelope

__all__ = [
    'GrantSearchEngine',
    'FilterSpec',
    'NormalizedFilter',
    'NullPolicy',
    'SortKey',
    'normalize_filter',
    'ResultEnvelope',
]

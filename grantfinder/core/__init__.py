"""
Domain models, errors and shared helpers.
"""

from .domain_models import Grant, UserPreferences
from .exceptions import FetchError, GrantFinderError, InvalidFilterError, UnsupportedFilterError

__all__ = [
    'Grant',
    'UserPreferences',
    'GrantFinderError',
    'InvalidFilterError',
    'UnsupportedFilterError',
    'FetchError',
]

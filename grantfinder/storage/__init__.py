"""
SQLite record and preference stores.
"""

from .grant_store import GrantStore
from .preference_store import PreferenceStore

__all__ = ['GrantStore', 'PreferenceStore']

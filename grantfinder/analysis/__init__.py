"""
Offline statistics over the grant catalogue.
"""

from .statistics import GrantStatistics, StatisticsSnapshot

__all__ = ['GrantStatistics', 'StatisticsSnapshot']

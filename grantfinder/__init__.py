"""
Grant filtering, relevance ranking and catalogue statistics.
"""

__version__ = "0.1.0"

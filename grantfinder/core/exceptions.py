"""
Error taxonomy for the grant search engine.

Zero matches is not an error: an empty page is a valid result.
"""


class GrantFinderError(Exception):
    """Base class for all engine errors."""


class InvalidFilterError(GrantFinderError, ValueError):
    """Structurally malformed filter input (rejected, not corrected)."""


class UnsupportedFilterError(InvalidFilterError):
    """Unknown sort key, filter field or filter value."""


class FetchError(GrantFinderError):
    """Record store failure (connection, query or decoding error)."""

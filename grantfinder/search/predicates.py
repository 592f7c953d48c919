"""
Predicate combinators compiled against the record store.

Predicates are plain immutable values. The storage layer renders them to
SQL (grantfinder.storage.sql); matches() evaluates them in memory against a
Grant, which is what the tests use to check store results.

Range bounds are inclusive at both ends.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from grantfinder.core.domain_models import Grant


@dataclass(frozen=True)
class Range:
    """lower <= field <= upper; a None bound is open. Null values never match."""
    field: str
    lower: Any = None
    upper: Any = None


@dataclass(frozen=True)
class IsNull:
    field: str
    negate: bool = False


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class In:
    """Scalar column is one of values (or none of them when negated)."""
    field: str
    values: Tuple[Any, ...]
    negate: bool = False


@dataclass(frozen=True)
class Overlaps:
    """List column shares at least one element with values."""
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match."""
    field: str
    text: str


@dataclass(frozen=True)
class AnyOf:
    """OR-combination of predicates."""
    clauses: Tuple["Predicate", ...]


Predicate = Union[Range, IsNull, Equals, In, Overlaps, Contains, AnyOf]


@dataclass(frozen=True)
class SortClause:
    field: str
    descending: bool = False
    nulls_last: bool = True


def matches(predicate: Predicate, grant: Grant) -> bool:
    """Evaluate a predicate against a single record."""
    if isinstance(predicate, AnyOf):
        return any(matches(clause, grant) for clause in predicate.clauses)

    value = getattr(grant, predicate.field)

    if isinstance(predicate, Range):
        if value is None:
            return False
        if predicate.lower is not None and value < predicate.lower:
            return False
        if predicate.upper is not None and value > predicate.upper:
            return False
        return True
    if isinstance(predicate, IsNull):
        return (value is None) != predicate.negate
    if isinstance(predicate, Equals):
        return value == predicate.value
    if isinstance(predicate, In):
        if value is None:
            # SQL NULL is neither IN nor NOT IN a set
            return False
        return (value in predicate.values) != predicate.negate
    if isinstance(predicate, Overlaps):
        return bool(set(value or ()) & set(predicate.values))
    if isinstance(predicate, Contains):
        return predicate.text.casefold() in (value or "").casefold()

    raise TypeError(f"Unknown predicate: {predicate!r}")


def matches_all(predicates: Tuple[Predicate, ...], grant: Grant) -> bool:
    """AND-combination, as applied by the record store."""
    return all(matches(p, grant) for p in predicates)


def describe(predicate: Optional[Predicate]) -> str:
    """Short human-readable form, used in debug logs."""
    if predicate is None:
        return "TRUE"
    if isinstance(predicate, AnyOf):
        return "(" + " OR ".join(describe(c) for c in predicate.clauses) + ")"
    if isinstance(predicate, Range):
        parts = []
        if predicate.lower is not None:
            parts.append(f"{predicate.field} >= {predicate.lower}")
        if predicate.upper is not None:
            parts.append(f"{predicate.field} <= {predicate.upper}")
        return " AND ".join(parts) or f"{predicate.field} IS NOT NULL"
    if isinstance(predicate, IsNull):
        return f"{predicate.field} IS {'NOT ' if predicate.negate else ''}NULL"
    if isinstance(predicate, Equals):
        return f"{predicate.field} = {predicate.value!r}"
    if isinstance(predicate, In):
        return f"{predicate.field} {'NOT ' if predicate.negate else ''}IN {list(predicate.values)}"
    if isinstance(predicate, Overlaps):
        return f"{predicate.field} && {list(predicate.values)}"
    if isinstance(predicate, Contains):
        return f"{predicate.field} ILIKE '%{predicate.text}%'"
    return repr(predicate)

"""
Filter model for grant search.

A FilterSpec is the raw, caller-facing description of a search (defaults
mirror the search page's initial state). normalize_filter() validates it and
produces a NormalizedFilter that the query compiler can translate without
further checks.

Normalization policy:
- Range violations are corrected, never rejected: negative bounds are
  clamped to zero, day offsets to [0, MAX_DEADLINE_DAYS], and a min greater
  than its max is swapped.
- Each nullable dimension (funding ceiling, close date) is reduced to one
  NullPolicy. The "only no X" flag wins over bounds and the include flag.
- Structurally malformed input (bad page, unknown sort key, non-numeric
  bound) raises InvalidFilterError.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from grantfinder.config import MAX_DEADLINE_DAYS, MAX_FUNDING, MIN_DEADLINE_DAYS
from grantfinder.core.exceptions import InvalidFilterError, UnsupportedFilterError
from grantfinder.core.money import parse_usd_amount
from grantfinder.core.utils import clean_text, split_csv


logger = logging.getLogger(__name__)


class NullPolicy(str, Enum):
    """How records with a missing value take part in a range filter."""
    BOUNDED = "bounded"                  # only non-null values inside the range
    BOUNDED_OR_NULL = "bounded_or_null"  # inside the range, or null
    NULL_ONLY = "null_only"              # only null values, range ignored

    @classmethod
    def from_flags(cls, include_null: bool, only_null: bool) -> "NullPolicy":
        if only_null:
            return cls.NULL_ONLY
        if include_null:
            return cls.BOUNDED_OR_NULL
        return cls.BOUNDED


class SortKey(str, Enum):
    RELEVANCE = "relevance"
    DEADLINE = "deadline"
    DEADLINE_LATEST = "deadline_latest"
    AMOUNT = "amount"
    AMOUNT_ASC = "amount_asc"
    RECENT = "recent"
    TITLE_ASC = "title_asc"
    TITLE_DESC = "title_desc"


_SORT_ALIASES = {
    "deadline-ascending": SortKey.DEADLINE,
    "deadline-descending": SortKey.DEADLINE_LATEST,
    "funding-descending": SortKey.AMOUNT,
    "funding-ascending": SortKey.AMOUNT_ASC,
    "posted-date-descending": SortKey.RECENT,
}


class CostSharing(str, Enum):
    ANY = ""
    REQUIRED = "required"
    NOT_REQUIRED = "not required"


_COST_SHARING_ALIASES = {
    "not-required": CostSharing.NOT_REQUIRED,
    "not_required": CostSharing.NOT_REQUIRED,
}

DEFAULT_SORT = SortKey.RECENT


def resolve_sort_key(value: Any) -> SortKey:
    """
    Map a sort key (enum, canonical name or alias) to a SortKey.

    Raises:
        UnsupportedFilterError: If the key is not recognised
    """
    if isinstance(value, SortKey):
        return value
    if value is None or value == "":
        return DEFAULT_SORT
    if not isinstance(value, str):
        raise UnsupportedFilterError(f"Unsupported sort key: {value!r}")

    key = value.strip().lower()
    if key in _SORT_ALIASES:
        return _SORT_ALIASES[key]
    try:
        return SortKey(key)
    except ValueError:
        raise UnsupportedFilterError(f"Unsupported sort key: {value!r}") from None


def resolve_cost_sharing(value: Any) -> CostSharing:
    if isinstance(value, CostSharing):
        return value
    if value is None:
        return CostSharing.ANY
    if not isinstance(value, str):
        raise UnsupportedFilterError(f"Unsupported cost sharing value: {value!r}")

    key = value.strip().lower()
    if key in _COST_SHARING_ALIASES:
        return _COST_SHARING_ALIASES[key]
    try:
        return CostSharing(key)
    except ValueError:
        raise UnsupportedFilterError(f"Unsupported cost sharing value: {value!r}") from None


@dataclass
class FilterSpec:
    """
    Raw search intent as supplied by the caller.

    Set-valued filters accept a single string, a comma-separated string or
    any iterable of strings. funding_max == MAX_FUNDING and
    deadline_max_days == MAX_DEADLINE_DAYS (or None) mean "no upper bound".
    """
    search_term: str = ""

    funding_min: Any = 0
    funding_max: Any = MAX_FUNDING
    include_funding_null: bool = True
    only_no_funding: bool = False

    deadline_min_days: Any = MIN_DEADLINE_DAYS
    deadline_max_days: Any = MAX_DEADLINE_DAYS
    include_no_deadline: bool = True
    only_no_deadline: bool = False

    agencies: Any = ()
    agency_subdivisions: Any = ()
    eligible_applicants: Any = ()
    activity_categories: Any = ()
    grant_types: Any = ()
    statuses: Any = ()
    data_sources: Any = ()
    cost_sharing: Any = ""

    # Grants the user already saved, applied to or ignored
    exclude_ids: Any = ()

    sort_by: Any = DEFAULT_SORT
    page: Any = 1

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "FilterSpec":
        """
        Build a spec from HTTP query parameters.

        Accepts the field names above plus the short names used by the web
        client (search, funding_null, include_no_funding, deadline_null,
        sources, agency_name, eligible_applicant_types, grant_type, status).

        Raises:
            UnsupportedFilterError: For unknown parameter names
            InvalidFilterError: For values that cannot be parsed
        """
        kwargs = {}
        for name, raw in params.items():
            field_name = _PARAM_ALIASES.get(name, name)
            parser = _PARAM_PARSERS.get(field_name)
            if parser is None:
                raise UnsupportedFilterError(f"Unsupported filter parameter: {name!r}")
            kwargs[field_name] = parser(raw, name)
        return cls(**kwargs)


@dataclass(frozen=True)
class NormalizedFilter:
    """Validated, internally consistent filter ready for compilation."""
    search_term: str
    funding_min: int
    funding_max: Optional[int]
    funding_nulls: NullPolicy
    deadline_min_days: int
    deadline_max_days: Optional[int]
    deadline_nulls: NullPolicy
    agencies: Tuple[str, ...]
    agency_subdivisions: Tuple[str, ...]
    eligible_applicants: Tuple[str, ...]
    activity_categories: Tuple[str, ...]
    grant_types: Tuple[str, ...]
    statuses: Tuple[str, ...]
    data_sources: Tuple[str, ...]
    cost_sharing: CostSharing
    exclude_ids: Tuple[str, ...]
    sort_by: SortKey
    page: int


def normalize_filter(spec: FilterSpec) -> NormalizedFilter:
    """
    Validate and normalize a raw filter.

    Args:
        spec: Raw FilterSpec (defaults applied for omitted fields)

    Returns:
        NormalizedFilter

    Raises:
        InvalidFilterError: Structurally malformed input
        UnsupportedFilterError: Unknown sort key or cost sharing value
    """
    page = _coerce_int(spec.page, "page", default=1)
    if page < 1:
        raise InvalidFilterError(f"page must be >= 1, got {page}")

    sort_by = resolve_sort_key(spec.sort_by)
    cost_sharing = resolve_cost_sharing(spec.cost_sharing)

    if not isinstance(spec.search_term, str) and spec.search_term is not None:
        raise InvalidFilterError(f"search_term must be a string, got {spec.search_term!r}")
    search_term = clean_text(spec.search_term or "")

    # --- Funding ---
    funding_nulls = NullPolicy.from_flags(
        _parse_bool(spec.include_funding_null, "include_funding_null"),
        _parse_bool(spec.only_no_funding, "only_no_funding"),
    )
    if funding_nulls is NullPolicy.NULL_ONLY:
        funding_min, funding_max = 0, None
    else:
        funding_min, funding_max = _normalize_bounds(
            "funding",
            _coerce_int(spec.funding_min, "funding_min", default=0, infinity=MAX_FUNDING),
            _coerce_int(spec.funding_max, "funding_max", default=None, infinity=MAX_FUNDING),
            sentinel=MAX_FUNDING,
        )

    # --- Deadline ---
    deadline_nulls = NullPolicy.from_flags(
        _parse_bool(spec.include_no_deadline, "include_no_deadline"),
        _parse_bool(spec.only_no_deadline, "only_no_deadline"),
    )
    if deadline_nulls is NullPolicy.NULL_ONLY:
        deadline_min, deadline_max = MIN_DEADLINE_DAYS, None
    else:
        deadline_min, deadline_max = _normalize_bounds(
            "deadline",
            _coerce_int(spec.deadline_min_days, "deadline_min_days",
                        default=MIN_DEADLINE_DAYS, infinity=MAX_DEADLINE_DAYS),
            _coerce_int(spec.deadline_max_days, "deadline_max_days",
                        default=None, infinity=MAX_DEADLINE_DAYS),
            sentinel=MAX_DEADLINE_DAYS,
            cap_min=True,
        )

    return NormalizedFilter(
        search_term=search_term,
        funding_min=funding_min,
        funding_max=funding_max,
        funding_nulls=funding_nulls,
        deadline_min_days=deadline_min,
        deadline_max_days=deadline_max,
        deadline_nulls=deadline_nulls,
        agencies=_normalize_values(spec.agencies, "agencies"),
        agency_subdivisions=_normalize_values(spec.agency_subdivisions, "agency_subdivisions"),
        eligible_applicants=_normalize_values(spec.eligible_applicants, "eligible_applicants"),
        activity_categories=_normalize_values(spec.activity_categories, "activity_categories"),
        grant_types=_normalize_values(spec.grant_types, "grant_types"),
        statuses=_normalize_values(spec.statuses, "statuses"),
        data_sources=_normalize_values(spec.data_sources, "data_sources"),
        cost_sharing=cost_sharing,
        exclude_ids=_normalize_values(spec.exclude_ids, "exclude_ids"),
        sort_by=sort_by,
        page=page,
    )


def _normalize_bounds(name: str, low: int, high: Optional[int], sentinel: int,
                      cap_min: bool = False) -> Tuple[int, Optional[int]]:
    """
    Clamp a (min, max) pair at zero, swap it if inverted, then open the
    upper end when it reaches the sentinel.

    The swap runs before the sentinel check, so an out-of-range value given
    as the minimum still reads as "no upper bound" once swapped.
    """
    low = max(0, low)
    if high is not None:
        high = max(0, high)
        if low > high:
            logger.debug(f"Swapping {name} bounds {low} > {high}")
            low, high = high, low
        if high >= sentinel:
            high = None
    if cap_min:
        low = min(low, sentinel)
    return low, high


def _coerce_int(value: Any, name: str, default: Any = None, infinity: Any = None) -> Any:
    """
    Coerce a numeric value to int; None yields the default.

    +inf maps to `infinity` (malformed when that is None); -inf maps to 0.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidFilterError(f"{name} must be a number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value:
            raise InvalidFilterError(f"{name} must be a number, got NaN")
        if value == float("-inf"):
            return 0
        if value == float("inf"):
            if infinity is None:
                raise InvalidFilterError(f"{name} must be finite, got {value!r}")
            return infinity
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise InvalidFilterError(f"{name} must be a number, got {value!r}")


def _normalize_values(value: Any, name: str) -> Tuple[str, ...]:
    try:
        values = split_csv(value)
    except TypeError:
        raise InvalidFilterError(f"{name} must be a string or a list of strings, got {value!r}") from None
    return tuple(sorted(set(values)))


# --- HTTP parameter parsing ---

def _parse_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off", ""):
        return False
    raise InvalidFilterError(f"{name} must be a boolean, got {raw!r}")


def _parse_amount(raw: Any, name: str) -> Optional[int]:
    if raw is None or (isinstance(raw, (int, float)) and not isinstance(raw, bool)):
        return raw
    if str(raw).strip() == "":
        return None
    amount = parse_usd_amount(str(raw))
    if amount is None:
        raise InvalidFilterError(f"{name} is not a dollar amount: {raw!r}")
    return amount


def _parse_optional_int(raw: Any, name: str) -> Optional[int]:
    if raw is None or str(raw).strip() == "":
        return None
    return _coerce_int(raw, name)


def _parse_text(raw: Any, name: str) -> str:
    return "" if raw is None else str(raw)


def _parse_list(raw: Any, name: str) -> Tuple[str, ...]:
    return tuple(split_csv(raw))


def _parse_passthrough(raw: Any, name: str) -> Any:
    return raw


_PARAM_PARSERS = {
    "search_term": _parse_text,
    "funding_min": _parse_amount,
    "funding_max": _parse_amount,
    "include_funding_null": _parse_bool,
    "only_no_funding": _parse_bool,
    "deadline_min_days": _parse_optional_int,
    "deadline_max_days": _parse_optional_int,
    "include_no_deadline": _parse_bool,
    "only_no_deadline": _parse_bool,
    "agencies": _parse_list,
    "agency_subdivisions": _parse_list,
    "eligible_applicants": _parse_list,
    "activity_categories": _parse_list,
    "grant_types": _parse_list,
    "statuses": _parse_list,
    "data_sources": _parse_list,
    "cost_sharing": _parse_text,
    "exclude_ids": _parse_list,
    "sort_by": _parse_passthrough,
    "page": _parse_optional_int,
}

_PARAM_ALIASES = {
    "search": "search_term",
    "include_no_funding": "include_funding_null",
    "funding_null": "only_no_funding",
    "deadline_null": "only_no_deadline",
    "agency_name": "agencies",
    "agency_subdivision": "agency_subdivisions",
    "eligible_applicant_types": "eligible_applicants",
    "grant_type": "grant_types",
    "status": "statuses",
    "sources": "data_sources",
}


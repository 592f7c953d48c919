"""
Aggregate statistics over the full grant collection.

Used to understand the data distribution (which filters are worth offering,
how much of the catalogue lacks a deadline or a funding ceiling). This is a
batch job: it scans every record and must not run inside a user request.

Each metric is computed independently. A metric that fails is recorded in
StatisticsSnapshot.errors and the remaining metrics are still reported.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from grantfinder.core.exceptions import FetchError
from grantfinder.core.money import format_usd_amount
from grantfinder.storage.sql import GRANT_COLUMNS


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NameCount:
    name: str
    count: int
    percentage: float


@dataclass(frozen=True)
class NullCount:
    field: str
    count: int
    percentage: float


@dataclass(frozen=True)
class RangeSpec:
    """Half-open [min, max) bucket; max None means open-ended."""
    name: str
    min: float
    max: Optional[float] = None


@dataclass(frozen=True)
class RangeCount:
    name: str
    min: float
    max: Optional[float]
    count: int
    percentage: float


@dataclass(frozen=True)
class NumericSummary:
    field: str
    count: int
    min: Optional[float]
    median: Optional[float]
    max: Optional[float]
    ranges: List[RangeCount]


@dataclass
class StatisticsSnapshot:
    """Point-in-time summary; never persisted by the engine."""
    total_count: int = 0
    null_counts: Dict[str, NullCount] = field(default_factory=dict)
    top_values: Dict[str, List[NameCount]] = field(default_factory=dict)
    numeric: Dict[str, NumericSummary] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)


def _funding_range(low: int, high: Optional[int]) -> RangeSpec:
    if high is None:
        return RangeSpec(f"Over {format_usd_amount(low)}", low, None)
    if low == 0:
        return RangeSpec(f"Under {format_usd_amount(high)}", 0, high)
    return RangeSpec(f"{format_usd_amount(low)} - {format_usd_amount(high)}", low, high)


DEFAULT_FUNDING_RANGES: Tuple[RangeSpec, ...] = tuple(
    _funding_range(low, high)
    for low, high in (
        (0, 10_000),
        (10_000, 50_000),
        (50_000, 100_000),
        (100_000, 500_000),
        (500_000, 1_000_000),
        (1_000_000, 5_000_000),
        (5_000_000, None),
    )
)

DEFAULT_NULL_FIELDS = ("close_date", "award_ceiling")
DEFAULT_TOP_FIELDS = {
    "agency_name": 10,
    "category": 10,
    "funding_type": None,
    "eligible_applicants": 15,
}


def percentage(count: int, total: int) -> float:
    """count/total as a percentage with one decimal; 0 when total is 0."""
    if not total:
        return 0.0
    return round(count / total * 100, 1)


def count_nulls(frame: pd.DataFrame, field_name: str) -> NullCount:
    """Records whose value for field_name is missing."""
    count = int(frame[field_name].isna().sum())
    return NullCount(field_name, count, percentage(count, len(frame)))


def top_values(frame: pd.DataFrame, field_name: str, n: Optional[int] = 10) -> List[NameCount]:
    """
    Most frequent values of a categorical field.

    List-valued fields count each element. Percentages are relative to the
    number of records. Equal counts keep first-seen order.

    Args:
        frame: Scanned records
        field_name: Column to count
        n: Number of entries to keep (None keeps all)
    """
    values = frame[field_name].explode().dropna()
    values = values[values.astype(str).str.strip() != ""]
    if values.empty:
        return []

    # groupby(sort=False) keeps first-appearance order; the stable sort keeps it for ties
    counts = values.groupby(values, sort=False).size().sort_values(ascending=False, kind="stable")
    if n is not None:
        counts = counts.head(n)

    total = len(frame)
    return [NameCount(str(name), int(count), percentage(int(count), total)) for name, count in counts.items()]


def summarize_numeric(
    frame: pd.DataFrame,
    field_name: str,
    ranges: Sequence[RangeSpec] = DEFAULT_FUNDING_RANGES,
) -> NumericSummary:
    """
    Min / median / max and a range histogram for a numeric field.

    The median is the middle element of the sorted values (index n // 2),
    not an interpolated value. Bucket percentages are relative to the
    number of non-null values.
    """
    values = pd.to_numeric(frame[field_name], errors="coerce").dropna().sort_values(kind="stable")
    values = values.reset_index(drop=True)
    count = len(values)

    range_counts = []
    for spec in ranges:
        mask = values >= spec.min
        if spec.max is not None:
            mask &= values < spec.max
        bucket = int(mask.sum())
        range_counts.append(RangeCount(spec.name, spec.min, spec.max, bucket, percentage(bucket, count)))

    if count == 0:
        return NumericSummary(field_name, 0, None, None, None, range_counts)

    return NumericSummary(
        field=field_name,
        count=count,
        min=_plain_number(values.iloc[0]),
        median=_plain_number(values.iloc[count // 2]),
        max=_plain_number(values.iloc[-1]),
        ranges=range_counts,
    )


def _plain_number(value: Any):
    number = float(value)
    return int(number) if number.is_integer() else number


class GrantStatistics:
    """
    Compute an aggregate snapshot from a full store scan.

    Usage:
        stats = GrantStatistics(GrantStore("grants.db"))
        snapshot = stats.compute()
    """

    def __init__(self, store):
        """
        Args:
            store: Object with scan() yielding one dict per grant
        """
        self.store = store

    def load_frame(self, rows: Optional[Iterable[Dict[str, Any]]] = None) -> pd.DataFrame:
        """
        Load scanned rows into a DataFrame.

        Args:
            rows: Pre-fetched rows (e.g. wrapped in a progress bar); the
                store is scanned when omitted

        Raises:
            FetchError: If the scan fails
        """
        try:
            records = list(rows if rows is not None else self.store.scan())
        except Exception as e:
            logger.error(f"Grant scan failed: {e}")
            raise FetchError(f"Grant scan failed: {e}") from e
        logger.info(f"Loaded {len(records)} grants for statistics")
        if not records:
            return pd.DataFrame(columns=list(GRANT_COLUMNS))
        return pd.DataFrame.from_records(records)

    def compute(
        self,
        null_fields: Sequence[str] = DEFAULT_NULL_FIELDS,
        top_fields: Optional[Dict[str, Optional[int]]] = None,
        numeric_field: str = "award_ceiling",
        ranges: Sequence[RangeSpec] = DEFAULT_FUNDING_RANGES,
        rows: Optional[Iterable[Dict[str, Any]]] = None,
    ) -> StatisticsSnapshot:
        """
        Compute every metric over the full collection.

        Args:
            null_fields: Fields to report missing-value counts for
            top_fields: Field → N for top-N tables (None N keeps all values)
            numeric_field: Field for min/median/max and the histogram
            ranges: Histogram buckets
            rows: Optional pre-fetched rows (see load_frame)

        Returns:
            StatisticsSnapshot with per-metric errors, if any
        """
        frame = self.load_frame(rows)
        snapshot = StatisticsSnapshot(total_count=len(frame))
        top_fields = DEFAULT_TOP_FIELDS if top_fields is None else top_fields

        for field_name in null_fields:
            result = self._metric(snapshot, f"nulls:{field_name}", count_nulls, frame, field_name)
            if result is not None:
                snapshot.null_counts[field_name] = result

        for field_name, n in top_fields.items():
            result = self._metric(snapshot, f"top:{field_name}", top_values, frame, field_name, n)
            if result is not None:
                snapshot.top_values[field_name] = result

        if numeric_field:
            result = self._metric(snapshot, f"numeric:{numeric_field}", summarize_numeric,
                                  frame, numeric_field, ranges)
            if result is not None:
                snapshot.numeric[numeric_field] = result

        if snapshot.errors:
            logger.warning(f"Statistics finished with {len(snapshot.errors)} failed metric(s)")
        return snapshot

    def _metric(self, snapshot: StatisticsSnapshot, name: str, func, *args):
        try:
            return func(*args)
        except Exception as e:
            logger.error(f"Metric {name} failed: {type(e).__name__}: {e}")
            snapshot.errors[name] = f"{type(e).__name__}: {e}"
            return None


def snapshot_to_frames(snapshot: StatisticsSnapshot) -> Dict[str, pd.DataFrame]:
    """Flatten a snapshot into one DataFrame per sheet for export."""
    frames = {
        "summary": pd.DataFrame(
            [{"metric": "total_count", "value": snapshot.total_count}]
            + [{"metric": f"null {nc.field}", "value": nc.count, "percentage": nc.percentage}
               for nc in snapshot.null_counts.values()]
        ),
    }
    for field_name, entries in snapshot.top_values.items():
        frames[f"top {field_name}"] = pd.DataFrame(
            [{"name": e.name, "count": e.count, "percentage": e.percentage} for e in entries],
            columns=["name", "count", "percentage"],
        )
    for field_name, summary in snapshot.numeric.items():
        frames[f"ranges {field_name}"] = pd.DataFrame(
            [{"range": r.name, "count": r.count, "percentage": r.percentage} for r in summary.ranges],
            columns=["range", "count", "percentage"],
        )
    if snapshot.errors:
        frames["errors"] = pd.DataFrame(
            [{"metric": name, "error": message} for name, message in snapshot.errors.items()]
        )
    return frames

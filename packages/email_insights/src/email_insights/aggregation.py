"""Time bucketing, window aggregation, and period-over-period comparison.

All functions are pure: they take processed record frames (campaigns, flow
emails, or both concatenated) and return new values. Ratio metrics are always
aggregated as sum(numerator) / sum(denominator), never as a mean of per-row
rates.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

import pandas as pd

from email_insights.column_map import COUNT_COLUMNS
from email_insights.metrics import METRICS, get_metric, sum_counts
from email_insights.periods import (
    ALL,
    DAILY,
    GRANULARITIES,
    MONTHLY,
    PREV_PERIOD,
    PREV_YEAR,
    WEEKLY,
    DateRange,
    DateWindow,
    parse_date_range,
    resolve_window,
)
from email_insights.sequence import is_live

logger = logging.getLogger(__name__)

SOURCES = ("all", "campaigns", "flows")


@dataclass(frozen=True)
class Segment:
    """Which records a series or comparison covers.

    ``flow_name``, ``sequence_position`` and ``live_only`` only narrow the
    flow records; campaigns are unaffected.
    """

    source: str = "all"
    flow_name: str | None = None
    sequence_position: int | None = None
    live_only: bool = False

    def __post_init__(self) -> None:
        if self.source not in SOURCES:
            raise ValueError(f"Unknown source '{self.source}'. Valid: {SOURCES}")


def select_records(campaigns: pd.DataFrame, flows: pd.DataFrame, segment: Segment) -> pd.DataFrame:
    """Concatenate the sent_date and count columns of the records in *segment*."""
    cols = ["sent_date", *COUNT_COLUMNS]
    frames: list[pd.DataFrame] = []
    if segment.source in ("all", "campaigns") and not campaigns.empty:
        frames.append(campaigns[cols])
    if segment.source in ("all", "flows") and not flows.empty:
        selected = flows
        if segment.flow_name and segment.flow_name != "all":
            selected = selected[selected["flow_name"] == segment.flow_name]
        if segment.sequence_position is not None:
            selected = selected[selected["sequence_position"] == segment.sequence_position]
        if segment.live_only:
            selected = selected[is_live(selected)]
        frames.append(selected[cols])
    if not frames:
        return pd.DataFrame({"sent_date": pd.Series(dtype="datetime64[ns]")}).assign(
            **{col: pd.Series(dtype="float64") for col in COUNT_COLUMNS}
        )
    return pd.concat(frames, ignore_index=True)


def earliest_date(frame: pd.DataFrame) -> pd.Timestamp | None:
    if frame.empty:
        return None
    return frame["sent_date"].min()


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One bucket: ``date`` is the bucket start, ``key`` its canonical id."""

    date: pd.Timestamp
    key: str
    label: str
    value: float


def _bucket_start(dates: pd.Series, granularity: str) -> pd.Series:
    day = dates.dt.normalize()
    if granularity == DAILY:
        return day
    if granularity == WEEKLY:
        return day - pd.to_timedelta(day.dt.dayofweek, unit="D")
    return day.dt.to_period("M").dt.to_timestamp()


def _seed_buckets(window: DateWindow, granularity: str) -> pd.DatetimeIndex:
    """Every bucket start overlapping *window*, so empty periods appear as 0."""
    first = window.start.normalize()
    last = window.end.normalize()
    if granularity == DAILY:
        return pd.date_range(first, last, freq="D")
    if granularity == WEEKLY:
        monday = first - pd.Timedelta(days=first.dayofweek)
        return pd.date_range(monday, last, freq="7D")
    month_start = first.to_period("M").to_timestamp()
    return pd.date_range(month_start, last, freq="MS")


def _bucket_key(ts: pd.Timestamp, granularity: str) -> str:
    if granularity == MONTHLY:
        return ts.strftime("%Y-%m")
    return ts.strftime("%Y-%m-%d")


def bucket_label(ts: pd.Timestamp, granularity: str) -> str:
    """Display label: ``Jan 5`` for daily/weekly, ``Jan 24`` for monthly."""
    if granularity == MONTHLY:
        return ts.strftime("%b %y")
    return f"{ts.strftime('%b')} {ts.day}"


def time_series(
    frame: pd.DataFrame,
    metric: str,
    window: DateWindow,
    granularity: str,
) -> list[TimeSeriesPoint]:
    """Bucket *frame* over *window* and compute *metric* per bucket.

    The buckets are seeded from the window alone, so the series length does
    not depend on which records are present.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity '{granularity}'. Valid: {GRANULARITIES}")
    definition = get_metric(metric)
    seed = _seed_buckets(window, granularity)

    in_window = frame[window.mask(frame["sent_date"])] if not frame.empty else frame
    if in_window.empty:
        totals = pd.DataFrame(0.0, index=seed, columns=COUNT_COLUMNS)
    else:
        keys = _bucket_start(in_window["sent_date"], granularity)
        totals = (
            in_window[COUNT_COLUMNS]
            .groupby(keys.values)
            .sum()
            .reindex(seed, fill_value=0.0)
        )
    values = definition.per_row(totals)

    return [
        TimeSeriesPoint(
            date=ts,
            key=_bucket_key(ts, granularity),
            label=bucket_label(ts, granularity),
            value=float(value),
        )
        for ts, value in zip(seed, values)
    ]


def series_to_frame(points: list[TimeSeriesPoint]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "period": [p.key for p in points],
            "label": [p.label for p in points],
            "value": [p.value for p in points],
        }
    )


# ---------------------------------------------------------------------------
# Window aggregation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AggregatedMetrics:
    """Every registry metric over a set of records, plus the record count."""

    revenue: float = 0.0
    emails_sent: float = 0.0
    total_orders: float = 0.0
    unique_opens: float = 0.0
    unique_clicks: float = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0
    click_to_open_rate: float = 0.0
    conversion_rate: float = 0.0
    revenue_per_email: float = 0.0
    unsubscribe_rate: float = 0.0
    spam_rate: float = 0.0
    bounce_rate: float = 0.0
    avg_order_value: float = 0.0
    email_count: int = 0

    def get(self, metric: str) -> float:
        get_metric(metric)
        return getattr(self, metric)

    def as_dict(self) -> dict:
        return asdict(self)


def aggregate_metrics(frame: pd.DataFrame, window: DateWindow | None = None) -> AggregatedMetrics:
    """Aggregate all metrics over *frame*, optionally restricted to *window*."""
    if window is not None and not frame.empty:
        frame = frame[window.mask(frame["sent_date"])]
    if frame.empty:
        return AggregatedMetrics()
    totals = sum_counts(frame)
    values = {key: definition.from_totals(totals) for key, definition in METRICS.items()}
    return AggregatedMetrics(**values, email_count=len(frame))


# ---------------------------------------------------------------------------
# Period-over-period
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodChange:
    """Current vs comparison window for one metric.

    ``previous`` is None when there is no comparison (the ``all`` range, or a
    prior-year window with a zero baseline).
    """

    metric: str
    current: float
    previous: float | None
    change_percent: float
    is_positive: bool
    current_period: DateWindow | None = None
    previous_period: DateWindow | None = None


def _window_value(frame: pd.DataFrame, metric: str, window: DateWindow) -> float:
    if frame.empty:
        return 0.0
    return get_metric(metric).from_totals(sum_counts(frame[window.mask(frame["sent_date"])]))


def period_change(
    frame: pd.DataFrame,
    metric: str,
    date_range: DateRange,
    reference_date: pd.Timestamp,
    compare_mode: str = PREV_PERIOD,
) -> PeriodChange:
    """Compare *metric* in the selected window with the comparison window.

    ``prev-period`` compares with the equal-length window immediately before;
    ``prev-year`` with the same calendar window one year earlier. With a zero
    baseline the change is 100 when the current value is positive
    (prev-period) and the previous value is reported as None (prev-year).
    """
    definition = get_metric(metric)
    if compare_mode not in (PREV_PERIOD, PREV_YEAR):
        raise ValueError(f"Unknown compare mode '{compare_mode}'")

    selector = parse_date_range(date_range)
    if selector == ALL:
        window = resolve_window(ALL, reference_date, earliest_date(frame))
        return PeriodChange(
            metric=metric,
            current=_window_value(frame, metric, window),
            previous=None,
            change_percent=0.0,
            is_positive=True,
            current_period=window,
        )

    window = resolve_window(selector, reference_date)
    prev_window = window.previous_year() if compare_mode == PREV_YEAR else window.previous()
    current = _window_value(frame, metric, window)
    previous: float | None = _window_value(frame, metric, prev_window)

    if previous != 0:
        change = (current - previous) / previous * 100
    elif compare_mode == PREV_YEAR:
        change = 0.0
        previous = None
        prev_window = None
    else:
        change = 100.0 if current > 0 else 0.0

    is_positive = change <= 0 if definition.lower_is_better else change >= 0
    return PeriodChange(
        metric=metric,
        current=current,
        previous=previous,
        change_percent=float(change),
        is_positive=bool(is_positive),
        current_period=window,
        previous_period=prev_window,
    )

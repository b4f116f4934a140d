"""Date-range selectors, resolved windows, and granularity selection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

import pandas as pd

PRESET_DAYS: dict[str, int] = {
    "30d": 30,
    "60d": 60,
    "90d": 90,
    "120d": 120,
    "180d": 180,
    "365d": 365,
}
ALL = "all"

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
GRANULARITIES = (DAILY, WEEKLY, MONTHLY)

PREV_PERIOD = "prev-period"
PREV_YEAR = "prev-year"
COMPARE_MODES = (PREV_PERIOD, PREV_YEAR)

_CUSTOM_RE = re.compile(r"^custom:(\d{4}-\d{2}-\d{2}):(\d{4}-\d{2}-\d{2})$")
_END_OF_DAY = pd.Timedelta(days=1) - pd.Timedelta(microseconds=1)


@dataclass(frozen=True)
class CustomRange:
    """Explicit inclusive calendar range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Custom range start {self.start} is after end {self.end}")

    def __str__(self) -> str:
        return f"custom:{self.start.isoformat()}:{self.end.isoformat()}"


DateRange = str | CustomRange


@dataclass(frozen=True)
class DateWindow:
    """Inclusive window from start-of-day ``start`` to end-of-day ``end``."""

    start: pd.Timestamp
    end: pd.Timestamp

    @classmethod
    def from_days(cls, first: pd.Timestamp, last: pd.Timestamp) -> DateWindow:
        first = pd.Timestamp(first).normalize()
        last = pd.Timestamp(last).normalize()
        return cls(start=first, end=last + _END_OF_DAY)

    @property
    def days(self) -> int:
        return self.span_days + 1

    @property
    def span_days(self) -> int:
        """Whole days from the first day to the last day."""
        return (self.end.normalize() - self.start.normalize()).days

    def mask(self, dates: pd.Series) -> pd.Series:
        return (dates >= self.start) & (dates <= self.end)

    def previous(self) -> DateWindow:
        """The contiguous window of equal length ending the day before this one."""
        last = self.start.normalize() - pd.Timedelta(days=1)
        return DateWindow.from_days(last - pd.Timedelta(days=self.days - 1), last)

    def previous_year(self) -> DateWindow:
        """The same calendar window one year earlier (Feb 29 maps to Feb 28)."""
        return DateWindow.from_days(_shift_year(self.start), _shift_year(self.end))

    def label(self) -> str:
        return f"{self.start:%Y-%m-%d} to {self.end:%Y-%m-%d}"


def _shift_year(ts: pd.Timestamp, years: int = -1) -> pd.Timestamp:
    ts = pd.Timestamp(ts).normalize()
    try:
        return ts.replace(year=ts.year + years)
    except ValueError:
        return ts.replace(year=ts.year + years, day=28)


def parse_date_range(value: DateRange) -> DateRange:
    """Validate a range selector; returns a preset key, ``"all"``, or CustomRange.

    Accepts preset strings, ``"all"``, ``"custom:YYYY-MM-DD:YYYY-MM-DD"`` and
    CustomRange instances. Raises ValueError for anything else.
    """
    if isinstance(value, CustomRange):
        return value
    text = str(value).strip()
    if text in PRESET_DAYS or text == ALL:
        return text
    match = _CUSTOM_RE.match(text)
    if match:
        return CustomRange(
            start=date.fromisoformat(match.group(1)),
            end=date.fromisoformat(match.group(2)),
        )
    raise ValueError(
        f"Unknown date range '{value}'. Valid: {sorted(PRESET_DAYS)}, 'all', "
        "or 'custom:YYYY-MM-DD:YYYY-MM-DD'"
    )


def resolve_window(
    date_range: DateRange,
    reference_date: pd.Timestamp,
    earliest: pd.Timestamp | None = None,
) -> DateWindow:
    """Resolve a selector to a concrete window anchored on *reference_date*.

    Presets cover the N calendar days ending on the reference day, inclusive.
    ``"all"`` spans from *earliest* (or the reference day when there is no
    data) to the reference day.
    """
    selector = parse_date_range(date_range)
    reference = pd.Timestamp(reference_date).normalize()
    if isinstance(selector, CustomRange):
        return DateWindow.from_days(pd.Timestamp(selector.start), pd.Timestamp(selector.end))
    if selector == ALL:
        first = pd.Timestamp(earliest).normalize() if earliest is not None else reference
        return DateWindow.from_days(min(first, reference), reference)
    days = PRESET_DAYS[selector]
    return DateWindow.from_days(reference - pd.Timedelta(days=days - 1), reference)


def granularity_for_days(days: int) -> str:
    """Bucket width for a span: <=60 days daily, <=365 weekly, else monthly."""
    if days <= 60:
        return DAILY
    if days <= 365:
        return WEEKLY
    return MONTHLY


def granularity_for_range(
    date_range: DateRange,
    reference_date: pd.Timestamp,
    earliest: pd.Timestamp | None = None,
) -> str:
    """Granularity for a selector, shared by every series and chart.

    Presets use their N days. ``"all"`` and custom ranges use the number of
    whole days between their first and last day.
    """
    selector = parse_date_range(date_range)
    if isinstance(selector, str) and selector in PRESET_DAYS:
        return granularity_for_days(PRESET_DAYS[selector])
    return granularity_for_days(resolve_window(selector, reference_date, earliest).span_days)

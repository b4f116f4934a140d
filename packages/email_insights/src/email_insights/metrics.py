"""Metric registry: every derived rate is defined once as numerator / denominator."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import pandas as pd

from email_insights.column_map import COUNT_COLUMNS


@dataclass(frozen=True)
class MetricDefinition:
    """Definition of a metric over summed count columns.

    Summable metrics have no denominator and aggregate by plain sum.
    Ratio metrics aggregate as sum(numerator) / sum(denominator) * scale,
    which is the volume-weighted average of the per-record rates.
    """

    key: str
    label: str
    numerator: str
    denominator: str | None = None
    scale: float = 1.0
    lower_is_better: bool = False

    @property
    def summable(self) -> bool:
        return self.denominator is None

    def from_totals(self, totals: Mapping[str, float]) -> float:
        """Compute the metric from already-summed count totals."""
        num = float(totals.get(self.numerator, 0.0))
        if self.denominator is None:
            return num
        return safe_ratio(num, float(totals.get(self.denominator, 0.0)), self.scale)

    def per_row(self, df: pd.DataFrame) -> pd.Series:
        """Vectorized per-record value; 0 wherever the denominator is 0."""
        num = df[self.numerator].astype(float)
        if self.denominator is None:
            return num
        den = df[self.denominator].astype(float)
        values = (num / den.where(den != 0)) * self.scale
        return values.replace([np.inf, -np.inf], np.nan).fillna(0.0)


def safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """Return numerator/denominator * scale, 0.0 for a zero or non-finite result."""
    if denominator == 0:
        return 0.0
    value = numerator / denominator * scale
    if not np.isfinite(value):
        return 0.0
    return float(value)


_DEFINITIONS = [
    MetricDefinition("revenue", "Revenue", "revenue"),
    MetricDefinition("emails_sent", "Emails Sent", "emails_sent"),
    MetricDefinition("total_orders", "Total Orders", "total_orders"),
    MetricDefinition("unique_opens", "Unique Opens", "unique_opens"),
    MetricDefinition("unique_clicks", "Unique Clicks", "unique_clicks"),
    MetricDefinition("open_rate", "Open Rate", "unique_opens", "emails_sent", 100.0),
    MetricDefinition("click_rate", "Click Rate", "unique_clicks", "emails_sent", 100.0),
    MetricDefinition(
        "click_to_open_rate", "Click-to-Open Rate", "unique_clicks", "unique_opens", 100.0
    ),
    MetricDefinition("conversion_rate", "Conversion Rate", "total_orders", "unique_clicks", 100.0),
    MetricDefinition("revenue_per_email", "Revenue per Email", "revenue", "emails_sent"),
    MetricDefinition(
        "unsubscribe_rate",
        "Unsubscribe Rate",
        "unsubscribes_count",
        "emails_sent",
        100.0,
        lower_is_better=True,
    ),
    MetricDefinition(
        "spam_rate",
        "Spam Rate",
        "spam_complaints_count",
        "emails_sent",
        100.0,
        lower_is_better=True,
    ),
    MetricDefinition(
        "bounce_rate",
        "Bounce Rate",
        "bounces_count",
        "emails_sent",
        100.0,
        lower_is_better=True,
    ),
    MetricDefinition("avg_order_value", "Avg Order Value", "revenue", "total_orders"),
]

METRICS: dict[str, MetricDefinition] = {m.key: m for m in _DEFINITIONS}

RATE_METRICS = [m.key for m in _DEFINITIONS if not m.summable]


def get_metric(key: str) -> MetricDefinition:
    """Look up a metric by key; raises ValueError for unknown keys."""
    try:
        return METRICS[key]
    except KeyError:
        raise ValueError(f"Unknown metric '{key}'. Valid: {sorted(METRICS)}") from None


def sum_counts(df: pd.DataFrame) -> dict[str, float]:
    """Sum every count column present in *df*."""
    return {col: float(df[col].sum()) if col in df.columns else 0.0 for col in COUNT_COLUMNS}


def weighted_value(df: pd.DataFrame, key: str) -> float:
    """Aggregate *key* over the records of *df* (sum or volume-weighted ratio)."""
    return get_metric(key).from_totals(sum_counts(df))


def derive_rates(df: pd.DataFrame) -> pd.DataFrame:
    """Recompute every rate column from the count columns."""
    df = df.copy()
    for key in RATE_METRICS:
        df[key] = METRICS[key].per_row(df)
    return df

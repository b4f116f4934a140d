"""Base types for all analyses."""

from __future__ import annotations

from dataclasses import dataclass, field

import pandas as pd

HEADLINE_METRICS = [
    "revenue",
    "emails_sent",
    "total_orders",
    "open_rate",
    "click_rate",
    "click_to_open_rate",
    "conversion_rate",
    "revenue_per_email",
    "avg_order_value",
    "unsubscribe_rate",
    "spam_rate",
    "bounce_rate",
]


@dataclass
class AnalysisResult:
    """Outcome of a single analysis function."""

    name: str
    title: str
    df: pd.DataFrame
    error: str | None = None
    sheet_name: str | None = None
    metadata: dict = field(default_factory=dict)

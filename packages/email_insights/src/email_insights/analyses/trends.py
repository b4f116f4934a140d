"""Bucketed metric trends over the selected window."""

from __future__ import annotations

import pandas as pd

from email_insights.analyses.base import AnalysisResult
from email_insights.settings import Settings
from email_insights.store import DataStore

TREND_METRICS = ["revenue", "emails_sent", "open_rate", "click_rate", "conversion_rate"]


def analyze_metric_trends(store: DataStore, settings: Settings) -> AnalysisResult:
    """One row per time bucket, one column per trend metric."""
    granularity = store.get_granularity_for_date_range(settings.date_range)
    frame: pd.DataFrame | None = None
    for metric in TREND_METRICS:
        points = store.time_series(metric, settings.date_range, granularity)
        if frame is None:
            frame = pd.DataFrame(
                {"period": [p.key for p in points], "label": [p.label for p in points]}
            )
        frame[metric] = [p.value for p in points]
    return AnalysisResult(
        name="metric_trends",
        title=f"Metric Trends ({granularity})",
        df=frame if frame is not None else pd.DataFrame(),
        sheet_name="Trends",
        metadata={"granularity": granularity},
    )

"""Headline metrics: period-over-period comparison and channel split."""

from __future__ import annotations

import pandas as pd

from email_insights.aggregation import Segment
from email_insights.analyses.base import HEADLINE_METRICS, AnalysisResult
from email_insights.metrics import METRICS
from email_insights.settings import Settings
from email_insights.store import DataStore


def analyze_period_overview(store: DataStore, settings: Settings) -> AnalysisResult:
    """Every headline metric for all email, current vs comparison window."""
    rows = []
    for metric in HEADLINE_METRICS:
        change = store.period_change(metric, settings.date_range)
        rows.append(
            {
                "metric": METRICS[metric].label,
                "current": change.current,
                "previous": change.previous,
                "change_percent": change.change_percent,
                "trend": "Improving" if change.is_positive else "Declining",
            }
        )
    window = store.resolve_window(settings.date_range)
    return AnalysisResult(
        name="period_overview",
        title=f"Headline Metrics ({settings.date_range}, vs {settings.compare_mode})",
        df=pd.DataFrame(rows),
        sheet_name="Overview",
        metadata={"window": window.label()},
    )


def analyze_channel_split(store: DataStore, settings: Settings) -> AnalysisResult:
    """Campaigns vs flows side by side over the selected window."""
    rows = []
    for source in ("campaigns", "flows", "all"):
        metrics = store.get_aggregated_metrics(settings.date_range, Segment(source=source))
        row = {"channel": source.title() if source != "all" else "Total"}
        row.update({METRICS[m].label: metrics.get(m) for m in HEADLINE_METRICS})
        row["Email Count"] = metrics.email_count
        rows.append(row)
    return AnalysisResult(
        name="channel_split",
        title="Campaigns vs Flows",
        df=pd.DataFrame(rows),
        sheet_name="Channel Split",
    )

"""Analysis registry and runner."""

from __future__ import annotations

import logging
from collections.abc import Callable

import pandas as pd

from email_insights.analyses.audience import (
    analyze_audience_profile,
    analyze_top_countries,
    analyze_top_sources,
)
from email_insights.analyses.base import AnalysisResult
from email_insights.analyses.flow_steps import analyze_flow_steps
from email_insights.analyses.overview import analyze_channel_split, analyze_period_overview
from email_insights.analyses.send_time import analyze_day_of_week, analyze_hour_of_day
from email_insights.analyses.trends import analyze_metric_trends
from email_insights.settings import Settings
from email_insights.store import DataStore

logger = logging.getLogger(__name__)

AnalysisFunc = Callable[[DataStore, Settings], AnalysisResult]

# (name, function, collections it needs)
ANALYSIS_REGISTRY: list[tuple[str, AnalysisFunc, tuple[str, ...]]] = [
    ("period_overview", analyze_period_overview, ("campaigns", "flows")),
    ("channel_split", analyze_channel_split, ("campaigns", "flows")),
    ("metric_trends", analyze_metric_trends, ("campaigns", "flows")),
    ("day_of_week", analyze_day_of_week, ("campaigns",)),
    ("hour_of_day", analyze_hour_of_day, ("campaigns",)),
    ("flow_steps", analyze_flow_steps, ("flows",)),
    ("audience_profile", analyze_audience_profile, ("subscribers",)),
    ("top_sources", analyze_top_sources, ("subscribers",)),
    ("top_countries", analyze_top_countries, ("subscribers",)),
]


def _has_any(store: DataStore, needs: tuple[str, ...]) -> bool:
    counts = store.record_counts()
    return any(counts[kind] > 0 for kind in needs)


def run_all_analyses(
    store: DataStore,
    settings: Settings,
    on_progress: Callable[[str], None] | None = None,
) -> list[AnalysisResult]:
    """Run every registered analysis whose data is loaded.

    A failing analysis is captured as an error result instead of aborting
    the run.
    """
    results: list[AnalysisResult] = []
    for name, func, needs in ANALYSIS_REGISTRY:
        if not _has_any(store, needs):
            logger.info("Skipping %s: no %s data loaded", name, "/".join(needs))
            continue
        if on_progress:
            on_progress(name)
        try:
            results.append(func(store, settings))
        except Exception as e:
            logger.warning("Analysis '%s' failed: %s", name, e)
            results.append(
                AnalysisResult(name=name, title=name, df=pd.DataFrame(), error=str(e))
            )
    return results

"""Subscriber audience breakdowns."""

from __future__ import annotations

import pandas as pd

from email_insights.analyses.base import AnalysisResult
from email_insights.audience import LIFETIME_BUCKETS, PURCHASE_FREQUENCY_BUCKETS
from email_insights.settings import Settings
from email_insights.store import DataStore


def analyze_audience_profile(store: DataStore, settings: Settings) -> AnalysisResult:
    """Purchase frequency and subscriber lifetime distributions as one table."""
    insights = store.get_audience_insights()
    total = insights["total_subscribers"]
    rows = []
    for key, label in PURCHASE_FREQUENCY_BUCKETS:
        count = insights["purchase_frequency"][key]
        rows.append({"dimension": "Purchase Frequency", "bucket": label, "subscribers": count})
    for key, label, _ in LIFETIME_BUCKETS:
        count = insights["lifetime_distribution"][key]
        rows.append({"dimension": "Subscriber Lifetime", "bucket": label, "subscribers": count})
    df = pd.DataFrame(rows)
    df["share_pct"] = df["subscribers"] / total * 100 if total else 0.0
    return AnalysisResult(
        name="audience_profile",
        title="Audience Profile",
        df=df,
        sheet_name="Audience",
        metadata={k: v for k, v in insights.items() if not isinstance(v, dict)},
    )


def analyze_top_sources(store: DataStore, settings: Settings) -> AnalysisResult:
    df = store.get_top_sources(settings.top_n).rename(columns={"percentage": "share_pct"})
    return AnalysisResult(
        name="top_sources",
        title=f"Top {settings.top_n} Subscriber Sources",
        df=df,
        sheet_name="Sources",
    )


def analyze_top_countries(store: DataStore, settings: Settings) -> AnalysisResult:
    df = store.get_location_insights(settings.top_n)["countries"]
    return AnalysisResult(
        name="top_countries",
        title=f"Top {settings.top_n} Countries",
        df=df.rename(columns={"percentage": "share_pct"}),
        sheet_name="Countries",
    )

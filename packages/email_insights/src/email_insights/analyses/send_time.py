"""Campaign performance by send weekday and send hour."""

from __future__ import annotations

from email_insights.analyses.base import AnalysisResult
from email_insights.settings import Settings
from email_insights.store import DataStore

SEND_TIME_METRICS = ["open_rate", "click_rate", "revenue_per_email", "revenue"]


def analyze_day_of_week(store: DataStore, settings: Settings) -> AnalysisResult:
    df = store.get_campaign_performance_by_day_of_week(
        SEND_TIME_METRICS[0], settings.date_range
    ).rename(columns={"value": SEND_TIME_METRICS[0]})
    for metric in SEND_TIME_METRICS[1:]:
        other = store.get_campaign_performance_by_day_of_week(metric, settings.date_range)
        df[metric] = other["value"].to_numpy()
    df = df[["day", "campaign_count", *SEND_TIME_METRICS]]
    return AnalysisResult(
        name="day_of_week",
        title="Campaign Performance by Day of Week",
        df=df,
        sheet_name="Day of Week",
    )


def analyze_hour_of_day(store: DataStore, settings: Settings) -> AnalysisResult:
    """Send hours ranked by open rate, with the other metrics alongside."""
    df = store.get_campaign_performance_by_hour_of_day(
        SEND_TIME_METRICS[0], settings.date_range
    ).rename(columns={"value": SEND_TIME_METRICS[0]})
    for metric in SEND_TIME_METRICS[1:]:
        other = store.get_campaign_performance_by_hour_of_day(metric, settings.date_range)
        df = df.merge(other[["hour", "value"]].rename(columns={"value": metric}), on="hour")
    return AnalysisResult(
        name="hour_of_day",
        title="Campaign Performance by Hour of Day",
        df=df.drop(columns=["hour"]),
        sheet_name="Hour of Day",
    )

"""Campaign export rows -> canonical campaign records."""

from __future__ import annotations

import logging

import pandas as pd

from email_insights.column_map import (
    CAMPAIGN_COLUMNS,
    CAMPAIGN_COUNT_SOURCES,
    CAMPAIGNS,
    empty_frame,
)
from email_insights.metrics import derive_rates
from email_insights.transformers.parsing import (
    FALLBACK,
    PERCENT,
    apply_date_policy,
    derive_count,
    fallback_date,
    optional_text,
    parse_dates,
    to_number,
)

logger = logging.getLogger(__name__)


def transform_campaigns(
    raw: pd.DataFrame,
    invalid_date_policy: str = FALLBACK,
    now: pd.Timestamp | None = None,
) -> pd.DataFrame:
    """Build campaign records from validated raw rows.

    Counts are read directly and, where a count column is absent or blank,
    derived from the export's percentage rate and the recipient count. Every
    rate is then recomputed from the counts. ``now`` is the substitute for
    unparseable send times under the fallback policy; it defaults to the
    latest valid send time in the export.
    """
    if raw.empty:
        return empty_frame(CAMPAIGNS)

    df = pd.DataFrame(index=raw.index)
    df["campaign_id"] = optional_text(raw, "Campaign ID")
    df["campaign_name"] = optional_text(raw, "Campaign Name")
    subject = optional_text(raw, "Subject")
    df["subject"] = subject.where(subject != "", df["campaign_name"])

    parsed = parse_dates(raw["Send Time"])
    fallback = fallback_date(parsed, now)
    sent, keep = apply_date_policy(
        parsed, raw["Send Time"], invalid_date_policy, fallback, "Campaigns: Send Time"
    )
    df["sent_date"] = sent

    df["emails_sent"] = to_number(raw["Total Recipients"], "Total Recipients")
    df["revenue"] = to_number(raw["Revenue"], "Revenue")
    for col, (count_cols, rate_cols) in CAMPAIGN_COUNT_SOURCES.items():
        df[col] = derive_count(raw, count_cols, rate_cols, df["emails_sent"], PERCENT, col)

    df = df[keep]
    df = _derive_calendar(df)
    df = derive_rates(df)
    df.insert(0, "id", range(1, len(df) + 1))
    _warn_high_conversion(df)

    logger.info("Transformed %d campaigns", len(df))
    return df[CAMPAIGN_COLUMNS].reset_index(drop=True)


def _derive_calendar(df: pd.DataFrame) -> pd.DataFrame:
    """Add day_of_week (0=Sunday .. 6=Saturday) and hour_of_day."""
    df = df.copy()
    df["day_of_week"] = ((df["sent_date"].dt.dayofweek + 1) % 7).astype("int64")
    df["hour_of_day"] = df["sent_date"].dt.hour.astype("int64")
    return df


def _warn_high_conversion(df: pd.DataFrame) -> None:
    """Log campaigns with more orders than clicks (conversion above 100%)."""
    high = df["conversion_rate"] > 100
    if high.any():
        logger.warning(
            "High conversion rate (>100%%) on %d campaign(s): %s",
            int(high.sum()),
            df.loc[high, "campaign_name"].head(5).tolist(),
        )

"""Flow export rows -> canonical flow-email records with sequence positions."""

from __future__ import annotations

import logging

import pandas as pd

from email_insights.column_map import FLOW_COLUMNS, FLOW_COUNT_SOURCES, FLOWS, empty_frame
from email_insights.metrics import derive_rates
from email_insights.sequence import assign_positions
from email_insights.transformers.parsing import (
    AUTO,
    FALLBACK,
    apply_date_policy,
    blank,
    derive_count,
    fallback_date,
    optional_text,
    parse_dates,
    to_number,
)

logger = logging.getLogger(__name__)


def transform_flows(
    raw: pd.DataFrame,
    invalid_date_policy: str = FALLBACK,
    now: pd.Timestamp | None = None,
) -> pd.DataFrame:
    """Build flow-email records (one per flow, message and day).

    Flow exports mix encodings: rates may be decimal fractions (``0.0705``)
    or percent strings (``"7.05%"``), and counts such as unsubscribes or
    bounces may only be present as rates. Counts are derived where needed
    and all rates recomputed from them.
    """
    if raw.empty:
        return empty_frame(FLOWS)

    df = pd.DataFrame(index=raw.index)
    df["flow_id"] = optional_text(raw, "Flow ID")
    df["flow_name"] = optional_text(raw, "Flow Name")
    df["flow_message_id"] = optional_text(raw, "Flow Message ID")
    df["status"] = optional_text(raw, "Status", default="unknown")

    parsed = parse_dates(raw["Day"])
    fallback = fallback_date(parsed, now)
    sent, keep = apply_date_policy(parsed, raw["Day"], invalid_date_policy, fallback, "Flows: Day")
    df["sent_date"] = sent

    df["emails_sent"] = to_number(raw["Delivered"], "Delivered")
    df["revenue"] = _revenue(raw, df["emails_sent"])
    for col, (count_cols, rate_cols) in FLOW_COUNT_SOURCES.items():
        df[col] = derive_count(raw, count_cols, rate_cols, df["emails_sent"], AUTO, col)

    df = df[keep].copy()
    df["sequence_position"] = assign_positions(df)
    name = optional_text(raw.loc[df.index], "Flow Message Name")
    df["email_name"] = name.where(name != "", "Email " + df["sequence_position"].astype(str))
    df = derive_rates(df)
    df.insert(0, "id", range(1, len(df) + 1))

    logger.info(
        "Transformed %d flow rows across %d flow(s)",
        len(df),
        df["flow_id"].nunique(),
    )
    return df[FLOW_COLUMNS].reset_index(drop=True)


def _revenue(raw: pd.DataFrame, delivered: pd.Series) -> pd.Series:
    """Revenue column, else revenue-per-recipient x delivered (unrounded)."""
    if "Revenue" in raw.columns:
        revenue = to_number(raw["Revenue"], "Revenue")
        missing = blank(raw["Revenue"])
    else:
        revenue = pd.Series(0.0, index=raw.index)
        missing = pd.Series(True, index=raw.index)
    if missing.any() and "Revenue per Recipient" in raw.columns:
        per_recipient = to_number(raw["Revenue per Recipient"], "Revenue per Recipient")
        revenue = revenue.where(~missing, per_recipient * delivered)
    return revenue

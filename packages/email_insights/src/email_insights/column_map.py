"""Raw export column names, required columns, and canonical record schemas."""

from __future__ import annotations

import pandas as pd

from email_insights.exceptions import ColumnMismatchError

CAMPAIGNS = "campaigns"
FLOWS = "flows"
SUBSCRIBERS = "subscribers"

KIND_LABELS = {
    CAMPAIGNS: "Campaigns",
    FLOWS: "Flows",
    SUBSCRIBERS: "Subscribers",
}

REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    CAMPAIGNS: (
        "Campaign Name",
        "Send Time",
        "Total Recipients",
        "Revenue",
        "Unique Opens",
        "Unique Clicks",
    ),
    FLOWS: (
        "Day",
        "Flow ID",
        "Flow Name",
        "Flow Message ID",
        "Flow Message Name",
        "Status",
        "Delivered",
    ),
    SUBSCRIBERS: (
        "Email",
        "Klaviyo ID",
        "Email Marketing Consent",
    ),
}

# Channel column per export; rows on a non-email channel are excluded.
CHANNEL_COLUMNS = {
    CAMPAIGNS: "Campaign Channel",
    FLOWS: "Flow Message Channel",
}

# (count column, rate column) pairs. The count is derived from rate x volume
# only when the count column is absent or blank. Listed in priority order.
CAMPAIGN_COUNT_SOURCES: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "unique_opens": (("Unique Opens",), ("Open Rate",)),
    "unique_clicks": (("Unique Clicks",), ("Click Rate",)),
    "total_orders": (("Unique Placed Order",), ("Placed Order Rate",)),
    "unsubscribes_count": (("Unsubscribes",), ("Unsubscribe Rate",)),
    "spam_complaints_count": (("Spam Complaints",), ("Spam Complaints Rate",)),
    "bounces_count": (("Bounces",), ("Bounce Rate",)),
}

FLOW_COUNT_SOURCES: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "unique_opens": (("Unique Opens",), ("Open Rate",)),
    "unique_clicks": (("Unique Clicks",), ("Click Rate",)),
    "total_orders": (("Unique Placed Order", "Placed Order"), ("Placed Order Rate",)),
    "unsubscribes_count": (("Unsubscribes",), ("Unsub Rate", "Unsubscribe Rate")),
    "spam_complaints_count": (("Spam",), ("Complaint Rate", "Spam Rate")),
    "bounces_count": (("Bounced",), ("Bounce Rate",)),
}

# Canonical processed-record columns
COUNT_COLUMNS = [
    "emails_sent",
    "unique_opens",
    "unique_clicks",
    "total_orders",
    "revenue",
    "unsubscribes_count",
    "spam_complaints_count",
    "bounces_count",
]

RATE_COLUMNS = [
    "open_rate",
    "click_rate",
    "click_to_open_rate",
    "conversion_rate",
    "revenue_per_email",
    "unsubscribe_rate",
    "spam_rate",
    "bounce_rate",
    "avg_order_value",
]

CAMPAIGN_COLUMNS = [
    "id",
    "campaign_id",
    "campaign_name",
    "subject",
    "sent_date",
    "day_of_week",
    "hour_of_day",
    *COUNT_COLUMNS,
    *RATE_COLUMNS,
]

FLOW_COLUMNS = [
    "id",
    "flow_id",
    "flow_name",
    "flow_message_id",
    "email_name",
    "sequence_position",
    "sent_date",
    "status",
    *COUNT_COLUMNS,
    *RATE_COLUMNS,
]

SUBSCRIBER_DATE_COLUMNS = [
    "profile_created",
    "first_active",
    "last_active",
    "last_open",
    "last_click",
]

SUBSCRIBER_COLUMNS = [
    "id",
    "email",
    "first_name",
    "last_name",
    "city",
    "state",
    "country",
    "zip_code",
    "source",
    *SUBSCRIBER_DATE_COLUMNS,
    "total_clv",
    "predicted_clv",
    "avg_order_value",
    "total_orders",
    "avg_days_between_orders",
    "is_buyer",
    "lifetime_in_days",
    "email_consent",
    "email_consent_raw",
    "email_suppressions",
    "can_receive_email",
]

SCHEMAS = {
    CAMPAIGNS: CAMPAIGN_COLUMNS,
    FLOWS: FLOW_COLUMNS,
    SUBSCRIBERS: SUBSCRIBER_COLUMNS,
}


def normalize_headers(df: pd.DataFrame) -> pd.DataFrame:
    """Strip header whitespace and drop columns with a blank header."""
    result = df.rename(columns=lambda c: str(c).strip())
    keep = [c for c in result.columns if c and not c.startswith("Unnamed:")]
    return result[keep]


def check_required_columns(df: pd.DataFrame, kind: str) -> None:
    """Raise ColumnMismatchError if a required column for *kind* is absent."""
    available = set(df.columns)
    missing = set(REQUIRED_COLUMNS[kind]) - available
    if missing:
        raise ColumnMismatchError(missing=missing, available=available)


def first_present(df: pd.DataFrame, candidates: tuple[str, ...]) -> str | None:
    """Return the first candidate column present in *df*, else None."""
    for col in candidates:
        if col in df.columns:
            return col
    return None


def empty_frame(kind: str) -> pd.DataFrame:
    """Empty processed frame with the canonical columns for *kind*."""
    df = pd.DataFrame({col: pd.Series(dtype="object") for col in SCHEMAS[kind]})
    for col in COUNT_COLUMNS + RATE_COLUMNS:
        if col in df.columns:
            df[col] = df[col].astype("float64")
    for col in ("sent_date", *SUBSCRIBER_DATE_COLUMNS):
        if col in df.columns:
            df[col] = pd.to_datetime(df[col])
    return df

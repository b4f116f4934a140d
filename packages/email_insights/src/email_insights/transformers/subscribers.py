"""Subscriber export rows -> canonical subscriber records."""

from __future__ import annotations

import json
import logging
import re

import numpy as np
import pandas as pd

from email_insights.column_map import SUBSCRIBER_COLUMNS, SUBSCRIBERS, empty_frame
from email_insights.transformers.parsing import optional_text, parse_dates, to_number

logger = logging.getLogger(__name__)

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_SPLIT = re.compile(r"[,;|]")

# Raw column -> canonical text column
_TEXT_FIELDS = {
    "Email": "email",
    "Klaviyo ID": "id",
    "First Name": "first_name",
    "Last Name": "last_name",
    "City": "city",
    "State / Region": "state",
    "Country": "country",
    "Zip Code": "zip_code",
}


def transform_subscribers(raw: pd.DataFrame, reference_date: pd.Timestamp) -> pd.DataFrame:
    """Build subscriber records; lifetimes are measured up to *reference_date*.

    Date fallbacks: profile_created uses "Profile Created On", then "Date
    Added", then the reference date; first_active falls back to
    profile_created. last_active, last_open and last_click stay empty when
    missing or invalid.
    """
    if raw.empty:
        return empty_frame(SUBSCRIBERS)

    reference = pd.Timestamp(reference_date)
    df = pd.DataFrame(index=raw.index)
    for raw_col, col in _TEXT_FIELDS.items():
        df[col] = optional_text(raw, raw_col)
    df["source"] = optional_text(raw, "Source", default="Unknown")

    df = _derive_dates(df, raw, reference)

    df["total_clv"] = to_number(_column(raw, "Total Customer Lifetime Value"), "Total CLV")
    df["predicted_clv"] = to_number(
        _column(raw, "Predicted Customer Lifetime Value"), "Predicted CLV"
    )
    df["avg_order_value"] = to_number(_column(raw, "Average Order Value"), "Average Order Value")
    orders = to_number(_column(raw, "Historic Number Of Orders"), "Historic Number Of Orders")
    df["total_orders"] = np.floor(orders).astype("int64")
    days_between = _column(raw, "Average Days Between Orders")
    df["avg_days_between_orders"] = to_number(days_between).where(
        days_between.str.strip() != "", np.nan
    )
    df["is_buyer"] = (df["total_orders"] > 0) | (df["total_clv"] > 0)

    consent_raw = optional_text(raw, "Email Marketing Consent")
    df["email_consent_raw"] = consent_raw
    df["email_consent"] = consent_raw.map(parse_consent).astype(bool)

    suppressions_raw = _column(raw, "Email Suppressions")
    df["email_suppressions"] = suppressions_raw.map(parse_suppressions)
    df["can_receive_email"] = suppressions_raw.str.strip() == "[]"

    logger.info(
        "Transformed %d subscribers (%d buyers, %d deliverable)",
        len(df),
        int(df["is_buyer"].sum()),
        int(df["can_receive_email"].sum()),
    )
    return df[SUBSCRIBER_COLUMNS].reset_index(drop=True)


def _column(raw: pd.DataFrame, name: str) -> pd.Series:
    if name not in raw.columns:
        return pd.Series("", index=raw.index, dtype=object)
    return raw[name].fillna("").astype(str)


def _derive_dates(df: pd.DataFrame, raw: pd.DataFrame, reference: pd.Timestamp) -> pd.DataFrame:
    df = df.copy()
    created = parse_dates(_column(raw, "Profile Created On")).values
    added = parse_dates(_column(raw, "Date Added")).values
    profile_created = created.fillna(added)
    missing = int(profile_created.isna().sum())
    if missing:
        logger.warning(
            "Subscribers: %d profile(s) without a creation date; using %s",
            missing,
            reference.strftime("%Y-%m-%d"),
        )
    df["profile_created"] = profile_created.fillna(reference)
    df["first_active"] = parse_dates(_column(raw, "First Active")).values.fillna(
        df["profile_created"]
    )
    df["last_active"] = parse_dates(_column(raw, "Last Active")).values
    df["last_open"] = parse_dates(_column(raw, "Last Open")).values
    df["last_click"] = parse_dates(_column(raw, "Last Click")).values
    elapsed = (reference - df["profile_created"]) / pd.Timedelta(days=1)
    df["lifetime_in_days"] = np.floor(elapsed).astype("int64")
    return df


def parse_consent(value: str) -> bool:
    """TRUE or a valid ISO consent timestamp means consent; anything else does not."""
    text = str(value).strip()
    upper = text.upper()
    if upper == "TRUE":
        return True
    if upper in ("FALSE", "NEVER_SUBSCRIBED", ""):
        return False
    if not _ISO_PREFIX.match(text):
        return False
    return not pd.isna(pd.to_datetime(text, errors="coerce"))


def parse_suppressions(value: str) -> list[str]:
    """Normalize a suppression field to a de-duplicated list of uppercase tokens.

    Accepts JSON-style lists (``["UNSUBSCRIBE"]``), bare bracketed lists
    (``[UNSUBSCRIBE, BOUNCED]``) and doubled-quote CSV escaping. Blank and
    ``[]`` both yield an empty list.
    """
    text = str(value).strip()
    if not text:
        return []
    text = text.replace('""', '"')
    items: list = []
    try:
        loaded = json.loads(text)
    except ValueError:
        loaded = None
    if isinstance(loaded, list):
        items = loaded
    else:
        inner = text[1:-1] if text.startswith("[") and text.endswith("]") else text
        items = _SPLIT.split(inner)

    tokens: list[str] = []
    for item in items:
        token = str(item).strip().strip("'\"").strip().upper()
        if token and token not in tokens:
            tokens.append(token)
    return tokens

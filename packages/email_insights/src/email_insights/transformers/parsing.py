"""Value coercion shared by the record transformers."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

_NUMBER_JUNK = r"[,$€£¥%\s]"

PERCENT = "percent"
AUTO = "auto"

FALLBACK = "fallback"
DROP = "drop"


def blank(series: pd.Series) -> pd.Series:
    """True where the raw value is missing or whitespace only."""
    return series.isna() | (series.astype(str).str.strip() == "")


def to_number(series: pd.Series, label: str = "") -> pd.Series:
    """Parse raw strings to floats, stripping separators, currency and ``%``.

    Blank, unparseable and non-finite values become 0. Unparseable non-blank
    values are logged with a count and a few examples.
    """
    raw = series.fillna("").astype(str).str.strip()
    cleaned = raw.str.replace(_NUMBER_JUNK, "", regex=True)
    values = pd.to_numeric(cleaned, errors="coerce")
    values = values.replace([np.inf, -np.inf], np.nan)
    bad = values.isna() & (cleaned != "")
    bad_count = int(bad.sum())
    if bad_count:
        logger.warning(
            "%s: %d unparseable numeric value(s) treated as 0: %s",
            label or "value",
            bad_count,
            raw[bad].unique()[:5].tolist(),
        )
    return values.fillna(0.0).astype(float)


def parse_rate(series: pd.Series, mode: str = AUTO) -> pd.Series:
    """Parse a rate column to a fraction.

    ``percent`` always divides by 100 (``"27.05%"`` or ``"27.05"`` -> 0.2705).
    ``auto`` divides by 100 only when the value carries a ``%`` suffix and
    otherwise reads it as a decimal fraction (``"0.0705"`` -> 0.0705).
    """
    numbers = to_number(series)
    if mode == PERCENT:
        return numbers / 100.0
    is_pct = series.fillna("").astype(str).str.strip().str.endswith("%")
    return numbers.where(~is_pct, numbers / 100.0)


def coalesce(df: pd.DataFrame, candidates: tuple[str, ...]) -> pd.Series:
    """Per row, the first non-blank value among the candidate columns ("" if none)."""
    result = pd.Series("", index=df.index, dtype=object)
    filled = pd.Series(False, index=df.index)
    for col in candidates:
        if col not in df.columns:
            continue
        take = ~filled & ~blank(df[col])
        result = result.where(~take, df[col])
        filled |= take
    return result


def derive_count(
    df: pd.DataFrame,
    count_columns: tuple[str, ...],
    rate_columns: tuple[str, ...],
    volume: pd.Series,
    rate_mode: str,
    label: str,
) -> pd.Series:
    """Count from the first non-blank count column, else round(volume x rate).

    Rows where neither a count nor a rate is present get 0.
    """
    raw_count = coalesce(df, count_columns)
    counts = to_number(raw_count, label)
    missing = blank(raw_count)
    if missing.any() and rate_columns:
        raw_rate = coalesce(df, rate_columns)
        derived = (volume * parse_rate(raw_rate, rate_mode)).round()
        counts = counts.where(~missing, derived)
    return counts


@dataclass
class DateParse:
    """Outcome of parsing a raw date column.

    ``values`` holds naive timestamps (NaT where invalid or blank); ``invalid``
    flags non-blank values that could not be parsed.
    """

    values: pd.Series
    invalid: pd.Series

    @property
    def invalid_count(self) -> int:
        return int(self.invalid.sum())


def _parse_one(value: str) -> pd.Timestamp:
    if not value:
        return pd.NaT
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return pd.NaT
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def parse_dates(series: pd.Series) -> DateParse:
    """Parse raw date strings, keeping the wall-clock time of tz-aware values.

    Maps unique values first to avoid redundant per-row parsing.
    """
    raw = series.fillna("").astype(str).str.strip()
    mapping = {value: _parse_one(value) for value in raw.unique()}
    values = pd.to_datetime(raw.map(mapping))
    invalid = values.isna() & (raw != "")
    return DateParse(values=values, invalid=invalid)


def fallback_date(parsed: DateParse, now: pd.Timestamp | None = None) -> pd.Timestamp:
    """Substitute for unparseable dates: *now*, else the latest valid date, else today."""
    if now is not None:
        return pd.Timestamp(now)
    latest = parsed.values.max()
    if pd.isna(latest):
        return pd.Timestamp.now().normalize()
    return latest


def apply_date_policy(
    parsed: DateParse,
    raw: pd.Series,
    policy: str,
    fallback: pd.Timestamp,
    label: str,
) -> tuple[pd.Series, pd.Series]:
    """Resolve unparseable dates per *policy*.

    Returns (dates, keep mask). ``fallback`` substitutes *fallback* for every
    invalid or blank value; ``drop`` marks those rows for removal.
    """
    unusable = parsed.values.isna()
    count = int(unusable.sum())
    if not count:
        return parsed.values, pd.Series(True, index=parsed.values.index)
    examples = raw[unusable].fillna("").astype(str).unique()[:5].tolist()
    if policy == DROP:
        logger.warning("%s: dropping %d row(s) with invalid dates: %s", label, count, examples)
        return parsed.values, ~unusable
    logger.warning(
        "%s: %d invalid date(s) replaced with %s: %s",
        label,
        count,
        pd.Timestamp(fallback).strftime("%Y-%m-%d %H:%M"),
        examples,
    )
    return parsed.values.fillna(pd.Timestamp(fallback)), pd.Series(True, index=parsed.values.index)


def optional_text(df: pd.DataFrame, column: str, default: str = "") -> pd.Series:
    """Stripped text column, or *default* for every row when absent."""
    if column not in df.columns:
        return pd.Series(default, index=df.index, dtype=object)
    values = df[column].fillna("").astype(str).str.strip()
    if default:
        values = values.where(values != "", default)
    return values

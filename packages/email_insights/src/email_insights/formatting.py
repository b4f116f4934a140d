"""Number formats for analysis columns, keyed off the metric registry."""

from __future__ import annotations

import re

from email_insights.metrics import METRICS

_NON_WORD = re.compile(r"[\s\-/]+")
_PERCENT_SUFFIXES = ("_pct", "_rate", "percent", "percentage", "%")
_MONEY_WORDS = ("revenue", "clv")
_DECIMAL_COLUMNS = {"current", "previous", "value"}


def column_key(col_name: str) -> str:
    """``"Click-to-Open Rate"`` -> ``"click_to_open_rate"``."""
    return _NON_WORD.sub("_", str(col_name).strip().lower())


def is_currency_column(col_name: str) -> bool:
    key = column_key(col_name)
    definition = METRICS.get(key)
    if definition is not None:
        return definition.numerator == "revenue"
    return any(word in key for word in _MONEY_WORDS)


def is_percentage_column(col_name: str) -> bool:
    key = column_key(col_name)
    definition = METRICS.get(key)
    if definition is not None:
        return definition.scale == 100.0
    return key.endswith(_PERCENT_SUFFIXES) or key.startswith("percentage_")


def is_total_row(val) -> bool:
    return str(val).strip().lower() in ("grand total", "total", "all")


def format_value(val, col_name: str) -> str:
    """Console text for a cell: currency, percent, integer or two decimals."""
    if val is None or (isinstance(val, float) and val != val):
        return ""
    if isinstance(val, str):
        return val
    if is_currency_column(col_name):
        return f"${float(val):,.2f}"
    if is_percentage_column(col_name):
        return f"{float(val):.2f}%"
    num = float(val)
    return f"{int(num):,}" if num.is_integer() else f"{num:,.2f}"


def excel_number_format(col_name: str) -> str:
    """openpyxl number format; percentage cells hold fractions (22.5% -> 0.225)."""
    if is_percentage_column(col_name):
        return "0.00%"
    if is_currency_column(col_name):
        return "$#,##0.00"
    key = column_key(col_name)
    if key in _DECIMAL_COLUMNS or key.startswith("avg_"):
        return "#,##0.00"
    return "#,##0"

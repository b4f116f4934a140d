"""Campaign send-time rollups and flow step metrics."""

from __future__ import annotations

import pandas as pd

from email_insights.aggregation import TimeSeriesPoint, time_series
from email_insights.column_map import COUNT_COLUMNS
from email_insights.metrics import METRICS, get_metric, safe_ratio
from email_insights.periods import DateWindow
from email_insights.sequence import is_live

DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def hour_label(hour: int) -> str:
    """12-hour clock label: 0 -> ``12 AM``, 13 -> ``1 PM``."""
    if hour == 0:
        return "12 AM"
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"


def _grouped_totals(campaigns: pd.DataFrame, key: str) -> pd.DataFrame:
    grouped = campaigns.groupby(key)
    totals = grouped[COUNT_COLUMNS].sum()
    totals["campaign_count"] = grouped.size()
    return totals


def day_of_week_performance(campaigns: pd.DataFrame, metric: str) -> pd.DataFrame:
    """Metric per weekday, always seven rows ordered Sun..Sat.

    Days without campaigns get value 0 and campaign_count 0.
    """
    definition = get_metric(metric)
    index = pd.Index(range(7), name="day_index")
    if campaigns.empty:
        totals = pd.DataFrame(0.0, index=index, columns=[*COUNT_COLUMNS, "campaign_count"])
    else:
        totals = _grouped_totals(campaigns, "day_of_week").reindex(index, fill_value=0)
    result = pd.DataFrame(
        {
            "day": DAY_NAMES,
            "day_index": list(range(7)),
            "value": definition.per_row(totals).to_numpy(),
            "campaign_count": totals["campaign_count"].astype("int64").to_numpy(),
        }
    )
    return result


def hour_of_day_performance(campaigns: pd.DataFrame, metric: str) -> pd.DataFrame:
    """Metric per send hour for hours that have campaigns.

    Sorted by value descending, ties (within 0.01) broken by hour ascending.
    ``percentage_of_total`` is the hour's share of all campaigns.
    """
    definition = get_metric(metric)
    columns = ["hour", "hour_label", "value", "campaign_count", "percentage_of_total"]
    if campaigns.empty:
        return pd.DataFrame(columns=columns)
    totals = _grouped_totals(campaigns, "hour_of_day")
    total_campaigns = len(campaigns)
    rows = [
        {
            "hour": int(hour),
            "hour_label": hour_label(int(hour)),
            "value": float(value),
            "campaign_count": int(count),
            "percentage_of_total": safe_ratio(count, total_campaigns, 100.0),
        }
        for hour, value, count in zip(
            totals.index, definition.per_row(totals), totals["campaign_count"]
        )
    ]
    # Round for the tie tolerance only; reported values stay exact.
    rows.sort(key=lambda r: (-round(r["value"], 2), r["hour"]))
    return pd.DataFrame(rows, columns=columns)


# ---------------------------------------------------------------------------
# Flow steps
# ---------------------------------------------------------------------------


def _flow_rows(flows: pd.DataFrame, flow_name: str, live_only: bool) -> pd.DataFrame:
    if flows.empty:
        return flows
    rows = flows[flows["flow_name"] == flow_name]
    if live_only:
        rows = rows[is_live(rows)]
    return rows


def flow_step_metrics(
    flows: pd.DataFrame,
    flow_name: str,
    window: DateWindow | None = None,
    live_only: bool = True,
) -> pd.DataFrame:
    """Per-step totals, weighted rates and drop-off for one flow.

    ``drop_off_rate`` at step i > 1 is the percentage fall in emails sent
    from step i-1; it is 0 for the first step or when the prior step sent
    nothing. Steps with no sends in the window still appear with zeros.
    """
    rows = _flow_rows(flows, flow_name, live_only)
    if rows.empty:
        return pd.DataFrame(
            columns=["sequence_position", "email_name", *COUNT_COLUMNS, *METRICS, "drop_off_rate"]
        )

    positions = sorted(rows["sequence_position"].unique().tolist())
    names = (
        rows.sort_values("sent_date", kind="stable")
        .groupby("sequence_position")["email_name"]
        .last()
    )
    if window is not None:
        rows = rows[window.mask(rows["sent_date"])]
    totals = (
        rows.groupby("sequence_position")[COUNT_COLUMNS]
        .sum()
        .reindex(positions, fill_value=0.0)
    )

    result = pd.DataFrame(index=totals.index)
    result["email_name"] = names.reindex(totals.index)
    for key, definition in METRICS.items():
        result[key] = definition.per_row(totals)
    for col in COUNT_COLUMNS:
        result[col] = totals[col]

    sent = totals["emails_sent"]
    prior = sent.shift(1)
    drop = ((prior - sent) / prior.where(prior > 0)) * 100
    result["drop_off_rate"] = drop.fillna(0.0)

    result.index.name = "sequence_position"
    return result.reset_index()


def flow_step_time_series(
    flows: pd.DataFrame,
    flow_name: str,
    sequence_position: int,
    metric: str,
    window: DateWindow,
    granularity: str,
    live_only: bool = True,
) -> list[TimeSeriesPoint]:
    """Time series of *metric* for a single step of one flow."""
    rows = _flow_rows(flows, flow_name, live_only)
    if not rows.empty:
        rows = rows[rows["sequence_position"] == sequence_position]
    return time_series(rows, metric, window, granularity)

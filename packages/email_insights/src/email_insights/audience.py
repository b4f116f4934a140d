"""Subscriber audience analytics and headline summaries."""

from __future__ import annotations

import pandas as pd

from email_insights.metrics import safe_ratio, sum_counts, weighted_value

PURCHASE_FREQUENCY_BUCKETS = [
    ("never", "Never purchased"),
    ("one_order", "1 order"),
    ("two_orders", "2 orders"),
    ("three_to_five", "3-5 orders"),
    ("six_plus", "6+ orders"),
]

# (key, label, upper bound in days, inclusive)
LIFETIME_BUCKETS = [
    ("zero_to_3_months", "0-3 months", 90),
    ("three_to_6_months", "3-6 months", 180),
    ("six_to_12_months", "6-12 months", 365),
    ("one_to_two_years", "1-2 years", 730),
    ("two_years_plus", "2+ years", None),
]


def audience_insights(subscribers: pd.DataFrame) -> dict:
    """Buyer split, CLV averages, purchase frequency and lifetime distribution."""
    total = len(subscribers)
    if total == 0:
        return {
            "total_subscribers": 0,
            "buyer_count": 0,
            "non_buyer_count": 0,
            "buyer_percentage": 0.0,
            "avg_clv_all": 0.0,
            "avg_clv_buyers": 0.0,
            "purchase_frequency": {key: 0 for key, _ in PURCHASE_FREQUENCY_BUCKETS},
            "lifetime_distribution": {key: 0 for key, _, _ in LIFETIME_BUCKETS},
        }

    buyers = subscribers[subscribers["is_buyer"]]
    orders = buyers["total_orders"]
    purchase_frequency = {
        "never": total - len(buyers),
        "one_order": int((orders == 1).sum()),
        "two_orders": int((orders == 2).sum()),
        "three_to_five": int(orders.between(3, 5).sum()),
        "six_plus": int((orders >= 6).sum()),
    }

    lifetime = subscribers["lifetime_in_days"]
    lifetime_distribution: dict[str, int] = {}
    lower = None
    for key, _label, upper in LIFETIME_BUCKETS:
        mask = pd.Series(True, index=lifetime.index)
        if lower is not None:
            mask &= lifetime > lower
        if upper is not None:
            mask &= lifetime <= upper
        lifetime_distribution[key] = int(mask.sum())
        lower = upper

    return {
        "total_subscribers": total,
        "buyer_count": len(buyers),
        "non_buyer_count": total - len(buyers),
        "buyer_percentage": safe_ratio(len(buyers), total, 100.0),
        "avg_clv_all": float(subscribers["total_clv"].sum()) / total,
        "avg_clv_buyers": safe_ratio(float(buyers["total_clv"].sum()), len(buyers)),
        "purchase_frequency": purchase_frequency,
        "lifetime_distribution": lifetime_distribution,
    }


def subscriber_summary(subscribers: pd.DataFrame) -> dict | None:
    """Totals, revenue per subscriber/buyer, consent rate and deliverable share."""
    total = len(subscribers)
    if total == 0:
        return None
    buyers = int(subscribers["is_buyer"].sum())
    revenue = float(subscribers["total_clv"].sum())
    return {
        "total_subscribers": total,
        "total_buyers": buyers,
        "buyer_percentage": safe_ratio(buyers, total, 100.0),
        "avg_lifetime_days": float(subscribers["lifetime_in_days"].mean()),
        "total_revenue": revenue,
        "avg_revenue_per_subscriber": revenue / total,
        "avg_revenue_per_buyer": safe_ratio(revenue, buyers),
        "consent_rate": safe_ratio(int(subscribers["email_consent"].sum()), total, 100.0),
        "deliverable_rate": safe_ratio(int(subscribers["can_receive_email"].sum()), total, 100.0),
    }


def campaign_summary(campaigns: pd.DataFrame) -> dict | None:
    """Campaign count, date span, totals and volume-weighted headline rates."""
    if campaigns.empty:
        return None
    totals = sum_counts(campaigns)
    return {
        "total_campaigns": len(campaigns),
        "date_start": campaigns["sent_date"].min(),
        "date_end": campaigns["sent_date"].max(),
        "total_revenue": totals["revenue"],
        "total_emails_sent": totals["emails_sent"],
        "avg_open_rate": weighted_value(campaigns, "open_rate"),
        "avg_click_rate": weighted_value(campaigns, "click_rate"),
        "avg_conversion_rate": weighted_value(campaigns, "conversion_rate"),
    }


def top_sources(subscribers: pd.DataFrame, limit: int = 10) -> pd.DataFrame:
    """Largest signup sources with share, buyer count and buyer CLV."""
    columns = ["source", "count", "percentage", "buyers", "revenue"]
    if subscribers.empty:
        return pd.DataFrame(columns=columns)
    frame = subscribers.assign(
        source=subscribers["source"].replace("", "Unknown"),
        buyer_clv=subscribers["total_clv"].where(subscribers["is_buyer"], 0.0),
    )
    grouped = frame.groupby("source", sort=False).agg(
        count=("id", "size"),
        buyers=("is_buyer", "sum"),
        revenue=("buyer_clv", "sum"),
    )
    grouped = grouped.sort_values("count", ascending=False, kind="stable").head(limit)
    grouped["percentage"] = grouped["count"] / len(subscribers) * 100
    grouped["buyers"] = grouped["buyers"].astype("int64")
    return grouped.reset_index()[columns]


def _top_values(series: pd.Series, name: str, limit: int) -> pd.DataFrame:
    values = series.replace("", "Unknown")
    counts = values.value_counts(sort=True).head(limit)
    return pd.DataFrame(
        {
            name: counts.index.tolist(),
            "count": counts.astype("int64").tolist(),
            "percentage": (counts / len(series) * 100).tolist(),
        }
    )


def location_insights(subscribers: pd.DataFrame, limit: int = 10) -> dict[str, pd.DataFrame]:
    """Top countries, states and cities by subscriber count."""
    if subscribers.empty:
        return {
            "countries": pd.DataFrame(columns=["country", "count", "percentage"]),
            "states": pd.DataFrame(columns=["state", "count", "percentage"]),
            "cities": pd.DataFrame(columns=["city", "count", "percentage"]),
        }
    return {
        "countries": _top_values(subscribers["country"], "country", limit),
        "states": _top_values(subscribers["state"], "state", limit),
        "cities": _top_values(subscribers["city"], "city", limit),
    }

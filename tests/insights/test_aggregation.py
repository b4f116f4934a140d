"""Tests for aggregation.py -- time series, window aggregation, period change."""

from __future__ import annotations

import pandas as pd
import pytest

from email_insights.aggregation import (
    Segment,
    aggregate_metrics,
    period_change,
    select_records,
    series_to_frame,
    time_series,
)
from email_insights.periods import DAILY, MONTHLY, WEEKLY, DateWindow, resolve_window

REF = pd.Timestamp("2024-04-30 12:00:00")


@pytest.fixture()
def records(records_factory):
    return records_factory(
        [
            {"sent_date": "2024-04-02 09:00", "emails_sent": 1000, "unique_opens": 200,
             "unique_clicks": 20, "total_orders": 2, "revenue": 100},
            {"sent_date": "2024-04-02 18:00", "emails_sent": 100, "unique_opens": 80,
             "unique_clicks": 10, "total_orders": 1, "revenue": 50},
            {"sent_date": "2024-04-20 10:00", "emails_sent": 400, "unique_opens": 100,
             "unique_clicks": 5, "total_orders": 0, "revenue": 0},
        ]
    )


class TestSegment:
    def test_unknown_source(self):
        with pytest.raises(ValueError):
            Segment(source="sms")

    def test_select_campaigns_only(self, loaded_store):
        campaigns = loaded_store.get_campaigns()
        flows = loaded_store.get_flow_emails()
        assert len(select_records(campaigns, flows, Segment(source="campaigns"))) == 3
        assert len(select_records(campaigns, flows, Segment())) == 8

    def test_select_flow_step(self, loaded_store):
        segment = Segment(source="flows", flow_name="Welcome Series", sequence_position=1)
        frame = select_records(
            loaded_store.get_campaigns(), loaded_store.get_flow_emails(), segment
        )
        assert frame["emails_sent"].sum() == 200

    def test_select_empty(self):
        frame = select_records(pd.DataFrame(), pd.DataFrame(), Segment())
        assert frame.empty
        assert "revenue" in frame.columns


class TestTimeSeries:
    def test_daily_buckets_seeded(self, records):
        window = resolve_window("30d", REF)
        points = time_series(records, "emails_sent", window, DAILY)
        assert len(points) == 30
        assert points[0].key == "2024-04-01"
        assert points[-1].key == "2024-04-30"
        by_key = {p.key: p.value for p in points}
        assert by_key["2024-04-02"] == 1100
        assert by_key["2024-04-03"] == 0

    def test_bucket_count_independent_of_data(self, records):
        window = resolve_window("30d", REF)
        sparse = records.iloc[:1]
        empty = records.iloc[0:0]
        counts = {
            len(time_series(frame, "open_rate", window, DAILY))
            for frame in (records, sparse, empty)
        }
        assert counts == {30}

    def test_ratio_is_volume_weighted(self, records):
        window = resolve_window("30d", REF)
        points = time_series(records, "open_rate", window, DAILY)
        by_key = {p.key: p.value for p in points}
        # (200 + 80) / (1000 + 100), not the mean of 20% and 80%
        assert by_key["2024-04-02"] == pytest.approx(280 / 1100 * 100)

    def test_weekly_buckets_start_monday(self, records):
        window = resolve_window("90d", REF)
        points = time_series(records, "revenue", window, WEEKLY)
        assert all(p.date.dayofweek == 0 for p in points)
        by_key = {p.key: p.value for p in points}
        assert by_key["2024-04-01"] == 150
        assert by_key["2024-04-15"] == 0

    def test_monthly_labels(self, records):
        window = resolve_window("365d", REF)
        points = time_series(records, "revenue", window, MONTHLY)
        assert points[-1].key == "2024-04"
        assert points[-1].label == "Apr 24"
        assert points[-1].value == 150

    def test_daily_label(self, records):
        window = resolve_window("30d", REF)
        points = time_series(records, "revenue", window, DAILY)
        assert points[4].label == "Apr 5"

    def test_unknown_granularity(self, records):
        with pytest.raises(ValueError):
            time_series(records, "revenue", resolve_window("30d", REF), "hourly")

    def test_unknown_metric(self, records):
        with pytest.raises(ValueError):
            time_series(records, "ctr", resolve_window("30d", REF), DAILY)

    def test_series_to_frame(self, records):
        points = time_series(records, "revenue", resolve_window("30d", REF), DAILY)
        df = series_to_frame(points)
        assert list(df.columns) == ["period", "label", "value"]
        assert len(df) == 30


class TestAggregateMetrics:
    def test_totals_and_rates(self, records):
        agg = aggregate_metrics(records)
        assert agg.email_count == 3
        assert agg.emails_sent == 1500
        assert agg.open_rate == pytest.approx(380 / 1500 * 100)
        assert agg.conversion_rate == pytest.approx(3 / 35 * 100)
        assert agg.avg_order_value == pytest.approx(50.0)

    def test_window_restricts(self, records):
        window = DateWindow.from_days(pd.Timestamp("2024-04-20"), pd.Timestamp("2024-04-30"))
        agg = aggregate_metrics(records, window)
        assert agg.email_count == 1
        assert agg.revenue == 0

    def test_empty_is_zero(self, records):
        agg = aggregate_metrics(records.iloc[0:0])
        assert agg.email_count == 0
        assert agg.open_rate == 0.0
        assert agg.get("revenue") == 0.0

    def test_get_unknown_metric(self, records):
        with pytest.raises(ValueError):
            aggregate_metrics(records).get("nope")

    def test_rate_round_trip(self, records_factory):
        frame = records_factory(
            [
                {"sent_date": "2024-04-01", "emails_sent": 10000, "unique_opens": 2500,
                 "unique_clicks": 400, "total_orders": 50, "revenue": 5000,
                 "unsubscribes_count": 10, "spam_complaints_count": 2, "bounces_count": 100},
            ]
        )
        agg = aggregate_metrics(frame)
        assert agg.open_rate == pytest.approx(25.0)
        assert agg.click_rate == pytest.approx(4.0)
        assert agg.click_to_open_rate == pytest.approx(16.0)
        assert agg.conversion_rate == pytest.approx(12.5)
        assert agg.revenue_per_email == pytest.approx(0.5)
        assert agg.unsubscribe_rate == pytest.approx(0.1)
        assert agg.spam_rate == pytest.approx(0.02)
        assert agg.bounce_rate == pytest.approx(1.0)
        assert agg.avg_order_value == pytest.approx(100.0)


class TestPeriodChange:
    def test_prev_period_change(self, records_factory):
        frame = records_factory(
            [
                {"sent_date": "2024-04-20", "emails_sent": 100, "revenue": 150},
                {"sent_date": "2024-03-20", "emails_sent": 100, "revenue": 100},
            ]
        )
        change = period_change(frame, "revenue", "30d", REF)
        assert change.current == 150
        assert change.previous == 100
        assert change.change_percent == pytest.approx(50.0)
        assert change.is_positive is True

    def test_zero_baseline_prev_period(self, records):
        change = period_change(records, "revenue", "30d", REF, "prev-period")
        assert change.previous == 0
        assert change.change_percent == 100.0

    def test_zero_baseline_and_zero_current(self, records_factory):
        frame = records_factory([{"sent_date": "2024-04-20", "emails_sent": 10}])
        change = period_change(frame, "revenue", "30d", REF, "prev-period")
        assert change.change_percent == 0.0

    def test_zero_baseline_prev_year(self, records):
        change = period_change(records, "revenue", "30d", REF, "prev-year")
        assert change.previous is None
        assert change.change_percent == 0.0
        assert change.previous_period is None

    def test_prev_year_window(self, records_factory):
        frame = records_factory(
            [
                {"sent_date": "2024-04-20", "emails_sent": 100, "revenue": 80},
                {"sent_date": "2023-04-20", "emails_sent": 100, "revenue": 100},
            ]
        )
        change = period_change(frame, "revenue", "30d", REF, "prev-year")
        assert change.previous == 100
        assert change.change_percent == pytest.approx(-20.0)
        assert change.is_positive is False
        assert change.previous_period.start == pd.Timestamp("2023-04-01")

    def test_lower_is_better_inverts(self, records_factory):
        frame = records_factory(
            [
                {"sent_date": "2024-04-20", "emails_sent": 100, "unsubscribes_count": 1},
                {"sent_date": "2024-03-20", "emails_sent": 100, "unsubscribes_count": 2},
            ]
        )
        change = period_change(frame, "unsubscribe_rate", "30d", REF)
        assert change.change_percent == pytest.approx(-50.0)
        assert change.is_positive is True

    def test_all_has_no_comparison(self, records):
        change = period_change(records, "revenue", "all", REF)
        assert change.current == 150
        assert change.previous is None
        assert change.change_percent == 0.0
        assert change.is_positive is True
        assert change.current_period.start == pd.Timestamp("2024-04-02")

    def test_unknown_compare_mode(self, records):
        with pytest.raises(ValueError):
            period_change(records, "revenue", "30d", REF, "prev-week")

"""Tests for store.py -- loading, snapshot swaps, query methods."""

from __future__ import annotations

import io
from datetime import date

import pandas as pd
import pytest

from email_insights.aggregation import Segment
from email_insights.settings import Settings
from email_insights.store import DataStore, LoadProgress


class TestLoadFiles:
    def test_loads_all_three(self, loaded_store):
        assert loaded_store.record_counts() == {"campaigns": 3, "flows": 5, "subscribers": 3}
        assert loaded_store.has_data()

    def test_result_details(self, sample_settings):
        store = DataStore(sample_settings)
        result = store.load_files(sample_settings.export_files)
        assert result.success
        assert result.errors == []
        assert result.loaded == {"campaigns": 3, "flows": 5, "subscribers": 3}
        assert "Flows: Row 11: Missing required field: Flow Message Name" in result.warnings
        assert any(w.startswith("Subscribers: Row 5:") for w in result.warnings)

    def test_failed_file_reported_and_others_load(self, campaigns_csv):
        store = DataStore()
        bad_flows = io.StringIO("just,a,table\n1,2,3\n")
        result = store.load_files({"campaigns": campaigns_csv, "flows": bad_flows})
        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Flows: ")
        assert "headers not found" in result.errors[0]
        assert store.record_counts()["campaigns"] == 3

    def test_failed_reload_keeps_previous_collection(self, loaded_store):
        bad = io.StringIO("Campaign Name,Send Time\nA,2024-01-01\n")
        result = loaded_store.load_files({"campaigns": bad})
        assert not result.success
        assert "Missing required columns" in result.errors[0]
        assert loaded_store.record_counts()["campaigns"] == 3

    def test_reload_replaces_collection(self, loaded_store, export_text):
        lines = export_text["campaigns"].splitlines()
        text = "\n".join(lines[:2]) + "\n"
        result = loaded_store.load_files({"campaigns": io.StringIO(text)})
        assert result.success
        assert loaded_store.record_counts() == {"campaigns": 1, "flows": 5, "subscribers": 3}

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            DataStore().load_files({"orders": "x.csv"})

    def test_progress_reported(self, sample_settings):
        seen: list[LoadProgress] = []
        store = DataStore(sample_settings)
        store.load_files(
            sample_settings.export_files,
            on_progress=lambda p: seen.append(LoadProgress(**vars(p))),
        )
        assert seen[-1].campaigns == 100
        assert seen[-1].flows == 100
        assert seen[-1].subscribers == 100
        assert seen[-1].overall == 100
        assert {p.current for p in seen} == {"campaigns", "flows", "subscribers"}

    def test_load_paths(self, campaigns_csv):
        store = DataStore()
        result = store.load_paths(campaigns=campaigns_csv)
        assert result.loaded == {"campaigns": 3}

    def test_reset(self, loaded_store):
        loaded_store.reset()
        assert not loaded_store.has_data()
        assert loaded_store.get_campaigns().empty


class TestCancel:
    def test_cancel_before_next_chunk(self, sample_settings):
        settings = sample_settings.model_copy(update={"chunk_size": 1})
        store = DataStore(settings)

        def on_progress(progress: LoadProgress) -> None:
            if progress.current == "campaigns":
                store.cancel_load()

        result = store.load_files({"campaigns": settings.campaigns_file}, on_progress=on_progress)
        assert not result.success
        assert "cancelled" in result.errors[0]
        assert not store.has_data()


class TestReferenceDate:
    def test_last_email_date(self, loaded_store):
        assert loaded_store.get_last_email_date() == pd.Timestamp("2024-04-02 10:00:00")

    def test_configured_reference_date(self, sample_settings):
        settings = sample_settings.model_copy(update={"reference_date": date(2024, 3, 10)})
        store = DataStore(settings)
        store.load_files(settings.export_files)
        assert store.get_last_email_date() == pd.Timestamp("2024-03-10")
        lifetimes = store.get_subscribers()["lifetime_in_days"].tolist()
        assert lifetimes[1] == 38

    def test_subscribers_loaded_alone_use_loaded_emails(self, campaigns_csv, subscribers_csv):
        store = DataStore()
        store.load_paths(campaigns=campaigns_csv)
        store.load_paths(subscribers=subscribers_csv)
        assert store.get_subscribers()["lifetime_in_days"].tolist() == [448, 61, 822]

    def test_empty_store_uses_today(self):
        today = pd.Timestamp.now().normalize()
        assert DataStore().get_last_email_date() == today


class TestQueries:
    def test_getters_return_copies(self, loaded_store):
        df = loaded_store.get_campaigns()
        df["revenue"] = 0
        assert loaded_store.get_campaigns()["revenue"].sum() == 6800

    def test_flow_names(self, loaded_store):
        assert loaded_store.get_unique_flow_names() == ["Abandoned Cart", "Welcome Series"]
        assert loaded_store.get_unique_flow_names(live_only=True) == ["Welcome Series"]

    def test_granularity_for_range(self, loaded_store):
        assert loaded_store.get_granularity_for_date_range("30d") == "daily"
        assert loaded_store.get_granularity_for_date_range("90d") == "weekly"
        assert loaded_store.get_granularity_for_date_range("all") == "daily"

    def test_time_series_default_granularity(self, loaded_store):
        points = loaded_store.time_series("revenue", "30d")
        assert len(points) == 30
        assert sum(p.value for p in points) == pytest.approx(6850.0)

    def test_time_series_campaigns_only(self, loaded_store):
        points = loaded_store.time_series("revenue", "30d", segment=Segment(source="campaigns"))
        assert sum(p.value for p in points) == pytest.approx(6800.0)

    def test_aggregated_metrics(self, loaded_store):
        agg = loaded_store.get_aggregated_metrics("all")
        assert agg.email_count == 8
        assert agg.revenue == pytest.approx(6800.0 + 450.0)

    def test_period_change(self, loaded_store):
        change = loaded_store.period_change("revenue", "30d", Segment(source="flows"))
        # current: 03-04..04-02 (Abandoned Cart 50 + Welcome 3 0)
        # previous: 02-03..03-03 (Welcome 1 x2 + Welcome 2)
        assert change.current == pytest.approx(50.0)
        assert change.previous == pytest.approx(400.0)
        assert change.change_percent == pytest.approx(-87.5)

    def test_day_and_hour_rollups(self, loaded_store):
        by_day = loaded_store.get_campaign_performance_by_day_of_week("revenue")
        assert by_day["value"].sum() == pytest.approx(6800.0)
        by_hour = loaded_store.get_campaign_performance_by_hour_of_day("revenue", "30d")
        assert by_hour["hour"].tolist() == [10, 14]

    def test_flow_step_queries(self, loaded_store):
        info = loaded_store.get_flow_sequence_info("Welcome Series")
        assert info.sequence_length == 3
        steps = loaded_store.get_flow_step_metrics("Welcome Series")
        assert steps["emails_sent"].sum() == 340
        points = loaded_store.get_flow_step_time_series("Welcome Series", 1, "emails_sent", "30d")
        assert sum(p.value for p in points) == 0

    def test_flow_step_period_change(self, loaded_store):
        change = loaded_store.get_flow_step_period_change(
            "Welcome Series", 3, "emails_sent", "30d"
        )
        assert change.current == 60
        assert change.previous == 0
        assert change.change_percent == 100.0

    def test_audience_queries(self, loaded_store):
        assert loaded_store.get_audience_insights()["buyer_count"] == 2
        assert len(loaded_store.get_top_sources(limit=1)) == 1
        assert loaded_store.get_location_insights()["countries"]["count"].sum() == 3

    def test_summary_stats(self, loaded_store):
        stats = loaded_store.get_summary_stats()
        assert stats["campaigns"]["total_campaigns"] == 3
        assert stats["subscribers"]["total_subscribers"] == 3
        assert stats["flows"] == {"total_flows": 2, "total_emails": 5}

    def test_queries_on_empty_store(self):
        store = DataStore(Settings())
        assert store.get_aggregated_metrics("30d").email_count == 0
        assert len(store.time_series("open_rate", "30d")) == 30
        assert store.period_change("revenue", "30d").change_percent == 0.0
        assert store.get_summary_stats()["campaigns"] is None
        assert len(store.get_campaign_performance_by_day_of_week("open_rate")) == 7


CAMPAIGN_HEADER = "Campaign Name,Send Time,Total Recipients,Revenue,Unique Opens,Unique Clicks\n"
FLOW_HEADER = (
    "Day,Flow ID,Flow Name,Flow Message ID,Flow Message Name,Status,Delivered,Revenue\n"
)


def _campaigns(*send_times: str) -> io.StringIO:
    rows = "".join(f"C{i},{ts},1000,100,200,20\n" for i, ts in enumerate(send_times))
    return io.StringIO(CAMPAIGN_HEADER + rows)


def _flows(*days: str) -> io.StringIO:
    rows = "".join(f"{day},F1,Welcome,M1,Welcome 1,live,100,10\n" for day in days)
    return io.StringIO(FLOW_HEADER + rows)


class TestSharedGranularity:
    def test_flow_step_series_uses_store_granularity(self):
        store = DataStore()
        store.load_files(
            {
                "campaigns": _campaigns("2023-01-01 09:00", "2024-03-01 09:00"),
                "flows": _flows("2024-02-20", "2024-03-01"),
            }
        )
        assert store.get_granularity_for_date_range("all") == "monthly"
        points = store.get_flow_step_time_series("Welcome", 1, "emails_sent", "all")
        assert [p.key for p in points] == ["2024-02", "2024-03"]
        assert sum(p.value for p in points) == 200

    def test_segment_series_uses_store_granularity(self):
        store = DataStore()
        store.load_files(
            {
                "campaigns": _campaigns("2023-01-01 09:00", "2024-03-01 09:00"),
                "flows": _flows("2024-02-20", "2024-03-01"),
            }
        )
        points = store.time_series("revenue", "all", segment=Segment(source="flows"))
        assert [p.key for p in points] == ["2024-02", "2024-03"]

    @pytest.mark.parametrize(
        "first, last, expected",
        [
            ("2024-01-01", "2024-03-01", "daily"),
            ("2024-01-01", "2024-03-02", "weekly"),
            ("2023-01-01", "2024-01-01", "weekly"),
            ("2023-01-01", "2024-01-02", "monthly"),
        ],
    )
    def test_all_measures_whole_day_span(self, first, last, expected):
        store = DataStore()
        store.load_files({"campaigns": _campaigns(f"{first} 08:00", f"{last} 20:00")})
        assert store.get_granularity_for_date_range("all") == expected


class TestInvalidSendDates:
    def test_bad_send_time_keeps_reference_date(self):
        store = DataStore()
        store.load_files(
            {"campaigns": _campaigns("2024-03-01 09:00", "not a date", "2024-03-05 09:00")}
        )
        assert store.get_last_email_date() == pd.Timestamp("2024-03-05 09:00")
        assert store.get_campaigns()["sent_date"].iloc[1] == pd.Timestamp("2024-03-05 09:00")

    def test_bad_flow_day_uses_configured_reference(self):
        store = DataStore(Settings(reference_date=date(2024, 3, 10)))
        store.load_files({"flows": _flows("2024-03-01", "31/31/2024")})
        assert store.get_last_email_date() == pd.Timestamp("2024-03-10")
        assert store.get_flow_emails()["sent_date"].max() == pd.Timestamp("2024-03-10")

"""Tests for email_insights.formatting."""

from __future__ import annotations

from email_insights.formatting import (
    column_key,
    excel_number_format,
    format_value,
    is_currency_column,
    is_percentage_column,
    is_total_row,
)


class TestFormatValue:
    def test_none(self):
        assert format_value(None, "revenue") == ""

    def test_nan(self):
        assert format_value(float("nan"), "revenue") == ""

    def test_currency(self):
        assert format_value(1234.5, "Revenue") == "$1,234.50"

    def test_percentage(self):
        assert format_value(22.777, "Open Rate") == "22.78%"

    def test_integer(self):
        assert format_value(23000.0, "Emails Sent") == "23,000"

    def test_float(self):
        assert format_value(3.14159, "score") == "3.14"

    def test_string(self):
        assert format_value("Tue", "day") == "Tue"


class TestExcelNumberFormat:
    def test_percentage(self):
        assert excel_number_format("drop_off_rate") == "0.00%"

    def test_currency(self):
        assert excel_number_format("revenue") == "$#,##0.00"
        assert excel_number_format("avg_clv_buyers") == "$#,##0.00"

    def test_average(self):
        assert excel_number_format("current") == "#,##0.00"

    def test_count(self):
        assert excel_number_format("campaign_count") == "#,##0"


class TestColumnClassifiers:
    def test_currency(self):
        assert is_currency_column("revenue_per_email")
        assert is_currency_column("avg_order_value")
        assert not is_currency_column("emails_sent")

    def test_percentage(self):
        assert is_percentage_column("share_pct")
        assert is_percentage_column("percentage_of_total")
        assert not is_percentage_column("subscribers")

    def test_total_row(self):
        assert is_total_row("Total")
        assert is_total_row(" grand total ")
        assert not is_total_row("Campaigns")


class TestRegistryColumns:
    def test_column_key(self):
        assert column_key("Click-to-Open Rate") == "click_to_open_rate"
        assert column_key(" Emails Sent ") == "emails_sent"

    def test_registry_labels(self):
        assert is_percentage_column("Click-to-Open Rate")
        assert is_currency_column("Revenue per Email")
        assert not is_percentage_column("Revenue per Email")
        assert not is_currency_column("Unique Opens")

    def test_derived_columns(self):
        assert is_currency_column("avg_revenue_per_buyer")
        assert is_percentage_column("change_percent")
        assert is_percentage_column("buyer_percentage")
        assert excel_number_format("avg_days_between_orders") == "#,##0.00"

"""Shared fixtures for email_insights tests."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from email_insights.settings import Settings
from email_insights.store import DataStore

CAMPAIGNS_CSV = """\
Campaign Name,Subject,Send Time,Send Weekday,Total Recipients,Unique Placed Order,Placed Order Rate,Revenue,Unique Opens,Open Rate,Unique Clicks,Click Rate,Unsubscribes,Spam Complaints,Bounces,Campaign ID,Campaign Channel
Spring Sale,Big spring savings,2024-03-05 10:00:00,Tuesday,"10,000",50,0.50%,"$5,000.00","2,500",25.00%,400,4.00%,10,2,100,C1,Email
Weekend Promo,,2024-03-09 14:30:00,Saturday,5000,20,0.40%,"$1,000.00",1000,20.00%,250,5.00%,5,0,25,C2,Email
SMS Blast,Flash,2024-03-10 09:00:00,Sunday,3000,5,0.17%,$100.00,0,0%,30,1.00%,0,0,0,C3,SMS
April News,April newsletter,2024-04-02 10:00:00,Tuesday,8000,16,0.20%,$800.00,1600,20.00%,160,2.00%,8,1,40,C4,Email
"""

FLOWS_CSV = """\
Flow Performance Report
Date Range: 2024-03-01 - 2024-03-31
Exported,2024-04-01
Day,Flow ID,Flow Name,Flow Message ID,Flow Message Name,Flow Message Channel,Status,Delivered,Bounced,Bounce Rate,Unique Opens,Open Rate,Unique Clicks,Click Rate,Placed Order,Revenue,Unsubscribes,Unsub Rate,Spam,Complaint Rate
2024-03-01,F1,Welcome Series,M1,Welcome 1,Email,live,100,,0.02,50,0.5,10,0.1,2,200,,0.01,0,0
2024-03-02,F1,Welcome Series,M1,Welcome 1,Email,live,100,1,0.01,40,0.4,8,0.08,1,100,1,0.01,0,0
2024-03-03,F1,Welcome Series,M2,Welcome 2,Email,live,80,2,0.025,40,0.5,8,0.1,1,100,1,0.0125,0,0
2024-03-05,F1,Welcome Series,M3,Welcome 3,Email,live,60,0,0,30,0.5,6,0.1,0,0,0,0,0,0
2024-03-02,F1,Welcome Series,S1,Welcome SMS,SMS,live,90,0,0,0,0,0,0,0,0,0,0,0,0
2024-03-04,F2,Abandoned Cart,A1,Cart Reminder,Email,manual,40,0,0,20,0.5,4,0.1,1,50,0,0,0,0
2024-03-06,F2,Abandoned Cart,A2,,Email,manual,30,0,0,10,0.3,2,0.06,0,0,0,0,0,0
"""

SUBSCRIBERS_CSV = """\
Email,Klaviyo ID,First Name,Last Name,City,State / Region,Country,Zip Code,Source,Email Marketing Consent,Total Customer Lifetime Value,Predicted Customer Lifetime Value,Average Order Value,Historic Number Of Orders,First Active,Last Active,Profile Created On,Date Added,Email Suppressions
ann@example.com,K1,Ann,Lee,Austin,TX,United States,78701,Signup Form,TRUE,$250.00,300,125,2,2023-01-10,2024-03-20,2023-01-10,,[]
bob@example.com,K2,Bob,Ray,Boston,MA,United States,02108,Popup,NEVER_SUBSCRIBED,0,0,0,0,,,,2024-02-01,[UNSUBSCRIBE]
cat@example.com,K3,Cat,Kim,Toronto,ON,Canada,M5V,,2023-06-01T12:00:00+00:00,"1,200.00",900,171.43,7.6,,,2022-01-01,,
not-an-email,K4,Dan,Fox,Austin,TX,United States,78701,Popup,TRUE,0,0,0,0,,,2024-01-01,,[]
eve@example.com,,Eve,Ng,Austin,TX,United States,78701,Popup,FALSE,0,0,0,0,,,2024-01-01,,[]
"""


def _write(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture()
def campaigns_csv(tmp_path: Path) -> Path:
    return _write(tmp_path, "campaigns.csv", CAMPAIGNS_CSV)


@pytest.fixture()
def flows_csv(tmp_path: Path) -> Path:
    return _write(tmp_path, "flows.csv", FLOWS_CSV)


@pytest.fixture()
def subscribers_csv(tmp_path: Path) -> Path:
    return _write(tmp_path, "subscribers.csv", SUBSCRIBERS_CSV)


@pytest.fixture()
def sample_settings(campaigns_csv, flows_csv, subscribers_csv, tmp_path: Path) -> Settings:
    """Settings pointing at all three sample exports."""
    return Settings(
        campaigns_file=campaigns_csv,
        flows_file=flows_csv,
        subscribers_file=subscribers_csv,
        output_dir=tmp_path / "out",
    )


@pytest.fixture()
def loaded_store(sample_settings: Settings) -> DataStore:
    """DataStore with all three sample exports loaded."""
    store = DataStore(sample_settings)
    result = store.load_files(sample_settings.export_files)
    assert result.success, result.errors
    return store


def make_records(rows: list[dict]) -> pd.DataFrame:
    """Processed-style records from partial dicts (missing counts default to 0)."""
    from email_insights.column_map import COUNT_COLUMNS
    from email_insights.metrics import derive_rates

    df = pd.DataFrame(rows)
    for col in COUNT_COLUMNS:
        if col not in df.columns:
            df[col] = 0.0
        df[col] = df[col].fillna(0).astype(float)
    df["sent_date"] = pd.to_datetime(df["sent_date"])
    return derive_rates(df)


@pytest.fixture()
def records_factory():
    return make_records


@pytest.fixture()
def export_text() -> dict[str, str]:
    """Raw CSV text of the sample exports keyed by kind."""
    return {
        "campaigns": CAMPAIGNS_CSV,
        "flows": FLOWS_CSV,
        "subscribers": SUBSCRIBERS_CSV,
    }


@pytest.fixture()
def subscribers_raw(subscribers_csv) -> pd.DataFrame:
    """Validated raw subscriber rows as the ingestor returns them."""
    from email_insights.ingest import CsvIngestor

    return CsvIngestor().parse_subscribers(subscribers_csv).records

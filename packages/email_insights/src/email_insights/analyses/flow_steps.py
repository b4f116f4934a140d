"""Step-by-step performance and drop-off for every live flow."""

from __future__ import annotations

import logging

import pandas as pd

from email_insights.analyses.base import AnalysisResult
from email_insights.settings import Settings
from email_insights.store import DataStore

logger = logging.getLogger(__name__)

STEP_COLUMNS = [
    "flow_name",
    "sequence_position",
    "email_name",
    "emails_sent",
    "drop_off_rate",
    "open_rate",
    "click_rate",
    "conversion_rate",
    "revenue",
    "revenue_per_email",
    "unsubscribe_rate",
]


def analyze_flow_steps(store: DataStore, settings: Settings) -> AnalysisResult:
    frames = []
    duplicates: dict[str, dict[str, int]] = {}
    for flow_name in store.get_unique_flow_names(live_only=True):
        steps = store.get_flow_step_metrics(flow_name, settings.date_range)
        if steps.empty:
            continue
        frames.append(steps.assign(flow_name=flow_name)[STEP_COLUMNS])
        info = store.get_flow_sequence_info(flow_name)
        if info.duplicate_names:
            duplicates[flow_name] = info.duplicate_names
    if duplicates:
        logger.info("Flows with repeated step names: %s", duplicates)
    df = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=STEP_COLUMNS)
    return AnalysisResult(
        name="flow_steps",
        title="Flow Step Performance (live flows)",
        df=df,
        sheet_name="Flow Steps",
        metadata={"duplicate_names": duplicates},
    )

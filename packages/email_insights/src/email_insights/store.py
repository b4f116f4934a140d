"""In-memory session store for the three processed collections.

A DataStore is constructed explicitly and passed to whoever needs it. Loads
are serialized; each collection is replaced as a whole only after its file
parsed and transformed successfully, so readers always see a complete
snapshot. All read methods are pure functions over the current snapshot.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

import pandas as pd

from email_insights import aggregation, audience, rollups, sequence
from email_insights.aggregation import (
    AggregatedMetrics,
    PeriodChange,
    Segment,
    TimeSeriesPoint,
)
from email_insights.column_map import CAMPAIGNS, FLOWS, KIND_LABELS, SUBSCRIBERS, empty_frame
from email_insights.exceptions import InsightsError
from email_insights.ingest import CsvIngestor, ParseResult, Source
from email_insights.periods import (
    ALL,
    PREV_PERIOD,
    DateRange,
    DateWindow,
    granularity_for_range,
    resolve_window,
)
from email_insights.sequence import FlowSequenceInfo
from email_insights.settings import Settings
from email_insights.transformers import (
    transform_campaigns,
    transform_flows,
    transform_subscribers,
)

logger = logging.getLogger(__name__)

LOAD_ORDER = (CAMPAIGNS, FLOWS, SUBSCRIBERS)


@dataclass(frozen=True)
class Snapshot:
    """The three processed collections as one immutable unit."""

    campaigns: pd.DataFrame
    flows: pd.DataFrame
    subscribers: pd.DataFrame

    @classmethod
    def empty(cls) -> Snapshot:
        return cls(
            campaigns=empty_frame(CAMPAIGNS),
            flows=empty_frame(FLOWS),
            subscribers=empty_frame(SUBSCRIBERS),
        )


@dataclass
class LoadProgress:
    """Per-file progress snapshot passed to load callbacks."""

    campaigns: int = 0
    flows: int = 0
    subscribers: int = 0
    current: str | None = None

    @property
    def overall(self) -> int:
        return (self.campaigns + self.flows + self.subscribers) // 3


@dataclass
class LoadResult:
    """Outcome of DataStore.load_files."""

    success: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    loaded: dict[str, int] = field(default_factory=dict)


class DataStore:
    """Holds processed campaigns, flow emails and subscribers for one session."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self._ingestor = CsvIngestor.from_settings(self.settings)
        self._snapshot = Snapshot.empty()
        self._load_lock = threading.Lock()
        self._cancel = threading.Event()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_files(
        self,
        files: Mapping[str, Source | None],
        on_progress: Callable[[LoadProgress], None] | None = None,
    ) -> LoadResult:
        """Load any of the three exports keyed by kind.

        A second call waits for an in-flight load to finish. A file that fails
        leaves the previous collection of its kind in place and is reported as
        ``"<Kind>: <message>"``; the other files still load.
        """
        unknown = set(files) - set(LOAD_ORDER)
        if unknown:
            raise ValueError(f"Unknown export kind(s): {sorted(unknown)}")

        with self._load_lock:
            self._cancel.clear()
            progress = LoadProgress()
            errors: list[str] = []
            warnings: list[str] = []
            staged: dict[str, pd.DataFrame] = {}

            for kind in LOAD_ORDER:
                source = files.get(kind)
                if source is None:
                    continue
                label = KIND_LABELS[kind]
                progress.current = kind

                def report(pct: int, kind: str = kind) -> None:
                    setattr(progress, kind, pct)
                    if on_progress is not None:
                        on_progress(progress)

                report(0)
                try:
                    result = self._ingestor.parse(
                        kind, source, on_progress=report, cancel=self._cancel
                    )
                    staged[kind] = self._transform(kind, result, staged)
                except InsightsError as e:
                    logger.error("%s load failed: %s", label, e)
                    errors.append(f"{label}: {e}")
                    continue
                warnings.extend(f"{label}: {issue}" for issue in result.issues)
                report(100)

            self._snapshot = replace(self._snapshot, **staged)
            progress.current = None

        loaded = {kind: len(frame) for kind, frame in staged.items()}
        logger.info("Load finished: %s (%d error(s))", loaded, len(errors))
        return LoadResult(
            success=bool(staged) and not errors,
            errors=errors,
            warnings=warnings,
            loaded=loaded,
        )

    def load_paths(
        self,
        campaigns: str | Path | None = None,
        flows: str | Path | None = None,
        subscribers: str | Path | None = None,
        on_progress: Callable[[LoadProgress], None] | None = None,
    ) -> LoadResult:
        return self.load_files(
            {CAMPAIGNS: campaigns, FLOWS: flows, SUBSCRIBERS: subscribers},
            on_progress=on_progress,
        )

    def cancel_load(self) -> None:
        """Ask an in-flight load to stop at its next chunk boundary."""
        self._cancel.set()

    def _transform(
        self, kind: str, result: ParseResult, staged: dict[str, pd.DataFrame]
    ) -> pd.DataFrame:
        policy = self.settings.invalid_date_policy
        # Invalid send dates fall back to the configured reference date, else
        # the latest valid send in the same export.
        now = self.settings.reference_date
        now = pd.Timestamp(now) if now is not None else None
        if kind == CAMPAIGNS:
            return transform_campaigns(result.records, invalid_date_policy=policy, now=now)
        if kind == FLOWS:
            return transform_flows(result.records, invalid_date_policy=policy, now=now)
        # Subscriber lifetimes are measured to the reference date of the
        # email data that will be in place once this load completes.
        campaigns = staged.get(CAMPAIGNS, self._campaigns)
        flows = staged.get(FLOWS, self._flows)
        return transform_subscribers(result.records, self._reference_for(campaigns, flows))

    def reset(self) -> None:
        """Drop all loaded data."""
        with self._load_lock:
            self._snapshot = Snapshot.empty()

    # ------------------------------------------------------------------
    # Snapshot accessors
    # ------------------------------------------------------------------

    @property
    def _campaigns(self) -> pd.DataFrame:
        return self._snapshot.campaigns

    @property
    def _flows(self) -> pd.DataFrame:
        return self._snapshot.flows

    @property
    def _subscribers(self) -> pd.DataFrame:
        return self._snapshot.subscribers

    def get_campaigns(self) -> pd.DataFrame:
        return self._campaigns.copy()

    def get_flow_emails(self) -> pd.DataFrame:
        return self._flows.copy()

    def get_subscribers(self) -> pd.DataFrame:
        return self._subscribers.copy()

    def record_counts(self) -> dict[str, int]:
        return {
            CAMPAIGNS: len(self._campaigns),
            FLOWS: len(self._flows),
            SUBSCRIBERS: len(self._subscribers),
        }

    def has_data(self) -> bool:
        return not (self._campaigns.empty and self._flows.empty and self._subscribers.empty)

    def _reference_for(self, campaigns: pd.DataFrame, flows: pd.DataFrame) -> pd.Timestamp:
        if self.settings.reference_date is not None:
            return pd.Timestamp(self.settings.reference_date)
        dates = [f["sent_date"].max() for f in (campaigns, flows) if not f.empty]
        if dates:
            return max(dates)
        today = pd.Timestamp.now().normalize()
        logger.info("No email data loaded; using today (%s) as reference date", today.date())
        return today

    def get_last_email_date(self) -> pd.Timestamp:
        """The data-anchored "now": configured reference date, else last send."""
        return self._reference_for(self._campaigns, self._flows)

    def get_unique_flow_names(self, live_only: bool = False) -> list[str]:
        return sequence.unique_flow_names(self._flows, live_only=live_only)

    # ------------------------------------------------------------------
    # Windows and granularity
    # ------------------------------------------------------------------

    def _records(self, segment: Segment) -> pd.DataFrame:
        return aggregation.select_records(self._campaigns, self._flows, segment)

    def resolve_window(self, date_range: DateRange, segment: Segment | None = None) -> DateWindow:
        """Window for *date_range* anchored on the reference date."""
        earliest = aggregation.earliest_date(self._records(segment or Segment()))
        return resolve_window(date_range, self.get_last_email_date(), earliest)

    def get_granularity_for_date_range(self, date_range: DateRange) -> str:
        """Bucket width used by every series for *date_range*, whatever the segment."""
        earliest = aggregation.earliest_date(self._records(Segment()))
        return granularity_for_range(date_range, self.get_last_email_date(), earliest)

    # ------------------------------------------------------------------
    # Email analytics
    # ------------------------------------------------------------------

    def time_series(
        self,
        metric: str,
        date_range: DateRange,
        granularity: str | None = None,
        segment: Segment | None = None,
    ) -> list[TimeSeriesPoint]:
        segment = segment or Segment()
        window = self.resolve_window(date_range, segment)
        granularity = granularity or self.get_granularity_for_date_range(date_range)
        return aggregation.time_series(self._records(segment), metric, window, granularity)

    def get_aggregated_metrics(
        self, date_range: DateRange = ALL, segment: Segment | None = None
    ) -> AggregatedMetrics:
        segment = segment or Segment()
        window = self.resolve_window(date_range, segment)
        return aggregation.aggregate_metrics(self._records(segment), window)

    def period_change(
        self,
        metric: str,
        date_range: DateRange,
        segment: Segment | None = None,
        compare_mode: str | None = None,
    ) -> PeriodChange:
        return aggregation.period_change(
            self._records(segment or Segment()),
            metric,
            date_range,
            self.get_last_email_date(),
            compare_mode or self.settings.compare_mode or PREV_PERIOD,
        )

    def get_campaign_performance_by_day_of_week(
        self, metric: str, date_range: DateRange = ALL
    ) -> pd.DataFrame:
        return rollups.day_of_week_performance(self._campaigns_in(date_range), metric)

    def get_campaign_performance_by_hour_of_day(
        self, metric: str, date_range: DateRange = ALL
    ) -> pd.DataFrame:
        return rollups.hour_of_day_performance(self._campaigns_in(date_range), metric)

    def _campaigns_in(self, date_range: DateRange) -> pd.DataFrame:
        if self._campaigns.empty:
            return self._campaigns
        window = self.resolve_window(date_range, Segment(source="campaigns"))
        return self._campaigns[window.mask(self._campaigns["sent_date"])]

    # ------------------------------------------------------------------
    # Flow analytics
    # ------------------------------------------------------------------

    def get_flow_sequence_info(self, flow_name: str) -> FlowSequenceInfo:
        return sequence.get_flow_sequence_info(self._flows, flow_name)

    def get_flow_step_metrics(
        self, flow_name: str, date_range: DateRange = ALL, live_only: bool = True
    ) -> pd.DataFrame:
        window = self.resolve_window(date_range, Segment(source="flows", flow_name=flow_name))
        return rollups.flow_step_metrics(self._flows, flow_name, window, live_only=live_only)

    def get_flow_step_time_series(
        self,
        flow_name: str,
        sequence_position: int,
        metric: str,
        date_range: DateRange,
        granularity: str | None = None,
        live_only: bool = True,
    ) -> list[TimeSeriesPoint]:
        window = self.resolve_window(date_range, Segment(source="flows", flow_name=flow_name))
        granularity = granularity or self.get_granularity_for_date_range(date_range)
        return rollups.flow_step_time_series(
            self._flows,
            flow_name,
            sequence_position,
            metric,
            window,
            granularity,
            live_only=live_only,
        )

    def get_flow_step_period_change(
        self,
        flow_name: str,
        sequence_position: int,
        metric: str,
        date_range: DateRange,
        compare_mode: str | None = None,
    ) -> PeriodChange:
        segment = Segment(
            source="flows",
            flow_name=flow_name,
            sequence_position=sequence_position,
            live_only=True,
        )
        return self.period_change(metric, date_range, segment, compare_mode)

    # ------------------------------------------------------------------
    # Audience
    # ------------------------------------------------------------------

    def get_audience_insights(self) -> dict:
        return audience.audience_insights(self._subscribers)

    def get_summary_stats(self) -> dict:
        return {
            "campaigns": audience.campaign_summary(self._campaigns),
            "subscribers": audience.subscriber_summary(self._subscribers),
            "flows": {
                "total_flows": len(self.get_unique_flow_names()),
                "total_emails": len(self._flows),
            },
        }

    def get_top_sources(self, limit: int | None = None) -> pd.DataFrame:
        return audience.top_sources(self._subscribers, limit or self.settings.top_n)

    def get_location_insights(self, limit: int | None = None) -> dict[str, pd.DataFrame]:
        return audience.location_insights(self._subscribers, limit or self.settings.top_n)

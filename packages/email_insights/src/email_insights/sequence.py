"""Flow sequence reconstruction from repeated daily flow snapshots.

A flow export lists one row per (message, day). The order of messages within
a flow is not given, so each message's position is its rank by the earliest
day it was ever sent. Messages that first appear on the same day keep the
order in which they first occur in the export.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class FlowSequenceInfo:
    """Ordered messages of one flow with their display names."""

    flow_id: str
    message_ids: list[str] = field(default_factory=list)
    email_names: list[str] = field(default_factory=list)
    duplicate_names: dict[str, int] = field(default_factory=dict)

    @property
    def sequence_length(self) -> int:
        return len(self.message_ids)


def resolve_sequence(flows: pd.DataFrame) -> dict[tuple[str, str], int]:
    """Map (flow_id, flow_message_id) to a dense 1-based position.

    Expects columns ``flow_id``, ``flow_message_id`` and ``sent_date``.
    """
    if flows.empty:
        return {}
    frame = flows[["flow_id", "flow_message_id", "sent_date"]].copy()
    frame["_order"] = range(len(frame))
    firsts = frame.groupby(["flow_id", "flow_message_id"], sort=False).agg(
        earliest=("sent_date", "min"),
        first_seen=("_order", "min"),
    )
    firsts = firsts.reset_index().sort_values(
        ["flow_id", "earliest", "first_seen"], kind="stable"
    )
    firsts["position"] = firsts.groupby("flow_id", sort=False).cumcount() + 1

    ties = firsts.duplicated(["flow_id", "earliest"], keep=False)
    if ties.any():
        logger.info(
            "%d flow message(s) share an earliest send date with another step; "
            "ordered by first appearance in the export",
            int(ties.sum()),
        )
    return {
        (flow_id, message_id): int(position)
        for flow_id, message_id, position in zip(
            firsts["flow_id"], firsts["flow_message_id"], firsts["position"]
        )
    }


def assign_positions(flows: pd.DataFrame) -> pd.Series:
    """Sequence position for every row of *flows*."""
    mapping = resolve_sequence(flows)
    keys = zip(flows["flow_id"], flows["flow_message_id"])
    return pd.Series([mapping[key] for key in keys], index=flows.index, dtype="int64")


def get_flow_sequence_info(flows: pd.DataFrame, flow_name: str) -> FlowSequenceInfo:
    """Ordered message ids and display names for the flow called *flow_name*.

    Position comes from the earliest send; the display name from the most
    recent one, so a renamed step keeps its slot but shows its current name.
    Returns an empty info when no flow has that name.
    """
    rows = flows[flows["flow_name"] == flow_name]
    if rows.empty:
        return FlowSequenceInfo(flow_id="")

    latest = rows.sort_values("sent_date", kind="stable").groupby(
        "flow_message_id", sort=False
    ).agg(
        position=("sequence_position", "min"),
        email_name=("email_name", "last"),
    )
    latest = latest.sort_values("position", kind="stable")

    names = latest["email_name"].tolist()
    counts = pd.Series(names, dtype=object).value_counts()
    duplicates = {str(name): int(n) for name, n in counts.items() if n > 1}

    return FlowSequenceInfo(
        flow_id=str(rows["flow_id"].iloc[0]),
        message_ids=[str(m) for m in latest.index],
        email_names=[str(n) for n in names],
        duplicate_names=duplicates,
    )


def unique_flow_names(flows: pd.DataFrame, live_only: bool = False) -> list[str]:
    """Sorted distinct flow names, optionally restricted to live flows."""
    if flows.empty:
        return []
    if live_only:
        flows = flows[is_live(flows)]
    return sorted(flows["flow_name"].dropna().unique().tolist())


def is_live(flows: pd.DataFrame) -> pd.Series:
    return flows["status"].astype(str).str.strip().str.lower() == "live"

"""Record transformers: validated raw export rows -> canonical typed records."""

from email_insights.transformers.campaigns import transform_campaigns
from email_insights.transformers.flows import transform_flows
from email_insights.transformers.subscribers import (
    parse_consent,
    parse_suppressions,
    transform_subscribers,
)

__all__ = [
    "parse_consent",
    "parse_suppressions",
    "transform_campaigns",
    "transform_flows",
    "transform_subscribers",
]

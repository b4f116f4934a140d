"""Email marketing export ingestion and analytics."""

from __future__ import annotations

from pathlib import Path

__version__ = "1.0.0"


def run_client(
    campaigns_file: str | Path | None = None,
    flows_file: str | Path | None = None,
    subscribers_file: str | Path | None = None,
    output_dir: str | Path = "output/",
    **kwargs,
):
    """Convenience entry-point for Jupyter / REPL usage.

    Usage::

        from email_insights import run_client
        result = run_client(campaigns_file="exports/campaigns.csv")
    """
    from email_insights.pipeline import export_outputs, run_pipeline
    from email_insights.settings import Settings

    settings = Settings.from_args(
        campaigns_file=campaigns_file,
        flows_file=flows_file,
        subscribers_file=subscribers_file,
        output_dir=Path(output_dir),
        **kwargs,
    )
    result = run_pipeline(settings)
    export_outputs(result)
    return result

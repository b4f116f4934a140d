"""Pipeline orchestrator shared by CLI and run_client()."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from email_insights.analyses import run_all_analyses
from email_insights.analyses.base import AnalysisResult
from email_insights.exceptions import DataLoadError
from email_insights.settings import Settings
from email_insights.store import DataStore, LoadResult

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Container for all pipeline outputs."""

    settings: Settings
    store: DataStore
    load: LoadResult | None = None
    analyses: list[AnalysisResult] = field(default_factory=list)


def run_pipeline(
    settings: Settings,
    on_progress: Callable[[int, int, str], None] | None = None,
    store: DataStore | None = None,
) -> PipelineResult:
    """Execute the full analysis pipeline: load -> analyze.

    Args:
        settings: Application configuration.
        on_progress: Optional callback(step, total, message) for UI progress.
        store: Existing store to load into; a fresh one is created if omitted.
    """
    files = settings.export_files
    if not files:
        raise DataLoadError("No campaigns_file, flows_file or subscribers_file configured")
    store = store or DataStore(settings)

    # Step 1: Load exports
    if on_progress:
        on_progress(0, 2, "Loading exports...")
    load = store.load_files(files)
    for error in load.errors:
        logger.warning("%s", error)
    if not load.loaded:
        raise DataLoadError("No export loaded: " + "; ".join(load.errors))
    if load.warnings:
        logger.info("%d row(s) rejected during validation", len(load.warnings))

    # Step 2: Run analyses
    if on_progress:
        on_progress(1, 2, "Running analyses...")
    analyses = run_all_analyses(store, settings)
    successful = [a for a in analyses if a.error is None]
    failed = [a for a in analyses if a.error is not None]
    for a in failed:
        logger.warning("Skipped: %s (%s)", a.name, a.error)
    logger.info("%d/%d analyses completed", len(successful), len(analyses))

    return PipelineResult(settings=settings, store=store, load=load, analyses=analyses)


def export_outputs(result: PipelineResult) -> list[Path]:
    """Export pipeline results to configured output formats.

    Returns list of generated file paths.
    """
    settings = result.settings
    settings.output_dir.mkdir(parents=True, exist_ok=True)

    generated: list[Path] = []
    date_str = datetime.now().strftime("%Y%m%d")

    if settings.outputs.excel:
        try:
            from email_insights.exports.excel_report import write_excel_report

            path = settings.output_dir / f"Email_Insights_{date_str}.xlsx"
            write_excel_report(result, path)
            generated.append(path)
            logger.info("Excel report: %s", path)
        except Exception as e:
            logger.error("Excel report failed: %s", e, exc_info=True)

    return generated

"""CSV ingestion for campaign, flow, and subscriber exports.

Each export is read as raw strings in fixed-size chunks so that progress can
be reported and a load can be cancelled between chunks. Validation drops
individual bad rows and records them as RowIssue warnings; problems with the
file as a whole raise a DataLoadError subclass.
"""

from __future__ import annotations

import csv
import io
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

import pandas as pd

from email_insights.column_map import (
    CAMPAIGNS,
    CHANNEL_COLUMNS,
    FLOWS,
    KIND_LABELS,
    REQUIRED_COLUMNS,
    SUBSCRIBERS,
    check_required_columns,
    normalize_headers,
)
from email_insights.exceptions import (
    DataLoadError,
    HeaderNotFoundError,
    LoadCancelledError,
    NoValidRowsError,
)
from email_insights.settings import Settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
Source = str | Path | IO

ROW_COLUMN = "_source_row"

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


@dataclass(frozen=True)
class RowIssue:
    """A row dropped during validation. ``row`` is the 1-based file line."""

    row: int
    field: str
    message: str

    def __str__(self) -> str:
        return f"Row {self.row}: {self.message}"


@dataclass
class ParseResult:
    """Raw validated rows for one export plus the issues found on the way."""

    kind: str
    records: pd.DataFrame
    issues: list[RowIssue] = field(default_factory=list)
    excluded_rows: int = 0

    @property
    def row_count(self) -> int:
        return len(self.records)


class CsvIngestor:
    """Parses the three export shapes into validated raw-string DataFrames."""

    def __init__(
        self,
        chunk_size: int = 1000,
        header_scan_rows: int = 10,
        header_sentinel: str = "Day",
    ) -> None:
        self.chunk_size = chunk_size
        self.header_scan_rows = header_scan_rows
        self.header_sentinel = header_sentinel

    @classmethod
    def from_settings(cls, settings: Settings) -> CsvIngestor:
        return cls(
            chunk_size=settings.chunk_size,
            header_scan_rows=settings.header_scan_rows,
            header_sentinel=settings.flow_header_sentinel,
        )

    def parse(
        self,
        kind: str,
        source: Source,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ParseResult:
        """Dispatch to the parser for *kind* (campaigns, flows, subscribers)."""
        parsers = {
            CAMPAIGNS: self.parse_campaigns,
            FLOWS: self.parse_flows,
            SUBSCRIBERS: self.parse_subscribers,
        }
        if kind not in parsers:
            raise ValueError(f"Unknown export kind '{kind}'")
        return parsers[kind](source, on_progress=on_progress, cancel=cancel)

    def parse_campaigns(
        self,
        source: Source,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ParseResult:
        data = _read_bytes(source)
        return self._parse_chunks(CAMPAIGNS, data, 0, None, on_progress, cancel)

    def parse_subscribers(
        self,
        source: Source,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ParseResult:
        data = _read_bytes(source)
        return self._parse_chunks(SUBSCRIBERS, data, 0, None, on_progress, cancel)

    def parse_flows(
        self,
        source: Source,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ParseResult:
        """Parse a flow export whose header row follows a few metadata rows."""
        data = _read_bytes(source)
        lines_before, header = self._locate_header(data)
        logger.debug("Flow header found after %d leading line(s)", lines_before)
        return self._parse_chunks(FLOWS, data, lines_before, header, on_progress, cancel)

    def _locate_header(self, data: bytes) -> tuple[int, list[str]]:
        """Find the row whose first cell equals the sentinel within the scan limit.

        Blank lines are skipped and do not count toward the limit. Returns
        (physical lines before the header row, header cells).
        """
        text = _decode(data)
        reader = csv.reader(io.StringIO(text))
        lines_before = 0
        scanned = 0
        for row in reader:
            if row:
                if row[0].strip() == self.header_sentinel:
                    return lines_before, row
                scanned += 1
                if scanned >= self.header_scan_rows:
                    break
            lines_before = reader.line_num
        raise HeaderNotFoundError(self.header_sentinel, self.header_scan_rows)

    def _parse_chunks(
        self,
        kind: str,
        data: bytes,
        lines_before: int,
        header: list[str] | None,
        on_progress: ProgressCallback | None,
        cancel: threading.Event | None,
    ) -> ParseResult:
        if not data.strip():
            raise DataLoadError("File is empty")

        buffer = io.BytesIO(data)
        size = len(data)
        read_kwargs: dict = {
            "dtype": str,
            "keep_default_na": False,
            "chunksize": self.chunk_size,
            "encoding": "utf-8-sig",
            "skipinitialspace": False,
        }
        if header is not None:
            read_kwargs.update(
                header=None,
                skiprows=lines_before + 1,
                names=_dedupe_names(header),
                index_col=False,
            )

        # 1-based file line of the first data row
        first_data_line = lines_before + 2
        frames: list[pd.DataFrame] = []
        issues: list[RowIssue] = []
        excluded = 0
        total_rows = 0

        try:
            reader = pd.read_csv(buffer, **read_kwargs)
            with reader:
                for chunk in reader:
                    _check_cancel(cancel, kind)
                    chunk = normalize_headers(chunk).fillna("")
                    if total_rows == 0:
                        check_required_columns(chunk, kind)
                    chunk[ROW_COLUMN] = range(
                        first_data_line + total_rows, first_data_line + total_rows + len(chunk)
                    )
                    total_rows += len(chunk)

                    chunk, dropped = _exclude_other_channels(chunk, kind)
                    excluded += dropped
                    valid, chunk_issues = _validate_rows(chunk, kind)
                    frames.append(valid)
                    issues.extend(chunk_issues)

                    if on_progress is not None and size:
                        on_progress(min(99, int(buffer.tell() / size * 100)))
        except pd.errors.EmptyDataError as e:
            raise DataLoadError("File is empty") from e
        except pd.errors.ParserError as e:
            raise DataLoadError(f"Failed to parse CSV: {e}") from e
        except UnicodeDecodeError as e:
            raise DataLoadError(f"File is not valid UTF-8 text: {e}") from e

        if total_rows == 0:
            raise DataLoadError("File contains a header but no data rows")

        records = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()
        if records.empty:
            raise NoValidRowsError(KIND_LABELS[kind].lower(), total_rows - excluded)

        if on_progress is not None:
            on_progress(100)

        if issues:
            logger.warning(
                "%s: %d row issue(s), e.g. %s",
                KIND_LABELS[kind],
                len(issues),
                [str(i) for i in issues[:3]],
            )
        logger.info(
            "%s: parsed %d valid rows (%d rejected, %d non-email excluded)",
            KIND_LABELS[kind],
            len(records),
            len({i.row for i in issues}),
            excluded,
        )
        return ParseResult(kind=kind, records=records, issues=issues, excluded_rows=excluded)


def _read_bytes(source: Source) -> bytes:
    """Read a path or an open file (text or binary) into bytes."""
    if isinstance(source, (str, Path)):
        try:
            return Path(source).read_bytes()
        except OSError as e:
            raise DataLoadError(f"Failed to read {source}: {e}") from e
    content = source.read()
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise DataLoadError(f"File is not valid UTF-8 text: {e}") from e


def _dedupe_names(header: list[str]) -> list[str]:
    """Make header names unique the way pandas does (``name.1``, ``name.2``)."""
    seen: dict[str, int] = {}
    names: list[str] = []
    for i, raw in enumerate(header):
        name = raw.strip() or f"Unnamed: {i}"
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def _check_cancel(cancel: threading.Event | None, kind: str) -> None:
    if cancel is not None and cancel.is_set():
        raise LoadCancelledError(f"Load cancelled while reading the {kind} file")


def _exclude_other_channels(chunk: pd.DataFrame, kind: str) -> tuple[pd.DataFrame, int]:
    """Drop SMS campaign rows and non-email flow rows before validation."""
    col = CHANNEL_COLUMNS.get(kind)
    if col is None or col not in chunk.columns:
        return chunk, 0
    channel = chunk[col].str.strip().str.lower()
    if kind == CAMPAIGNS:
        keep = ~channel.str.contains("sms", regex=False)
    else:
        keep = (channel == "") | (channel == "email")
    return chunk[keep], int((~keep).sum())


def _validate_rows(chunk: pd.DataFrame, kind: str) -> tuple[pd.DataFrame, list[RowIssue]]:
    """Drop rows missing a required value (or with a malformed email)."""
    bad = pd.Series(False, index=chunk.index)
    issues: list[RowIssue] = []
    for col in REQUIRED_COLUMNS[kind]:
        blank = chunk[col].str.strip() == ""
        if blank.any():
            issues.extend(
                RowIssue(int(row), col, f"Missing required field: {col}")
                for row in chunk.loc[blank, ROW_COLUMN]
            )
            bad |= blank

    if kind == SUBSCRIBERS:
        email = chunk["Email"].str.strip()
        malformed = (email != "") & ~email.str.match(EMAIL_PATTERN)
        if malformed.any():
            issues.extend(
                RowIssue(int(row), "Email", f"Invalid email format: {value}")
                for row, value in zip(chunk.loc[malformed, ROW_COLUMN], email[malformed])
            )
            bad |= malformed

    return chunk[~bad], issues

"""Exception hierarchy for email_insights."""


class InsightsError(Exception):
    """Base exception for all email_insights errors."""


class ConfigError(InsightsError):
    """Invalid or missing configuration."""


class DataLoadError(InsightsError):
    """Failed to load or parse an export file."""


class HeaderNotFoundError(DataLoadError):
    """The header row could not be located in the leading rows of the file."""

    def __init__(self, sentinel: str, scanned: int) -> None:
        self.sentinel = sentinel
        self.scanned = scanned
        super().__init__(
            f"File does not contain enough rows or headers not found "
            f"('{sentinel}' not in first {scanned} rows)"
        )


class ColumnMismatchError(DataLoadError):
    """Required columns missing from the dataset."""

    def __init__(self, missing: set[str], available: set[str]) -> None:
        self.missing = missing
        self.available = available
        super().__init__(f"Missing required columns: {sorted(missing)}")


class NoValidRowsError(DataLoadError):
    """Every row of the file failed validation."""

    def __init__(self, kind: str, rejected: int) -> None:
        self.kind = kind
        self.rejected = rejected
        super().__init__(f"No valid {kind} rows found ({rejected} rows rejected)")


class LoadCancelledError(DataLoadError):
    """A load was cancelled before it finished."""

"""Pydantic configuration for email_insights."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, field_validator

from email_insights.exceptions import ConfigError
from email_insights.periods import parse_date_range

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")


class OutputConfig(BaseModel):
    """Output format toggles."""

    excel: bool = True


class Settings(BaseModel):
    """Application configuration -- immutable after creation."""

    model_config = {"frozen": True, "extra": "forbid"}

    campaigns_file: Path | None = None
    flows_file: Path | None = None
    subscribers_file: Path | None = None
    output_dir: Path = Path("output/")
    outputs: OutputConfig = OutputConfig()
    # Ingestion
    chunk_size: int = 1000
    header_scan_rows: int = 10
    flow_header_sentinel: str = "Day"
    invalid_date_policy: Literal["fallback", "drop"] = "fallback"
    # Analysis
    reference_date: date | None = None
    date_range: str = "30d"
    compare_mode: Literal["prev-period", "prev-year"] = "prev-period"
    top_n: int = 10

    @field_validator("campaigns_file", "flows_file", "subscribers_file", mode="before")
    @classmethod
    def expand_and_validate_export(cls, v: str | Path | None) -> Path | None:
        if v is None:
            return None
        p = Path(v).expanduser().resolve()
        if not p.exists():
            raise ValueError(f"Export file not found: {p}")
        if p.suffix.lower() != ".csv":
            raise ValueError(f"Unsupported file type: {p.suffix}")
        return p

    @field_validator("output_dir", mode="before")
    @classmethod
    def expand_output_dir(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("chunk_size", "header_scan_rows", "top_n")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator("date_range")
    @classmethod
    def validate_date_range(cls, v: str) -> str:
        parse_date_range(v)
        return v

    @property
    def export_files(self) -> dict[str, Path]:
        """Configured export files keyed by record kind."""
        files = {
            "campaigns": self.campaigns_file,
            "flows": self.flows_file,
            "subscribers": self.subscribers_file,
        }
        return {kind: path for kind, path in files.items() if path is not None}

    @classmethod
    def from_yaml(cls, config_path: Path = DEFAULT_CONFIG_PATH, **cli_overrides) -> Settings:
        """Load from YAML, merge CLI overrides (highest priority)."""
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            data = {}
        data.update({k: v for k, v in cli_overrides.items() if v is not None})
        try:
            return cls(**data)
        except Exception as e:
            raise ConfigError(f"Configuration error: {e}") from e

    @classmethod
    def from_args(cls, **kwargs) -> Settings:
        """Create settings directly from arguments (no YAML needed)."""
        try:
            return cls(**{k: v for k, v in kwargs.items() if v is not None})
        except Exception as e:
            raise ConfigError(f"Configuration error: {e}") from e

"""
Runtime settings for mtr-report.

Loaded from environment variables (prefix ``MTR_REPORT_``) or a ``.env`` file
once at startup, then passed explicitly to whatever needs them.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .render import LossThresholds

__version__ = "0.1.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Probe binary
    mtr_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MTR_REPORT_MTR_PATH", "MTR_PATH", "mtr_path"),
    )
    sudo_path: str = "/usr/bin/sudo"
    use_sudo: bool = False

    # Request limits
    default_count: int = 20
    max_count: int = 100
    run_timeout: float = 300.0  # seconds per run

    # Background runs (server mode)
    max_concurrent_runs: int = 4
    max_pending_runs: int = 32

    # Rendering
    loss_red_threshold: float = 20.0
    loss_yellow_threshold: float = 5.0
    table_width: int = 120

    # Logging / export
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="MTR_REPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def thresholds(self) -> LossThresholds:
        return LossThresholds(red=self.loss_red_threshold, yellow=self.loss_yellow_threshold)


def get_settings() -> Settings:
    return Settings()

"""
Configuration loading for monconn

Settings come from a YAML file validated into pydantic models. Every value
has a default matching the classic monconn.sh settings, so running without a
config file works out of the box.
"""

import os
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_CONFIG_FILE = Path("config.yaml")
CONFIG_ENV_VAR = "MONCONN_CONFIG"
DEFAULT_LOG_FILE = "/usr/local/WowzaStreamingEngine/logs/wowzastreamingengine_access.log"

# Duration columns in display order; the base widths below line up with these
DURATION_KINDS = ("create", "play", "seek", "stop", "destroy", "disconnect")


class LogColumns(BaseModel):
    """Zero-based whitespace-delimited column positions in one access log line."""

    event_kind: int = Field(default=3, ge=0)
    source_address: int = Field(default=16, ge=0)
    client_id: int = Field(default=21, ge=0)
    asset_path: int = Field(default=7, ge=0)
    duration: int = Field(default=12, ge=0)


class DisplayConfig(BaseModel):
    """Column layout and colors of the live table."""

    address_width: int = Field(default=15, gt=0)
    connect_width: int = Field(default=15, gt=0)
    decimal_places: int = 1
    base_duration_widths: List[int] = Field(default_factory=lambda: [5, 4, 6, 6, 6, 6])
    target_mode: bool = False
    video_root_prefix: str = "vod/"
    # SGR codes, emitted as ESC[<code>m
    color_palette: List[str] = Field(default_factory=lambda: [
        "92", "93", "94", "95", "96", "91",
        "32", "33", "34", "35", "31",
    ])

    @field_validator("decimal_places")
    @classmethod
    def clamp_decimal_places(cls, value: int) -> int:
        """Decimal places cannot go below 1."""
        return max(1, value)

    @field_validator("base_duration_widths")
    @classmethod
    def check_duration_widths(cls, value: List[int]) -> List[int]:
        if len(value) != len(DURATION_KINDS):
            raise ValueError(f"expected {len(DURATION_KINDS)} duration widths, got {len(value)}")
        if any(width <= 0 for width in value):
            raise ValueError("duration widths must be positive")
        return value

    @field_validator("color_palette")
    @classmethod
    def check_palette(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("color palette must not be empty")
        return value

    @property
    def duration_widths(self) -> List[int]:
        """Effective widths: base width grows with the decimal places."""
        return [width + self.decimal_places - 1 for width in self.base_duration_widths]


class EvictionConfig(BaseModel):
    idle_threshold: float = Field(default=14400, gt=0)  # 4 hours
    disconnect_grace: float = Field(default=60, gt=0)


class RefreshConfig(BaseModel):
    update_interval: float = Field(default=1.0, ge=0)
    # "input": sweep and redraw only when a line arrives
    # "timer": a background thread sweeps and redraws every update_interval
    mode: Literal["input", "timer"] = "input"


class DiagnosticsConfig(BaseModel):
    enabled: bool = False
    logs_directory: str = "."
    log_file: str = "debug.jsonl"
    store_dump_file: str = "session_store.json"
    render_trace_file: str = "render_trace.jsonl"


class MonitorConfig(BaseModel):
    """Root configuration object."""

    log_file: str = DEFAULT_LOG_FILE
    ignore_addresses: List[str] = Field(default_factory=lambda: [
        "137.135.108.237",
        "20.194.188.192",
        "52.187.110.61",
    ])
    tail_poll_interval: float = Field(default=0.25, gt=0)
    tail_initial_lines: int = Field(default=10, ge=0)
    columns: LogColumns = Field(default_factory=LogColumns)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    eviction: EvictionConfig = Field(default_factory=EvictionConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)


def resolve_config_path(explicit: Optional[str] = None) -> tuple[Path, bool]:
    """Pick the config path: CLI flag, then environment, then ./config.yaml.

    Returns:
        (path, required) where required is False only for the implicit default.
    """
    if explicit:
        return Path(explicit), True
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path), True
    return DEFAULT_CONFIG_FILE, False


def load_config(path: Optional[str] = None) -> MonitorConfig:
    """Load and validate the monitor configuration.

    Args:
        path: Explicit config file path (e.g. from --config).

    Raises:
        ConfigError: the file is unreadable, not valid YAML, or fails validation.
    """
    config_path, required = resolve_config_path(path)
    if not config_path.exists():
        if required:
            raise ConfigError(f"Config file not found: {config_path}")
        return MonitorConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping at the top level")

    try:
        return MonitorConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_TIME_LIMITS: dict = {
    "commit_to_open": 96,
    "open_to_review": 5,
    "review_to_approval": 24,
    "approval_to_merge": 8,
}

DEFAULT_CONFIG: dict = {
    "store": "noop",  # "noop" | "sqlite" | "json"
    "store_path": ".prcycle.db",
    "data_dir": "data",
    "abnormal_gap_days": 30,
    "business_hours": False,  # True = count weekdays only (24h per weekday)
    "thread_correlation": "actor_window",  # "actor_window" | "flat"
    "thread_window_hours": 72,
    "work_started_prefix": None,  # e.g. "work has started on the"; None disables the check
    "time_limits": DEFAULT_TIME_LIMITS,
    "time_warning_exempt_branches": [],  # base branches where approval → merge is not checked
}


def load_config(config_path: str = ".prcycle.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prcycle.yml in the current directory
      3. CLI argument overrides
    """
    config = {
        **DEFAULT_CONFIG,
        "time_limits": dict(DEFAULT_TIME_LIMITS),
        "time_warning_exempt_branches": list(DEFAULT_CONFIG["time_warning_exempt_branches"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        # time_limits is merged key by key so a file can override a single phase.
        limits = file_config.pop("time_limits", None) or {}
        config.update(file_config)
        config["time_limits"].update(limits)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config


@dataclass(frozen=True)
class EngineSettings:
    """The subset of configuration the engine reads. Immutable so one
    instance can be shared by any number of analyze() calls."""

    abnormal_gap_days: float = 30
    business_hours: bool = False
    thread_correlation: str = "actor_window"
    thread_window_hours: float = 72
    work_started_prefix: Optional[str] = None
    time_limits: dict = field(default_factory=lambda: dict(DEFAULT_TIME_LIMITS))
    time_warning_exempt_branches: tuple = ()

    @classmethod
    def from_config(cls, config: dict) -> "EngineSettings":
        limits = dict(DEFAULT_TIME_LIMITS)
        limits.update(config.get("time_limits") or {})
        return cls(
            abnormal_gap_days=config.get("abnormal_gap_days", 30),
            business_hours=bool(config.get("business_hours", False)),
            thread_correlation=config.get("thread_correlation", "actor_window"),
            thread_window_hours=config.get("thread_window_hours", 72),
            work_started_prefix=config.get("work_started_prefix"),
            time_limits=limits,
            time_warning_exempt_branches=tuple(config.get("time_warning_exempt_branches") or ()),
        )

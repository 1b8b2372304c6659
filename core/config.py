"""
Settings for the bulk applier.

Defaults come from the environment; a YAML file or a stored settings record
(camelCase keys, as written by the background service) can override them.

Usage:
    from core.config import load_settings
    settings = load_settings("config/settings.yaml")
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)


class RadioFallback(str, Enum):
    """What to do when no radio option matches the mapped answer."""
    FIRST_OPTION = "first_option"
    LEAVE_EMPTY = "leave_empty"


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip().lower() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    """User preferences consulted by the queue, adapters and form filler."""

    # === Limits ===
    daily_limit: int = int(os.getenv("DAILY_LIMIT", "3"))
    hourly_limit: int = int(os.getenv("HOURLY_LIMIT", "30"))
    max_throttle_wait_ms: int = int(os.getenv("MAX_THROTTLE_WAIT_MS", "60000"))

    # === Pacing (milliseconds) ===
    delay_between_applications: int = int(os.getenv("DELAY_BETWEEN_APPLICATIONS", "30000"))

    # === Filtering ===
    skip_applied_jobs: bool = os.getenv("SKIP_APPLIED_JOBS", "true").lower() == "true"
    skip_non_easy_apply: bool = os.getenv("SKIP_NON_EASY_APPLY", "true").lower() == "true"
    enabled_platforms: List[str] = field(default_factory=lambda: _env_list(
        "ENABLED_PLATFORMS", "linkedin,indeed,naukri"
    ))

    # Advisory only; the processing loop does not batch.
    batch_size: int = int(os.getenv("BATCH_SIZE", "10"))

    # === Form filling ===
    radio_fallback: RadioFallback = RadioFallback(os.getenv("RADIO_FALLBACK", "first_option"))

    notifications: bool = os.getenv("NOTIFICATIONS", "true").lower() == "true"

    def is_platform_enabled(self, platform: str) -> bool:
        return platform.lower() in self.enabled_platforms

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        """Build settings from snake_case or camelCase keys; unknown keys are ignored."""
        return cls().merged(data or {})

    def merged(self, overrides: Dict[str, Any]) -> "Settings":
        known = {f.name for f in fields(self)}
        values = {}
        for key, value in overrides.items():
            name = _snake_case(key)
            if name not in known:
                logger.debug(f"Ignoring unknown setting: {key}")
                continue
            values[name] = _coerce(name, value)
        return replace(self, **values)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase dict, the format kept in the settings store."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            result[_camel_case(f.name)] = value
        return result


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _coerce(name: str, value: Any) -> Any:
    if name == "radio_fallback":
        return RadioFallback(value)
    if name == "enabled_platforms":
        if isinstance(value, str):
            value = value.split(",")
        return [str(p).strip().lower() for p in value if str(p).strip()]
    if name in ("skip_applied_jobs", "skip_non_easy_apply", "notifications") and isinstance(value, str):
        return value.lower() == "true"
    if name in ("daily_limit", "hourly_limit", "max_throttle_wait_ms",
                "delay_between_applications", "batch_size"):
        return int(value)
    return value


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from a YAML file, falling back to environment defaults."""
    if not path:
        return Settings()

    path = Path(path)
    if not path.exists():
        logger.warning(f"Settings file not found: {path}, using defaults")
        return Settings()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    # Allow the file to nest everything under a top-level "settings" key.
    if isinstance(data.get("settings"), dict):
        data = data["settings"]

    return Settings.from_dict(data)

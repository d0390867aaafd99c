# lfslocks — Advisory Git LFS file locks for unmergeable assets.
#
# Copyright (c) 2026 Max Rheiner / Somniacs AG
#
# Licensed under the MIT License. You may obtain a copy
# of the license at:
#
#     https://opensource.org/licenses/MIT
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND.

"""Central configuration — user settings, paths, timeouts, server address."""

from __future__ import annotations

import logging
import tempfile
from importlib.metadata import version as _pkg_version
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

log = logging.getLogger(__name__)

try:
    VERSION = _pkg_version("lfslocks")
except Exception:
    VERSION = "0.0.0"

HOST = "127.0.0.1"
PORT = 7787

LFSLOCKS_DIR = Path.home() / ".lfslocks"
USER_CONFIG_FILE = LFSLOCKS_DIR / "config.yaml"

REQUEST_TIMEOUT = 30  # seconds, for every synchronous git call
TICK_INTERVAL = 1.0  # seconds between main ticks in watch/serve mode


class Settings(BaseModel):
    """User-scoped options. Defaults apply to any key missing from config.yaml."""
    model_config = ConfigDict(frozen=True, strict=True, extra="ignore")

    enabled: bool = True
    auto_refresh: bool = True
    refresh_interval_minutes: int = 5
    max_files_per_request: int = 15
    show_conflict_warning: bool = True
    warn_on_quit_with_open_locks: bool = True
    warn_if_remote_modified: bool = True
    notify_new_locks: bool = False
    displayed_own_locks_count: int = 5   # display hint only
    extra_branches_to_check: str = ""    # comma separated
    host_username: str = ""              # identity compared against lock owners
    debug_mode: bool = False

    @field_validator("refresh_interval_minutes", "max_files_per_request")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        return max(1, v)

    @field_validator("displayed_own_locks_count")
    @classmethod
    def _not_negative(cls, v: int) -> int:
        return max(0, v)

    @property
    def extra_branches(self) -> list[str]:
        return [b.strip() for b in self.extra_branches_to_check.split(",") if b.strip()]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from a mapping, keeping defaults for unknown or mistyped values."""
        known = {k: v for k, v in data.items() if k in cls.model_fields}
        try:
            return cls.model_validate(known)
        except ValidationError as e:
            bad = set()
            for err in e.errors():
                key = err["loc"][0] if err["loc"] else None
                log.warning("Ignoring config key %s: %s (got %r)", key, err["msg"], known.get(key))
                bad.add(key)
            return cls.model_validate({k: v for k, v in known.items() if k not in bad})

    def updated(self, **changes: Any) -> Settings:
        """Return a copy with *changes* applied.

        Raises:
            ValueError: unknown key, or a value of the wrong type
                (pydantic's ValidationError is a ValueError).
        """
        unknown = set(changes) - set(Settings.model_fields)
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        return Settings.model_validate({**self.to_dict(), **changes})


def load_settings(path: Path | None = None) -> Settings:
    """Load config.yaml and merge over defaults."""
    path = path or USER_CONFIG_FILE
    if not path.exists():
        return Settings()

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (yaml.YAMLError, OSError) as e:
        log.warning("Could not read %s, using defaults: %s", path, e)
        return Settings()

    if not isinstance(data, dict):
        log.warning("Ignoring %s: top level is not a mapping", path)
        return Settings()
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Atomically write settings to config.yaml."""
    path = path or USER_CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with open(fd, "w") as f:
            yaml.dump(settings.to_dict(), f, default_flow_style=False, sort_keys=False)
        Path(tmp).replace(path)
    except Exception:
        Path(tmp).unlink(missing_ok=True)
        raise


def reset_to_defaults(path: Path | None = None) -> Settings:
    """Remove config.yaml and return built-in defaults."""
    path = path or USER_CONFIG_FILE
    path.unlink(missing_ok=True)
    return Settings()

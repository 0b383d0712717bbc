"""Runtime configuration.

Priority (high → low):
  1. CLI flags             (handled at call site, not in this module)
  2. Environment variables (CONTRACTOR_SYNC_*)
  3. Hardcoded defaults

No cloud URL means no gateway: the device runs in local-only mode.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from contractor_sync.model import DEFAULT_CATEGORY

ENV_PREFIX = "CONTRACTOR_SYNC_"
DEFAULT_DATA_FILE = Path.home() / ".contractor_sync" / "store.json"


class ConfigError(ValueError):
    """Raised when an environment variable holds an invalid value."""


@dataclass
class AppConfig:
    data_file: Path = DEFAULT_DATA_FILE
    cloud_url: str | None = None
    api_key: str | None = None
    directory_key: str | None = None  # Defaults to the device id
    timeout: float = 10.0
    sync_interval: float = 30.0
    connect_attempts: int = 10
    connect_delay: float = 1.0
    connect_backoff: float = 1.0
    default_category: str = DEFAULT_CATEGORY
    log_level: str = "WARNING"

    @property
    def cloud_enabled(self) -> bool:
        return bool(self.cloud_url)


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{ENV_PREFIX}{name} must not be negative")
    return value


def load_config(env: Mapping[str, str] | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from defaults overridden by the environment."""
    env = os.environ if env is None else env
    defaults = AppConfig()
    data_file = env.get(ENV_PREFIX + "DATA_FILE")
    return AppConfig(
        data_file=Path(data_file).expanduser() if data_file else defaults.data_file,
        cloud_url=env.get(ENV_PREFIX + "CLOUD_URL") or None,
        api_key=env.get(ENV_PREFIX + "API_KEY") or None,
        directory_key=env.get(ENV_PREFIX + "DIRECTORY_KEY") or None,
        timeout=_number(env, "TIMEOUT", defaults.timeout, float),
        sync_interval=_number(env, "INTERVAL", defaults.sync_interval, float),
        connect_attempts=_number(env, "CONNECT_ATTEMPTS", defaults.connect_attempts, int),
        connect_delay=_number(env, "CONNECT_DELAY", defaults.connect_delay, float),
        connect_backoff=_number(env, "CONNECT_BACKOFF", defaults.connect_backoff, float),
        default_category=env.get(ENV_PREFIX + "DEFAULT_CATEGORY") or defaults.default_category,
        log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or defaults.log_level).upper(),
    )


__all__ = ["AppConfig", "ConfigError", "load_config", "ENV_PREFIX"]

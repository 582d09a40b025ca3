from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigError
from .types import MonitorKind, MonitorSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    hl_api_url: str
    monitor_config_path: str
    poll_interval_seconds: float
    backfill_window_seconds: int
    http_timeout_seconds: float
    max_backoff_seconds: float
    degraded_after_failures: int
    health_log_interval_seconds: int
    log_level: str

    @property
    def backfill_window_ms(self) -> int:
        return self.backfill_window_seconds * 1000


@dataclass
class MonitorConfig:
    monitors: list[MonitorSpec] = field(default_factory=list)
    sendkeys: list[str] = field(default_factory=list)


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer", value=raw) from exc


def _optional_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number", value=raw) from exc


def load_settings() -> Settings:
    load_dotenv()
    settings = Settings(
        hl_api_url=os.getenv("HL_API_URL", "https://api.hyperliquid.xyz").strip(),
        monitor_config_path=os.getenv("MONITOR_CONFIG_PATH", "monitor_config.json").strip(),
        poll_interval_seconds=_optional_float("POLL_INTERVAL_SECONDS", 10.0),
        backfill_window_seconds=_optional_int("BACKFILL_WINDOW_SECONDS", 3600),
        http_timeout_seconds=_optional_float("HTTP_TIMEOUT_SECONDS", 15.0),
        max_backoff_seconds=_optional_float("MAX_BACKOFF_SECONDS", 60.0),
        degraded_after_failures=_optional_int("DEGRADED_AFTER_FAILURES", 6),
        health_log_interval_seconds=_optional_int("HEALTH_LOG_INTERVAL_SECONDS", 60),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
    if settings.poll_interval_seconds <= 0:
        raise ConfigError("POLL_INTERVAL_SECONDS must be positive")
    return settings


def load_monitor_config(path: str | Path) -> MonitorConfig:
    """Read the monitors/sendkeys JSON file, creating an empty one if absent."""
    config_path = Path(path)
    if not config_path.exists():
        config = MonitorConfig()
        save_monitor_config(config, config_path)
        logger.info("Created default monitor config at %s", config_path)
        return config

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Monitor config is not valid JSON: {exc}", path=str(config_path)) from exc
    return parse_monitor_config(raw)


def parse_monitor_config(raw: Any) -> MonitorConfig:
    if not isinstance(raw, dict):
        raise ConfigError("Monitor config must be a JSON object")

    monitors_raw = raw.get("monitors", [])
    keys_raw = raw.get("sendkeys", [])
    if not isinstance(monitors_raw, list) or not isinstance(keys_raw, list):
        raise ConfigError("monitors and sendkeys must be lists")

    monitors: list[MonitorSpec] = []
    for item in monitors_raw:
        if not isinstance(item, dict) or not str(item.get("address", "")).strip():
            raise ConfigError("Each monitor needs an address", entry=item)
        active = item.get("active", False)
        if not isinstance(active, bool):
            raise ConfigError("active must be true or false", entry=item)
        monitors.append(
            MonitorSpec(
                address=str(item["address"]).strip(),
                kind=MonitorKind.parse(item.get("monitor_type")),
                active=active,
            )
        )

    return MonitorConfig(monitors=monitors, sendkeys=[str(k) for k in keys_raw])


def save_monitor_config(config: MonitorConfig, path: str | Path) -> None:
    payload = {
        "monitors": [
            {"address": m.address, "monitor_type": m.kind.value, "active": m.active}
            for m in config.monitors
        ],
        "sendkeys": list(config.sendkeys),
    }
    Path(path).write_text(json.dumps(payload, indent=2), encoding="utf-8")

"""Runtime configuration read from environment variables."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional


class ConfigError(Exception):
    """Raised when a required setting is missing or cannot be parsed."""


@dataclass
class RelayConfig:
    """Settings for the relay service."""

    commerce_base_url: str = ""
    commerce_access_token: str = ""
    target_url: str = "http://localhost:3000/target/orders"
    host: str = "0.0.0.0"
    port: int = 3000
    poll_interval: float = 15.0
    page_size: int = 10
    sent_file: str = os.path.join("data", "sent.json")
    http_timeout: float = 10.0
    order_id_field: str = "entity_id"
    source_name: str = "mageos"
    api_token: str = ""
    enable_dummy_target: bool = True
    log_level: str = "INFO"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _timeout(env: Mapping[str, str], name: str, default: float) -> float:
    value = _float(env, name, default)
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive number of seconds, got {value!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> RelayConfig:
    """Build a :class:`RelayConfig` from ``env`` (defaults to ``os.environ``).

    ``POLL_INTERVAL_MS`` is given in milliseconds and stored in seconds; a
    value of zero or less disables the background poller. Empty values fall
    back to the defaults.
    """

    env = os.environ if env is None else env
    port = _int(env, "PORT", 3000)
    return RelayConfig(
        commerce_base_url=env.get("COMMERCE_BASE_URL", "").strip(),
        commerce_access_token=env.get("COMMERCE_ACCESS_TOKEN", "").strip(),
        target_url=env.get("TARGET_URL", "").strip()
        or f"http://localhost:{port}/target/orders",
        host=env.get("HOST", "").strip() or "0.0.0.0",
        port=port,
        poll_interval=_int(env, "POLL_INTERVAL_MS", 15000) / 1000.0,
        page_size=max(1, _int(env, "PAGE_SIZE", 10)),
        sent_file=env.get("SENT_FILE", "").strip() or os.path.join("data", "sent.json"),
        http_timeout=_timeout(env, "HTTP_TIMEOUT", 10.0),
        order_id_field=env.get("ORDER_ID_FIELD", "").strip() or "entity_id",
        source_name=env.get("SOURCE_NAME", "").strip() or "mageos",
        api_token=env.get("API_TOKEN", ""),
        enable_dummy_target=_bool(env, "ENABLE_DUMMY_TARGET", True),
        log_level=(env.get("LOG_LEVEL", "").strip() or "INFO").upper(),
    )

"""Process-wide configuration loaded once from the environment."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping


_DEFAULT_STORAGE_ROOT = Path(".local_store")


def _expand_path(path_value: str | Path | None) -> Path:
    if path_value is None:
        return _DEFAULT_STORAGE_ROOT
    text = str(path_value).strip()
    if not text:
        return _DEFAULT_STORAGE_ROOT
    return Path(os.path.expandvars(os.path.expanduser(text)))


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = str(environ.get(key, "")).strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if not math.isfinite(value):
        return default
    return int(value)


def _env_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = str(environ.get(key, "")).strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if math.isfinite(value) else default


def _env_str(environ: Mapping[str, str], key: str, default: str) -> str:
    raw = str(environ.get(key, "")).strip()
    return raw or default


def _env_hosts(environ: Mapping[str, str], key: str) -> tuple[str, ...]:
    raw = str(environ.get(key, ""))
    return tuple(h.strip().rstrip("/") for h in raw.split(",") if h.strip())


@dataclass(frozen=True)
class AppConfig:
    """Read-only settings shared by the dashboard and the capture service."""

    storage_root: Path = _DEFAULT_STORAGE_ROOT
    public_host: str = "http://localhost:8501"
    capture_url: str = "http://localhost:8502/api/screenshot"
    allowed_hosts: tuple[str, ...] = field(default_factory=tuple)
    viewport_width: int = 1440
    viewport_height: int = 1200
    device_scale: float = 2.0
    nav_timeout_ms: int = 30000
    ready_timeout_ms: int = 10000
    settle_delay_ms: int = 1000
    label_min_share: float = 0.01
    capture_request_timeout_sec: float = 90.0
    capture_port: int = 8502

    def host_allowed(self, host: str) -> bool:
        if not self.allowed_hosts:
            return True
        return str(host).strip().rstrip("/") in self.allowed_hosts


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if environ is None else environ
    defaults = AppConfig()
    return AppConfig(
        storage_root=_expand_path(env.get("ZONA9_STORAGE_ROOT")),
        public_host=_env_str(env, "ZONA9_PUBLIC_HOST", defaults.public_host).rstrip("/"),
        capture_url=_env_str(env, "ZONA9_CAPTURE_URL", defaults.capture_url),
        allowed_hosts=_env_hosts(env, "ZONA9_ALLOWED_HOSTS"),
        viewport_width=max(320, _env_int(env, "ZONA9_VIEWPORT_WIDTH", defaults.viewport_width)),
        viewport_height=max(240, _env_int(env, "ZONA9_VIEWPORT_HEIGHT", defaults.viewport_height)),
        device_scale=max(1.0, _env_float(env, "ZONA9_DEVICE_SCALE", defaults.device_scale)),
        nav_timeout_ms=max(1000, _env_int(env, "ZONA9_NAV_TIMEOUT_MS", defaults.nav_timeout_ms)),
        ready_timeout_ms=max(500, _env_int(env, "ZONA9_READY_TIMEOUT_MS", defaults.ready_timeout_ms)),
        settle_delay_ms=max(0, _env_int(env, "ZONA9_SETTLE_DELAY_MS", defaults.settle_delay_ms)),
        label_min_share=min(1.0, max(0.0, _env_float(env, "ZONA9_LABEL_MIN_SHARE", defaults.label_min_share))),
        capture_request_timeout_sec=max(
            5.0, _env_float(env, "ZONA9_CAPTURE_REQUEST_TIMEOUT_SEC", defaults.capture_request_timeout_sec)
        ),
        capture_port=_env_int(env, "ZONA9_CAPTURE_PORT", defaults.capture_port),
    )

from __future__ import annotations

from pathlib import Path

import pytest

from zona9.config import AppConfig, load_config


def test_defaults_when_environment_is_empty():
    cfg = load_config({})
    assert cfg.storage_root == Path(".local_store")
    assert (cfg.viewport_width, cfg.viewport_height, cfg.device_scale) == (1440, 1200, 2.0)
    assert (cfg.nav_timeout_ms, cfg.ready_timeout_ms, cfg.settle_delay_ms) == (30000, 10000, 1000)
    assert cfg.label_min_share == 0.01
    assert cfg.host_allowed("http://anything")


def test_environment_overrides_and_clamps(tmp_path):
    cfg = load_config(
        {
            "ZONA9_STORAGE_ROOT": str(tmp_path),
            "ZONA9_PUBLIC_HOST": "https://zona9.example.com/",
            "ZONA9_VIEWPORT_WIDTH": "100",
            "ZONA9_SETTLE_DELAY_MS": "not-a-number",
            "ZONA9_LABEL_MIN_SHARE": "5",
            "ZONA9_ALLOWED_HOSTS": "https://zona9.example.com/, http://localhost:8501",
        }
    )
    assert cfg.storage_root == tmp_path
    assert cfg.public_host == "https://zona9.example.com"
    assert cfg.viewport_width == 320
    assert cfg.settle_delay_ms == 1000
    assert cfg.label_min_share == 1.0
    assert cfg.host_allowed("https://zona9.example.com")
    assert not cfg.host_allowed("https://evil.example.com")


def test_config_is_immutable():
    cfg = AppConfig()
    with pytest.raises(AttributeError):
        cfg.viewport_width = 10


@pytest.mark.parametrize("raw", ["inf", "-inf", "1e400", "nan"])
def test_non_finite_numbers_fall_back_to_defaults(raw):
    cfg = load_config(
        {
            "ZONA9_SETTLE_DELAY_MS": raw,
            "ZONA9_READY_TIMEOUT_MS": raw,
            "ZONA9_DEVICE_SCALE": raw,
            "ZONA9_LABEL_MIN_SHARE": raw,
        }
    )
    assert cfg.settle_delay_ms == 1000
    assert cfg.ready_timeout_ms == 10000
    assert cfg.device_scale == 2.0
    assert cfg.label_min_share == 0.01

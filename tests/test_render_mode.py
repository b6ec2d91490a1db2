from __future__ import annotations

import pytest

from zona9.render_mode import (
    ReadinessContract,
    ReadinessTracker,
    RenderMode,
    page_stylesheet,
    resolve_render_mode,
    text_area_height,
    wait_until_ready,
)


class FakeClock:
    def __init__(self) -> None:
        self.now_ms = 0

    def __call__(self) -> float:
        return self.now_ms / 1000.0

    def sleep_ms(self, ms: int) -> None:
        self.now_ms += int(ms)


def _timeline(clock: FakeClock, fonts_at_ms: int, charts_at_ms: int):
    """Probe whose fonts and charts appear independently at the given times."""
    def _probe():
        return clock.now_ms >= fonts_at_ms, 1 if clock.now_ms >= charts_at_ms else 0

    return _probe


def test_mode_from_launch_parameters():
    assert resolve_render_mode({"export": "true"}) == RenderMode.EXPORT
    assert resolve_render_mode({}) == RenderMode.INTERACTIVE
    assert resolve_render_mode({"export": "no"}) == RenderMode.INTERACTIVE


def test_export_stylesheet_hides_controls_and_uncaps_scroll():
    css = page_stylesheet(RenderMode.EXPORT)
    assert 'section[data-testid="stSidebar"]' in css
    assert "max-height: none" in css
    assert "animation: none" in css
    interactive = page_stylesheet(RenderMode.INTERACTIVE)
    assert "max-height: 1100px" in interactive
    assert "stSidebar" not in interactive


def test_text_area_height_grows_without_cap_in_export():
    long_text = "\n".join(f"line {i}" for i in range(40))
    assert text_area_height("", mode=RenderMode.INTERACTIVE) == 3 * 24 + 20
    assert text_area_height(long_text, mode=RenderMode.INTERACTIVE) == 12 * 24 + 20
    assert text_area_height(long_text, mode=RenderMode.EXPORT) == 40 * 24 + 20


@pytest.mark.parametrize(
    ("fonts_at", "charts_at"),
    [(0, 0), (2000, 300), (300, 2000), (1500, 1500), (2050, 2050)],
)
def test_ready_only_after_both_conditions_plus_settle(fonts_at, charts_at):
    clock = FakeClock()
    contract = ReadinessContract(settle_delay_ms=1000, timeout_ms=10000, poll_interval_ms=100)
    tracker = wait_until_ready(_timeline(clock, fonts_at, charts_at), clock.sleep_ms, contract, clock)
    both_at = max(fonts_at, charts_at)
    assert tracker.is_ready()
    assert clock.now_ms >= both_at + 1000
    # One poll interval of detection lag, plus a millisecond of float rounding.
    assert clock.now_ms <= both_at + 1000 + 100 + 1


def test_settle_delay_restarts_when_a_condition_drops():
    clock = FakeClock()
    tracker = ReadinessTracker(ReadinessContract(settle_delay_ms=1000), clock)
    assert not tracker.observe(True, 2)
    clock.now_ms = 800
    assert not tracker.observe(True, 0)
    assert "no chart element" in " ".join(tracker.pending())
    clock.now_ms = 1000
    assert not tracker.observe(True, 1)
    clock.now_ms = 1900
    assert not tracker.observe(True, 1)
    assert tracker.pending() == ["settle delay not elapsed"]
    clock.now_ms = 2000
    assert tracker.observe(True, 1)


def test_fonts_alone_never_ready():
    clock = FakeClock()
    tracker = ReadinessTracker(ReadinessContract(settle_delay_ms=0), clock)
    assert not tracker.observe(True, 0)
    assert not tracker.observe(False, 3)
    assert tracker.observe(True, 3)


def test_timeout_when_charts_never_appear():
    clock = FakeClock()
    contract = ReadinessContract(settle_delay_ms=1000, timeout_ms=3000, poll_interval_ms=100)
    with pytest.raises(TimeoutError) as exc_info:
        wait_until_ready(lambda: (True, 0), clock.sleep_ms, contract, clock)
    assert "no chart element" in str(exc_info.value)
    assert clock.now_ms == 3000


def test_settle_completes_even_if_conditions_land_near_deadline():
    clock = FakeClock()
    contract = ReadinessContract(settle_delay_ms=1000, timeout_ms=3000, poll_interval_ms=100)
    tracker = wait_until_ready(_timeline(clock, 2900, 2900), clock.sleep_ms, contract, clock)
    assert tracker.is_ready()
    assert clock.now_ms >= 3900


def test_settle_window_restarts_while_charts_keep_mounting():
    clock = FakeClock()
    contract = ReadinessContract(settle_delay_ms=1000, timeout_ms=10000, poll_interval_ms=100)

    def _page_state():
        return True, 1 if clock.now_ms < 1500 else 9

    tracker = wait_until_ready(_page_state, clock.sleep_ms, contract, clock)
    assert tracker.chart_count == 9
    assert 2500 <= clock.now_ms <= 2500 + 1


def test_chart_count_changes_after_deadline_do_not_restart_settle():
    clock = FakeClock()
    contract = ReadinessContract(settle_delay_ms=1000, timeout_ms=3000, poll_interval_ms=100)

    def _page_state():
        return clock.now_ms >= 2900, 1 + clock.now_ms // 100

    tracker = wait_until_ready(_page_state, clock.sleep_ms, contract, clock)
    assert tracker.is_ready()
    assert 3900 <= clock.now_ms <= 3900 + 1

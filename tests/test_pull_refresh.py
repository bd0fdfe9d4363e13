import asyncio
import logging
from typing import List

import pygame
import pytest

from src.control_types import PullConfig, RefreshState, TouchEvent, TouchPhase
from src.pull_refresh import PullToRefreshController
from src.scroll import ScrollRegion


IDLE = RefreshState(is_pulling=False, is_refreshing=False, pull_distance=0.0, can_refresh=False)


def make_root(offset: float = 0.0) -> ScrollRegion:
    return ScrollRegion("root", pygame.Rect(0, 0, 400, 600), content_height=2000, offset=offset)


class RecordingRefresh:
    """Async refresh action that counts calls and can be held open."""

    def __init__(self) -> None:
        self.calls = 0
        self.release = asyncio.Event()
        self.release.set()

    async def __call__(self) -> None:
        self.calls += 1
        await self.release.wait()


def touch(phase: TouchPhase, y: float, target=None) -> TouchEvent:
    return TouchEvent(phase=phase, x=100, y=y, target=target)


def attached(action, config=None, root=None):
    root = root or make_root()
    controller = PullToRefreshController(action, config or PullConfig(threshold=80, resistance=0.5))
    controller.attach(root)
    return controller, root


@pytest.mark.asyncio
async def test_scenario_a_long_pull_refreshes_once() -> None:
    action = RecordingRefresh()
    controller, _ = attached(action)

    assert controller.handle_start(touch(TouchPhase.START, 0)) is True
    move = touch(TouchPhase.MOVE, 200)
    assert controller.handle_move(move) is True
    assert move.default_prevented is True
    assert controller.pull_distance == 100
    assert controller.can_refresh is True

    assert await controller.handle_end() is True
    assert action.calls == 1
    assert controller.get_state() == IDLE
    assert controller.session is None


@pytest.mark.asyncio
async def test_scenario_b_short_pull_resets_without_refresh() -> None:
    action = RecordingRefresh()
    controller, _ = attached(action)

    controller.handle_start(touch(TouchPhase.START, 0))
    controller.handle_move(touch(TouchPhase.MOVE, 100))
    assert controller.pull_distance == 50
    assert controller.can_refresh is False

    assert await controller.handle_end() is False
    assert action.calls == 0
    assert controller.get_state() == IDLE


@pytest.mark.asyncio
async def test_scenario_c_scrolling_away_mid_drag_abandons() -> None:
    action = RecordingRefresh()
    controller, root = attached(action)

    controller.handle_start(touch(TouchPhase.START, 0))
    controller.handle_move(touch(TouchPhase.MOVE, 50))
    assert controller.pull_distance == 25

    root.offset = 10
    move = touch(TouchPhase.MOVE, 300)
    assert controller.handle_move(move) is False
    assert move.default_prevented is False
    assert controller.get_state() == IDLE

    assert await controller.handle_end() is False
    assert action.calls == 0


def test_damping_is_capped_at_one_and_a_half_thresholds() -> None:
    controller, _ = attached(RecordingRefresh())
    controller.handle_start(touch(TouchPhase.START, 0))

    previous = 0.0
    for raw in (1, 40, 159, 160, 239, 240, 241, 500, 10_000):
        controller.handle_move(touch(TouchPhase.MOVE, raw))
        assert controller.pull_distance == min(raw * 0.5, 120)
        assert controller.pull_distance >= previous
        assert controller.can_refresh is (controller.pull_distance >= 80)
        previous = controller.pull_distance


def test_upward_movement_is_ignored_not_cancelled() -> None:
    controller, _ = attached(RecordingRefresh())
    controller.handle_start(touch(TouchPhase.START, 100))
    controller.handle_move(touch(TouchPhase.MOVE, 180))
    assert controller.pull_distance == 40

    move = touch(TouchPhase.MOVE, 60)
    assert controller.handle_move(move) is False
    assert move.default_prevented is False
    assert controller.is_pulling is True
    assert controller.pull_distance == 40


def test_start_when_not_at_top_never_pulls() -> None:
    controller, _ = attached(RecordingRefresh(), root=make_root(offset=5))

    assert controller.handle_start(touch(TouchPhase.START, 0)) is False
    for y in (10, 100, 400):
        controller.handle_move(touch(TouchPhase.MOVE, y))
        assert controller.is_pulling is False
        assert controller.pull_distance == 0


def test_disabled_controller_ignores_gestures() -> None:
    controller, _ = attached(RecordingRefresh(), config=PullConfig(disabled=True))

    assert controller.handle_start(touch(TouchPhase.START, 0)) is False
    assert controller.get_state() == IDLE


def test_unattached_controller_ignores_gestures() -> None:
    controller = PullToRefreshController(RecordingRefresh())
    assert controller.handle_start(touch(TouchPhase.START, 0)) is False


@pytest.mark.asyncio
async def test_new_gesture_is_rejected_while_refreshing() -> None:
    action = RecordingRefresh()
    action.release.clear()
    controller, root = attached(action)

    root.dispatch(touch(TouchPhase.START, 0))
    root.dispatch(touch(TouchPhase.MOVE, 200))
    root.dispatch(touch(TouchPhase.END, 200))

    refreshing = controller.get_state()
    assert refreshing.is_refreshing is True
    assert refreshing.is_pulling is False

    await asyncio.sleep(0)
    root.dispatch(touch(TouchPhase.START, 0))
    root.dispatch(touch(TouchPhase.MOVE, 300))
    assert controller.get_state() == refreshing
    assert action.calls == 1

    action.release.set()
    await controller.pending_refresh
    assert controller.get_state() == IDLE


@pytest.mark.asyncio
async def test_failed_refresh_is_logged_and_resets(caplog: pytest.LogCaptureFixture) -> None:
    async def broken() -> None:
        raise ConnectionError("backend down")

    controller, _ = attached(broken)
    controller.handle_start(touch(TouchPhase.START, 0))
    controller.handle_move(touch(TouchPhase.MOVE, 200))

    with caplog.at_level(logging.ERROR, logger="src.pull_refresh"):
        assert await controller.handle_end() is True

    assert "Pull to refresh failed" in caplog.text
    assert controller.get_state() == IDLE


@pytest.mark.asyncio
async def test_synchronous_refresh_action_is_accepted() -> None:
    calls: List[int] = []
    controller, _ = attached(lambda: calls.append(1))
    controller.handle_start(touch(TouchPhase.START, 0))
    controller.handle_move(touch(TouchPhase.MOVE, 400))

    assert await controller.handle_end() is True
    assert calls == [1]
    assert controller.get_state() == IDLE


def test_cancel_resets_without_refresh() -> None:
    action = RecordingRefresh()
    controller, root = attached(action)
    root.dispatch(touch(TouchPhase.START, 0))
    root.dispatch(touch(TouchPhase.MOVE, 200))
    root.dispatch(touch(TouchPhase.CANCEL, 200))

    assert controller.get_state() == IDLE
    assert action.calls == 0


def test_indicator_style_tracks_then_animates() -> None:
    controller, _ = attached(RecordingRefresh())
    idle_style = controller.get_indicator_style()
    assert idle_style.opacity == 0.0 and idle_style.animate is True

    controller.handle_start(touch(TouchPhase.START, 0))
    controller.handle_move(touch(TouchPhase.MOVE, 80))
    style = controller.get_indicator_style()
    assert style.translate_y == 40
    assert style.opacity == pytest.approx(0.5)
    assert style.animate is False

    controller.handle_move(touch(TouchPhase.MOVE, 1000))
    style = controller.get_indicator_style()
    assert style.translate_y == 80
    assert style.opacity == 1.0


def test_attach_contains_overscroll_and_detach_restores() -> None:
    root = make_root()
    root.overscroll_behavior_y = "auto"
    controller = PullToRefreshController(RecordingRefresh())

    detach = controller.attach(root)
    assert root.overscroll_behavior_y == "contain"
    assert root.listener_count() == 4

    detach()
    detach()
    assert root.overscroll_behavior_y == "auto"
    assert root.listener_count() == 0
    assert controller.surface is None


def test_reattach_releases_previous_surface() -> None:
    first, second = make_root(), make_root()
    first.overscroll_behavior_y = "none"
    controller = PullToRefreshController(RecordingRefresh())

    controller.attach(first)
    controller.handle_start(touch(TouchPhase.START, 0))
    controller.attach(second)

    assert first.listener_count() == 0
    assert first.overscroll_behavior_y == "none"
    assert second.listener_count() == 4
    assert controller.surface is second
    assert controller.get_state() == IDLE


def test_nested_scrolled_region_blocks_pull_even_when_root_at_top() -> None:
    controller, root = attached(RecordingRefresh())
    inner = ScrollRegion("notes", pygame.Rect(0, 0, 400, 100), content_height=500, offset=30, parent=root)

    assert controller.handle_start(touch(TouchPhase.START, 10, target=inner)) is False

    inner.offset = 0
    assert controller.handle_start(touch(TouchPhase.START, 10, target=inner)) is True
    assert controller.session is not None
    assert controller.session.surface() is inner


def test_non_scrollable_target_falls_back_to_root() -> None:
    controller, root = attached(RecordingRefresh())
    banner = ScrollRegion("banner", pygame.Rect(0, 0, 400, 50), content_height=50, overflow_y="hidden", parent=root)

    assert controller.handle_start(touch(TouchPhase.START, 10, target=banner)) is True
    assert controller.session.surface() is root


def test_detach_mid_pull_returns_to_idle() -> None:
    controller, _ = attached(RecordingRefresh())
    controller.handle_start(touch(TouchPhase.START, 0))
    controller.handle_move(touch(TouchPhase.MOVE, 100))
    assert controller.pull_distance == 50

    controller.detach()

    assert controller.get_state() == IDLE
    assert controller.session is None
    assert controller.get_indicator_style().opacity == 0.0


@pytest.mark.asyncio
async def test_reattach_during_refresh_still_blocks_new_gestures() -> None:
    action = RecordingRefresh()
    action.release.clear()
    controller, root = attached(action)

    root.dispatch(touch(TouchPhase.START, 0))
    root.dispatch(touch(TouchPhase.MOVE, 200))
    root.dispatch(touch(TouchPhase.END, 200))
    await asyncio.sleep(0)

    # Toggling the gesture off and on while the reload is still running.
    controller.detach()
    controller.attach(root)
    assert controller.is_refreshing is True

    root.dispatch(touch(TouchPhase.START, 0))
    root.dispatch(touch(TouchPhase.MOVE, 200))
    root.dispatch(touch(TouchPhase.END, 200))
    assert controller.is_pulling is False
    assert action.calls == 1

    action.release.set()
    await controller.pending_refresh
    assert controller.get_state() == IDLE
    assert action.calls == 1

    # Once settled, the next pull arms and refreshes normally.
    root.dispatch(touch(TouchPhase.START, 0))
    root.dispatch(touch(TouchPhase.MOVE, 200))
    root.dispatch(touch(TouchPhase.END, 200))
    await controller.pending_refresh
    assert action.calls == 2
    assert controller.get_state() == IDLE


def test_release_without_running_loop_does_not_wedge_refreshing() -> None:
    action = RecordingRefresh()
    controller, root = attached(action)
    root.dispatch(touch(TouchPhase.START, 0))
    root.dispatch(touch(TouchPhase.MOVE, 200))

    with pytest.raises(RuntimeError):
        root.dispatch(touch(TouchPhase.END, 200))

    assert controller.is_refreshing is False
    assert action.calls == 0
    controller.handle_cancel()
    assert controller.get_state() == IDLE

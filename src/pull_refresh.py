"""Pull-to-refresh gesture state machine.

The controller only arms when the touched scroll surface is already at its
top, damps the drag distance, and commits to the refresh action on release
once the damped distance reaches the threshold. It never scrolls anything
itself; the host reads ``TouchEvent.default_prevented`` to decide whether to
apply its own drag-scroll for a move.

States: ``Idle`` -> ``Pulling`` -> (``Refreshing`` | ``Idle``) -> ``Idle``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import weakref
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from src.control_types import IndicatorStyle, PullConfig, RefreshState, TouchEvent, TouchPhase
from src.scroll import ScrollRegion, find_scroll_surface, vertical_scroll_offset

logger = logging.getLogger(__name__)

RefreshAction = Callable[[], Union[Awaitable[object], None]]


@dataclass
class GestureSession:
    """Bookkeeping for one armed gesture; the surface is looked up, not owned."""

    start_y: float
    current_y: float
    surface: "weakref.ReferenceType[ScrollRegion]"

    @property
    def delta_y(self) -> float:
        return self.current_y - self.start_y


class PullToRefreshController:
    """Recognizes a downward pull at the top of a scroll surface."""

    def __init__(self, on_refresh: RefreshAction, config: Optional[PullConfig] = None) -> None:
        self.on_refresh = on_refresh
        self.config = config or PullConfig()
        self.session: Optional[GestureSession] = None
        self.pending_refresh: Optional[asyncio.Task] = None
        self._root: Optional[ScrollRegion] = None
        self._detach: Optional[Callable[[], None]] = None
        self._reset_state()

    # -- state ---------------------------------------------------------------

    def _reset_state(self) -> None:
        self.is_pulling = False
        self.is_refreshing = False
        self.pull_distance = 0.0
        self.can_refresh = False
        self.session = None

    def _back_to_idle(self) -> None:
        self.is_pulling = False
        self.pull_distance = 0.0
        self.can_refresh = False
        self.session = None

    def get_state(self) -> RefreshState:
        return RefreshState(
            is_pulling=self.is_pulling,
            is_refreshing=self.is_refreshing,
            pull_distance=self.pull_distance,
            can_refresh=self.can_refresh,
        )

    def get_indicator_style(self) -> IndicatorStyle:
        threshold = self.config.threshold
        opacity = min(self.pull_distance / threshold, 1.0) if self.is_pulling else 0.0
        return IndicatorStyle(
            translate_y=min(self.pull_distance, threshold),
            opacity=opacity,
            animate=not self.is_pulling,
        )

    @property
    def surface(self) -> Optional[ScrollRegion]:
        """Root region the controller is attached to, if any."""

        return self._root

    # -- binding -------------------------------------------------------------

    def attach(self, surface: ScrollRegion) -> Callable[[], None]:
        """Bind gesture listeners to ``surface`` and return a detach function.

        Any previous attachment is fully detached first and any live pull is
        dropped; a refresh already in flight still blocks new gestures until
        it settles. The surface's vertical overscroll is contained
        while attached so the host's own rubber band does not compete with the
        indicator; detaching restores the previous value.
        """

        self.detach()
        # An in-flight refresh keeps is_refreshing until it settles.
        self._back_to_idle()

        handlers = (
            (TouchPhase.START, self._on_start),
            (TouchPhase.MOVE, self._on_move),
            (TouchPhase.END, self._on_end),
            (TouchPhase.CANCEL, self._on_cancel),
        )
        for phase, handler in handlers:
            surface.add_listener(phase, handler)
        previous_overscroll = surface.overscroll_behavior_y
        surface.overscroll_behavior_y = "contain"
        self._root = surface

        detached = False

        def detach() -> None:
            nonlocal detached
            if detached:
                return
            detached = True
            for phase, handler in handlers:
                surface.remove_listener(phase, handler)
            surface.overscroll_behavior_y = previous_overscroll
            if self._root is surface:
                self._root = None
                self._detach = None
                self._back_to_idle()
            logger.debug("Detached from %s", surface.name)

        self._detach = detach
        logger.debug("Attached to %s", surface.name)
        return detach

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()

    def _on_start(self, event: TouchEvent) -> None:
        self.handle_start(event)

    def _on_move(self, event: TouchEvent) -> None:
        self.handle_move(event)

    def _on_end(self, event: TouchEvent) -> None:
        # Listeners run synchronously; the awaited part goes onto the running loop.
        loop = asyncio.get_running_loop()
        if self._release():
            self.pending_refresh = loop.create_task(self._run_refresh())

    def _on_cancel(self, event: TouchEvent) -> None:
        self.handle_cancel(event)

    # -- transitions ---------------------------------------------------------

    def handle_start(self, event: TouchEvent) -> bool:
        """Arm the gesture if the surface under the touch is at its top."""

        if self.config.disabled or self.is_refreshing or self._root is None:
            return False

        candidate = find_scroll_surface(event.target, self._root)
        if vertical_scroll_offset(candidate) > 0:
            logger.debug("Ignoring pull start: %s is scrolled to %.1f", candidate.name, candidate.offset)
            return False

        self.session = GestureSession(start_y=event.y, current_y=event.y, surface=weakref.ref(candidate))
        self.is_pulling = True
        self.pull_distance = 0.0
        self.can_refresh = False
        return True

    def handle_move(self, event: TouchEvent) -> bool:
        """Track the drag; returns ``True`` when the host's default scroll was suppressed."""

        if not self.is_pulling or self.config.disabled or self.is_refreshing or self.session is None:
            return False

        self.session.current_y = event.y
        delta_y = self.session.delta_y
        # Upward or zero movement is ignored, not treated as a cancel.
        if delta_y <= 0:
            return False

        surface = self.session.surface()
        if surface is None or vertical_scroll_offset(surface) > 0:
            logger.debug("Abandoning pull: surface left the top mid-drag")
            self._back_to_idle()
            return False

        self.pull_distance = min(delta_y * self.config.resistance, self.config.max_distance)
        self.can_refresh = self.pull_distance >= self.config.threshold

        if self.pull_distance > 0:
            event.prevent_default()
            return True
        return False

    async def handle_end(self, event: Optional[TouchEvent] = None) -> bool:
        """Release the gesture; returns ``True`` when the refresh action ran."""

        if not self._release():
            return False
        await self._run_refresh()
        return True

    def handle_cancel(self, event: Optional[TouchEvent] = None) -> None:
        if self.is_pulling:
            self._back_to_idle()

    def _release(self) -> bool:
        """Leave ``Pulling``; ``True`` means the controller is now ``Refreshing``."""

        if not self.is_pulling:
            return False

        if not self.can_refresh:
            self._back_to_idle()
            return False

        self.is_pulling = False
        self.is_refreshing = True
        return True

    async def _run_refresh(self) -> None:
        logger.debug("Refreshing (pull distance %.1f)", self.pull_distance)
        try:
            result = self.on_refresh()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Pull to refresh failed")
        finally:
            self.is_refreshing = False
            self._back_to_idle()

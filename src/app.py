"""Pygame collection screen hosting the pull-to-refresh controller.

The screen shows a whiskey collection list with a nested, independently
scrollable tasting-notes card at the top. Mouse drags and SDL finger events
become ``TouchEvent`` samples dispatched on the list region; the refresh
controller listens there and the screen only drag-scrolls when a move was not
claimed by the gesture.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import numpy as np
import pygame

from src.control_types import TRANSITION_SECONDS, ExponentialSmoother, PullConfig, TouchEvent, TouchPhase
from src.pull_refresh import PullToRefreshController
from src.scroll import ScrollRegion, ScrollRegistry, find_scroll_surface
from src.settings import PersistedSettings
from src.ui_hud import draw_indicator

logger = logging.getLogger(__name__)


SCREEN_WIDTH = 480
SCREEN_HEIGHT = 800
HEADER_HEIGHT = 84
ROW_HEIGHT = 72
SIDE_MARGIN = 16
NOTES_TOP = 12
NOTES_HEIGHT = 168
NOTE_LINE_HEIGHT = 26
SUMMARY_TOP = NOTES_TOP + NOTES_HEIGHT + 12
SUMMARY_HEIGHT = 56
ROWS_TOP = SUMMARY_TOP + SUMMARY_HEIGHT + 12
WHEEL_STEP = 48
# Fraction of an uncontained over-pull that shows up as rubber band.
RUBBER_BAND = 0.35
RUBBER_BAND_DECAY = 10.0


@dataclass
class WhiskeyEntry:
    """One row in the collection list."""

    name: str
    brand: str
    region: str
    price: float
    rating: float


CollectionLoader = Callable[[], Awaitable[Sequence[WhiskeyEntry]]]


class CollectionScreen:
    """Owns the regions, the refresh controller, and the pygame frame loop."""

    def __init__(
        self,
        loader: CollectionLoader,
        config: Optional[PullConfig] = None,
        entries: Sequence[WhiskeyEntry] = (),
        notes: Sequence[str] = (),
        settings: Optional[PersistedSettings] = None,
    ) -> None:
        pygame.init()
        pygame.display.set_caption("Whiskey Collection")
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("montserrat", 18)
        self.small_font = pygame.font.SysFont("montserrat", 15)
        self.title_font = pygame.font.SysFont("montserrat", 28, bold=True)

        self.loader = loader
        self.entries: List[WhiskeyEntry] = list(entries)
        self.notes: List[str] = list(notes)
        self.settings = settings or PersistedSettings()
        self.refresh_count = self.settings.refresh_count
        self.last_refreshed_at = self.settings.last_refreshed_at
        self.last_error: Optional[str] = None

        self.list_region = ScrollRegion(
            name="collection",
            rect=pygame.Rect(0, HEADER_HEIGHT, SCREEN_WIDTH, SCREEN_HEIGHT - HEADER_HEIGHT),
            content_height=self._list_content_height(),
        )
        self.notes_region = ScrollRegion(
            name="tasting-notes",
            rect=pygame.Rect(SIDE_MARGIN, 0, SCREEN_WIDTH - 2 * SIDE_MARGIN, NOTES_HEIGHT),
            content_height=self._notes_content_height(),
            parent=self.list_region,
        )
        # Fixed summary banner: never scrolls, so touches there resolve to the list.
        self.summary_region = ScrollRegion(
            name="summary",
            rect=pygame.Rect(SIDE_MARGIN, 0, SCREEN_WIDTH - 2 * SIDE_MARGIN, SUMMARY_HEIGHT),
            content_height=SUMMARY_HEIGHT,
            overflow_y="hidden",
            parent=self.list_region,
        )
        self.registry = ScrollRegistry()
        for region in (self.list_region, self.notes_region, self.summary_region):
            self.registry.register(region)
        self._layout()

        self.controller = PullToRefreshController(self.refresh, config)
        self.attached = True
        self.controller.attach(self.list_region)

        self.background = self._build_background()
        self.indicator_y = ExponentialSmoother(alpha=1.0, dead_zone=0.5)
        self.indicator_opacity = ExponentialSmoother(alpha=1.0, dead_zone=0.01)
        self.rubber_band = 0.0
        self.elapsed = 0.0
        self._drag_target: Optional[ScrollRegion] = None
        self._drag_last_y = 0.0

    # -- data ----------------------------------------------------------------

    async def refresh(self) -> None:
        """Reload the collection; failures propagate to the controller's log."""

        started = time.monotonic()
        try:
            entries = await self.loader()
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            raise
        self.entries = list(entries)
        self.list_region.content_height = self._list_content_height()
        self.list_region.scroll_by(0)
        self.refresh_count += 1
        self.last_refreshed_at = time.time()
        self.last_error = None
        logger.info("Reloaded %d entries in %.2fs", len(self.entries), time.monotonic() - started)

    def _list_content_height(self) -> float:
        return ROWS_TOP + len(self.entries) * ROW_HEIGHT + SIDE_MARGIN

    def _notes_content_height(self) -> float:
        return len(self.notes) * NOTE_LINE_HEIGHT + SIDE_MARGIN

    def _layout(self) -> None:
        """Move nested regions with the list's scroll offset."""

        top = self.list_region.rect.top - int(self.list_region.offset)
        self.notes_region.rect.top = top + NOTES_TOP
        self.summary_region.rect.top = top + SUMMARY_TOP

    # -- input ---------------------------------------------------------------

    def toggle_gesture(self) -> None:
        """Attach or detach the refresh controller (shows the native rubber band)."""

        if self.attached:
            self.controller.detach()
        else:
            self.controller.attach(self.list_region)
        self.attached = not self.attached
        logger.info("Pull to refresh %s", "enabled" if self.attached else "disabled")

    def _touch(self, phase: TouchPhase, x: float, y: float) -> TouchEvent:
        event = TouchEvent(phase=phase, x=x, y=y, target=self.registry.region_at(x, y))
        return self.list_region.dispatch(event)

    def _pointer_down(self, x: float, y: float) -> None:
        event = self._touch(TouchPhase.START, x, y)
        self._drag_target = find_scroll_surface(event.target, self.list_region)
        self._drag_last_y = y

    def _pointer_move(self, x: float, y: float) -> None:
        if self._drag_target is None:
            return
        event = self._touch(TouchPhase.MOVE, x, y)
        dy = self._drag_last_y - y
        self._drag_last_y = y
        if not event.default_prevented:
            self._drag_scroll(self._drag_target, dy)

    def _pointer_up(self, x: float, y: float, cancelled: bool = False) -> None:
        if self._drag_target is None:
            return
        self._touch(TouchPhase.CANCEL if cancelled else TouchPhase.END, x, y)
        self._drag_target = None

    def _drag_scroll(self, region: ScrollRegion, dy: float) -> None:
        """Scroll like a finger drag; finger moving up (``dy > 0``) reveals lower content."""

        before = region.offset
        region.scroll_by(dy)
        leftover = dy - (region.offset - before)
        if leftover < 0 and region.offset <= 0 and region.overscroll_behavior_y == "auto":
            self.rubber_band = min(ROW_HEIGHT * 2, self.rubber_band - leftover * RUBBER_BAND)
        self._layout()

    def _handle_event(self, event: pygame.event.Event) -> bool:
        """Route one pygame event; returns ``False`` when the app should quit."""

        if event.type == pygame.QUIT:
            return False
        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                return False
            if event.key == pygame.K_p:
                self.toggle_gesture()
            if event.key == pygame.K_HOME:
                self.list_region.scroll_to_top()
                self._layout()
            return True

        # SDL mirrors touches as mouse events; keep only the finger stream for those.
        from_touch = getattr(event, "touch", False)
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and not from_touch:
            self._pointer_down(*event.pos)
        elif event.type == pygame.MOUSEMOTION and not from_touch:
            self._pointer_move(*event.pos)
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1 and not from_touch:
            self._pointer_up(*event.pos)
        elif event.type == pygame.MOUSEWHEEL:
            target = self.registry.region_at(*pygame.mouse.get_pos())
            if target is not None:
                find_scroll_surface(target, self.list_region).scroll_by(-event.y * WHEEL_STEP)
                self._layout()
        elif event.type in (pygame.FINGERDOWN, pygame.FINGERMOTION, pygame.FINGERUP):
            x, y = event.x * SCREEN_WIDTH, event.y * SCREEN_HEIGHT
            if event.type == pygame.FINGERDOWN:
                self._pointer_down(x, y)
            elif event.type == pygame.FINGERMOTION:
                self._pointer_move(x, y)
            else:
                self._pointer_up(x, y)
        elif event.type == pygame.WINDOWFOCUSLOST:
            self._pointer_up(0.0, self._drag_last_y, cancelled=True)
        return True

    # -- rendering -----------------------------------------------------------

    def _build_background(self) -> pygame.Surface:
        """Generate a single warm gradient surface for reuse each frame."""

        surface = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT))
        top = np.array([250, 244, 235], dtype=float)
        bottom = np.array([236, 224, 208], dtype=float)
        for y in range(SCREEN_HEIGHT):
            t = y / max(1, SCREEN_HEIGHT - 1)
            color = (top * (1 - t) + bottom * t).astype(int)
            pygame.draw.line(surface, color.tolist(), (0, y), (SCREEN_WIDTH, y))
        return surface

    def _update_animation(self, dt: float) -> Tuple[float, float]:
        """Ease the indicator when the style asks for a transition."""

        self.elapsed += dt
        self.rubber_band *= math.exp(-RUBBER_BAND_DECAY * dt) if self._drag_target is None else 1.0
        style = self.controller.get_indicator_style()
        if not style.animate:
            self.indicator_y.reset(style.translate_y)
            self.indicator_opacity.reset(style.opacity)
            return style.translate_y, style.opacity

        # Reach ~98% of the way within the transition time.
        blend = 1.0 - math.exp(-dt * 4.0 / TRANSITION_SECONDS)
        self.indicator_y.alpha = blend
        self.indicator_opacity.alpha = blend
        return self.indicator_y.update(style.translate_y) or 0.0, self.indicator_opacity.update(style.opacity) or 0.0

    def _draw_header(self, canvas: pygame.Surface) -> None:
        pygame.draw.rect(canvas, (255, 255, 255), pygame.Rect(0, 0, SCREEN_WIDTH, HEADER_HEIGHT))
        canvas.blit(self.title_font.render("My Collection", True, (60, 40, 20)), (SIDE_MARGIN, 12))
        if self.last_error:
            status, color = f"Refresh failed: {self.last_error}", (190, 40, 40)
        elif self.last_refreshed_at:
            stamp = time.strftime("%H:%M:%S", time.localtime(self.last_refreshed_at))
            status, color = f"Updated {stamp} ({self.refresh_count} refreshes)", (107, 114, 128)
        else:
            status, color = "Pull down to reload", (107, 114, 128)
        if not self.attached:
            status += "  [gesture off]"
        canvas.blit(self.small_font.render(status, True, color), (SIDE_MARGIN, 52))
        pygame.draw.line(canvas, (230, 220, 205), (0, HEADER_HEIGHT - 1), (SCREEN_WIDTH, HEADER_HEIGHT - 1))

    def _draw_notes(self, canvas: pygame.Surface) -> None:
        rect = self.notes_region.rect
        card = pygame.Surface(rect.size)
        card.fill((255, 250, 242))
        y = SIDE_MARGIN // 2 - int(self.notes_region.offset)
        for line in self.notes:
            card.blit(self.small_font.render(line, True, (80, 60, 40)), (12, y))
            y += NOTE_LINE_HEIGHT
        canvas.blit(card, rect.topleft)
        pygame.draw.rect(canvas, (210, 190, 165), rect, width=1, border_radius=6)

    def _draw_summary(self, canvas: pygame.Surface) -> None:
        rect = self.summary_region.rect
        pygame.draw.rect(canvas, (139, 69, 19), rect, border_radius=8)
        total = sum(entry.price for entry in self.entries)
        text = f"{len(self.entries)} bottles  |  total {total:,.0f}"
        canvas.blit(self.font.render(text, True, (255, 255, 255)), (rect.left + 14, rect.top + 16))

    def _draw_rows(self, canvas: pygame.Surface) -> None:
        top = self.list_region.rect.top - int(self.list_region.offset) + ROWS_TOP
        for index, entry in enumerate(self.entries):
            y = top + index * ROW_HEIGHT
            if y + ROW_HEIGHT < self.list_region.rect.top or y > SCREEN_HEIGHT:
                continue
            row = pygame.Rect(SIDE_MARGIN, y, SCREEN_WIDTH - 2 * SIDE_MARGIN, ROW_HEIGHT - 8)
            pygame.draw.rect(canvas, (255, 255, 255), row, border_radius=8)
            canvas.blit(self.font.render(entry.name, True, (40, 30, 20)), (row.left + 12, row.top + 8))
            meta = f"{entry.brand} - {entry.region} - {entry.rating:.1f}/10"
            canvas.blit(self.small_font.render(meta, True, (107, 114, 128)), (row.left + 12, row.top + 36))
            price = self.font.render(f"{entry.price:,.0f}", True, (139, 69, 19))
            canvas.blit(price, price.get_rect(topright=(row.right - 12, row.top + 8)))

    def _draw(self, indicator: Tuple[float, float]) -> None:
        canvas = self.background.copy()
        # The list contents shift with the rubber band; the header stays put.
        content = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT), pygame.SRCALPHA)
        self._draw_notes(content)
        self._draw_summary(content)
        self._draw_rows(content)
        canvas.blit(content, (0, int(self.rubber_band)))

        state = self.controller.get_state()
        translate_y, opacity = indicator
        draw_indicator(
            canvas,
            self.small_font,
            state,
            self.controller.get_indicator_style(),
            self.controller.config.threshold,
            anchor_top=HEADER_HEIGHT,
            translate_y=translate_y,
            opacity=opacity,
            elapsed=self.elapsed,
        )
        self._draw_header(canvas)
        self.screen.blit(canvas, (0, 0))

    # -- loop ----------------------------------------------------------------

    async def run(self) -> None:
        """Frame loop; yields to asyncio every frame so refreshes can progress."""

        running = True
        while running:
            dt = self.clock.tick(60) / 1000.0
            for event in pygame.event.get():
                if not self._handle_event(event):
                    running = False
            self._draw(self._update_animation(dt))
            pygame.display.flip()
            await asyncio.sleep(0)

        pending = self.controller.pending_refresh
        if pending is not None and not pending.done():
            # In-flight refreshes are never cancelled; let it settle first.
            logger.info("Waiting for the in-flight refresh before exiting")
            await pending
        self.controller.detach()
        pygame.quit()

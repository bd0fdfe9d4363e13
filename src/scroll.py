"""Scrollable regions and the capability lookup used by the refresh gesture.

Regions are plain rectangles with a content height and a vertical offset,
linked to their parent so the gesture can walk outward from the touched
region. A ``ScrollRegistry`` answers "which region is under this point" by
containment instead of relying on a widget tree.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

import pygame

from src.control_types import TouchEvent, TouchPhase

TouchHandler = Callable[[TouchEvent], None]

SCROLLABLE_OVERFLOW = ("auto", "scroll")


@dataclass(eq=False)
class ScrollRegion:
    """A viewport onto taller content, optionally nested in a parent region."""

    name: str
    rect: pygame.Rect
    content_height: float
    offset: float = 0.0
    overflow_y: str = "auto"
    overscroll_behavior_y: str = "auto"
    parent: Optional["ScrollRegion"] = None
    _listeners: Dict[TouchPhase, List[TouchHandler]] = field(
        default_factory=lambda: defaultdict(list), init=False, repr=False
    )

    @property
    def viewport_height(self) -> float:
        return float(self.rect.height)

    @property
    def max_offset(self) -> float:
        return max(0.0, float(self.content_height - self.viewport_height))

    def scroll_by(self, dy: float) -> float:
        """Scroll by ``dy`` pixels (positive = further down) and return the new offset."""

        self.offset = max(0.0, min(self.max_offset, self.offset + dy))
        return self.offset

    def scroll_to_top(self) -> None:
        self.offset = 0.0

    def contains(self, x: float, y: float) -> bool:
        return bool(self.rect.collidepoint(int(x), int(y)))

    def ancestors(self) -> Iterator["ScrollRegion"]:
        """Yield this region followed by each parent up to the outermost one."""

        region: Optional[ScrollRegion] = self
        while region is not None:
            yield region
            region = region.parent

    def add_listener(self, phase: TouchPhase, handler: TouchHandler) -> None:
        if handler not in self._listeners[phase]:
            self._listeners[phase].append(handler)

    def remove_listener(self, phase: TouchPhase, handler: TouchHandler) -> None:
        try:
            self._listeners[phase].remove(handler)
        except ValueError:
            pass

    def listener_count(self, phase: Optional[TouchPhase] = None) -> int:
        if phase is not None:
            return len(self._listeners.get(phase, []))
        return sum(len(handlers) for handlers in self._listeners.values())

    def dispatch(self, event: TouchEvent) -> TouchEvent:
        """Deliver ``event`` to every listener registered for its phase."""

        for handler in list(self._listeners.get(event.phase, [])):
            handler(event)
        return event


def can_scroll_vertically(region: ScrollRegion) -> bool:
    """True when the overflow policy allows scrolling and content overflows."""

    return region.overflow_y in SCROLLABLE_OVERFLOW and region.content_height > region.viewport_height


def vertical_scroll_offset(region: ScrollRegion) -> float:
    return region.offset


def find_scroll_surface(target: Optional[ScrollRegion], root: ScrollRegion) -> ScrollRegion:
    """Return the region that owns vertical scrolling for a touch on ``target``.

    Walks from ``target`` (inclusive) outward and stops at ``root``. Targets
    outside the root's subtree, and chains with no scrollable region, resolve
    to ``root`` itself.
    """

    if target is None:
        return root

    chain = []
    for region in target.ancestors():
        chain.append(region)
        if region is root:
            break
    else:
        return root

    for region in chain:
        if can_scroll_vertically(region):
            return region
    return root


class ScrollRegistry:
    """Registered regions resolved by point containment."""

    def __init__(self) -> None:
        self._regions: List[ScrollRegion] = []

    def __iter__(self) -> Iterator[ScrollRegion]:
        return iter(self._regions)

    def register(self, region: ScrollRegion) -> ScrollRegion:
        if region not in self._regions:
            self._regions.append(region)
        return region

    def unregister(self, region: ScrollRegion) -> None:
        try:
            self._regions.remove(region)
        except ValueError:
            pass

    def region_at(self, x: float, y: float) -> Optional[ScrollRegion]:
        """Deepest registered region containing ``(x, y)``; later registrations win ties."""

        best: Optional[ScrollRegion] = None
        best_depth = -1
        for region in self._regions:
            if not region.contains(x, y):
                continue
            depth = sum(1 for _ in region.ancestors())
            if depth >= best_depth:
                best, best_depth = region, depth
        return best

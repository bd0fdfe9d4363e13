"""Utility routines for drawing the pull-to-refresh indicator with pygame.

The indicator is a rounded pill holding a ring and a short status label. The
ring rotates with pull progress and spins while the refresh action runs. The
label helpers are pure so they can be tested without a display.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import pygame

from src.control_types import IndicatorStyle, RefreshState

ACCENT_COLOR = (139, 69, 19)
MUTED_COLOR = (107, 114, 128)
PANEL_COLOR = (255, 255, 255)
PANEL_SIZE = (220, 44)
# The pill rests this far above the list top and slides down with the pull.
PANEL_REST_OFFSET = 60
RING_RADIUS = 10
SPIN_DEGREES_PER_SECOND = 360.0


def indicator_label(state: RefreshState) -> Optional[str]:
    """Status text for the pill, or ``None`` when nothing should be shown."""

    if state.is_refreshing:
        return "Refreshing..."
    if state.is_pulling:
        return "Release to refresh" if state.can_refresh else "Pull down to refresh"
    return None


def indicator_rotation(state: RefreshState, threshold: float) -> float:
    """Ring rotation in degrees; a full pull to the threshold turns it halfway."""

    if not state.is_pulling:
        return 0.0
    return min(state.pull_distance / threshold, 1.0) * 180.0


def spinner_points(
    center: Tuple[float, float],
    radius: float,
    start_deg: float,
    sweep_deg: float = 270.0,
    steps: int = 24,
) -> List[Tuple[int, int]]:
    """Polyline approximating an open ring; the gap is what makes rotation visible."""

    angles = np.radians(np.linspace(start_deg, start_deg + sweep_deg, max(2, steps)))
    xs = center[0] + radius * np.cos(angles)
    ys = center[1] + radius * np.sin(angles)
    return [(int(round(x)), int(round(y))) for x, y in zip(xs, ys)]


def draw_panel(surface: pygame.Surface, rect: pygame.Rect, alpha: int = 240) -> None:
    """Blit a semi-transparent rounded panel with a thin accent border."""

    alpha = max(0, min(255, alpha))
    panel = pygame.Surface(rect.size, pygame.SRCALPHA)
    radius = rect.height // 2
    pygame.draw.rect(panel, (*PANEL_COLOR, alpha), panel.get_rect(), border_radius=radius)
    pygame.draw.rect(panel, (*ACCENT_COLOR, min(alpha, 60)), panel.get_rect(), width=1, border_radius=radius)
    surface.blit(panel, rect.topleft)


def draw_indicator(
    surface: pygame.Surface,
    font: pygame.font.Font,
    state: RefreshState,
    style: IndicatorStyle,
    threshold: float,
    *,
    anchor_top: int,
    translate_y: Optional[float] = None,
    opacity: Optional[float] = None,
    elapsed: float = 0.0,
) -> None:
    """Render the indicator pill centered horizontally above ``anchor_top``.

    ``translate_y`` and ``opacity`` default to the style values; the host
    passes eased values instead when ``style.animate`` is set.
    """

    label = indicator_label(state)
    if label is None and not (opacity or 0.0) > 0.01:
        return

    offset = style.translate_y if translate_y is None else translate_y
    alpha_scale = 1.0 if state.is_refreshing else (style.opacity if opacity is None else opacity)
    alpha = int(255 * max(0.0, min(1.0, alpha_scale)))
    if alpha <= 0:
        return

    width, height = PANEL_SIZE
    rect = pygame.Rect(0, 0, width, height)
    rect.centerx = surface.get_width() // 2
    rect.top = int(anchor_top - PANEL_REST_OFFSET + offset)

    layer = pygame.Surface(surface.get_size(), pygame.SRCALPHA)
    draw_panel(layer, rect)

    if state.is_refreshing:
        start = (elapsed * SPIN_DEGREES_PER_SECOND) % 360.0
    else:
        start = indicator_rotation(state, threshold) - 90.0
    ring_center = (rect.left + 28, rect.centery)
    pygame.draw.lines(layer, ACCENT_COLOR, False, spinner_points(ring_center, RING_RADIUS, start), 2)

    if label:
        color = ACCENT_COLOR if state.can_refresh or state.is_refreshing else MUTED_COLOR
        text = font.render(label, True, color)
        layer.blit(text, text.get_rect(midleft=(rect.left + 48, rect.centery)))

    layer.set_alpha(alpha)
    surface.blit(layer, (0, 0))

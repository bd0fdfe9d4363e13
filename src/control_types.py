"""Typed gesture interface shared between the refresh controller and the host.

This module centralizes the touch/refresh data model so that the pygame host
and the pull-to-refresh state machine can evolve independently while
remaining type-safe. It also provides a tiny exponential moving average helper
the host uses to animate the indicator snap-back.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - import only needed for annotations
    from src.scroll import ScrollRegion


# Seconds the indicator takes to animate back once the finger is released.
TRANSITION_SECONDS = 0.3


class TouchPhase(enum.Enum):
    START = "start"
    MOVE = "move"
    END = "end"
    CANCEL = "cancel"


@dataclass
class TouchEvent:
    """A single pointer sample delivered by the host.

    Attributes:
        phase: Which part of the gesture this sample belongs to.
        x, y: Pointer position in logical pixels (screen space).
        target: Innermost scroll region under the pointer, when the host could
            resolve one. ``None`` means "the attached root".
        default_prevented: Set by listeners that want the host to skip its own
            drag-scroll handling for this sample.
    """

    phase: TouchPhase
    x: float
    y: float
    target: Optional["ScrollRegion"] = None
    default_prevented: bool = field(default=False, compare=False)

    def prevent_default(self) -> None:
        self.default_prevented = True


@dataclass(frozen=True)
class PullConfig:
    """Immutable tuning for one controller attachment."""

    threshold: float = 80.0
    resistance: float = 0.5
    disabled: bool = False

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError(f"threshold must be positive, got {self.threshold!r}")
        if not 0 < self.resistance <= 1:
            raise ValueError(f"resistance must be in (0, 1], got {self.resistance!r}")

    @property
    def max_distance(self) -> float:
        """Hard visual cap for the damped pull distance."""

        return self.threshold * 1.5


@dataclass(frozen=True)
class RefreshState:
    """Read-only snapshot of the controller for rendering."""

    is_pulling: bool = False
    is_refreshing: bool = False
    pull_distance: float = 0.0
    can_refresh: bool = False


@dataclass(frozen=True)
class IndicatorStyle:
    """Visual parameters derived from a ``RefreshState``.

    ``animate`` is ``False`` while the finger is down so the indicator tracks it
    1:1, and ``True`` otherwise so the host eases it back over
    ``TRANSITION_SECONDS``.
    """

    translate_y: float
    opacity: float
    animate: bool


@dataclass
class ExponentialSmoother:
    """Reusable exponential moving average for scalar values.

    This helper keeps the last smoothed value so callers can continuously feed
    target values and receive an eased output. ``None`` samples leave the
    previous value untouched. A small dead zone snaps tiny remaining gaps so
    the animation settles instead of creeping forever.
    """

    alpha: float
    value: Optional[float] = None
    dead_zone: float = 0.0

    def update(self, sample: Optional[float]) -> Optional[float]:
        """Blend ``sample`` into the EMA and return the smoothed value.

        Args:
            sample: New target value or ``None`` when unavailable.

        Returns:
            The updated smoothed value, or ``None`` if no value has been seen
            yet and the sample was ``None``.
        """

        if sample is None:
            return self.value

        if self.value is None:
            self.value = sample
        else:
            delta = sample - self.value
            if abs(delta) < self.dead_zone:
                self.value = sample
                return self.value
            self.value = (1 - self.alpha) * self.value + self.alpha * sample
        return self.value

    def reset(self, value: Optional[float] = None) -> None:
        self.value = value

"""Critically-damped "smooth-damp" springs in one and two dimensions.

Both springs use the closed-form update with angular frequency
``ω = 2 / smooth_time`` and the polynomial approximation of ``e^-x``::

    x   = ω·Δt
    exp = 1 / (1 + x + 0.48x² + 0.235x³)

The result is overshoot-free and fully deterministic for a given
sequence of ``Δt`` values, so preview and export must drive the spring
with the same fixed per-frame delta.
"""

import math
from typing import Dict, Tuple

CONVERGENCE_THRESHOLD = 1e-4
DEFAULT_VELOCITY_THRESHOLD = 500.0  # px/s at which smoothing reaches its floor
DEFAULT_MIN_SMOOTH_TIME = 0.05

# style → (smooth_time, min_smooth_time) in seconds
ANIMATION_STYLES: Dict[str, Tuple[float, float]] = {
    "slow": (0.45, 0.15),
    "mellow": (0.25, 0.08),
    "quick": (0.12, 0.04),
    "rapid": (0.06, 0.02),
}
DEFAULT_ANIMATION_STYLE = "mellow"


def _check_smooth_time(smooth_time: float) -> float:
    if not smooth_time > 0.0:
        raise ValueError(f"smooth_time must be positive, got {smooth_time!r}")
    return float(smooth_time)


def smooth_damp(current: float, target: float, velocity: float,
                smooth_time: float, dt: float) -> Tuple[float, float]:
    """One critically-damped step.  Returns ``(new_value, new_velocity)``."""
    omega = 2.0 / smooth_time
    x = omega * dt
    exp = 1.0 / (1.0 + x + 0.48 * x * x + 0.235 * x * x * x)
    change = current - target
    temp = (velocity + omega * change) * dt
    new_velocity = (velocity - omega * temp) * exp
    new_value = target + (change + temp) * exp
    return new_value, new_velocity


class SmoothValue:
    """Scalar spring, used for the zoom level."""

    def __init__(self, initial: float, smooth_time: float = 0.3) -> None:
        self.current = float(initial)
        self.target = float(initial)
        self.velocity = 0.0
        self.smooth_time = _check_smooth_time(smooth_time)

    def set_target(self, target: float) -> None:
        self.target = float(target)

    def snap_to(self, value: float) -> None:
        self.current = self.target = float(value)
        self.velocity = 0.0

    @property
    def value(self) -> float:
        return self.current

    def update(self, dt: float) -> float:
        """Advance by *dt* seconds and return the new value."""
        if (abs(self.current - self.target) < CONVERGENCE_THRESHOLD
                and abs(self.velocity) < CONVERGENCE_THRESHOLD):
            self.current = self.target
            self.velocity = 0.0
            return self.current
        self.current, self.velocity = smooth_damp(
            self.current, self.target, self.velocity, self.smooth_time, dt)
        return self.current


class SmoothPosition2D:
    """Two independent critically-damped axes sharing one smooth time.

    ``smooth_time`` may be changed between updates (adaptive smoothing);
    the new value applies from the next step.
    """

    def __init__(self, x: float, y: float, smooth_time: float = 0.2) -> None:
        self.x = float(x)
        self.y = float(y)
        self.target_x = float(x)
        self.target_y = float(y)
        self.velocity_x = 0.0
        self.velocity_y = 0.0
        self.smooth_time = _check_smooth_time(smooth_time)

    def set_target(self, x: float, y: float) -> None:
        self.target_x = float(x)
        self.target_y = float(y)

    def set_smooth_time(self, smooth_time: float) -> None:
        self.smooth_time = _check_smooth_time(smooth_time)

    def snap_to(self, x: float, y: float) -> None:
        self.x = self.target_x = float(x)
        self.y = self.target_y = float(y)
        self.velocity_x = self.velocity_y = 0.0

    @property
    def position(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def velocity(self) -> Tuple[float, float]:
        return self.velocity_x, self.velocity_y

    def is_settled(self) -> bool:
        return (abs(self.x - self.target_x) < CONVERGENCE_THRESHOLD
                and abs(self.y - self.target_y) < CONVERGENCE_THRESHOLD
                and abs(self.velocity_x) < CONVERGENCE_THRESHOLD
                and abs(self.velocity_y) < CONVERGENCE_THRESHOLD)

    def update(self, dt: float) -> Tuple[float, float]:
        """Advance by *dt* seconds and return the new ``(x, y)``."""
        if self.is_settled():
            self.snap_to(self.target_x, self.target_y)
            return self.position
        self.x, self.velocity_x = smooth_damp(
            self.x, self.target_x, self.velocity_x, self.smooth_time, dt)
        self.y, self.velocity_y = smooth_damp(
            self.y, self.target_y, self.velocity_y, self.smooth_time, dt)
        return self.position


def calculate_adaptive_smooth_time(
    velocity_x: float,
    velocity_y: float,
    base_smooth_time: float,
    min_smooth_time: float = DEFAULT_MIN_SMOOTH_TIME,
    velocity_threshold: float = DEFAULT_VELOCITY_THRESHOLD,
) -> float:
    """Shrink *base_smooth_time* toward *min_smooth_time* as speed rises.

    At rest the base value is returned; at or above *velocity_threshold*
    px/s the floor is returned; in between the two are blended linearly.
    """
    speed = math.hypot(velocity_x, velocity_y)
    factor = min(1.0, speed / velocity_threshold) if velocity_threshold > 0 else 1.0
    return base_smooth_time - (base_smooth_time - min_smooth_time) * factor


def apply_dead_zone(current: Tuple[float, float], target: Tuple[float, float],
                    radius: float) -> Tuple[float, float]:
    """Ignore target changes that stay within *radius* of *current*."""
    if math.hypot(target[0] - current[0], target[1] - current[1]) <= radius:
        return current
    return target


def style_smooth_times(style: str) -> Tuple[float, float]:
    """``(smooth_time, min_smooth_time)`` for a named animation style."""
    return ANIMATION_STYLES.get(style, ANIMATION_STYLES[DEFAULT_ANIMATION_STYLE])

"""Closed real intervals.

An interval serves two purposes: the window of acceptable ray parameters for
an intersection query, and one axis of a bounding box.

``contains`` is inclusive at both ends while ``surrounds`` is exclusive. The
distinction matters: sphere intersection uses ``surrounds`` so that a root
sitting exactly on the lower bound (a ray leaving the surface it started on)
is rejected.

Inside kernels intervals are passed as a ``(t_min, t_max)`` pair of floats and
tested with ``interval_contains`` / ``interval_surrounds``.
"""

import math
from dataclasses import dataclass

import taichi as ti


@dataclass(frozen=True)
class Interval:
    """A closed interval [min, max] over the reals.

    Attributes:
        min: Lower bound.
        max: Upper bound. An interval with max < min is empty.
    """

    min: float = math.inf
    max: float = -math.inf

    @classmethod
    def enclosing(cls, a: "Interval", b: "Interval") -> "Interval":
        """Return the tightest interval enclosing both ``a`` and ``b``."""
        return cls(min(a.min, b.min), max(a.max, b.max))

    def size(self) -> float:
        return self.max - self.min

    def contains(self, x: float) -> bool:
        return self.min <= x <= self.max

    def surrounds(self, x: float) -> bool:
        return self.min < x < self.max

    def clamp(self, x: float) -> float:
        if x < self.min:
            return self.min
        if x > self.max:
            return self.max
        return x

    def expand(self, delta: float) -> "Interval":
        """Return the interval grown by ``delta`` in total (half on each side)."""
        padding = delta / 2.0
        return Interval(self.min - padding, self.max + padding)

    def __add__(self, displacement: float) -> "Interval":
        return Interval(self.min + displacement, self.max + displacement)

    __radd__ = __add__


# Unbounded upper end of a ray parameter window
INFINITY = math.inf

EMPTY = Interval(math.inf, -math.inf)
UNIVERSE = Interval(-math.inf, math.inf)


@ti.func
def interval_contains(t_min: ti.f32, t_max: ti.f32, x: ti.f32) -> ti.i32:
    """Inclusive membership test: t_min <= x <= t_max."""
    return t_min <= x and x <= t_max


@ti.func
def interval_surrounds(t_min: ti.f32, t_max: ti.f32, x: ti.f32) -> ti.i32:
    """Exclusive membership test: t_min < x < t_max."""
    return t_min < x and x < t_max

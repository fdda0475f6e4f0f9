"""Axis-aligned bounding boxes.

Boxes are built on the host when a scene is assembled (``AABB``) and stored
as a pair of corner vectors in instance fields, where ``hit_aabb`` performs
the slab test inside kernels to reject instances early.

A box must enclose every point of the geometry it bounds. Union and offset
keep a box tight; boxes thinner than ``MIN_THICKNESS`` along an axis are
padded so that planar shapes never produce a zero-volume box. Far from the
origin the padding grows with the f32 spacing of the coordinate, so it
survives the conversion to kernel precision.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.interval import EMPTY, Interval

vec3 = tm.vec3

# Boxes thinner than this along any axis are padded to this thickness
MIN_THICKNESS = 1e-4

# Padding in units of the f32 spacing at the padded coordinate
_F32_SPACINGS = 4.0


def padding_for(axis: Interval) -> float:
    """Total thickness a too-thin interval is padded to."""
    magnitude = np.float32(max(abs(axis.min), abs(axis.max)))
    return max(MIN_THICKNESS, _F32_SPACINGS * float(np.spacing(magnitude)))


@dataclass(frozen=True)
class AABB:
    """A box given by one interval per axis.

    Attributes:
        x: Extent along the x axis.
        y: Extent along the y axis.
        z: Extent along the z axis.
    """

    x: Interval = EMPTY
    y: Interval = EMPTY
    z: Interval = EMPTY

    def __post_init__(self) -> None:
        # Frozen dataclass: pad through object.__setattr__
        for name in ("x", "y", "z"):
            axis = getattr(self, name)
            if axis.min <= axis.max:
                thickness = padding_for(axis)
                if axis.size() < thickness:
                    object.__setattr__(self, name, axis.expand(thickness))

    @classmethod
    def from_points(cls, a: Sequence[float], b: Sequence[float]) -> "AABB":
        """Box with ``a`` and ``b`` as extrema, in either order."""
        return cls(
            Interval(min(a[0], b[0]), max(a[0], b[0])),
            Interval(min(a[1], b[1]), max(a[1], b[1])),
            Interval(min(a[2], b[2]), max(a[2], b[2])),
        )

    @classmethod
    def enclosing(cls, a: "AABB", b: "AABB") -> "AABB":
        """Tightest box enclosing both ``a`` and ``b``."""
        return cls(
            Interval.enclosing(a.x, b.x),
            Interval.enclosing(a.y, b.y),
            Interval.enclosing(a.z, b.z),
        )

    def is_empty(self) -> bool:
        return self.x.min > self.x.max or self.y.min > self.y.max or self.z.min > self.z.max

    def corners(self) -> Iterator[np.ndarray]:
        """Yield the eight corner points."""
        for i in range(2):
            for j in range(2):
                for k in range(2):
                    yield np.array(
                        [
                            self.x.max if i else self.x.min,
                            self.y.max if j else self.y.min,
                            self.z.max if k else self.z.min,
                        ],
                        dtype=np.float64,
                    )

    def contains_point(self, p: Sequence[float], tolerance: float = 0.0) -> bool:
        return (
            self.x.min - tolerance <= p[0] <= self.x.max + tolerance
            and self.y.min - tolerance <= p[1] <= self.y.max + tolerance
            and self.z.min - tolerance <= p[2] <= self.z.max + tolerance
        )

    @property
    def minimum(self) -> tuple[float, float, float]:
        return (self.x.min, self.y.min, self.z.min)

    @property
    def maximum(self) -> tuple[float, float, float]:
        return (self.x.max, self.y.max, self.z.max)

    def __add__(self, offset: Sequence[float]) -> "AABB":
        return AABB(self.x + offset[0], self.y + offset[1], self.z + offset[2])


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test of a ray against a box.

    Narrows [t_min, t_max] by the entry and exit parameters of each axis slab;
    the ray misses once the window becomes empty. A zero-width window
    still counts as a hit.

    Args:
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Lower end of the accepted parameter window.
        t_max: Upper end of the accepted parameter window.

    Returns:
        1 if the ray overlaps the box within the window, 0 otherwise.
    """
    lo = t_min
    hi = t_max
    hit = 1
    for axis in ti.static(range(3)):
        inv_d = 1.0 / ray_direction[axis]
        t0 = (box_min[axis] - ray_origin[axis]) * inv_d
        t1 = (box_max[axis] - ray_origin[axis]) * inv_d
        if t0 < t1:
            if t0 > lo:
                lo = t0
            if t1 < hi:
                hi = t1
        else:
            if t1 > lo:
                lo = t1
            if t0 < hi:
                hi = t0
        if hi < lo:
            hit = 0
    return hit

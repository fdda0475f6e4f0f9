"""Host-side surface descriptions.

Scenes are assembled from plain Python objects: leaf primitives (spheres and
planar shapes), surface lists, and wrappers that translate or rotate a single
child. Nothing here touches Taichi; the scene manager flattens a surface
tree into instances (see ``scene.instances``) with ``flatten``.

Every surface reports a world-space bounding box. Wrappers compute theirs
once, at construction.

Example:
    >>> from pathtracer.scene.surfaces import RotateY, Translate, box
    >>> cube = box((0, 0, 0), (165, 330, 165), material_id=0)
    >>> tall_box = Translate(RotateY(cube, 15.0), (265, 0, 295))
    >>> box_bounds = tall_box.bounding_box()
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

import numpy as np

from pathtracer.core.aabb import AABB
from pathtracer.core.interval import Interval
from pathtracer.geometry.quad import PlanarShape, planar_frame


def _vec(values: Sequence[float]) -> tuple[float, float, float]:
    if len(values) != 3:
        raise ValueError(f"Expected 3 components, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


class Surface:
    """Base class of everything that can be placed in a scene.

    Attributes:
        material_id: Material of the surface, or None to take the material
            given when the surface is added to a scene.
    """

    material_id: int | None = None

    def bounding_box(self) -> AABB:
        raise NotImplementedError


class SphereSurface(Surface):
    """A sphere given by center and radius."""

    def __init__(
        self,
        center: Sequence[float],
        radius: float,
        material_id: int | None = None,
    ) -> None:
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        self.center = _vec(center)
        self.radius = float(radius)
        self.material_id = material_id

    def bounding_box(self) -> AABB:
        c = np.array(self.center)
        r = np.full(3, self.radius)
        return AABB.from_points(c - r, c + r)

    def __repr__(self) -> str:
        return f"SphereSurface(center={self.center}, radius={self.radius})"


class PlanarSurface(Surface):
    """A quad, triangle or ellipse spanned by ``u`` and ``v`` from ``q``.

    Use the ``quad``, ``triangle`` and ``ellipse`` constructors.
    """

    def __init__(
        self,
        q: Sequence[float],
        u: Sequence[float],
        v: Sequence[float],
        shape: PlanarShape = PlanarShape.QUAD,
        material_id: int | None = None,
    ) -> None:
        self.q = _vec(q)
        self.u = _vec(u)
        self.v = _vec(v)
        self.shape = PlanarShape(shape)
        self.material_id = material_id

        frame = planar_frame(self.q, self.u, self.v, self.shape)
        self.normal = frame["normal"]
        self.d = frame["d"]
        self.w = frame["w"]
        self.area = frame["area"]

    @classmethod
    def quad(cls, q, u, v, material_id: int | None = None) -> PlanarSurface:
        """Parallelogram with corners q, q+u, q+v, q+u+v."""
        return cls(q, u, v, PlanarShape.QUAD, material_id)

    @classmethod
    def triangle(cls, q, u, v, material_id: int | None = None) -> PlanarSurface:
        """Triangle with corners q, q+u, q+v."""
        return cls(q, u, v, PlanarShape.TRIANGLE, material_id)

    @classmethod
    def ellipse(cls, center, u, v, material_id: int | None = None) -> PlanarSurface:
        """Ellipse centered at ``center`` with semi-axes ``u`` and ``v``."""
        return cls(center, u, v, PlanarShape.ELLIPSE, material_id)

    def bounding_box(self) -> AABB:
        q = np.array(self.q)
        u = np.array(self.u)
        v = np.array(self.v)
        if self.shape == PlanarShape.ELLIPSE:
            half = np.sqrt(u * u + v * v)
            return AABB.from_points(q - half, q + half)
        if self.shape == PlanarShape.TRIANGLE:
            return AABB.enclosing(AABB.from_points(q, q + u), AABB.from_points(q, q + v))
        return AABB.enclosing(AABB.from_points(q, q + u + v), AABB.from_points(q + u, q + v))

    def __repr__(self) -> str:
        return f"PlanarSurface({self.shape.name}, q={self.q}, u={self.u}, v={self.v})"


class SurfaceList(Surface):
    """An ordered collection of surfaces.

    As a light, a list samples each member with equal probability and its
    density is the mean of the member densities.
    """

    def __init__(self, surfaces: Iterable[Surface] = ()) -> None:
        self.surfaces: list[Surface] = []
        self._bbox = AABB()
        for surface in surfaces:
            self.add(surface)

    def add(self, surface: Surface) -> None:
        self.surfaces.append(surface)
        self._bbox = AABB.enclosing(self._bbox, surface.bounding_box())

    def clear(self) -> None:
        self.surfaces = []
        self._bbox = AABB()

    def bounding_box(self) -> AABB:
        return self._bbox

    def __len__(self) -> int:
        return len(self.surfaces)

    def __iter__(self) -> Iterator[Surface]:
        return iter(self.surfaces)


class Translate(Surface):
    """Moves a child surface by ``offset``."""

    def __init__(self, child: Surface, offset: Sequence[float]) -> None:
        self.child = child
        self.offset = _vec(offset)
        self._bbox = self.transform_box(child.bounding_box())

    def transform_box(self, bbox: AABB) -> AABB:
        """Box of the translated contents of ``bbox``."""
        if bbox.is_empty():
            return bbox
        return bbox + self.offset

    def bounding_box(self) -> AABB:
        return self._bbox


class RotateY(Surface):
    """Rotates a child surface about the +y axis by ``angle`` degrees.

    The bounding box encloses the eight rotated corners of the child's box,
    which is conservative for anything but a box-shaped child.
    """

    def __init__(self, child: Surface, angle: float) -> None:
        self.child = child
        self.angle = float(angle)
        radians = math.radians(self.angle)
        self.sin_theta = math.sin(radians)
        self.cos_theta = math.cos(radians)
        self._bbox = self.transform_box(child.bounding_box())

    def rotate_to_world(self, p: Sequence[float]) -> np.ndarray:
        x, y, z = p
        return np.array(
            [
                self.cos_theta * x + self.sin_theta * z,
                y,
                -self.sin_theta * x + self.cos_theta * z,
            ]
        )

    def rotate_to_local(self, p: Sequence[float]) -> np.ndarray:
        x, y, z = p
        return np.array(
            [
                self.cos_theta * x - self.sin_theta * z,
                y,
                self.sin_theta * x + self.cos_theta * z,
            ]
        )

    def transform_box(self, bbox: AABB) -> AABB:
        """Box of the eight corners of ``bbox`` after rotation to world space."""
        if bbox.is_empty():
            return bbox
        lo = np.full(3, math.inf)
        hi = np.full(3, -math.inf)
        for corner in bbox.corners():
            rotated = self.rotate_to_world(corner)
            lo = np.minimum(lo, rotated)
            hi = np.maximum(hi, rotated)
        return AABB(Interval(lo[0], hi[0]), Interval(lo[1], hi[1]), Interval(lo[2], hi[2]))

    def bounding_box(self) -> AABB:
        return self._bbox


def box(
    a: Sequence[float],
    b: Sequence[float],
    material_id: int | None = None,
) -> SurfaceList:
    """Axis-aligned box with opposite corners ``a`` and ``b`` as six quads.

    Sides are ordered front, right, back, left, top, bottom, all with
    outward-facing normals.
    """
    lo = np.minimum(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64))
    hi = np.maximum(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64))

    dx = (hi[0] - lo[0], 0.0, 0.0)
    dy = (0.0, hi[1] - lo[1], 0.0)
    dz = (0.0, 0.0, hi[2] - lo[2])
    neg_dx = tuple(-c for c in dx)
    neg_dz = tuple(-c for c in dz)

    sides = SurfaceList()
    sides.add(PlanarSurface.quad((lo[0], lo[1], hi[2]), dx, dy, material_id))  # front
    sides.add(PlanarSurface.quad((hi[0], lo[1], hi[2]), neg_dz, dy, material_id))  # right
    sides.add(PlanarSurface.quad((hi[0], lo[1], lo[2]), neg_dx, dy, material_id))  # back
    sides.add(PlanarSurface.quad((lo[0], lo[1], lo[2]), dz, dy, material_id))  # left
    sides.add(PlanarSurface.quad((lo[0], hi[1], hi[2]), dx, neg_dz, material_id))  # top
    sides.add(PlanarSurface.quad((lo[0], lo[1], lo[2]), dx, dz, material_id))  # bottom
    return sides


@dataclass(frozen=True)
class Leaf:
    """A leaf primitive reached through a chain of wrappers.

    Attributes:
        surface: The SphereSurface or PlanarSurface.
        chain: Wrappers above the leaf, outermost first.
        weight: Probability of picking this leaf when the flattened tree is
            sampled as a light (nested lists split their share evenly).
        material_id: Material inherited down the tree, or None.
    """

    surface: Surface
    chain: tuple[Surface, ...]
    weight: float
    material_id: int | None

    def key(self) -> tuple[int, ...]:
        """Identity of this leaf/chain pairing."""
        return (id(self.surface),) + tuple(id(wrapper) for wrapper in self.chain)

    def world_bounding_box(self) -> AABB:
        """The leaf's own box carried out through the chain, innermost first."""
        result = self.surface.bounding_box()
        for wrapper in reversed(self.chain):
            result = wrapper.transform_box(result)
        return result


def flatten(
    surface: Surface,
    chain: tuple[Surface, ...] = (),
    weight: float = 1.0,
    material_id: int | None = None,
) -> Iterator[Leaf]:
    """Yield every leaf of a surface tree with the wrapper chain above it.

    A list splits its weight evenly among the members that hold at least
    one leaf, so the weights of all yielded leaves sum to ``weight``.

    Raises:
        TypeError: If the tree contains something that is not a Surface.
    """
    if surface.material_id is not None:
        material_id = surface.material_id

    if isinstance(surface, (SphereSurface, PlanarSurface)):
        yield Leaf(surface, chain, weight, material_id)
    elif isinstance(surface, SurfaceList):
        members = [member for member in surface if has_leaves(member)]
        if not members:
            return
        share = weight / len(members)
        for member in members:
            yield from flatten(member, chain, share, material_id)
    elif isinstance(surface, (Translate, RotateY)):
        yield from flatten(surface.child, chain + (surface,), weight, material_id)
    else:
        raise TypeError(f"Cannot flatten {type(surface).__name__}")


def has_leaves(surface: Surface) -> bool:
    """Whether a surface tree holds any sphere or planar shape."""
    return next(flatten(surface), None) is not None

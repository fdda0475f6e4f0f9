"""Planar primitives: quads, triangles and ellipses.

A planar primitive is defined by:
- Q: A corner point (the center, for ellipses)
- u: First edge (or semi-axis) vector
- v: Second edge (or semi-axis) vector

All planar shapes share the same plane intersection. The hit point P is
expressed in plane coordinates (alpha, beta) with P = Q + alpha*u + beta*v,
and a per-shape interior test decides whether (alpha, beta) belongs to the
shape:

    quad:      0 <= alpha <= 1 and 0 <= beta <= 1
    triangle:  alpha >= 0, beta >= 0 and alpha + beta <= 1
    ellipse:   alpha^2 + beta^2 <= 1

The plane normal, plane offset D, the helper vector w = n / (n . n) and the
area are precomputed once per primitive (see ``planar_frame``).

As a light, a planar primitive is sampled uniformly by area; the density of
a direction is distance^2 / (|cos(angle to normal)| * area).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.quad import hit_quad, make_quad
    >>> # Floor quad at y=0, spanning x=[0,1] and z=[0,1]
    >>> # quad = make_quad(vec3(0, 0, 0), vec3(1, 0, 0), vec3(0, 0, 1), 0)
"""

import math
from collections.abc import Sequence
from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.interval import INFINITY, interval_contains
from pathtracer.core.ray import random_in_unit_disk
from pathtracer.core.rng import random_float
from pathtracer.geometry.hit_record import HitRecord, face_normal, make_miss_record

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Rays with |normal . direction| below this are treated as parallel
PARALLEL_EPSILON = 1e-8

# Lower bound of the parameter window used when probing a light
LIGHT_PROBE_T_MIN = 0.001


class PlanarShape(IntEnum):
    """Interior test applied to the plane coordinates of a hit."""

    QUAD = 0
    TRIANGLE = 1
    ELLIPSE = 2


@ti.dataclass
class Quad:
    """A planar primitive with precomputed plane frame.

    Attributes:
        Q: Corner point (center for ellipses).
        u: First edge vector.
        v: Second edge vector.
        w: Helper vector n / (n . n), n = u x v, for plane coordinates.
        normal: Unit plane normal, normalize(u x v).
        d: Plane offset, normal . Q.
        area: Area of the shape.
        shape: PlanarShape value selecting the interior test.
    """

    Q: vec3
    u: vec3
    v: vec3
    w: vec3
    normal: vec3
    d: ti.f32
    area: ti.f32
    shape: ti.i32


def planar_frame(
    q: Sequence[float],
    u: Sequence[float],
    v: Sequence[float],
    shape: PlanarShape = PlanarShape.QUAD,
) -> dict[str, object]:
    """Precompute the plane frame of a planar primitive on the host.

    Args:
        q: Corner point (center for ellipses).
        u: First edge vector.
        v: Second edge vector.
        shape: Which interior test the primitive uses.

    Returns:
        Dictionary with keys normal, d, w and area.

    Raises:
        ValueError: If u and v are parallel (the shape has no area).
    """
    q_arr = np.asarray(q, dtype=np.float64)
    u_arr = np.asarray(u, dtype=np.float64)
    v_arr = np.asarray(v, dtype=np.float64)

    n = np.cross(u_arr, v_arr)
    n_dot_n = float(np.dot(n, n))
    if n_dot_n <= 1e-20:
        raise ValueError(f"Degenerate planar shape: edges {tuple(u)} and {tuple(v)} are parallel")

    n_length = math.sqrt(n_dot_n)
    normal = n / n_length

    if shape == PlanarShape.TRIANGLE:
        area = 0.5 * n_length
    elif shape == PlanarShape.ELLIPSE:
        area = math.pi * n_length
    else:
        area = n_length

    return {
        "normal": tuple(float(c) for c in normal),
        "d": float(np.dot(normal, q_arr)),
        "w": tuple(float(c) for c in n / n_dot_n),
        "area": float(area),
    }


@ti.func
def make_quad(q: vec3, u: vec3, v: vec3, shape: ti.i32) -> Quad:
    """Create a planar primitive, computing its plane frame in Taichi scope.

    A degenerate primitive (u parallel to v) gets a zero w vector and zero
    area, so it can never be hit.
    """
    n = tm.cross(u, v)
    n_dot_n = tm.dot(n, n)

    normal = vec3(0.0, 0.0, 0.0)
    w = vec3(0.0, 0.0, 0.0)
    area = 0.0

    if n_dot_n > 1e-20:
        n_length = ti.sqrt(n_dot_n)
        normal = n / n_length
        w = n / n_dot_n
        area = n_length
        if shape == int(PlanarShape.TRIANGLE):
            area = 0.5 * n_length
        elif shape == int(PlanarShape.ELLIPSE):
            area = tm.pi * n_length

    return Quad(Q=q, u=u, v=v, w=w, normal=normal, d=tm.dot(normal, q), area=area, shape=shape)


@ti.func
def _is_interior(shape: ti.i32, alpha: ti.f32, beta: ti.f32):
    """Interior test on plane coordinates.

    Returns:
        A tuple (inside, u, v) where (u, v) are the surface coordinates to
        record for an interior hit.
    """
    inside = 0
    su = alpha
    sv = beta

    if shape == int(PlanarShape.TRIANGLE):
        if alpha >= 0.0 and beta >= 0.0 and alpha + beta <= 1.0:
            inside = 1
    elif shape == int(PlanarShape.ELLIPSE):
        if alpha * alpha + beta * beta <= 1.0:
            inside = 1
            su = 0.5 * alpha + 0.5
            sv = 0.5 * beta + 0.5
    else:
        if interval_contains(0.0, 1.0, alpha) and interval_contains(0.0, 1.0, beta):
            inside = 1

    return inside, su, sv


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-planar-primitive intersection.

    1. Reject rays (nearly) parallel to the plane.
    2. Solve t = (D - normal . origin) / (normal . direction) and reject t
       outside [t_min, t_max].
    3. Compute plane coordinates alpha = w . (p x v), beta = w . (u x p) of
       p = P - Q and apply the shape's interior test.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        quad: The primitive to test intersection against.
        t_min: Inclusive lower bound of accepted t.
        t_max: Inclusive upper bound of accepted t.

    Returns:
        A HitRecord; check its hit field. material_id is left at -1.
    """
    result = make_miss_record()
    denom = tm.dot(quad.normal, ray_direction)

    if ti.abs(denom) >= PARALLEL_EPSILON:
        t = (quad.d - tm.dot(quad.normal, ray_origin)) / denom

        if interval_contains(t_min, t_max, t):
            hit_point = ray_origin + t * ray_direction
            p = hit_point - quad.Q
            alpha = tm.dot(quad.w, tm.cross(p, quad.v))
            beta = tm.dot(quad.w, tm.cross(quad.u, p))

            inside, su, sv = _is_interior(quad.shape, alpha, beta)
            if inside == 1:
                front_face, normal = face_normal(ray_direction, quad.normal)
                result = HitRecord(
                    hit=1,
                    t=t,
                    point=hit_point,
                    normal=normal,
                    front_face=front_face,
                    u=su,
                    v=sv,
                    material_id=-1,
                )

    return result


@ti.func
def quad_pdf_value(quad: Quad, origin: vec3, direction: vec3) -> ti.f32:
    """Density of sampling ``direction`` toward the primitive from ``origin``.

    Converts the uniform area density 1/area into solid angle:
    distance^2 / (|cos| * area). Zero when the direction misses.
    """
    density = 0.0
    rec = hit_quad(origin, direction, quad, LIGHT_PROBE_T_MIN, INFINITY)
    if rec.hit == 1:
        length_squared = tm.dot(direction, direction)
        distance_squared = rec.t * rec.t * length_squared
        cosine = ti.abs(tm.dot(direction, rec.normal)) / ti.sqrt(length_squared)
        if cosine > 0.0 and quad.area > 0.0:
            density = distance_squared / (cosine * quad.area)
    return density


@ti.func
def quad_random(quad: Quad, origin: vec3, stream: ti.i32) -> vec3:
    """Sample a direction from ``origin`` to a uniform point on the primitive."""
    r1 = random_float(stream)
    r2 = random_float(stream)
    point = vec3(0.0, 0.0, 0.0)

    if quad.shape == int(PlanarShape.TRIANGLE):
        # Fold the upper half of the unit square onto the triangle
        if r1 + r2 > 1.0:
            r1 = 1.0 - r1
            r2 = 1.0 - r2
        point = quad.Q + r1 * quad.u + r2 * quad.v
    elif quad.shape == int(PlanarShape.ELLIPSE):
        disk = random_in_unit_disk(stream)
        point = quad.Q + disk.x * quad.u + disk.y * quad.v
    else:
        point = quad.Q + r1 * quad.u + r2 * quad.v

    return point - origin

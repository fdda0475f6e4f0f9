"""Orthonormal basis construction.

Sampling routines generate directions in a canonical frame where +z is "up"
(the surface normal, or the axis of a cone). An orthonormal basis built
around the world-space direction maps those local samples into world space.

Example:
    >>> # Inside a Taichi function:
    >>> # axis0, axis1, axis2 = build_onb(normal)
    >>> # world = onb_transform(random_cosine_direction(stream), axis0, axis1, axis2)
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.func
def build_onb(n: vec3):
    """Build an orthonormal basis whose third axis is ``n``.

    The helper axis used for the first cross product is switched away from x
    when ``n`` is nearly parallel to it, so the cross product never collapses.

    Args:
        n: Seed direction; need not be unit length but must be non-zero.

    Returns:
        A tuple (axis0, axis1, axis2) with axis2 == normalize(n).
    """
    axis2 = tm.normalize(n)
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(axis2.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    axis1 = tm.normalize(tm.cross(axis2, a))
    axis0 = tm.cross(axis2, axis1)
    return axis0, axis1, axis2


@ti.func
def onb_transform(local: vec3, axis0: vec3, axis1: vec3, axis2: vec3) -> vec3:
    """Map a vector expressed in the basis into world coordinates."""
    return local.x * axis0 + local.y * axis1 + local.z * axis2

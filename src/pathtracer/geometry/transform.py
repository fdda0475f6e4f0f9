"""Instance transforms: translation and rotation about the y axis.

A transformed surface is intersected by moving the ray into the surface's
local frame, intersecting there, and moving the hit point and normal back.
Transforms of an instance are stored as a chain ordered outermost first, so
mapping to local space walks the chain forward and mapping back to world
space walks it in reverse.

Rotation by theta about +y maps local to world as

    world = ( cos*x + sin*z, y, -sin*x + cos*z )

and world to local with the inverse rotation

    local = ( cos*x - sin*z, y,  sin*x + cos*z )
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


class TransformKind(IntEnum):
    """Kind of a single link in a transform chain."""

    TRANSLATE = 0
    ROTATE_Y = 1


@ti.dataclass
class Transform:
    """A single translation or y-rotation.

    Attributes:
        kind: TransformKind value.
        offset: Translation offset (TRANSLATE only).
        sin_theta: Sine of the rotation angle (ROTATE_Y only).
        cos_theta: Cosine of the rotation angle (ROTATE_Y only).
    """

    kind: ti.i32
    offset: vec3
    sin_theta: ti.f32
    cos_theta: ti.f32


@ti.func
def _rotate_to_local(p: vec3, sin_theta: ti.f32, cos_theta: ti.f32) -> vec3:
    return vec3(cos_theta * p.x - sin_theta * p.z, p.y, sin_theta * p.x + cos_theta * p.z)


@ti.func
def _rotate_to_world(p: vec3, sin_theta: ti.f32, cos_theta: ti.f32) -> vec3:
    return vec3(cos_theta * p.x + sin_theta * p.z, p.y, -sin_theta * p.x + cos_theta * p.z)


@ti.func
def to_local_point(xf: Transform, p: vec3) -> vec3:
    """Map a world-side point through one transform into its child frame."""
    result = p
    if xf.kind == int(TransformKind.TRANSLATE):
        result = p - xf.offset
    else:
        result = _rotate_to_local(p, xf.sin_theta, xf.cos_theta)
    return result


@ti.func
def to_local_direction(xf: Transform, d: vec3) -> vec3:
    """Map a direction into the child frame; translation leaves it unchanged."""
    result = d
    if xf.kind == int(TransformKind.ROTATE_Y):
        result = _rotate_to_local(d, xf.sin_theta, xf.cos_theta)
    return result


@ti.func
def to_world_point(xf: Transform, p: vec3) -> vec3:
    """Map a child-frame point back through one transform."""
    result = p
    if xf.kind == int(TransformKind.TRANSLATE):
        result = p + xf.offset
    else:
        result = _rotate_to_world(p, xf.sin_theta, xf.cos_theta)
    return result


@ti.func
def to_world_direction(xf: Transform, d: vec3) -> vec3:
    """Map a child-frame direction (or normal) back through one transform."""
    result = d
    if xf.kind == int(TransformKind.ROTATE_Y):
        result = _rotate_to_world(d, xf.sin_theta, xf.cos_theta)
    return result

"""Ray data structure, reflection, refraction and random direction sampling.

This module provides the Ray dataclass and the direction helpers used throughout
the path tracer. All operations are Taichi functions meant to be called from
inside kernels.

Random helpers take an explicit ``stream`` index (see ``core.rng``) instead of
drawing from a process-wide generator.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import math

import taichi as ti
import taichi.math as tm

from pathtracer.core.rng import random_float

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Smallest squared length that still normalizes safely in single precision
MIN_NORMALIZABLE_LENGTH_SQUARED = 1e-30


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            unit length; ``ray_at`` scales by its magnitude.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


def degrees_to_radians(degrees: float) -> float:
    """Convert an angle from degrees to radians (host side)."""
    return degrees * math.pi / 180.0


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Computes v - 2 (v . n) n. The normal should be unit length.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(unit_incident: vec3, normal: vec3, eta_ratio: ti.f32) -> vec3:
    """Refract a unit incident vector through a surface using Snell's law.

    The cosine term is clamped to 1 so that floating point overshoot in
    ``-dot(uv, n)`` cannot produce a domain error. Only valid when total
    internal reflection does not occur; the caller checks that first.

    Args:
        unit_incident: The incoming direction (unit length).
        normal: The surface normal on the incident side (unit length).
        eta_ratio: Ratio of refractive indices (eta_incident / eta_transmitted).

    Returns:
        The refracted direction.
    """
    cos_theta = tm.min(-tm.dot(unit_incident, normal), 1.0)
    r_out_perp = eta_ratio * (unit_incident + cos_theta * normal)
    r_out_parallel = -ti.sqrt(ti.abs(1.0 - tm.dot(r_out_perp, r_out_perp))) * normal
    return r_out_perp + r_out_parallel


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


@ti.func
def random_in_unit_disk(stream: ti.i32) -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Uses rejection sampling. Used for defocus (thin lens) sampling.

    Args:
        stream: Random stream index.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    # Rejection sampling loop
    for _ in range(100):  # Max iterations to avoid infinite loops
        if not found:
            p = vec3(
                random_float(stream) * 2.0 - 1.0,
                random_float(stream) * 2.0 - 1.0,
                0.0,
            )
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p


@ti.func
def random_unit_vector(stream: ti.i32) -> vec3:
    """Generate a random unit vector uniformly distributed on the sphere.

    Rejection samples the cube [-1, 1]^3 and keeps points whose squared
    length lies in (MIN_NORMALIZABLE_LENGTH_SQUARED, 1], so the normalization
    never divides by a vanishing length.

    Args:
        stream: Random stream index.

    Returns:
        A random unit vector.
    """
    p = vec3(0.0, 0.0, 1.0)
    found = False
    for _ in range(100):
        if not found:
            candidate = vec3(
                random_float(stream) * 2.0 - 1.0,
                random_float(stream) * 2.0 - 1.0,
                random_float(stream) * 2.0 - 1.0,
            )
            lensq = tm.dot(candidate, candidate)
            if MIN_NORMALIZABLE_LENGTH_SQUARED < lensq and lensq <= 1.0:
                p = candidate / ti.sqrt(lensq)
                found = True
    return p


@ti.func
def random_cosine_direction(stream: ti.i32) -> vec3:
    """Generate a cosine-weighted direction in the local z-up hemisphere.

    The distribution has PDF = cos(theta) / pi.

    Args:
        stream: Random stream index.

    Returns:
        A random direction in the local coordinate frame (z-up).
    """
    r1 = random_float(stream)
    r2 = random_float(stream)
    phi = 2.0 * tm.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    x = ti.cos(phi) * sqrt_r2
    y = ti.sin(phi) * sqrt_r2
    z = ti.sqrt(1.0 - r2)
    return vec3(x, y, z)

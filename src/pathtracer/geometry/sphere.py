"""Sphere primitive: intersection, surface coordinates and light sampling.

Intersection uses the robust quadratic formula from Ray Tracing Gems to avoid
catastrophic cancellation when b^2 is nearly equal to 4ac.

As a light, a sphere is sampled uniformly over the cone of directions it
subtends from the shading point, so its density is the reciprocal of that
cone's solid angle.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.interval import INFINITY, interval_surrounds
from pathtracer.core.onb import build_onb, onb_transform
from pathtracer.core.ray import random_unit_vector
from pathtracer.core.rng import random_float
from pathtracer.geometry.hit_record import HitRecord, face_normal, make_miss_record

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Lower bound of the parameter window used when probing a light
LIGHT_PROBE_T_MIN = 0.001


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
    """

    center: vec3
    radius: ti.f32


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 with a numerically stable method.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: Square root of discriminant (h^2 - a*c).

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray: fall back to the textbook formula
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def sphere_uv(p: vec3):
    """Surface coordinates of a point on the unit sphere.

    u runs around the y axis from x = -1, v from the bottom pole (y = -1) to
    the top pole.

    Args:
        p: A point on the unit sphere centered at the origin (the outward
            normal).

    Returns:
        A tuple (u, v), both in [0, 1].
    """
    theta = ti.acos(tm.clamp(-p.y, -1.0, 1.0))
    phi = ti.atan2(-p.z, p.x) + tm.pi
    return phi / (2.0 * tm.pi), theta / tm.pi


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection.

    Solves |ray_origin + t * ray_direction - center|^2 = radius^2 in the
    half-b form

        a*t^2 + 2*h*t + c = 0

    with a = |d|^2, h = d . (o - center), c = |o - center|^2 - radius^2.
    The nearer root is taken when (t_min, t_max) surrounds it, otherwise the
    farther one; a negative discriminant is a miss.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        sphere: The sphere to test intersection against.
        t_min: Exclusive lower bound of accepted t (avoids self-intersection).
        t_max: Exclusive upper bound of accepted t.

    Returns:
        A HitRecord; check its hit field. material_id is left at -1.
    """
    oc = ray_origin - sphere.center

    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius

    discriminant = h * h - a * c

    result = make_miss_record()

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = interval_surrounds(t_min, t_max, t)
        if not valid:
            t = t1
            valid = interval_surrounds(t_min, t_max, t)

        if valid:
            point = ray_origin + t * ray_direction
            outward_normal = (point - sphere.center) / sphere.radius
            front_face, normal = face_normal(ray_direction, outward_normal)
            u, v = sphere_uv(outward_normal)
            result = HitRecord(
                hit=1,
                t=t,
                point=point,
                normal=normal,
                front_face=front_face,
                u=u,
                v=v,
                material_id=-1,
            )

    return result


@ti.func
def _random_to_sphere(radius: ti.f32, distance_squared: ti.f32, stream: ti.i32) -> vec3:
    """Uniform direction inside the cone subtended by a sphere (local z-up).

    Samples z = cos(theta) uniformly in [cos(theta_max), 1], which is uniform
    in solid angle over the spherical cap.
    """
    r1 = random_float(stream)
    r2 = random_float(stream)
    cos_theta_max = ti.sqrt(tm.max(0.0, 1.0 - radius * radius / distance_squared))
    z = 1.0 + r2 * (cos_theta_max - 1.0)

    phi = 2.0 * tm.pi * r1
    sin_theta = ti.sqrt(tm.max(0.0, 1.0 - z * z))
    x = ti.cos(phi) * sin_theta
    y = ti.sin(phi) * sin_theta

    return vec3(x, y, z)


@ti.func
def sphere_pdf_value(sphere: Sphere, origin: vec3, direction: vec3) -> ti.f32:
    """Density of sampling ``direction`` toward the sphere from ``origin``.

    Zero when the direction misses the sphere. From outside, the reciprocal
    of the subtended solid angle 2*pi*(1 - cos(theta_max)). From inside every
    direction reaches the surface, so the density is uniform over the full
    sphere of directions.
    """
    density = 0.0
    distance_squared = tm.dot(sphere.center - origin, sphere.center - origin)
    radius_squared = sphere.radius * sphere.radius

    if distance_squared <= radius_squared:
        density = 1.0 / (4.0 * tm.pi)
    else:
        rec = hit_sphere(origin, direction, sphere, LIGHT_PROBE_T_MIN, INFINITY)
        if rec.hit == 1:
            cos_theta_max = ti.sqrt(1.0 - radius_squared / distance_squared)
            solid_angle = 2.0 * tm.pi * (1.0 - cos_theta_max)
            if solid_angle > 0.0:
                density = 1.0 / solid_angle

    return density


@ti.func
def sphere_random(sphere: Sphere, origin: vec3, stream: ti.i32) -> vec3:
    """Sample a direction from ``origin`` toward the sphere.

    Consistent with ``sphere_pdf_value``: uniform over the subtended cone
    from outside, uniform over all directions from inside.
    """
    direction = sphere.center - origin
    distance_squared = tm.dot(direction, direction)
    result = vec3(0.0, 0.0, 0.0)

    if distance_squared <= sphere.radius * sphere.radius:
        result = random_unit_vector(stream)
    else:
        axis0, axis1, axis2 = build_onb(direction)
        local = _random_to_sphere(sphere.radius, distance_squared, stream)
        result = onb_transform(local, axis0, axis1, axis2)

    return result


@ti.func
def make_sphere(center: vec3, radius: ti.f32) -> Sphere:
    """Create a sphere from center and radius."""
    return Sphere(center=center, radius=radius)

"""Instance table: flattened scene primitives in Taichi fields.

Every surface placed in a scene is flattened into instances. An instance is
one leaf primitive (a sphere or a planar shape) plus the chain of
translate / rotate-Y transforms above it, its world-space bounding box, its
material id and a ``renderable`` flag. Lights are a list of instance
indices with sampling weights, so a surface that is both drawn and sampled
as a light is stored only once; a surface that is only a light is a
non-renderable instance that camera and bounce rays never see.

The tables use a Structure of Arrays layout:

    sphere_centers[k], sphere_radii[k]
    planar_q[k], planar_u[k], ... planar_shape[k]
    instance_kind[i], instance_primitive[i], instance_material[i], ...
    transform_kind[i, k], transform_offset[i, k], ...   (outermost first)
    light_instances[l], light_weights[l]

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene import instances
    >>> instances.clear_scene()
    >>> prim = instances.add_sphere((0, 0, -1), 0.5)
    >>> inst = instances.add_instance(
    ...     instances.InstanceKind.SPHERE, prim, material_id=0,
    ...     bbox_min=(-0.5, -0.5, -1.5), bbox_max=(0.5, 0.5, -0.5),
    ... )
    >>> # Use intersect_scene within a Taichi kernel
"""

from collections.abc import Sequence
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.aabb import hit_aabb
from pathtracer.core.interval import INFINITY
from pathtracer.core.rng import random_float
from pathtracer.geometry.hit_record import HitRecord, make_miss_record
from pathtracer.geometry.quad import PlanarShape, Quad, hit_quad, quad_pdf_value, quad_random
from pathtracer.geometry.sphere import Sphere, hit_sphere, sphere_pdf_value, sphere_random
from pathtracer.geometry.transform import (
    Transform,
    TransformKind,
    to_local_direction,
    to_local_point,
    to_world_direction,
    to_world_point,
)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class InstanceKind(IntEnum):
    """Primitive table an instance refers to."""

    SPHERE = 0
    PLANAR = 1


# Maximum number of primitives, instances and lights supported in the scene
MAX_SPHERES = 1024
MAX_PLANARS = 4096
MAX_INSTANCES = 4096
MAX_LIGHTS = 256
MAX_TRANSFORM_DEPTH = 8

# Sphere storage
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Planar storage, with the plane frame precomputed on the host
planar_q = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PLANARS)
planar_u = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PLANARS)
planar_v = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PLANARS)
planar_w = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PLANARS)
planar_normal = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PLANARS)
planar_d = ti.field(dtype=ti.f32, shape=MAX_PLANARS)
planar_area = ti.field(dtype=ti.f32, shape=MAX_PLANARS)
planar_shape = ti.field(dtype=ti.i32, shape=MAX_PLANARS)
num_planars = ti.field(dtype=ti.i32, shape=())

# Instance storage
instance_kind = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_primitive = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_material = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_renderable = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_bbox_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_INSTANCES)
instance_bbox_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_INSTANCES)
instance_depth = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
num_instances = ti.field(dtype=ti.i32, shape=())

# Transform chains, outermost first
transform_kind = ti.field(dtype=ti.i32, shape=(MAX_INSTANCES, MAX_TRANSFORM_DEPTH))
transform_offset = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_INSTANCES, MAX_TRANSFORM_DEPTH))
transform_sin = ti.field(dtype=ti.f32, shape=(MAX_INSTANCES, MAX_TRANSFORM_DEPTH))
transform_cos = ti.field(dtype=ti.f32, shape=(MAX_INSTANCES, MAX_TRANSFORM_DEPTH))

# Light list: instance indices and the probability of picking each
light_instances = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_weights = ti.field(dtype=ti.f32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives, instances and lights.

    Resets the counts to zero. Field data is overwritten as new entries are
    added.
    """
    num_spheres[None] = 0
    num_planars[None] = 0
    num_instances[None] = 0
    num_lights[None] = 0


def add_sphere(center: Sequence[float], radius: float) -> int:
    """Add a sphere primitive.

    Returns:
        The index of the added sphere.

    Raises:
        ValueError: If the radius is not positive.
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    if radius <= 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = vec3(center[0], center[1], center[2])
    sphere_radii[idx] = radius
    num_spheres[None] = idx + 1
    return idx


def add_planar(
    q: Sequence[float],
    u: Sequence[float],
    v: Sequence[float],
    normal: Sequence[float],
    d: float,
    w: Sequence[float],
    area: float,
    shape: int = PlanarShape.QUAD,
) -> int:
    """Add a planar primitive with a precomputed frame.

    See ``geometry.quad.planar_frame`` for computing normal, d, w and area.

    Returns:
        The index of the added primitive.

    Raises:
        RuntimeError: If the maximum number of planar primitives is exceeded.
    """
    idx = num_planars[None]
    if idx >= MAX_PLANARS:
        raise RuntimeError(f"Maximum number of planar primitives ({MAX_PLANARS}) exceeded")
    planar_q[idx] = vec3(q[0], q[1], q[2])
    planar_u[idx] = vec3(u[0], u[1], u[2])
    planar_v[idx] = vec3(v[0], v[1], v[2])
    planar_normal[idx] = vec3(normal[0], normal[1], normal[2])
    planar_d[idx] = d
    planar_w[idx] = vec3(w[0], w[1], w[2])
    planar_area[idx] = area
    planar_shape[idx] = int(shape)
    num_planars[None] = idx + 1
    return idx


def add_instance(
    kind: int,
    primitive: int,
    material_id: int,
    bbox_min: Sequence[float],
    bbox_max: Sequence[float],
    transforms: Sequence[tuple] = (),
    renderable: bool = True,
) -> int:
    """Add an instance of a primitive.

    Args:
        kind: InstanceKind of the primitive.
        primitive: Index into the sphere or planar table.
        material_id: Material to shade hits with (-1 for none).
        bbox_min: Minimum corner of the world-space bounding box.
        bbox_max: Maximum corner of the world-space bounding box.
        transforms: Chain outermost first. Each entry is either
            ``(TransformKind.TRANSLATE, (dx, dy, dz))`` or
            ``(TransformKind.ROTATE_Y, sin_theta, cos_theta)``.
        renderable: Whether scene rays can hit the instance.

    Returns:
        The index of the added instance.

    Raises:
        ValueError: If the chain is deeper than MAX_TRANSFORM_DEPTH or the
            primitive index is out of range.
        RuntimeError: If the maximum number of instances is exceeded.
    """
    if len(transforms) > MAX_TRANSFORM_DEPTH:
        raise ValueError(
            f"Transform chain of depth {len(transforms)} exceeds {MAX_TRANSFORM_DEPTH}"
        )
    count = num_spheres[None] if kind == InstanceKind.SPHERE else num_planars[None]
    if primitive < 0 or primitive >= count:
        raise ValueError(f"Primitive index {primitive} out of range for {InstanceKind(kind).name}")

    idx = num_instances[None]
    if idx >= MAX_INSTANCES:
        raise RuntimeError(f"Maximum number of instances ({MAX_INSTANCES}) exceeded")

    instance_kind[idx] = int(kind)
    instance_primitive[idx] = primitive
    instance_material[idx] = material_id
    instance_renderable[idx] = 1 if renderable else 0
    instance_bbox_min[idx] = vec3(bbox_min[0], bbox_min[1], bbox_min[2])
    instance_bbox_max[idx] = vec3(bbox_max[0], bbox_max[1], bbox_max[2])
    instance_depth[idx] = len(transforms)

    for k, entry in enumerate(transforms):
        transform_kind[idx, k] = int(entry[0])
        if entry[0] == TransformKind.TRANSLATE:
            offset = entry[1]
            transform_offset[idx, k] = vec3(offset[0], offset[1], offset[2])
            transform_sin[idx, k] = 0.0
            transform_cos[idx, k] = 1.0
        else:
            transform_offset[idx, k] = vec3(0.0, 0.0, 0.0)
            transform_sin[idx, k] = entry[1]
            transform_cos[idx, k] = entry[2]

    num_instances[None] = idx + 1
    return idx


def set_renderable(instance: int, renderable: bool = True) -> None:
    """Make an existing instance visible (or invisible) to scene rays."""
    if instance < 0 or instance >= num_instances[None]:
        raise ValueError(f"Invalid instance index {instance}")
    instance_renderable[instance] = 1 if renderable else 0


def add_light(instance: int, weight: float = 1.0) -> int:
    """Append an instance to the light list.

    Weights are the probabilities of picking each light; the light density
    is the weighted sum of the instance densities, so the weights of the
    whole list should add up to one (the scene manager normalizes them).

    Returns:
        The index of the entry in the light list.

    Raises:
        ValueError: If the instance index is invalid or the weight negative.
        RuntimeError: If the maximum number of lights is exceeded.
    """
    if instance < 0 or instance >= num_instances[None]:
        raise ValueError(f"Invalid instance index {instance}")
    if weight < 0.0:
        raise ValueError(f"Light weight must be non-negative, got {weight}")
    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_instances[idx] = instance
    light_weights[idx] = weight
    num_lights[None] = idx + 1
    return idx


def set_instance_material(instance: int, material_id: int) -> None:
    """Change the material an existing instance is shaded with."""
    if instance < 0 or instance >= num_instances[None]:
        raise ValueError(f"Invalid instance index {instance}")
    instance_material[instance] = material_id


def set_light_weight(light: int, weight: float) -> None:
    light_weights[light] = weight


def get_light_weight(light: int) -> float:
    return float(light_weights[light])


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def get_planar_count() -> int:
    """Get the number of planar primitives in the scene."""
    return int(num_planars[None])


def get_instance_count() -> int:
    """Get the number of instances in the scene."""
    return int(num_instances[None])


def get_light_count() -> int:
    """Get the number of entries in the light list."""
    return int(num_lights[None])


# =============================================================================
# Taichi-scope access
# =============================================================================


@ti.func
def _load_sphere(idx: ti.i32) -> Sphere:
    return Sphere(center=sphere_centers[idx], radius=sphere_radii[idx])


@ti.func
def _load_planar(idx: ti.i32) -> Quad:
    return Quad(
        Q=planar_q[idx],
        u=planar_u[idx],
        v=planar_v[idx],
        w=planar_w[idx],
        normal=planar_normal[idx],
        d=planar_d[idx],
        area=planar_area[idx],
        shape=planar_shape[idx],
    )


@ti.func
def _load_transform(inst: ti.i32, k: ti.i32) -> Transform:
    return Transform(
        kind=transform_kind[inst, k],
        offset=transform_offset[inst, k],
        sin_theta=transform_sin[inst, k],
        cos_theta=transform_cos[inst, k],
    )


@ti.func
def instance_to_local(inst: ti.i32, point: vec3, direction: vec3):
    """Map a world point and direction into the instance's primitive frame.

    Walks the chain outermost first.
    """
    p = point
    d = direction
    for k in range(instance_depth[inst]):
        xf = _load_transform(inst, k)
        p = to_local_point(xf, p)
        d = to_local_direction(xf, d)
    return p, d


@ti.func
def instance_point_to_world(inst: ti.i32, point: vec3) -> vec3:
    """Map a primitive-frame point to world space, innermost transform first."""
    p = point
    depth = instance_depth[inst]
    for kk in range(depth):
        p = to_world_point(_load_transform(inst, depth - 1 - kk), p)
    return p


@ti.func
def instance_direction_to_world(inst: ti.i32, direction: vec3) -> vec3:
    """Map a primitive-frame direction (or normal) to world space."""
    d = direction
    depth = instance_depth[inst]
    for kk in range(depth):
        d = to_world_direction(_load_transform(inst, depth - 1 - kk), d)
    return d


@ti.func
def _hit_primitive(
    kind: ti.i32,
    prim: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    result = make_miss_record()
    if kind == int(InstanceKind.SPHERE):
        result = hit_sphere(ray_origin, ray_direction, _load_sphere(prim), t_min, t_max)
    else:
        result = hit_quad(ray_origin, ray_direction, _load_planar(prim), t_min, t_max)
    return result


@ti.func
def hit_instance(
    inst: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with one instance.

    The ray is moved into the primitive's frame, intersected there, and the
    hit point and normal are moved back. Transforms are rigid, so t is the
    same in both frames.

    Returns:
        A HitRecord carrying the instance's material id on a hit.
    """
    local_origin, local_direction = instance_to_local(inst, ray_origin, ray_direction)
    rec = _hit_primitive(
        instance_kind[inst],
        instance_primitive[inst],
        local_origin,
        local_direction,
        t_min,
        t_max,
    )
    if rec.hit == 1:
        rec.point = instance_point_to_world(inst, rec.point)
        rec.normal = instance_direction_to_world(inst, rec.normal)
        rec.material_id = instance_material[inst]
    return rec


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test ray against all renderable instances in the scene.

    Instances whose bounding box the ray misses within the current window
    are skipped. The window shrinks to the closest hit found so far.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The closest HitRecord, or a miss record if nothing was hit.
    """
    closest_t = t_max
    result = make_miss_record()

    for i in range(num_instances[None]):
        if instance_renderable[i] == 1:
            if hit_aabb(
                instance_bbox_min[i],
                instance_bbox_max[i],
                ray_origin,
                ray_direction,
                t_min,
                closest_t,
            ):
                rec = hit_instance(i, ray_origin, ray_direction, t_min, closest_t)
                if rec.hit == 1:
                    closest_t = rec.t
                    result = rec

    return result


@ti.func
def instance_pdf_value(inst: ti.i32, origin: vec3, direction: vec3) -> ti.f32:
    """Density of sampling ``direction`` from ``origin`` toward an instance.

    Evaluated in the primitive's frame; rigid transforms preserve solid
    angle.
    """
    local_origin, local_direction = instance_to_local(inst, origin, direction)
    density = 0.0
    prim = instance_primitive[inst]
    if instance_kind[inst] == int(InstanceKind.SPHERE):
        density = sphere_pdf_value(_load_sphere(prim), local_origin, local_direction)
    else:
        density = quad_pdf_value(_load_planar(prim), local_origin, local_direction)
    return density


@ti.func
def instance_random(inst: ti.i32, origin: vec3, stream: ti.i32) -> vec3:
    """Sample a world-space direction from ``origin`` toward an instance."""
    local_origin, _ = instance_to_local(inst, origin, vec3(1.0, 0.0, 0.0))
    local_direction = vec3(1.0, 0.0, 0.0)
    prim = instance_primitive[inst]
    if instance_kind[inst] == int(InstanceKind.SPHERE):
        local_direction = sphere_random(_load_sphere(prim), local_origin, stream)
    else:
        local_direction = quad_random(_load_planar(prim), local_origin, stream)
    return instance_direction_to_world(inst, local_direction)


@ti.func
def has_lights() -> ti.i32:
    return num_lights[None] > 0


@ti.func
def lights_pdf_value(origin: vec3, direction: vec3) -> ti.f32:
    """Weighted sum of the light densities for ``direction``."""
    total = 0.0
    for k in range(num_lights[None]):
        total += light_weights[k] * instance_pdf_value(light_instances[k], origin, direction)
    return total


@ti.func
def lights_random(origin: vec3, stream: ti.i32) -> vec3:
    """Pick a light with probability equal to its weight and sample it.

    Returns (1, 0, 0) when the light list is empty.
    """
    result = vec3(1.0, 0.0, 0.0)
    n = num_lights[None]
    if n > 0:
        r = random_float(stream)
        chosen = n - 1
        cumulative = 0.0
        found = False
        for k in range(n):
            if not found:
                cumulative += light_weights[k]
                if r < cumulative:
                    chosen = k
                    found = True
        result = instance_random(light_instances[chosen], origin, stream)
    return result


# Single-ray query results, read back in Python scope by ``probe``
_probe_hit = ti.field(dtype=ti.i32, shape=())
_probe_t = ti.field(dtype=ti.f32, shape=())
_probe_point = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_normal = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_front_face = ti.field(dtype=ti.i32, shape=())
_probe_material = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _probe_scene(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32):
    # Single iteration keeps the instance loop serial
    for _ in range(1):
        rec = intersect_scene(origin, direction, t_min, t_max)
        _probe_hit[None] = rec.hit
        _probe_t[None] = rec.t
        _probe_point[None] = rec.point
        _probe_normal[None] = rec.normal
        _probe_front_face[None] = rec.front_face
        _probe_material[None] = rec.material_id


def probe(
    origin: Sequence[float],
    direction: Sequence[float],
    t_min: float = 0.001,
    t_max: float = INFINITY,
) -> dict[str, object] | None:
    """Intersect a single ray with the scene from Python scope.

    Useful for picking and for inspecting a scene while building it.

    Returns:
        None on a miss, otherwise a dict with keys t, point, normal,
        front_face and material_id.
    """
    _probe_scene(
        vec3(origin[0], origin[1], origin[2]),
        vec3(direction[0], direction[1], direction[2]),
        t_min,
        t_max,
    )
    if _probe_hit[None] == 0:
        return None
    return {
        "t": float(_probe_t[None]),
        "point": tuple(float(c) for c in _probe_point[None].to_numpy()),
        "normal": tuple(float(c) for c in _probe_normal[None].to_numpy()),
        "front_face": bool(_probe_front_face[None]),
        "material_id": int(_probe_material[None]),
    }

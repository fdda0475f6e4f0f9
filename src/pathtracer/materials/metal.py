"""Metal (specular reflective) material implementation.

Metals reflect the incident ray about the surface normal,

    R = I - 2(I . N)N

and perturb the unit reflection by ``fuzz`` times a random unit vector. The
continuation direction is fixed, so the scatter skips density sampling.
A fuzzed direction that ends up below the surface is absorbed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.metal import add_metal_material
    >>> gold = add_metal_material((0.8, 0.6, 0.2), fuzz=0.1)
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector, reflect
from pathtracer.materials.scatter_record import (
    ScatterRecord,
    make_absorbed_record,
    make_specular_record,
)

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    stream: ti.i32,
) -> ScatterRecord:
    """Reflect off a metal surface.

    Args:
        albedo: The reflective color (RGB).
        fuzz: Perturbation radius in [0, 1].
        incident_direction: The incoming ray direction (need not be unit length).
        normal: The surface normal, facing the incoming ray.
        stream: Random stream index.

    Returns:
        A specular ScatterRecord, or an absorbed one when the fuzzed
        direction points into the surface.
    """
    reflected = tm.normalize(reflect(incident_direction, normal))
    scattered_direction = reflected + fuzz * random_unit_vector(stream)

    result = make_absorbed_record()
    if tm.dot(scattered_direction, normal) > 0.0:
        result = make_specular_record(albedo, scattered_direction)
    return result


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_METAL_MATERIALS = 256

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzz = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials."""
    num_metal_materials[None] = 0


def add_metal_material(albedo: Sequence[float], fuzz: float = 0.0) -> int:
    """Add a metal material to the material registry.

    Fuzz values above 1 are clamped to 1.

    Args:
        albedo: The reflective color as (R, G, B).
        fuzz: Perturbation radius, 0 for a perfect mirror.

    Returns:
        The index of the added material within the metal table.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1] or fuzz is
            negative.
    """
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(f"Albedo component {i} = {component} is outside [0, 1]")
    if fuzz < 0.0:
        raise ValueError(f"Fuzz must be non-negative, got {fuzz}")

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")

    metal_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    metal_fuzz[idx] = min(fuzz, 1.0)
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    """Get the number of metal materials in the registry."""
    return int(num_metal_materials[None])


def get_metal_fuzz(material_idx: int) -> float:
    return float(metal_fuzz[material_idx])


@ti.func
def scatter_metal_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    stream: ti.i32,
) -> ScatterRecord:
    """Scatter using the parameters stored at ``material_idx``."""
    return scatter_metal(
        metal_albedos[material_idx],
        metal_fuzz[material_idx],
        incident_direction,
        normal,
        stream,
    )

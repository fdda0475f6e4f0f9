"""Dielectric (glass/water) material implementation.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance
    - Total internal reflection when sin(theta_t) > 1

The material chooses between reflection and refraction at random, with the
Schlick reflectance as the probability of reflecting. Attenuation is white.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.dielectric import add_dielectric_material
    >>> glass = add_dielectric_material(1.5)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect, refract
from pathtracer.core.rng import random_float
from pathtracer.materials.scatter_record import ScatterRecord, make_specular_record

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def schlick_reflectance(cosine: ti.f32, refraction_ratio: ti.f32) -> ti.f32:
    """Schlick's approximation of Fresnel reflectance.

    r0 = ((1 - eta) / (1 + eta))^2
    R(theta) = r0 + (1 - r0)(1 - cos theta)^5
    """
    r0 = (1.0 - refraction_ratio) / (1.0 + refraction_ratio)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ti.pow(1.0 - cosine, 5)


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
) -> ScatterRecord:
    """Reflect or refract through a dielectric boundary.

    Args:
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (need not be unit length).
        normal: The surface normal, facing the incoming ray.
        front_face: 1 if the ray enters the material, 0 if it leaves.
        stream: Random stream index.

    Returns:
        A specular ScatterRecord with white attenuation.
    """
    # Entering: air to material (1/ior); leaving: material to air (ior)
    refraction_ratio = 1.0 / ior
    if front_face == 0:
        refraction_ratio = ior

    unit_direction = tm.normalize(incident_direction)
    cos_theta = tm.min(-tm.dot(unit_direction, normal), 1.0)
    sin_theta = ti.sqrt(tm.max(0.0, 1.0 - cos_theta * cos_theta))

    cannot_refract = refraction_ratio * sin_theta > 1.0

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract or schlick_reflectance(cos_theta, refraction_ratio) > random_float(stream):
        scattered_direction = reflect(unit_direction, normal)
    else:
        scattered_direction = refract(unit_direction, normal, refraction_ratio)

    return make_specular_record(vec3(1.0, 1.0, 1.0), scattered_direction)


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_DIELECTRIC_MATERIALS = 256

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Clear all dielectric materials."""
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float) -> int:
    """Add a dielectric material to the material registry.

    Args:
        ior: Index of refraction, at least 1.

    Returns:
        The index of the added material within the dielectric table.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If ior is less than 1.
    """
    if ior < 1.0:
        raise ValueError(f"Index of refraction must be >= 1.0, got {ior}")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def scatter_dielectric_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
) -> ScatterRecord:
    """Scatter using the index of refraction stored at ``material_idx``."""
    return scatter_dielectric(
        dielectric_iors[material_idx], incident_direction, normal, front_face, stream
    )

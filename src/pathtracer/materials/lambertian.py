"""Lambertian (ideal diffuse) material implementation.

The Lambertian BRDF is constant, albedo / pi. Scattering hands the
integrator a cosine-weighted density around the surface normal,

    pdf(wi) = cos(theta) / pi

and the scattering density the integrator weighs samples with is the same
expression evaluated for whichever direction was actually sampled (it may
have come from light sampling instead).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.lambertian import add_lambertian_material
    >>> red = add_lambertian_material((0.65, 0.05, 0.05))
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.core.pdf import make_cosine_pdf
from pathtracer.materials.scatter_record import ScatterRecord, make_pdf_record

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3) -> ScatterRecord:
    """Scatter off a diffuse surface.

    Args:
        albedo: The diffuse reflectance color (RGB).
        normal: The surface normal at the hit point, facing the incoming ray.

    Returns:
        A ScatterRecord with attenuation albedo and a cosine density.
    """
    return make_pdf_record(albedo, make_cosine_pdf(normal))


@ti.func
def pdf_lambertian(normal: vec3, scattered_direction: vec3) -> ti.f32:
    """Scattering density max(0, cos theta) / pi of a direction.

    Args:
        normal: The surface normal (unit length).
        scattered_direction: The scattered direction (need not be unit length).

    Returns:
        The density; zero for directions below the surface.
    """
    cos_theta = tm.dot(normal, tm.normalize(scattered_direction))
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 256

lambertian_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials."""
    num_lambertian_materials[None] = 0


def add_lambertian_material(albedo: Sequence[float]) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        albedo: The diffuse reflectance color as (R, G, B).

    Returns:
        The index of the added material within the Lambertian table.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def scatter_lambertian_by_id(material_idx: ti.i32, normal: vec3) -> ScatterRecord:
    """Scatter using the albedo stored at ``material_idx``."""
    return scatter_lambertian(lambertian_albedos[material_idx], normal)

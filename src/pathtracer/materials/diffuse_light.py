"""Diffuse area light material.

An emitter radiates its color from the front face of the surface it is
attached to and never scatters. The back face is black, so a ceiling light
whose normal points down lights the room without glowing into the attic.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.diffuse_light import add_diffuse_light_material
    >>> lamp = add_diffuse_light_material((15.0, 15.0, 15.0))
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

MAX_DIFFUSE_LIGHT_MATERIALS = 256

diffuse_light_emission = ti.Vector.field(3, dtype=ti.f32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
num_diffuse_light_materials = ti.field(dtype=ti.i32, shape=())


@ti.func
def emitted_diffuse_light(material_idx: ti.i32, front_face: ti.i32) -> vec3:
    """Emitted radiance: the light's color on the front face, black behind."""
    result = vec3(0.0, 0.0, 0.0)
    if front_face == 1:
        result = diffuse_light_emission[material_idx]
    return result


def clear_diffuse_light_materials() -> None:
    """Clear all diffuse light materials."""
    num_diffuse_light_materials[None] = 0


def add_diffuse_light_material(emission: Sequence[float]) -> int:
    """Add an emitter to the material registry.

    Args:
        emission: Emitted radiance as (R, G, B). Values above 1 are allowed.

    Returns:
        The index of the added material within the diffuse light table.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any emission component is negative.
    """
    for i, component in enumerate(emission):
        if component < 0.0:
            raise ValueError(f"Emission component {i} = {component} is negative")

    idx = num_diffuse_light_materials[None]
    if idx >= MAX_DIFFUSE_LIGHT_MATERIALS:
        raise RuntimeError(
            f"Maximum number of diffuse light materials ({MAX_DIFFUSE_LIGHT_MATERIALS}) exceeded"
        )

    diffuse_light_emission[idx] = vec3(emission[0], emission[1], emission[2])
    num_diffuse_light_materials[None] = idx + 1
    return idx


def get_diffuse_light_material_count() -> int:
    return int(num_diffuse_light_materials[None])

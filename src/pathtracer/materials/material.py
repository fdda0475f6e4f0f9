"""Material registry and dispatch.

Material ids form one space across all material types. The registry maps a
material id to its type and to its index in that type's parameter table,
and the dispatch functions below route each query to the right type:

    material_emitted(material_id, front_face, u, v, point)
    material_scatter(material_id, ray_direction, normal, front_face, stream)
    material_scattering_pdf(material_id, normal, scattered_direction)

An id that is not registered is black: it emits nothing and absorbs every
ray.
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.materials.dielectric import clear_dielectric_materials, scatter_dielectric_by_id
from pathtracer.materials.diffuse_light import (
    clear_diffuse_light_materials,
    emitted_diffuse_light,
)
from pathtracer.materials.lambertian import (
    clear_lambertian_materials,
    pdf_lambertian,
    scatter_lambertian_by_id,
)
from pathtracer.materials.metal import clear_metal_materials, scatter_metal_by_id
from pathtracer.materials.scatter_record import ScatterRecord, make_absorbed_record

vec3 = tm.vec3


class MaterialType(IntEnum):
    """Enumeration of supported material types, used for dispatch."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    DIFFUSE_LIGHT = 3


# Maximum number of materials across all types
MAX_MATERIALS = 1024

# material_types[i] stores the MaterialType of material id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the index of material id i in its type's table
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def register_material(material_type: MaterialType, type_index: int) -> int:
    """Assign a material id to an entry of a type-specific table.

    Returns:
        The new material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    material_types[idx] = int(material_type)
    material_type_indices[idx] = type_index
    num_materials[None] = idx + 1
    return idx


def clear_material_registry() -> None:
    """Clear the id registry and every type-specific table."""
    num_materials[None] = 0
    clear_lambertian_materials()
    clear_metal_materials()
    clear_dielectric_materials()
    clear_diffuse_light_materials()


def get_material_count() -> int:
    return int(num_materials[None])


def get_material_type_host(material_id: int) -> MaterialType:
    """Look up the type of a material id from Python scope.

    Raises:
        ValueError: If the id is not registered.
    """
    if material_id < 0 or material_id >= num_materials[None]:
        raise ValueError(f"Invalid material id {material_id}")
    return MaterialType(int(material_types[material_id]))


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Material type of an id, or -1 for unregistered ids."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Index of an id in its type's table, or -1 for unregistered ids."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@ti.func
def material_emitted(
    material_id: ti.i32,
    front_face: ti.i32,
    u: ti.f32,
    v: ti.f32,
    point: vec3,
) -> vec3:
    """Radiance emitted at a hit point; black for non-emitters.

    Surface coordinates and the hit point are part of the interface for
    textured emitters; the shipped emitter is uniform.
    """
    emission = vec3(0.0, 0.0, 0.0)
    if get_material_type(material_id) == int(MaterialType.DIFFUSE_LIGHT):
        emission = emitted_diffuse_light(get_material_type_index(material_id), front_face)
    return emission


@ti.func
def material_scatter(
    material_id: ti.i32,
    ray_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
) -> ScatterRecord:
    """Scatter a ray arriving along ``ray_direction`` at a hit.

    Args:
        material_id: The material id of the hit surface.
        ray_direction: Direction of the incoming ray.
        normal: Unit normal at the hit, facing the incoming ray.
        front_face: 1 if the outward side was struck.
        stream: Random stream index.

    Returns:
        The ScatterRecord; did_scatter is 0 for emitters and unknown ids.
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)

    result = make_absorbed_record()

    if mat_type == int(MaterialType.LAMBERTIAN):
        result = scatter_lambertian_by_id(type_index, normal)
    elif mat_type == int(MaterialType.METAL):
        result = scatter_metal_by_id(type_index, ray_direction, normal, stream)
    elif mat_type == int(MaterialType.DIELECTRIC):
        result = scatter_dielectric_by_id(type_index, ray_direction, normal, front_face, stream)

    return result


@ti.func
def material_scattering_pdf(material_id: ti.i32, normal: vec3, scattered_direction: vec3) -> ti.f32:
    """Density with which the material itself scatters into a direction.

    Only diffuse materials have one; specular materials skip density
    sampling and report zero.
    """
    density = 0.0
    if get_material_type(material_id) == int(MaterialType.LAMBERTIAN):
        density = pdf_lambertian(normal, scattered_direction)
    return density

"""Scene manager coordinating surfaces, materials and lights.

This module provides a high-level scene management API on top of the
instance table and the material registry. It:

- Registers materials and hands out unified material ids
- Flattens surface trees (lists, boxes, translate / rotate-Y wrappers) into
  instances
- Maintains the light list, sharing instances between the drawn scene and
  the light list when the same surface is added to both

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.manager import SceneManager
    >>> from pathtracer.scene.surfaces import PlanarSurface
    >>> scene = SceneManager()
    >>> white = scene.add_lambertian_material(albedo=(0.73, 0.73, 0.73))
    >>> lamp = scene.add_diffuse_light_material(emission=(15.0, 15.0, 15.0))
    >>> light = PlanarSurface.quad((-1, 2, -1), (2, 0, 0), (0, 0, 2), material_id=lamp)
    >>> scene.add(light)
    >>> scene.add_light(light)
"""

import logging
from dataclasses import dataclass
from typing import Any

from pathtracer.geometry.transform import TransformKind
from pathtracer.materials.dielectric import add_dielectric_material
from pathtracer.materials.diffuse_light import add_diffuse_light_material
from pathtracer.materials.lambertian import add_lambertian_material
from pathtracer.materials.material import (
    MAX_MATERIALS,
    MaterialType,
    clear_material_registry,
    register_material,
)
from pathtracer.materials.metal import add_metal_material
from pathtracer.scene import instances
from pathtracer.scene.surfaces import (
    Leaf,
    PlanarSurface,
    RotateY,
    SphereSurface,
    Surface,
    Translate,
    flatten,
    has_leaves,
)

logger = logging.getLogger(__name__)


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material.
        type_index: The index within the type-specific material array.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


def _transform_entry(wrapper: Surface) -> tuple:
    if isinstance(wrapper, Translate):
        return (TransformKind.TRANSLATE, wrapper.offset)
    if isinstance(wrapper, RotateY):
        return (TransformKind.ROTATE_Y, wrapper.sin_theta, wrapper.cos_theta)
    raise TypeError(f"{type(wrapper).__name__} is not a transform")


class SceneManager:
    """Unified scene manager coordinating surfaces, materials and lights.

    Creating a manager clears the global scene and material registries; there
    is one scene at a time.

    Attributes:
        materials: MaterialInfo for every registered material, by id.
        surfaces: Surfaces added with ``add``, in order.
        lights: Surfaces added with ``add_light``, in order.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_lambertian_material(albedo=(0.65, 0.05, 0.05))
        >>> scene.add(SphereSurface((0, 0, -1), 0.5), material_id=red)
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[MaterialInfo] = []
        self.surfaces: list[Surface] = []
        self.lights: list[Surface] = []
        self._instances: dict[tuple[int, ...], int] = {}
        self._light_entries: list[list[tuple[int, float]]] = []
        self._light_slots: list[list[int]] = []
        self._clear_all()

    def _clear_all(self) -> None:
        instances.clear_scene()
        clear_material_registry()
        self.materials.clear()
        self.surfaces.clear()
        self.lights.clear()
        self._instances.clear()
        self._light_entries.clear()
        self._light_slots.clear()

    def clear(self) -> None:
        """Clear the entire scene (surfaces, lights and materials)."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register(
        self, material_type: MaterialType, type_index: int, params: dict[str, Any]
    ) -> int:
        material_id = register_material(material_type, type_index)
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(self, albedo: tuple[float, float, float]) -> int:
        """Add a Lambertian (diffuse) material to the scene.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any albedo component is outside [0, 1].
        """
        type_index = add_lambertian_material(albedo)
        return self._register(MaterialType.LAMBERTIAN, type_index, {"albedo": albedo})

    def add_metal_material(self, albedo: tuple[float, float, float], fuzz: float = 0.0) -> int:
        """Add a metal material to the scene.

        Args:
            albedo: The reflective color as (R, G, B).
            fuzz: Perturbation radius; values above 1 are clamped to 1.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any albedo component is outside [0, 1] or fuzz is
                negative.
        """
        type_index = add_metal_material(albedo, fuzz)
        return self._register(MaterialType.METAL, type_index, {"albedo": albedo, "fuzz": fuzz})

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a dielectric (glass/water) material to the scene.

        Args:
            ior: Index of refraction. Default is 1.5 (typical glass).

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If IOR is less than 1.0.
        """
        type_index = add_dielectric_material(ior)
        return self._register(MaterialType.DIELECTRIC, type_index, {"ior": ior})

    def add_diffuse_light_material(self, emission: tuple[float, float, float]) -> int:
        """Add an emitter to the scene.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any emission component is negative.
        """
        type_index = add_diffuse_light_material(emission)
        return self._register(MaterialType.DIFFUSE_LIGHT, type_index, {"emission": emission})

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return len(self.materials)

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def _check_material(self, material_id: int | None, leaf: Leaf) -> int:
        if material_id is None:
            raise ValueError(f"No material assigned to {leaf.surface!r}")
        if material_id < 0 or material_id >= len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")
        return material_id

    # =========================================================================
    # Surfaces
    # =========================================================================

    def _create_instance(self, leaf: Leaf, material_id: int, renderable: bool) -> int:
        surface = leaf.surface
        if isinstance(surface, SphereSurface):
            kind = instances.InstanceKind.SPHERE
            primitive = instances.add_sphere(surface.center, surface.radius)
        elif isinstance(surface, PlanarSurface):
            kind = instances.InstanceKind.PLANAR
            primitive = instances.add_planar(
                surface.q,
                surface.u,
                surface.v,
                surface.normal,
                surface.d,
                surface.w,
                surface.area,
                surface.shape,
            )
        else:
            raise TypeError(f"Cannot instance {type(surface).__name__}")

        bbox = leaf.world_bounding_box()
        index = instances.add_instance(
            kind,
            primitive,
            material_id,
            bbox.minimum,
            bbox.maximum,
            transforms=[_transform_entry(wrapper) for wrapper in leaf.chain],
            renderable=renderable,
        )
        self._instances[leaf.key()] = index
        return index

    def add(self, surface: Surface, material_id: int | None = None) -> list[int]:
        """Add a surface (or a whole surface tree) to the drawn scene.

        Leaves without a material of their own take ``material_id``. A leaf
        that was already added as a light becomes visible, sharing the
        light's instance.

        Args:
            surface: Sphere, planar shape, list, box or wrapped surface.
            material_id: Default material for leaves that have none.

        Returns:
            Instance indices of the surface's leaves.

        Raises:
            ValueError: If a leaf ends up without a valid material.
            RuntimeError: If a registry capacity is exceeded.
        """
        result = []
        for leaf in flatten(surface, material_id=material_id):
            leaf_material = self._check_material(leaf.material_id, leaf)
            index = self._instances.get(leaf.key())
            if index is None:
                index = self._create_instance(leaf, leaf_material, renderable=True)
            else:
                instances.set_renderable(index, True)
                instances.set_instance_material(index, leaf_material)
            result.append(index)

        self.surfaces.append(surface)
        logger.debug(
            "Added %s as %d instance(s); scene has %d instances",
            type(surface).__name__,
            len(result),
            instances.get_instance_count(),
        )
        return result

    def add_light(self, surface: Surface) -> list[int]:
        """Add a surface (or surface tree) to the light list.

        The light list behaves like one surface list: each surface added
        here is picked with equal probability, and a tree's leaves split
        their surface's share evenly at every list level. Leaves that are
        not drawn yet become sampling-only instances. A tree without
        leaves is ignored and takes no share.

        Returns:
            Light list indices of the surface's leaves.

        Raises:
            RuntimeError: If a registry capacity is exceeded.
        """
        if not has_leaves(surface):
            logger.debug("Ignoring light %s without leaves", type(surface).__name__)
            return []

        entries = []
        slots = []
        for leaf in flatten(surface):
            index = self._instances.get(leaf.key())
            if index is None:
                material = -1 if leaf.material_id is None else leaf.material_id
                index = self._create_instance(leaf, material, renderable=False)
            entries.append((index, leaf.weight))
            slots.append(instances.add_light(index, 0.0))

        self.lights.append(surface)
        self._light_entries.append(entries)
        self._light_slots.append(slots)
        self._rebalance_lights()
        logger.debug(
            "Added light %s with %d leaf/leaves; %d light entries",
            type(surface).__name__,
            len(entries),
            instances.get_light_count(),
        )
        return slots

    def _rebalance_lights(self) -> None:
        share = 1.0 / len(self._light_entries)
        for entries, slots in zip(self._light_entries, self._light_slots):
            for (_, weight), slot in zip(entries, slots):
                instances.set_light_weight(slot, share * weight)

    # =========================================================================
    # Convenience Methods
    # =========================================================================

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere to the drawn scene; returns its instance index."""
        return self.add(SphereSurface(center, radius), material_id)[0]

    def add_quad(
        self,
        corner: tuple[float, float, float],
        edge_u: tuple[float, float, float],
        edge_v: tuple[float, float, float],
        material_id: int,
    ) -> int:
        """Add a quad (parallelogram) to the drawn scene; returns its instance index."""
        return self.add(PlanarSurface.quad(corner, edge_u, edge_v), material_id)[0]

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_instance_count(self) -> int:
        return instances.get_instance_count()

    def get_light_count(self) -> int:
        """Number of entries in the light list (one per light leaf)."""
        return instances.get_light_count()

    def get_renderable_count(self) -> int:
        return sum(int(instances.instance_renderable[i]) for i in range(self.get_instance_count()))

    @staticmethod
    def get_max_instances() -> int:
        return instances.MAX_INSTANCES

    @staticmethod
    def get_max_materials() -> int:
        return MAX_MATERIALS

"""Cornell box scene configuration.

This module provides a factory function to create the classic Cornell box scene,
a standard test scene used in computer graphics for evaluating global illumination
algorithms.

The Cornell box consists of:
- 5 walls forming an open box (left, right, back, floor, ceiling)
- Left wall: green diffuse, right wall: red diffuse
- Back, floor, ceiling: white diffuse
- A tall white box rotated 15 degrees about the vertical axis
- A glass sphere
- Area light on the ceiling (emissive quad)

Both the ceiling light and the glass sphere are registered as lights, so
bounce directions are sampled toward them as well as from the materials.

The box spans 0 to 555 in each dimension with the camera positioned outside
looking in through the open front.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.cornell_box import create_cornell_box_scene
    >>> from pathtracer.core.render import Renderer
    >>>
    >>> scene, config = create_cornell_box_scene()
    >>> image = Renderer(config).render(seed=1)
"""

from dataclasses import dataclass

from pathtracer.camera.camera import CameraConfig
from pathtracer.scene.manager import SceneManager
from pathtracer.scene.surfaces import PlanarSurface, RotateY, SphereSurface, Translate, box


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    All parameters have defaults matching the classic configuration.

    Attributes:
        light_intensity: Emitted radiance of the ceiling light, per channel.
        light_color: RGB tint of the light, multiplied by the intensity.
        left_wall_color: RGB albedo of the left wall (green).
        right_wall_color: RGB albedo of the right wall (red).
        white_color: RGB albedo of back wall, floor, ceiling and the box.
        glass_ior: Index of refraction of the sphere.
        box_angle: Rotation of the tall box about +Y, degrees.
        sample_glass_sphere: Whether the glass sphere is also sampled as a
            light, in addition to the ceiling light.

    Example:
        >>> params = CornellBoxParams(light_intensity=20.0, glass_ior=1.33)
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    right_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    white_color: tuple[float, float, float] = (0.73, 0.73, 0.73)
    glass_ior: float = 1.5
    box_angle: float = 15.0
    sample_glass_sphere: bool = True


# Classic Cornell box dimensions
BOX_SIZE = 555.0


def cornell_box_camera(
    image_width: int = 600,
    samples_per_pixel: int = 100,
    max_depth: int = 50,
) -> CameraConfig:
    """Camera looking into the open front of the box."""
    return CameraConfig(
        aspect_ratio=1.0,
        image_width=image_width,
        samples_per_pixel=samples_per_pixel,
        max_depth=max_depth,
        background=(0.0, 0.0, 0.0),
        vfov=40.0,
        lookfrom=(278.0, 278.0, -800.0),
        lookat=(278.0, 278.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        defocus_angle=0.0,
    )


def create_cornell_box_scene(
    params: CornellBoxParams | None = None,
    image_width: int = 600,
    samples_per_pixel: int = 100,
    max_depth: int = 50,
) -> tuple[SceneManager, CameraConfig]:
    """Create the Cornell box scene.

    The coordinate system places the box origin at (0, 0, 0) with:
    - X-axis: right to left as seen from the camera (0 to 555)
    - Y-axis: floor to ceiling (0 to 555)
    - Z-axis: front to back (0 to 555), camera looks toward +Z

    Args:
        params: Optional CornellBoxParams; defaults to CornellBoxParams().
        image_width: Image width of the returned camera configuration.
        samples_per_pixel: Samples per pixel of the returned configuration.
        max_depth: Path depth of the returned configuration.

    Returns:
        A tuple of (SceneManager, CameraConfig).

    Example:
        >>> scene, config = create_cornell_box_scene(image_width=100)
        >>> scene.get_light_count()
        2
    """
    if params is None:
        params = CornellBoxParams()

    scene = SceneManager()
    red = scene.add_lambertian_material(params.right_wall_color)
    white = scene.add_lambertian_material(params.white_color)
    green = scene.add_lambertian_material(params.left_wall_color)
    light = scene.add_diffuse_light_material(
        tuple(params.light_intensity * c for c in params.light_color)
    )
    glass = scene.add_dielectric_material(params.glass_ior)

    s = BOX_SIZE
    scene.add(PlanarSurface.quad((s, 0, 0), (0, s, 0), (0, 0, s)), green)
    scene.add(PlanarSurface.quad((0, 0, 0), (0, s, 0), (0, 0, s)), red)
    scene.add(PlanarSurface.quad((0, 0, 0), (s, 0, 0), (0, 0, s)), white)
    scene.add(PlanarSurface.quad((s, s, s), (-s, 0, 0), (0, 0, -s)), white)
    scene.add(PlanarSurface.quad((0, 0, s), (s, 0, 0), (0, s, 0)), white)

    # Normal points down into the box
    ceiling_light = PlanarSurface.quad((343, 554, 332), (-130, 0, 0), (0, 0, -105))
    scene.add(ceiling_light, light)

    tall_box = box((0, 0, 0), (165, 330, 165), white)
    scene.add(Translate(RotateY(tall_box, params.box_angle), (265, 0, 295)))

    sphere = SphereSurface((190, 90, 190), 90)
    scene.add(sphere, glass)

    scene.add_light(ceiling_light)
    if params.sample_glass_sphere:
        scene.add_light(sphere)

    config = cornell_box_camera(image_width, samples_per_pixel, max_depth)
    return scene, config

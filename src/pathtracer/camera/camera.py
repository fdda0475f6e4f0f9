"""Thin-lens camera with stratified pixel sampling.

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport sits on the plane of perfect focus, ``focus_dist`` in front of
the camera center. Pixel (0, 0) is the top-left pixel; i grows to the right
and j grows downward.

Each pixel is divided into a sqrt_spp x sqrt_spp grid of strata and one
jittered sample is taken per stratum, so ``samples_per_pixel`` is rounded
down to a perfect square. With a positive ``defocus_angle`` ray origins are
spread over a disk around the camera center, which blurs everything off
the focus plane.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.camera.camera import CameraConfig, setup_camera
    >>> state = setup_camera(CameraConfig(image_width=200, vfov=40.0))
    >>> state.image_height
    200
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, make_ray, random_in_unit_disk
from pathtracer.core.rng import random_float

vec3 = tm.vec3

# Largest image the preallocated render buffers and random streams can hold
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048


# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class CameraConfig:
    """Configuration of the camera and of the render it drives.

    Attributes:
        aspect_ratio: Ratio of image width over height.
        vfov: Vertical field of view in degrees.
        image_width: Rendered image width in pixels.
        samples_per_pixel: Samples per pixel; rounded down to a perfect square.
        max_depth: Maximum number of path vertices per sample.
        background: Radiance returned by rays that escape the scene.
        lookfrom: Camera position.
        lookat: Point the camera looks at.
        vup: Camera-relative up direction.
        defocus_angle: Variation angle of rays through each pixel, degrees.
        focus_dist: Distance from lookfrom to the plane of perfect focus.
    """

    aspect_ratio: float = 1.0
    vfov: float = 90.0
    image_width: int = 100
    samples_per_pixel: int = 10
    max_depth: int = 10
    background: tuple[float, float, float] = (0.0, 0.0, 0.0)
    lookfrom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    lookat: tuple[float, float, float] = (0.0, 0.0, -1.0)
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    defocus_angle: float = 0.0
    focus_dist: float = 10.0


@dataclass
class CameraState:
    """Derived camera geometry, computed by ``setup_camera``."""

    image_width: int
    image_height: int
    sqrt_spp: int
    pixel_samples_scale: float
    center: np.ndarray
    pixel00_loc: np.ndarray
    pixel_delta_u: np.ndarray
    pixel_delta_v: np.ndarray
    u: np.ndarray
    v: np.ndarray
    w: np.ndarray
    defocus_disk_u: np.ndarray
    defocus_disk_v: np.ndarray

    @property
    def samples_per_pixel(self) -> int:
        """Samples actually taken per pixel (sqrt_spp squared)."""
        return self.sqrt_spp * self.sqrt_spp


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_center = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel00_loc = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel_delta_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel_delta_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_disk_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_disk_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_angle = ti.field(dtype=ti.f32, shape=())
_recip_sqrt_spp = ti.field(dtype=ti.f32, shape=())


def _unit(v: np.ndarray) -> np.ndarray:
    return v / np.linalg.norm(v)


def compute_camera_state(config: CameraConfig) -> CameraState:
    """Derive the camera geometry from a configuration (no Taichi access).

    Raises:
        ValueError: If the image width is not positive or the image exceeds
            MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT.
    """
    image_width = int(config.image_width)
    if image_width < 1:
        raise ValueError(f"Image width must be positive, got {image_width}")
    image_height = max(1, int(image_width / config.aspect_ratio))
    if image_width > MAX_IMAGE_WIDTH or image_height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({image_width}x{image_height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    sqrt_spp = max(1, int(math.sqrt(max(config.samples_per_pixel, 0))))

    center = np.array(config.lookfrom, dtype=np.float64)
    lookat = np.array(config.lookat, dtype=np.float64)
    vup = np.array(config.vup, dtype=np.float64)

    theta = math.radians(config.vfov)
    h = math.tan(theta / 2.0)
    viewport_height = 2.0 * h * config.focus_dist
    viewport_width = viewport_height * (image_width / image_height)

    w = _unit(center - lookat)
    u = _unit(np.cross(vup, w))
    v = np.cross(w, u)

    # Across the horizontal edge, and down the vertical edge
    viewport_u = viewport_width * u
    viewport_v = viewport_height * -v

    pixel_delta_u = viewport_u / image_width
    pixel_delta_v = viewport_v / image_height

    viewport_upper_left = center - config.focus_dist * w - viewport_u / 2.0 - viewport_v / 2.0
    pixel00_loc = viewport_upper_left + 0.5 * (pixel_delta_u + pixel_delta_v)

    defocus_radius = config.focus_dist * math.tan(math.radians(config.defocus_angle / 2.0))

    return CameraState(
        image_width=image_width,
        image_height=image_height,
        sqrt_spp=sqrt_spp,
        pixel_samples_scale=1.0 / (sqrt_spp * sqrt_spp),
        center=center,
        pixel00_loc=pixel00_loc,
        pixel_delta_u=pixel_delta_u,
        pixel_delta_v=pixel_delta_v,
        u=u,
        v=v,
        w=w,
        defocus_disk_u=u * defocus_radius,
        defocus_disk_v=v * defocus_radius,
    )


def setup_camera(config: CameraConfig) -> CameraState:
    """Compute the camera geometry and upload it for ray generation.

    Must be called before rendering, from Python scope.

    Returns:
        The derived CameraState.
    """
    state = compute_camera_state(config)

    _center[None] = state.center.tolist()
    _pixel00_loc[None] = state.pixel00_loc.tolist()
    _pixel_delta_u[None] = state.pixel_delta_u.tolist()
    _pixel_delta_v[None] = state.pixel_delta_v.tolist()
    _defocus_disk_u[None] = state.defocus_disk_u.tolist()
    _defocus_disk_v[None] = state.defocus_disk_v.tolist()
    _defocus_angle[None] = config.defocus_angle
    _recip_sqrt_spp[None] = 1.0 / state.sqrt_spp

    return state


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def sample_square_stratified(s_i: ti.i32, s_j: ti.i32, stream: ti.i32) -> vec3:
    """Random offset inside sub-pixel (s_i, s_j) of the unit pixel [-.5, .5]^2."""
    recip = _recip_sqrt_spp[None]
    px = (ti.cast(s_i, ti.f32) + random_float(stream)) * recip - 0.5
    py = (ti.cast(s_j, ti.f32) + random_float(stream)) * recip - 0.5
    return vec3(px, py, 0.0)


@ti.func
def defocus_disk_sample(stream: ti.i32) -> vec3:
    """Random point on the defocus disk around the camera center."""
    p = random_in_unit_disk(stream)
    return _center[None] + p.x * _defocus_disk_u[None] + p.y * _defocus_disk_v[None]


@ti.func
def get_ray(i: ti.i32, j: ti.i32, s_i: ti.i32, s_j: ti.i32, stream: ti.i32) -> Ray:
    """Generate a camera ray for stratum (s_i, s_j) of pixel (i, j).

    The ray starts at the camera center (or on the defocus disk) and points
    at a jittered location inside the stratum. The direction is not
    normalized.

    Args:
        i: Pixel column (0 = left).
        j: Pixel row (0 = top).
        s_i: Stratum column in [0, sqrt_spp).
        s_j: Stratum row in [0, sqrt_spp).
        stream: Random stream index.
    """
    offset = sample_square_stratified(s_i, s_j, stream)
    pixel_sample = (
        _pixel00_loc[None]
        + (ti.cast(i, ti.f32) + offset.x) * _pixel_delta_u[None]
        + (ti.cast(j, ti.f32) + offset.y) * _pixel_delta_v[None]
    )

    origin = _center[None]
    if _defocus_angle[None] > 0.0:
        origin = defocus_disk_sample(stream)

    return make_ray(origin, pixel_sample - origin)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get the uploaded camera state for debugging.

    Returns:
        Dictionary with center, pixel00_loc, pixel_delta_u, pixel_delta_v,
        defocus_disk_u and defocus_disk_v.
    """
    fields = {
        "center": _center,
        "pixel00_loc": _pixel00_loc,
        "pixel_delta_u": _pixel_delta_u,
        "pixel_delta_v": _pixel_delta_v,
        "defocus_disk_u": _defocus_disk_u,
        "defocus_disk_v": _defocus_disk_v,
    }
    info = {}
    for name, value in fields.items():
        vec = value[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info

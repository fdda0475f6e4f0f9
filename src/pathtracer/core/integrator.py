"""Path tracing integrator for Monte Carlo light transport.

This module implements the radiance estimator and the parallel render
kernel.

At every path vertex the estimator adds the surface's emission and asks the
material to scatter. Specular materials hand back a fixed continuation
direction. Diffuse materials hand back a density, which is mixed 50/50 with
a density aimed at the scene's lights (multiple importance sampling); the
continuation direction is drawn from the mixture and its contribution is
weighted by

    attenuation * scattering_pdf(direction) / mixture_pdf(direction)

Taichi functions cannot recurse, so the path is an explicit loop carrying
the current ray and the product of the weights so far (the throughput).
A path runs for at most ``max_depth`` vertices; a ray that is still
bouncing when the depth runs out contributes nothing more.

Key features:
    - Material dispatch (Lambertian, Metal, Dielectric, DiffuseLight)
    - Mixture sampling of lights and materials
    - Stratified pixel sampling with per-pixel random streams
    - NaN/Inf sample rejection

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.integrator import render_rows, setup_render_target
    >>> from pathtracer.camera.camera import CameraConfig, setup_camera
    >>> state = setup_camera(CameraConfig(image_width=64))
    >>> setup_render_target(state.image_width, state.image_height)
    >>> render_rows(0, state.image_height, seed=1)
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.camera.camera import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH, get_ray
from pathtracer.core.interval import INFINITY
from pathtracer.core.pdf import (
    MixturePdf,
    make_lights_pdf,
    mixture_generate,
    mixture_value,
    pdf_generate,
    pdf_value,
)
from pathtracer.core.rng import MAX_STREAMS, seed_stream
from pathtracer.materials.material import (
    material_emitted,
    material_scatter,
    material_scattering_pdf,
)
from pathtracer.scene.instances import has_lights, intersect_scene

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Lower end of the ray parameter window (avoids self-intersection)
T_MIN = 0.001

# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Pixel buffer indexed [i, j], j = 0 is the top row (preallocated to max size)
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())

# Render parameters
_max_depth = ti.field(dtype=ti.i32, shape=())
_background = ti.Vector.field(3, dtype=ti.f32, shape=())
_sqrt_spp = ti.field(dtype=ti.i32, shape=())
_pixel_samples_scale = ti.field(dtype=ti.f32, shape=())

# Single-sample results for render_single_sample
_sample_result = ti.Vector.field(3, dtype=ti.f32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffer.

    Sets the active image dimensions and clears the buffer. The buffer is
    preallocated to MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT so kernels are
    compiled once.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions ({width}x{height}) must be positive")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffer to zero."""
    _color_buffer.fill(0.0)


def reset_render_target() -> None:
    """Forget the render target, as if it had never been set up."""
    _render_target_initialized[None] = 0
    clear_render_target()


def set_render_params(
    max_depth: int = 10,
    background: tuple[float, float, float] = (0.0, 0.0, 0.0),
    sqrt_spp: int = 1,
) -> None:
    """Set the per-render parameters read by the render kernel.

    Args:
        max_depth: Maximum number of path vertices per sample.
        background: Radiance of rays that escape the scene.
        sqrt_spp: Strata per pixel side; sqrt_spp^2 samples per pixel.

    Raises:
        ValueError: If sqrt_spp is not positive.
    """
    if sqrt_spp < 1:
        raise ValueError(f"sqrt_spp must be positive, got {sqrt_spp}")
    _max_depth[None] = max_depth
    _background[None] = [background[0], background[1], background[2]]
    _sqrt_spp[None] = sqrt_spp
    _pixel_samples_scale[None] = 1.0 / (sqrt_spp * sqrt_spp)


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions.

    Returns:
        Tuple of (width, height).
    """
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def _is_finite(x: ti.f32) -> ti.i32:
    return not (tm.isnan(x) or tm.isinf(x))


@ti.func
def ray_color(origin: vec3, direction: vec3, max_depth: ti.i32, stream: ti.i32) -> vec3:
    """Estimate the radiance arriving along a ray.

    Args:
        origin: Ray origin.
        direction: Ray direction (need not be normalized).
        max_depth: Maximum number of path vertices; 0 or less gives black.
        stream: Random stream index.

    Returns:
        The estimated radiance (RGB) for this path sample.
    """
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    ray_origin = origin
    ray_direction = direction

    # Active flag for path continuation (no break inside ti.func loops)
    active = 1

    for _ in range(max_depth):
        if active == 1:
            rec = intersect_scene(ray_origin, ray_direction, T_MIN, INFINITY)

            if rec.hit == 0:
                radiance += throughput * _background[None]
                active = 0
            else:
                material_id = rec.material_id
                emitted = material_emitted(material_id, rec.front_face, rec.u, rec.v, rec.point)
                srec = material_scatter(
                    material_id, ray_direction, rec.normal, rec.front_face, stream
                )

                if srec.did_scatter == 0:
                    radiance += throughput * emitted
                    active = 0
                elif srec.skip_pdf == 1:
                    # Specular continuation; emission at this vertex is not counted
                    throughput *= srec.attenuation
                    ray_origin = rec.point
                    ray_direction = srec.skip_pdf_direction
                else:
                    radiance += throughput * emitted

                    scattered = vec3(1.0, 0.0, 0.0)
                    density = 0.0
                    if has_lights():
                        mixture = MixturePdf(first=make_lights_pdf(rec.point), second=srec.pdf)
                        scattered = mixture_generate(mixture, stream)
                        density = mixture_value(mixture, scattered)
                    else:
                        scattered = pdf_generate(srec.pdf, stream)
                        density = pdf_value(srec.pdf, scattered)

                    scattering_pdf = material_scattering_pdf(material_id, rec.normal, scattered)

                    if density > 0.0 and _is_finite(density) and scattering_pdf > 0.0:
                        throughput *= srec.attenuation * scattering_pdf / density
                        ray_origin = rec.point
                        ray_direction = scattered
                    else:
                        active = 0

    return radiance


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Zero NaN/Inf channels and clamp negative ones."""
    result = color
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]) or result[c] < 0.0:
            result[c] = 0.0
    return result


@ti.func
def render_pixel(i: ti.i32, j: ti.i32, width: ti.i32, seed: ti.u32) -> vec3:
    """Average of all stratified samples of pixel (i, j).

    The pixel's random stream is reseeded first, so the result depends only
    on the seed and the pixel, never on which thread renders it.
    """
    stream = j * width + i
    seed_stream(stream, seed)

    n = _sqrt_spp[None]
    depth = _max_depth[None]
    pixel_color = vec3(0.0, 0.0, 0.0)
    for s_j in range(n):
        for s_i in range(n):
            ray = get_ray(i, j, s_i, s_j, stream)
            pixel_color += _sanitize(ray_color(ray.origin, ray.direction, depth, stream))

    return pixel_color * _pixel_samples_scale[None]


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_rows(row_start: ti.i32, row_count: ti.i32, width: ti.i32, seed: ti.u32):
    """Render a band of rows, one parallel task per pixel."""
    for i, j in ti.ndrange(width, (row_start, row_start + row_count)):
        _color_buffer[i, j] = render_pixel(i, j, width, seed)


@ti.kernel
def _render_single_sample(
    i: ti.i32, j: ti.i32, s_i: ti.i32, s_j: ti.i32, width: ti.i32, seed: ti.u32
):
    # Single iteration keeps the inner loops serial
    for _ in range(1):
        stream = j * width + i
        seed_stream(stream, seed)
        ray = get_ray(i, j, s_i, s_j, stream)
        _sample_result[None] = _sanitize(
            ray_color(ray.origin, ray.direction, _max_depth[None], stream)
        )


# =============================================================================
# Public Rendering API
# =============================================================================


def render_rows(row_start: int, row_count: int, seed: int) -> None:
    """Render rows [row_start, row_start + row_count) into the buffer.

    Args:
        row_start: First row (0 = top).
        row_count: Number of rows.
        seed: Render seed, reduced modulo 2^32.

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If the rows fall outside the image.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    if row_start < 0 or row_count < 0 or row_start + row_count > height:
        raise ValueError(f"Rows [{row_start}, {row_start + row_count}) outside image of {height}")
    if width * height > MAX_STREAMS:
        raise ValueError(f"Image of {width}x{height} pixels exceeds {MAX_STREAMS} random streams")
    if row_count > 0:
        _render_rows(row_start, row_count, width, seed & 0xFFFFFFFF)


def render_single_sample(
    pixel_i: int, pixel_j: int, s_i: int = 0, s_j: int = 0, seed: int = 0
) -> tuple[float, float, float]:
    """Trace one stratified sample of one pixel.

    A Python-callable function for testing. For production rendering use
    render_rows(), which processes all pixels in parallel.

    Returns:
        Tuple of (R, G, B) color values.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    width, _ = get_image_dimensions()
    _render_single_sample(pixel_i, pixel_j, s_i, s_j, width, seed & 0xFFFFFFFF)
    color = _sample_result[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def get_image_numpy() -> np.ndarray:
    """Get the rendered image as a NumPy array.

    Returns:
        Linear radiance, shape (height, width, 3), dtype float32, row 0 on
        top.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()

    full_image = _color_buffer.to_numpy()
    image = full_image[:width, :height, :]

    # Transpose from (width, height, 3) to (height, width, 3) for standard image format
    image = np.transpose(image, (1, 0, 2))

    return np.ascontiguousarray(image, dtype=np.float32)

"""Renderer: host-side driver for a full image render.

This module provides a convenient wrapper around the integrator that:
- Uploads the camera and render parameters
- Renders the image in bands of rows, one parallel kernel launch per band
- Reports progress after every band
- Exposes the finished image and writes it to disk

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.render import Renderer
    >>> from pathtracer.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> scene, config = create_cornell_box_scene()
    >>> renderer = Renderer(config)
    >>> renderer.render(seed=7)
    >>> renderer.save_image("cornell.png")
"""

from __future__ import annotations

import logging
import os
import secrets
import time
from collections.abc import Callable, Generator
from typing import TextIO

import numpy as np
import numpy.typing as npt

from pathtracer.camera.camera import CameraConfig, CameraState, setup_camera
from pathtracer.core.integrator import (
    get_image_numpy,
    render_rows,
    set_render_params,
    setup_render_target,
)
from pathtracer.preview import export

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (rows_completed, total_rows)
ProgressCallback = Callable[[int, int], None]


class Renderer:
    """Renders a scene through a camera configuration.

    The scene itself lives in the instance and material registries; build it
    (for example with a SceneManager) before calling ``render``.

    Attributes:
        config: The camera configuration.
        state: Derived camera geometry, available after the first render.
    """

    def __init__(self, config: CameraConfig) -> None:
        self.config = config
        self.state: CameraState | None = None
        self.seed: int | None = None
        self._rows_completed = 0

    @property
    def width(self) -> int:
        """Get the image width."""
        return self._require_state().image_width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self._require_state().image_height

    @property
    def rows_completed(self) -> int:
        """Rows finished by the current or most recent render."""
        return self._rows_completed

    def _require_state(self) -> CameraState:
        if self.state is None:
            raise RuntimeError("Nothing rendered yet. Call render() first.")
        return self.state

    def _prepare(self, seed: int | None) -> int:
        self.state = setup_camera(self.config)
        setup_render_target(self.state.image_width, self.state.image_height)
        set_render_params(
            max_depth=self.config.max_depth,
            background=self.config.background,
            sqrt_spp=self.state.sqrt_spp,
        )
        self.seed = secrets.randbits(32) if seed is None else seed & 0xFFFFFFFF
        self._rows_completed = 0
        return self.seed

    def render_progressive(
        self,
        seed: int | None = None,
        rows_per_batch: int = 16,
    ) -> Generator[tuple[int, int], None, None]:
        """Render the image band by band, yielding progress after each band.

        Args:
            seed: Render seed. A fixed seed reproduces the image exactly;
                None draws a fresh one.
            rows_per_batch: Rows rendered per kernel launch.

        Yields:
            Tuple of (rows_completed, total_rows).

        Raises:
            ValueError: If rows_per_batch is not positive.
        """
        if rows_per_batch < 1:
            raise ValueError(f"rows_per_batch must be positive, got {rows_per_batch}")

        seed = self._prepare(seed)
        state = self._require_state()
        logger.info(
            "Rendering %dx%d, %d spp, max depth %d, seed %d",
            state.image_width,
            state.image_height,
            state.samples_per_pixel,
            self.config.max_depth,
            seed,
        )

        start = time.perf_counter()
        height = state.image_height
        for row_start in range(0, height, rows_per_batch):
            row_count = min(rows_per_batch, height - row_start)
            render_rows(row_start, row_count, seed)
            self._rows_completed = row_start + row_count
            yield (self._rows_completed, height)

        logger.info("Render finished in %.2fs", time.perf_counter() - start)

    def render(
        self,
        seed: int | None = None,
        rows_per_batch: int = 16,
        callback: ProgressCallback | None = None,
    ) -> npt.NDArray[np.float32]:
        """Render the whole image.

        Args:
            seed: Render seed; None draws a fresh one.
            rows_per_batch: Rows rendered per kernel launch.
            callback: Optional function called after each band with
                (rows_completed, total_rows).

        Returns:
            The linear image, shape (height, width, 3).

        Example:
            >>> def progress(done, total):
            ...     print(f"\\rProgress: {100 * done // total}%", end="")
            >>> image = renderer.render(seed=1, callback=progress)
        """
        for done, total in self.render_progressive(seed, rows_per_batch):
            if callback is not None:
                callback(done, total)
        return self.get_image_numpy()

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Get the linear image as a NumPy array of shape (height, width, 3)."""
        self._require_state()
        return get_image_numpy()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """Get the image gamma encoded to 8 bits per channel."""
        return export.image_to_uint8(self.get_image_numpy())

    def write_ppm(self, stream: TextIO) -> None:
        """Write the image as a PPM (P3) pixel stream."""
        export.write_ppm(self.get_image_numpy(), stream)

    def save_image(self, filepath: str | os.PathLike[str]) -> None:
        """Save the image as .ppm or .png, chosen by extension."""
        export.save_image(self.get_image_numpy(), filepath)
        logger.info("Wrote %s", os.fspath(filepath))

    def __repr__(self) -> str:
        size = "unrendered"
        if self.state is not None:
            size = f"{self.state.image_width}x{self.state.image_height}"
        return f"Renderer({size}, rows_completed={self._rows_completed})"

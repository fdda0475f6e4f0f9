"""Image export utilities for rendered images.

Rendered images are linear radiance. Export converts each channel to 8 bits
the same way for every format:

    1. NaN becomes 0
    2. gamma 2 encoding: sqrt(x) for x > 0, else 0
    3. clamp to [0, 0.999]
    4. int(256 * x)

Supported formats:
    - PPM (plain-text P3 pixel stream)
    - PNG (8-bit via Pillow)

Example:
    >>> import sys
    >>> from pathtracer.preview.export import write_ppm
    >>> write_ppm(renderer.get_image_numpy(), sys.stdout)
"""

from __future__ import annotations

import os
from typing import TextIO

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

# Upper clamp of a gamma-encoded channel before quantization
_CHANNEL_MAX = 0.999


def linear_to_gamma(image: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Gamma 2 encode linear values; NaN and non-positive values become 0."""
    linear = np.nan_to_num(np.asarray(image, dtype=np.float64), nan=0.0, posinf=np.inf)
    return np.sqrt(np.where(linear > 0.0, linear, 0.0))


def image_to_uint8(image: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to 8-bit channels.

    Args:
        image: Linear image array of shape (H, W, 3).

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.
    """
    encoded = np.clip(linear_to_gamma(image), 0.0, _CHANNEL_MAX)
    return (256.0 * encoded).astype(np.uint8)


def write_ppm(image: npt.ArrayLike, stream: TextIO) -> None:
    """Write an image as a plain PPM (P3) pixel stream.

    One ``r g b`` line per pixel, rows top to bottom, pixels left to right.

    Args:
        image: Linear image array of shape (H, W, 3), row 0 on top.
        stream: Text stream to write to.

    Raises:
        ValueError: If the image is not of shape (H, W, 3).
    """
    pixels = image_to_uint8(image)
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {pixels.shape}")

    height, width, _ = pixels.shape
    stream.write(f"P3\n{width} {height}\n255\n")
    for row in pixels:
        stream.write("".join(f"{r} {g} {b}\n" for r, g, b in row))


def save_ppm(image: npt.ArrayLike, filepath: str | os.PathLike[str]) -> None:
    """Save an image as a plain PPM file."""
    with open(filepath, "w", encoding="ascii") as f:
        write_ppm(image, f)


def save_png(image: npt.ArrayLike, filepath: str | os.PathLike[str]) -> None:
    """Save an image as an 8-bit PNG file.

    Args:
        image: Linear image array of shape (H, W, 3), row 0 on top.
        filepath: Output file path (should end in .png).
    """
    pil_image = PILImage.fromarray(image_to_uint8(image))
    pil_image.save(filepath)


def save_image(image: npt.ArrayLike, filepath: str | os.PathLike[str]) -> None:
    """Save an image, choosing the format from the file extension.

    Raises:
        ValueError: If the extension is neither .ppm nor .png.
    """
    extension = os.path.splitext(os.fspath(filepath))[1].lower()
    if extension == ".ppm":
        save_ppm(image, filepath)
    elif extension == ".png":
        save_png(image, filepath)
    else:
        raise ValueError(f"Unsupported image format '{extension}', expected .ppm or .png")


def compute_rmse(image_a: npt.ArrayLike, image_b: npt.ArrayLike) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    a = np.asarray(image_a, dtype=np.float64)
    b = np.asarray(image_b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Image shapes must match: {a.shape} vs {b.shape}")

    return float(np.sqrt(np.mean((a - b) ** 2)))

"""Image conversion and export (PPM pixel stream, PNG)."""

from .export import compute_rmse, image_to_uint8, linear_to_gamma, save_image, write_ppm

__all__ = [
    "compute_rmse",
    "image_to_uint8",
    "linear_to_gamma",
    "save_image",
    "write_ppm",
]

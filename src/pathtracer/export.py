"""Image export utilities for rendered images.

Images coming out of the renderer are already display-ready: each channel is
sqrt(clamp(mean, 0, 1)). These helpers quantize them to 8 bits and write
PNG files with Pillow.

Example:
    >>> from pathtracer.export import save_png
    >>> image = renderer.render()
    >>> save_png(image, "output.png")
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage


def image_to_uint8(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Quantize a [0, 1] float image to uint8.

    Each channel maps to ``int(256 * clamp(value, 0, 0.999))``.

    Args:
        image: Image array of shape (H, W, 3).

    Returns:
        8-bit image array of shape (H, W, 3).

    Raises:
        ValueError: If the array is not (H, W, 3).
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {image.shape}")

    clamped = np.clip(image.astype(np.float64), 0.0, 0.999)
    return (256.0 * clamped).astype(np.uint8)


def save_png(image: npt.NDArray[np.floating], filepath: str | Path) -> None:
    """Save a display-ready float image as an 8-bit RGB PNG.

    Args:
        image: Image array of shape (H, W, 3), row 0 at the top.
        filepath: Output file path (should end in .png).
    """
    pil_image = PILImage.fromarray(image_to_uint8(image))
    pil_image.save(filepath)


def load_png(filepath: str | Path) -> npt.NDArray[np.float32]:
    """Read an 8-bit image back as floats in [0, 1], shape (H, W, 3)."""
    with PILImage.open(filepath) as pil_image:
        data = np.asarray(pil_image.convert("RGB"), dtype=np.float32)
    return data / 255.0


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))

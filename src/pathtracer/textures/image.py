"""Image texture storage.

Images are decoded with Pillow, converted from sRGB to linear RGB with
NumPy, and copied into one shared texel arena. Each uploaded image gets a
slot recording where its texels start and its dimensions. Texels are stored
row by row from the top of the image.

Example:
    >>> pixels = load_image_linear("earthmap.jpg")
    >>> slot = add_image(pixels)
"""

from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage

from pathtracer.errors import SceneError

vec3 = tm.vec3

MAX_IMAGES = 32
MAX_TEXELS = 1 << 21

image_offsets = ti.field(dtype=ti.i32, shape=MAX_IMAGES)
image_widths = ti.field(dtype=ti.i32, shape=MAX_IMAGES)
image_heights = ti.field(dtype=ti.i32, shape=MAX_IMAGES)
image_texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_images = ti.field(dtype=ti.i32, shape=())
num_texels = ti.field(dtype=ti.i32, shape=())


def srgb_to_linear(values: npt.NDArray[np.floating]) -> npt.NDArray[np.float32]:
    """Convert sRGB-encoded values in [0, 1] to linear RGB."""
    values = np.asarray(values, dtype=np.float64)
    linear = np.where(
        values <= 0.04045,
        values / 12.92,
        ((values + 0.055) / 1.055) ** 2.4,
    )
    return linear.astype(np.float32)


def load_image_linear(path: str | Path) -> npt.NDArray[np.float32]:
    """Read an image file into a linear float32 array of shape (H, W, 3).

    Raises:
        SceneError: If the file cannot be opened or decoded.
    """
    try:
        with PILImage.open(path) as img:
            rgb = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
    except (OSError, ValueError) as e:
        raise SceneError(f"Failed to load image texture from {path}: {e}") from e
    return srgb_to_linear(rgb)


@ti.kernel
def _copy_texels(offset: ti.i32, height: ti.i32, width: ti.i32, pixels: ti.types.ndarray()):
    for row, col in ti.ndrange(height, width):
        image_texels[offset + row * width + col] = vec3(
            pixels[row, col, 0], pixels[row, col, 1], pixels[row, col, 2]
        )


def clear_images() -> None:
    """Forget all uploaded images."""
    num_images[None] = 0
    num_texels[None] = 0


def add_image(pixels: npt.ArrayLike) -> int:
    """Upload a linear RGB image into the texel arena.

    Args:
        pixels: Array of shape (H, W, 3) with linear values. An empty array
            (H or W equal to 0) is accepted and renders as solid cyan.

    Returns:
        The image slot index.

    Raises:
        ValueError: If pixels does not have shape (H, W, 3).
        RuntimeError: If the image or texel capacity is exceeded.
    """
    data = np.ascontiguousarray(pixels, dtype=np.float32)
    if data.ndim != 3 or data.shape[2] != 3:
        raise ValueError(f"Image pixels must have shape (H, W, 3), got {data.shape}")

    slot = num_images[None]
    if slot >= MAX_IMAGES:
        raise RuntimeError(f"Maximum number of image textures ({MAX_IMAGES}) exceeded")

    height, width = int(data.shape[0]), int(data.shape[1])
    offset = num_texels[None]
    if offset + height * width > MAX_TEXELS:
        raise RuntimeError(
            f"Image texture of {width}x{height} exceeds the remaining texel capacity "
            f"({MAX_TEXELS - offset} of {MAX_TEXELS})"
        )

    if height * width > 0:
        _copy_texels(offset, height, width, data)

    image_offsets[slot] = offset
    image_widths[slot] = width
    image_heights[slot] = height
    num_images[None] = slot + 1
    num_texels[None] = offset + height * width
    return slot


@ti.func
def sample_image(slot: ti.i32, u: ti.f32, v: ti.f32) -> vec3:
    """Nearest-texel lookup.

    u and v are clamped to [0, 1]; v = 1 is the top row of the image.
    Images with no texels return cyan.
    """
    width = image_widths[slot]
    height = image_heights[slot]
    color = vec3(0.0, 1.0, 1.0)

    if width > 0 and height > 0:
        uc = tm.clamp(u, 0.0, 1.0)
        vc = 1.0 - tm.clamp(v, 0.0, 1.0)
        i = ti.min(ti.cast(uc * width, ti.i32), width - 1)
        j = ti.min(ti.cast(vc * height, ti.i32), height - 1)
        color = image_texels[image_offsets[slot] + j * width + i]

    return color

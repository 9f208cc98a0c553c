"""Texture types, registry and device-side evaluation.

Host-side texture objects (:class:`SolidColor`, :class:`CheckerTexture`,
:class:`NoiseTexture`, :class:`ImageTexture`) are shared by reference between
materials. When a scene is uploaded each distinct texture object is
registered once in the Taichi fields below and referred to by its integer
id; :func:`texture_value` evaluates a texture id inside a kernel.

Checker textures reference two child texture ids. Nested checkers are
resolved with a bounded loop (no recursion on the device), so nesting depth
is limited to MAX_TEXTURE_NESTING.

Example:
    >>> even = SolidColor((0.2, 0.3, 0.1))
    >>> checker = CheckerTexture(0.32, even, (0.9, 0.9, 0.9))
    >>> tex_id = register_texture(checker, {})
"""

from collections.abc import Sequence
from enum import IntEnum
from pathlib import Path
from typing import Union

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.errors import SceneError
from pathtracer.textures.image import add_image, clear_images, load_image_linear, sample_image
from pathtracer.textures.perlin import add_perlin_table, clear_perlin_tables, perlin_turbulence

vec3 = tm.vec3

MAX_TEXTURES = 1024
MAX_TEXTURE_NESTING = 8

# Octaves of turbulence used by NoiseTexture
NOISE_TURBULENCE_DEPTH = 7


class TextureType(IntEnum):
    """Enumeration of supported texture types."""

    SOLID = 0
    CHECKER = 1
    NOISE = 2
    IMAGE = 3


# =============================================================================
# Host-side Texture Objects
# =============================================================================


def validate_color(value: Sequence[float], name: str = "color") -> tuple[float, float, float]:
    color = tuple(float(c) for c in value)
    if len(color) != 3:
        raise ValueError(f"{name} must have 3 components, got {value!r}")
    for i, c in enumerate(color):
        if c < 0.0 or not np.isfinite(c):
            raise ValueError(f"{name} component {i} = {c} must be finite and non-negative")
    return color  # type: ignore[return-value]


class Texture:
    """Base class for textures."""

    texture_type: TextureType


class SolidColor(Texture):
    """A constant color."""

    texture_type = TextureType.SOLID

    def __init__(self, color: Sequence[float]) -> None:
        self.color = validate_color(color)

    def __repr__(self) -> str:
        return f"SolidColor({self.color})"


ColorOrTexture = Union[Texture, Sequence[float]]


def as_texture(value: ColorOrTexture) -> Texture:
    """Return value itself if it is a Texture, else wrap a color in SolidColor."""
    if isinstance(value, Texture):
        return value
    return SolidColor(value)


class CheckerTexture(Texture):
    """3D checkerboard alternating between two textures.

    A point p uses ``even`` when floor(x/scale) + floor(y/scale) +
    floor(z/scale) is even, ``odd`` otherwise.

    Raises:
        ValueError: If scale is not positive.
    """

    texture_type = TextureType.CHECKER

    def __init__(self, scale: float, even: ColorOrTexture, odd: ColorOrTexture) -> None:
        if scale <= 0.0:
            raise ValueError(f"Checker scale must be positive, got {scale}")
        self.scale = float(scale)
        self.even = as_texture(even)
        self.odd = as_texture(odd)

    def __repr__(self) -> str:
        return f"CheckerTexture({self.scale}, {self.even!r}, {self.odd!r})"


class NoiseTexture(Texture):
    """Marble-like Perlin turbulence pattern.

    The color is 0.5 * (1 + sin(scale * z + 10 * turbulence(p))).

    Args:
        scale: Frequency of the pattern.
        seed: Seed for the Perlin tables; textures with equal seeds look the same.
    """

    texture_type = TextureType.NOISE

    def __init__(self, scale: float = 1.0, seed: int = 0) -> None:
        self.scale = float(scale)
        self.seed = int(seed)

    def __repr__(self) -> str:
        return f"NoiseTexture(scale={self.scale}, seed={self.seed})"


class ImageTexture(Texture):
    """Texture sampled from an image.

    Either a file path or an in-memory (H, W, 3) array of linear RGB values
    must be given. Files are decoded immediately so that a missing image is
    reported while the scene is being built.

    Raises:
        SceneError: If the image file cannot be read.
        ValueError: If neither or both of path and pixels are given, or the
            pixels do not have shape (H, W, 3).
    """

    texture_type = TextureType.IMAGE

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        pixels: npt.ArrayLike | None = None,
    ) -> None:
        if (path is None) == (pixels is None):
            raise ValueError("ImageTexture needs exactly one of path or pixels")
        self.path = None if path is None else Path(path)
        if path is not None:
            self.pixels = load_image_linear(path)
        else:
            self.pixels = np.asarray(pixels, dtype=np.float32)
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 3:
            raise ValueError(f"Image pixels must have shape (H, W, 3), got {self.pixels.shape}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def __repr__(self) -> str:
        source = str(self.path) if self.path is not None else "<array>"
        return f"ImageTexture({source}, {self.width}x{self.height})"


# =============================================================================
# Texture Registry (Taichi fields)
# =============================================================================

texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_children = ti.Vector.field(2, dtype=ti.i32, shape=MAX_TEXTURES)
texture_slots = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    """Clear all textures, including Perlin tables and image texels."""
    num_textures[None] = 0
    clear_perlin_tables()
    clear_images()


def get_texture_count() -> int:
    """Get the number of registered textures."""
    return int(num_textures[None])


def _add_texture_entry(
    texture_type: TextureType,
    color: Sequence[float] = (0.0, 0.0, 0.0),
    scale: float = 1.0,
    children: tuple[int, int] = (-1, -1),
    slot: int = -1,
) -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    texture_types[idx] = int(texture_type)
    texture_colors[idx] = vec3(color[0], color[1], color[2])
    texture_scales[idx] = scale
    texture_children[idx] = [children[0], children[1]]
    texture_slots[idx] = slot
    num_textures[None] = idx + 1
    return idx


def add_solid_texture(color: Sequence[float]) -> int:
    """Register a solid color texture.

    Returns:
        The texture id.

    Raises:
        ValueError: If a color component is negative or not finite.
        RuntimeError: If MAX_TEXTURES is exceeded.
    """
    return _add_texture_entry(TextureType.SOLID, color=validate_color(color))


def add_checker_texture(scale: float, even_id: int, odd_id: int) -> int:
    """Register a checker texture over two already registered textures.

    Raises:
        ValueError: If scale is not positive or a child id is unknown.
    """
    if scale <= 0.0:
        raise ValueError(f"Checker scale must be positive, got {scale}")
    count = num_textures[None]
    for child in (even_id, odd_id):
        if not 0 <= child < count:
            raise ValueError(f"Invalid child texture id {child}. Must be in [0, {count})")
    return _add_texture_entry(
        TextureType.CHECKER, scale=1.0 / scale, children=(even_id, odd_id)
    )


def add_noise_texture(scale: float, seed: int = 0) -> int:
    """Register a Perlin noise texture with its own gradient tables."""
    slot = add_perlin_table(seed)
    return _add_texture_entry(TextureType.NOISE, scale=scale, slot=slot)


def add_image_texture(pixels: npt.ArrayLike) -> int:
    """Register an image texture from linear (H, W, 3) pixels."""
    slot = add_image(pixels)
    return _add_texture_entry(TextureType.IMAGE, slot=slot)


def register_texture(
    texture: Texture, registered: dict[int, tuple[Texture, int]], depth: int = 0
) -> int:
    """Upload a host texture (and its children) once, returning its id.

    Args:
        texture: The texture to register.
        registered: Map from ``id(texture)`` to the texture and its id for
            textures already uploaded in this scene; updated in place so
            that shared textures are uploaded once. Holding the texture
            keeps its ``id()`` from being reused while the map is alive.
        depth: Current checker nesting depth.

    Returns:
        The texture id.

    Raises:
        SceneError: If the object is not a known texture or checker nesting
            exceeds MAX_TEXTURE_NESTING.
    """
    entry = registered.get(id(texture))
    if entry is not None and entry[0] is texture:
        return entry[1]

    if isinstance(texture, SolidColor):
        tex_id = add_solid_texture(texture.color)
    elif isinstance(texture, CheckerTexture):
        if depth >= MAX_TEXTURE_NESTING:
            raise SceneError(
                f"Checker textures nested deeper than {MAX_TEXTURE_NESTING} levels"
            )
        even_id = register_texture(texture.even, registered, depth + 1)
        odd_id = register_texture(texture.odd, registered, depth + 1)
        tex_id = add_checker_texture(texture.scale, even_id, odd_id)
    elif isinstance(texture, NoiseTexture):
        tex_id = add_noise_texture(texture.scale, texture.seed)
    elif isinstance(texture, ImageTexture):
        tex_id = add_image_texture(texture.pixels)
    else:
        raise SceneError(f"Unsupported texture object: {texture!r}")

    registered[id(texture)] = (texture, tex_id)
    return tex_id


# =============================================================================
# Device-side Evaluation
# =============================================================================


@ti.func
def _resolve_checker(texture_id: ti.i32, p: vec3) -> ti.i32:
    """Follow checker textures down to the leaf texture used at p."""
    tex = texture_id
    for _ in range(MAX_TEXTURE_NESTING + 1):
        if texture_types[tex] == int(TextureType.CHECKER):
            inv_scale = texture_scales[tex]
            cell = (
                ti.cast(ti.floor(inv_scale * p.x), ti.i32)
                + ti.cast(ti.floor(inv_scale * p.y), ti.i32)
                + ti.cast(ti.floor(inv_scale * p.z), ti.i32)
            )
            children = texture_children[tex]
            if cell % 2 == 0:
                tex = children[0]
            else:
                tex = children[1]
    return tex


@ti.func
def texture_value(texture_id: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Evaluate a texture.

    Args:
        texture_id: Registered texture id.
        u: First surface coordinate.
        v: Second surface coordinate.
        p: World-space point.

    Returns:
        The texture color at (u, v, p).
    """
    tex = _resolve_checker(texture_id, p)
    tex_type = texture_types[tex]
    color = vec3(0.0, 0.0, 0.0)

    if tex_type == int(TextureType.SOLID):
        color = texture_colors[tex]
    elif tex_type == int(TextureType.NOISE):
        scale = texture_scales[tex]
        turb = perlin_turbulence(texture_slots[tex], p, NOISE_TURBULENCE_DEPTH)
        color = vec3(0.5, 0.5, 0.5) * (1.0 + ti.sin(scale * p.z + 10.0 * turb))
    elif tex_type == int(TextureType.IMAGE):
        color = sample_image(texture_slots[tex], u, v)

    return color

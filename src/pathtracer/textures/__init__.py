"""Texture models: solid color, checker, Perlin noise and image textures."""

from .texture import (
    CheckerTexture,
    ImageTexture,
    NoiseTexture,
    SolidColor,
    Texture,
    TextureType,
)

__all__ = [
    "Texture",
    "TextureType",
    "SolidColor",
    "CheckerTexture",
    "NoiseTexture",
    "ImageTexture",
]

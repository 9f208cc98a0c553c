"""Scene container and render configuration.

A :class:`Scene` bundles everything a render needs: the world (a tree of
hittables), the camera, the background seen by rays that escape, and the
:class:`RenderSettings`.

Example:
    >>> world = HittableList([Sphere((0, 0, -1), 0.5, Lambertian((0.5, 0.5, 0.5)))])
    >>> scene = Scene(
    ...     world=world,
    ...     camera=ThinLensCamera(lookfrom=(0, 0, 0), lookat=(0, 0, -1)),
    ...     background=Background.sky(),
    ...     settings=RenderSettings(width=200, height=100, samples_per_pixel=16),
    ... )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntEnum

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.core.sampler import MAX_STREAM_HEIGHT, MAX_STREAM_WIDTH
from pathtracer.geometry.hittables import Hittable
from pathtracer.textures.texture import validate_color


class BackgroundType(IntEnum):
    """How the color of an escaping ray is chosen."""

    SOLID = 0
    GRADIENT = 1


@dataclass(frozen=True)
class Background:
    """Radiance arriving from outside the scene.

    A solid background returns ``bottom`` for every direction. A gradient
    blends linearly from ``bottom`` (straight down) to ``top`` (straight up)
    by the y component of the unit ray direction.
    """

    kind: BackgroundType = BackgroundType.SOLID
    bottom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    top: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bottom", validate_color(self.bottom, "background"))
        object.__setattr__(self, "top", validate_color(self.top, "background"))

    @classmethod
    def solid(cls, color: Sequence[float]) -> Background:
        return cls(BackgroundType.SOLID, tuple(color), tuple(color))

    @classmethod
    def sky(
        cls,
        bottom: Sequence[float] = (1.0, 1.0, 1.0),
        top: Sequence[float] = (0.5, 0.7, 1.0),
    ) -> Background:
        """White-to-blue sky gradient."""
        return cls(BackgroundType.GRADIENT, tuple(bottom), tuple(top))


@dataclass
class RenderSettings:
    """Render target size and sampling parameters.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Number of camera samples averaged per pixel.
        max_depth: Maximum number of intersection queries per path.
        seed: Seed of the per-pixel random streams, in [0, 2**31).
        batch_size: Samples per pixel taken per kernel launch.
    """

    width: int = 400
    height: int = 225
    samples_per_pixel: int = 100
    max_depth: int = 50
    seed: int = 0
    batch_size: int = 16

    def __post_init__(self) -> None:
        if not 1 <= self.width <= MAX_STREAM_WIDTH:
            raise ValueError(f"width must be in [1, {MAX_STREAM_WIDTH}], got {self.width}")
        if not 1 <= self.height <= MAX_STREAM_HEIGHT:
            raise ValueError(f"height must be in [1, {MAX_STREAM_HEIGHT}], got {self.height}")
        if self.samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be >= 1, got {self.samples_per_pixel}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if not 0 <= self.seed < 2**31:
            raise ValueError(f"seed must be in [0, 2**31), got {self.seed}")

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass
class Scene:
    """Everything needed to render an image.

    Attributes:
        world: Root of the hittable tree (usually a HittableList).
        camera: Camera configuration.
        background: Color of rays that leave the scene.
        settings: Image size and sampling parameters.
    """

    world: Hittable
    camera: ThinLensCamera
    background: Background = field(default_factory=Background)
    settings: RenderSettings = field(default_factory=RenderSettings)

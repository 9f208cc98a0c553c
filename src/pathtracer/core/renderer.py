"""Renderer driver for a complete scene.

The Renderer ties the pieces together: it uploads the scene through a
SceneManager, sets up the camera, background and render target, and then
accumulates samples in batches of ``settings.batch_size``.

Every sample of every pixel draws from a stream seeded by
(seed, pixel, sample index), so the image is identical whatever the batch
size or the number of threads.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.renderer import Renderer
    >>> renderer = Renderer(scene)
    >>> image = renderer.render()                       # (height, width, 3)
    >>> for done, total in renderer.render_progressive():
    ...     print(f"{done}/{total} samples")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator
from pathlib import Path

import numpy as np
import numpy.typing as npt

from pathtracer.camera.thin_lens import setup_camera
from pathtracer.core.integrator import (
    clear_render_target,
    get_image,
    get_linear_image,
    get_total_samples,
    get_total_segments,
    render_samples,
    set_background,
    setup_render_target,
)
from pathtracer.scene.manager import SceneManager, SceneStats
from pathtracer.scene.scene import Scene

logger = logging.getLogger(__name__)

# Callback receives (current_samples, target_samples)
ProgressCallback = Callable[[int, int], None]


class Renderer:
    """Renders a Scene into an in-memory image.

    The constructor uploads the scene; only one Renderer can be active at a
    time because the device arenas are module level.

    Attributes:
        scene: The scene being rendered.
        stats: Counts of the uploaded scene.
    """

    def __init__(self, scene: Scene) -> None:
        self.scene = scene
        settings = scene.settings
        camera = scene.camera

        self._manager = SceneManager(camera.shutter_open, camera.shutter_close)
        self.stats: SceneStats = self._manager.load(scene.world)

        setup_camera(camera, aspect_ratio=settings.aspect_ratio)
        set_background(scene.background)
        setup_render_target(settings.width, settings.height)

    @property
    def width(self) -> int:
        return self.scene.settings.width

    @property
    def height(self) -> int:
        return self.scene.settings.height

    @property
    def sample_count(self) -> int:
        """Samples per pixel accumulated so far."""
        return get_total_samples()

    def reset(self) -> None:
        """Discard the accumulated samples."""
        clear_render_target()

    def render_progressive(
        self, num_samples: int | None = None
    ) -> Generator[tuple[int, int], None, None]:
        """Add samples batch by batch, yielding progress after each batch.

        Args:
            num_samples: Samples per pixel to add. Defaults to what is left
                to reach ``settings.samples_per_pixel``.

        Yields:
            Tuple of (current_total_samples, target_total_samples).
        """
        settings = self.scene.settings
        start = self.sample_count
        if num_samples is None:
            num_samples = max(settings.samples_per_pixel - start, 0)
        target = start + num_samples

        current = start
        while current < target:
            batch = min(settings.batch_size, target - current)
            render_samples(current, batch, settings.max_depth, settings.seed)
            current += batch
            logger.debug("Rendered %d/%d samples per pixel", current, target)
            yield current, target

    def render(self, callback: ProgressCallback | None = None) -> npt.NDArray[np.float32]:
        """Render up to ``settings.samples_per_pixel`` and return the image.

        Args:
            callback: Optional function called after each batch with
                (current_samples, target_samples).

        Returns:
            Display-ready float32 array of shape (height, width, 3), row 0 at
            the top.
        """
        settings = self.scene.settings
        logger.info(
            "Rendering %dx%d at %d spp (max depth %d, seed %d)",
            settings.width,
            settings.height,
            settings.samples_per_pixel,
            settings.max_depth,
            settings.seed,
        )

        start_time = time.perf_counter()
        for current, target in self.render_progressive():
            if callback is not None:
                callback(current, target)
        elapsed = time.perf_counter() - start_time

        samples = self.sample_count * settings.width * settings.height
        logger.info(
            "Rendered %d samples in %.2fs (%.2f segments per sample)",
            samples,
            elapsed,
            get_total_segments() / max(samples, 1),
        )
        return self.get_image()

    def get_image(self) -> npt.NDArray[np.float32]:
        """Image as sqrt(clamp(mean, 0, 1)), shape (height, width, 3)."""
        return get_image()

    def get_linear_image(self) -> npt.NDArray[np.float32]:
        """Mean linear radiance, shape (height, width, 3), not clamped."""
        return get_linear_image()

    def save_image(self, filepath: str | Path) -> None:
        """Save the current image as an 8-bit PNG."""
        from pathtracer.export import save_png

        save_png(self.get_image(), filepath)

    def __repr__(self) -> str:
        return f"Renderer(width={self.width}, height={self.height}, samples={self.sample_count})"

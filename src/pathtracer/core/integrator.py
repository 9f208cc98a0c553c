"""Path tracing integrator and render target.

This module implements the Monte Carlo estimator of the light arriving along
a camera ray, and the kernels that accumulate samples into the image.

The estimator is the iterative form of the classic recursive one:

    color(ray, depth) = 0                                       if depth == 0
                      = background(ray)                         if ray escapes
                      = emitted + attenuation * color(scattered, depth - 1)

A path makes at most ``max_depth`` intersection queries. A path that runs
out of depth contributes nothing more; there is no Russian roulette and no
direct light sampling.

Key features:
    - Material dispatch through pathtracer.materials.material
    - Solid or gradient background for escaped rays
    - Deterministic per-pixel streams reseeded for every sample, so results
      do not depend on scheduling or on how samples are batched
    - Linear sum accumulation; the displayed value is sqrt(clamp(mean, 0, 1))

Example:
    >>> setup_camera(camera, aspect_ratio=width / height)
    >>> set_background(Background.sky())
    >>> setup_render_target(width, height)
    >>> render_samples(first_sample=0, count=16, max_depth=50, seed=0)
    >>> image = get_image()
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.camera.thin_lens import get_ray_jittered
from pathtracer.core.ray import Ray, make_ray
from pathtracer.core.sampler import MAX_STREAM_HEIGHT, MAX_STREAM_WIDTH, pixel_stream, seed_stream
from pathtracer.materials.material import emitted, scatter
from pathtracer.scene.intersection import intersect_bvh
from pathtracer.scene.scene import Background, BackgroundType

vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Interval of accepted hits; T_MIN avoids re-hitting the surface just left
T_MIN = 1e-3
T_MAX = 1e30

# =============================================================================
# Background
# =============================================================================

_background_kind = ti.field(dtype=ti.i32, shape=())
_background_bottom = ti.Vector.field(3, dtype=ti.f32, shape=())
_background_top = ti.Vector.field(3, dtype=ti.f32, shape=())


def set_background(background: Background) -> None:
    """Set the color returned for rays that leave the scene."""
    _background_kind[None] = int(background.kind)
    _background_bottom[None] = list(background.bottom)
    _background_top[None] = list(background.top)


@ti.func
def background_color(direction: vec3) -> vec3:
    """Background radiance seen along ``direction``."""
    color = _background_bottom[None]
    if _background_kind[None] == int(BackgroundType.GRADIENT):
        unit = tm.normalize(direction)
        a = 0.5 * (unit.y + 1.0)
        color = (1.0 - a) * _background_bottom[None] + a * _background_top[None]
    return color


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = MAX_STREAM_WIDTH
MAX_IMAGE_HEIGHT = MAX_STREAM_HEIGHT

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Linear color sum, samples taken and intersection queries made per pixel
_color_sum = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_segment_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

_render_target_initialized = ti.field(dtype=ti.i32, shape=())

# Result slots for tracing one ray from Python
_single_color = ti.Vector.field(3, dtype=ti.f32, shape=())
_single_segments = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the buffers.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If a dimension is below 1 or above the maximum.
    """
    if not (1 <= width <= MAX_IMAGE_WIDTH and 1 <= height <= MAX_IMAGE_HEIGHT):
        raise ValueError(
            f"Image dimensions ({width}x{height}) must be within "
            f"1x1 and {MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffers to zero."""
    _color_sum.fill(0.0)
    _sample_count.fill(0)
    _segment_count.fill(0)


def reset_render_target() -> None:
    """Forget the render target entirely; rendering then raises until set up."""
    _render_target_initialized[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace(ray: Ray, max_depth: ti.i32, stream: ti.i32):
    """Estimate the radiance arriving along a ray.

    Args:
        ray: The camera (or any) ray.
        max_depth: Maximum number of intersection queries.
        stream: Sampler stream to draw from.

    Returns:
        A tuple of (color, segments) where segments is the number of
        intersection queries made, at most max_depth.
    """
    origin = ray.origin
    direction = ray.direction
    time = ray.time

    color = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    segments = 0

    # Active flag for path continuation (no break inside ti.func loops)
    active = 1

    for _ in range(max_depth):
        if active == 1:
            segments += 1
            rec = intersect_bvh(origin, direction, time, T_MIN, T_MAX, stream)

            if rec.hit == 0:
                color += throughput * background_color(direction)
                active = 0
            else:
                color += throughput * emitted(rec.material_id, rec.u, rec.v, rec.point)

                scattered_direction, attenuation, did_scatter = scatter(
                    rec.material_id, direction, rec, stream
                )

                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    origin = rec.point
                    direction = scattered_direction

    return color, segments


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Replace NaN or infinite components by zero and clamp negatives."""
    result = tm.max(color, vec3(0.0, 0.0, 0.0))
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]):
            result[c] = 0.0
    return result


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _accumulate(
    width: ti.i32,
    height: ti.i32,
    first_sample: ti.i32,
    count: ti.i32,
    max_depth: ti.i32,
    seed: ti.i32,
):
    """Take ``count`` samples per pixel, starting at sample ``first_sample``."""
    for i, j in ti.ndrange(width, height):
        stream = pixel_stream(i, j, width)
        for s in range(count):
            seed_stream(stream, seed, stream, first_sample + s)
            ray = get_ray_jittered(i, j, width, height, stream)
            color, segments = trace(ray, max_depth, stream)
            _color_sum[i, j] += _sanitize(color)
            _segment_count[i, j] += segments
        _sample_count[i, j] += count


@ti.kernel
def _trace_single(
    origin: vec3, direction: vec3, time: ti.f32, max_depth: ti.i32, seed: ti.i32, sample: ti.i32
):
    seed_stream(0, seed, 0, sample)
    color, segments = trace(make_ray(origin, direction, time), max_depth, 0)
    _single_color[None] = color
    _single_segments[None] = segments


# =============================================================================
# Public Rendering API
# =============================================================================


def render_samples(first_sample: int, count: int, max_depth: int, seed: int = 0) -> None:
    """Add ``count`` samples to every pixel of the render target.

    Samples are numbered; sample k of a pixel always draws the same random
    numbers for a given seed, so splitting a render into batches gives the
    same image as a single call.

    Args:
        first_sample: Index of the first sample of this batch.
        count: Number of samples per pixel in this batch.
        max_depth: Maximum number of intersection queries per path.
        seed: Render seed.

    Raises:
        RuntimeError: If the render target has not been set up.
        ValueError: If count or max_depth is below 1.
    """
    _check_render_target_initialized()
    if count < 1 or max_depth < 1:
        raise ValueError(f"count and max_depth must be >= 1, got {count} and {max_depth}")
    width, height = get_image_dimensions()
    _accumulate(width, height, first_sample, count, max_depth, seed)


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    max_depth: int,
    seed: int = 0,
    time: float = 0.0,
    sample: int = 0,
) -> tuple[tuple[float, float, float], int]:
    """Trace a single ray through the resident scene.

    Used for testing and debugging individual paths.

    Returns:
        Tuple of ((R, G, B), segments).
    """
    _trace_single(vec3(*origin), vec3(*direction), time, max_depth, seed, sample)
    color = _single_color[None]
    return (float(color[0]), float(color[1]), float(color[2])), int(_single_segments[None])


def get_total_samples() -> int:
    """Samples per pixel accumulated so far (read from pixel (0, 0))."""
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


def get_total_segments() -> int:
    """Intersection queries made over the whole image so far."""
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    return int(_segment_count.to_numpy()[:width, :height].sum(dtype=np.int64))


def _to_image_layout(buffer: np.ndarray, width: int, height: int) -> np.ndarray:
    # (width, height, ...) with j = 0 at the bottom -> (height, width, ...) with row 0 on top
    image = buffer[:width, :height]
    image = np.swapaxes(image, 0, 1)
    return np.flipud(image)


def get_linear_image() -> np.ndarray:
    """Mean linear radiance per pixel, shape (height, width, 3), float32.

    Row 0 is the top of the image. Pixels without samples are black.

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()

    sums = _to_image_layout(_color_sum.to_numpy(), width, height)
    counts = _to_image_layout(_sample_count.to_numpy(), width, height)

    mean = sums / np.maximum(counts, 1)[..., np.newaxis]
    return mean.astype(np.float32)


def get_image() -> np.ndarray:
    """Display-ready image: sqrt(clamp(mean, 0, 1)), shape (height, width, 3).

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    return np.sqrt(np.clip(get_linear_image(), 0.0, 1.0)).astype(np.float32)

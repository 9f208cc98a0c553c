"""Deterministic per-pixel random number streams.

Every pixel of the render target owns one 32-bit generator state. A stream is
reseeded at the start of each sample from a hash of (seed, pixel, sample), so
the numbers a pixel consumes depend only on those three values and never on
how Taichi schedules pixels across threads or how samples are batched.

The generator is a 32-bit LCG whose output goes through the PCG RXS-M-XS
permutation. All device functions take a ``stream`` index instead of using
``ti.random`` so that results are reproducible bit for bit.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.sampler import seed_stream, next_float
    >>> @ti.kernel
    ... def draw() -> ti.f32:
    ...     seed_stream(0, 42, 0, 0)
    ...     return next_float(0)
"""

import numpy as np
import taichi as ti

# One stream per pixel of the largest supported render target
MAX_STREAM_WIDTH = 2048
MAX_STREAM_HEIGHT = 2048
MAX_STREAMS = MAX_STREAM_WIDTH * MAX_STREAM_HEIGHT

# LCG and output permutation constants (all below 2**31 so they fit i32 literals)
_LCG_MULTIPLIER = 747796405
_LCG_INCREMENT = 1442695041
_PERMUTE_MULTIPLIER = 277803737

_INV_2_24 = 1.0 / 16777216.0

_stream_state = ti.field(dtype=ti.u32, shape=MAX_STREAMS)


@ti.func
def _permute(state: ti.u32) -> ti.u32:
    """PCG RXS-M-XS output permutation of a 32-bit state."""
    shift = (state >> ti.cast(28, ti.u32)) + ti.cast(4, ti.u32)
    word = ((state >> shift) ^ state) * ti.cast(_PERMUTE_MULTIPLIER, ti.u32)
    return (word >> ti.cast(22, ti.u32)) ^ word


@ti.func
def hash_u32(x: ti.u32) -> ti.u32:
    """Hash a 32-bit value with one LCG step followed by the PCG permutation.

    Args:
        x: Input value.

    Returns:
        A well-mixed 32-bit hash of x.
    """
    state = x * ti.cast(_LCG_MULTIPLIER, ti.u32) + ti.cast(_LCG_INCREMENT, ti.u32)
    return _permute(state)


@ti.func
def pixel_stream(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32) -> ti.i32:
    """Stream index owned by pixel (i, j) of an image of the given width."""
    return pixel_j * width + pixel_i


@ti.func
def seed_stream(stream: ti.i32, seed: ti.i32, pixel: ti.i32, sample: ti.i32):
    """Reset a stream from a (seed, pixel, sample) triple.

    Args:
        stream: Index of the stream to reset.
        seed: Global render seed.
        pixel: Linear pixel index.
        sample: Index of the sample about to be drawn for that pixel.
    """
    h = hash_u32(ti.cast(sample, ti.u32))
    h = hash_u32(ti.cast(pixel, ti.u32) ^ h)
    h = hash_u32(ti.cast(seed, ti.u32) ^ h)
    _stream_state[stream] = h


@ti.func
def next_u32(stream: ti.i32) -> ti.u32:
    """Advance a stream and return 32 random bits."""
    state = _stream_state[stream] * ti.cast(_LCG_MULTIPLIER, ti.u32) + ti.cast(
        _LCG_INCREMENT, ti.u32
    )
    _stream_state[stream] = state
    return _permute(state)


@ti.func
def next_float(stream: ti.i32) -> ti.f32:
    """Uniform float in [0, 1) with 24 bits of precision."""
    bits = next_u32(stream) >> ti.cast(8, ti.u32)
    return ti.cast(bits, ti.f32) * _INV_2_24


@ti.func
def next_float_open(stream: ti.i32) -> ti.f32:
    """Uniform float in the open interval (0, 1); safe to pass to log()."""
    bits = next_u32(stream) >> ti.cast(8, ti.u32)
    return (ti.cast(bits, ti.f32) + 0.5) * _INV_2_24


@ti.kernel
def _fill_uniform(stream: ti.i32, seed: ti.i32, count: ti.i32, out: ti.types.ndarray()):
    seed_stream(stream, seed, 0, 0)
    # Serial on purpose: every value comes from the same stream
    ti.loop_config(serialize=True)
    for k in range(count):
        out[k] = next_float(stream)


def sample_uniform(count: int, seed: int = 0, stream: int = 0):
    """Draw ``count`` uniform floats from one stream on the host.

    Used by diagnostics and tests to inspect the generator.

    Args:
        count: Number of values to draw.
        seed: Seed for the stream.
        stream: Stream index to use.

    Returns:
        NumPy float32 array of shape (count,).

    Raises:
        ValueError: If the stream index is out of range.
    """
    if not 0 <= stream < MAX_STREAMS:
        raise ValueError(f"Stream index {stream} out of range [0, {MAX_STREAMS})")
    out = np.zeros(count, dtype=np.float32)
    _fill_uniform(stream, seed, count, out)
    return out

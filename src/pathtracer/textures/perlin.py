"""Perlin gradient noise.

Each noise texture owns one table set: 256 random unit gradient vectors and
three random permutations of 0..255 (one per axis). Tables are generated on
the host with a seeded NumPy generator and stored in device fields, one slot
per noise texture.

Example:
    >>> slot = add_perlin_table(seed=7)
    >>> # inside a Taichi function:
    >>> # n = perlin_turbulence(slot, p, 7)
"""

import numpy as np
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

POINT_COUNT = 256
MAX_PERLIN_TABLES = 16

perlin_gradients = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_PERLIN_TABLES, POINT_COUNT))
perlin_perm = ti.field(dtype=ti.i32, shape=(MAX_PERLIN_TABLES, 3, POINT_COUNT))
num_perlin_tables = ti.field(dtype=ti.i32, shape=())


def make_perlin_tables(seed: int) -> tuple[np.ndarray, np.ndarray]:
    """Generate gradient and permutation tables.

    Args:
        seed: Seed for the NumPy generator.

    Returns:
        Tuple of (gradients, perms) with shapes (256, 3) float32 and
        (3, 256) int32.
    """
    rng = np.random.default_rng(seed)
    gradients = rng.uniform(-1.0, 1.0, size=(POINT_COUNT, 3))
    norms = np.linalg.norm(gradients, axis=1, keepdims=True)
    # Zero-length draws fall back to a fixed diagonal
    gradients = np.where(norms > 1e-12, gradients / np.maximum(norms, 1e-12), 1.0 / np.sqrt(3.0))
    perms = np.stack([rng.permutation(POINT_COUNT) for _ in range(3)])
    return gradients.astype(np.float32), perms.astype(np.int32)


def clear_perlin_tables() -> None:
    """Forget all table slots; data is overwritten by later additions."""
    num_perlin_tables[None] = 0


def add_perlin_table(seed: int) -> int:
    """Generate a table set and upload it into the next free slot.

    Args:
        seed: Seed for the table generator.

    Returns:
        The slot index.

    Raises:
        RuntimeError: If all MAX_PERLIN_TABLES slots are in use.
    """
    slot = num_perlin_tables[None]
    if slot >= MAX_PERLIN_TABLES:
        raise RuntimeError(f"Maximum number of noise textures ({MAX_PERLIN_TABLES}) exceeded")
    gradients, perms = make_perlin_tables(seed)
    for i in range(POINT_COUNT):
        perlin_gradients[slot, i] = gradients[i].tolist()
        for axis in range(3):
            perlin_perm[slot, axis, i] = int(perms[axis, i])
    num_perlin_tables[None] = slot + 1
    return slot


@ti.func
def perlin_noise(slot: ti.i32, p: vec3) -> ti.f32:
    """Gradient noise at p, roughly in [-1, 1].

    Trilinear Hermite-smoothed interpolation of the dot products between the
    eight surrounding lattice gradients and the offsets to p.
    """
    fx = ti.floor(p.x)
    fy = ti.floor(p.y)
    fz = ti.floor(p.z)
    u = p.x - fx
    v = p.y - fy
    w = p.z - fz

    i = ti.cast(fx, ti.i32)
    j = ti.cast(fy, ti.i32)
    k = ti.cast(fz, ti.i32)

    uu = u * u * (3.0 - 2.0 * u)
    vv = v * v * (3.0 - 2.0 * v)
    ww = w * w * (3.0 - 2.0 * w)

    accum = 0.0
    for di in ti.static(range(2)):
        for dj in ti.static(range(2)):
            for dk in ti.static(range(2)):
                idx = (
                    perlin_perm[slot, 0, (i + di) & 255]
                    ^ perlin_perm[slot, 1, (j + dj) & 255]
                    ^ perlin_perm[slot, 2, (k + dk) & 255]
                )
                gradient = perlin_gradients[slot, idx]
                weight = vec3(u - di, v - dj, w - dk)
                accum += (
                    (di * uu + (1 - di) * (1.0 - uu))
                    * (dj * vv + (1 - dj) * (1.0 - vv))
                    * (dk * ww + (1 - dk) * (1.0 - ww))
                    * tm.dot(gradient, weight)
                )

    return accum


@ti.func
def perlin_turbulence(slot: ti.i32, p: vec3, depth: ti.i32) -> ti.f32:
    """Sum of ``depth`` noise octaves with halving weight, absolute value."""
    accum = 0.0
    temp_p = p
    weight = 1.0

    for _ in range(depth):
        accum += weight * perlin_noise(slot, temp_p)
        weight *= 0.5
        temp_p = temp_p * 2.0

    return ti.abs(accum)

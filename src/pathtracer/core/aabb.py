"""Axis-aligned bounding boxes.

The host-side :class:`AABB` is used while building the scene (bounding boxes
of hittables, BVH construction); the device-side :func:`hit_aabb` is the slab
test run during BVH traversal.

Example:
    >>> a = AABB((0, 0, 0), (1, 1, 1))
    >>> b = AABB((2, -1, 0), (3, 0, 1))
    >>> a.union(b).maximum
    array([3., 1., 1.])
"""

from collections.abc import Iterable, Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Minimum extent along any axis; thinner boxes are padded to this size
AABB_PADDING = 1e-4

# Direction components smaller than this are treated as parallel to a slab
PARALLEL_EPSILON = 1e-12


class AABB:
    """An axis-aligned box given by its minimum and maximum corners.

    The corners are sorted on construction, so ``minimum <= maximum`` holds
    componentwise for every instance.

    Attributes:
        minimum: Lower corner as a float64 array of shape (3,).
        maximum: Upper corner as a float64 array of shape (3,).
    """

    __slots__ = ("minimum", "maximum")

    def __init__(self, a: Sequence[float], b: Sequence[float]) -> None:
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        self.minimum = np.minimum(a, b)
        self.maximum = np.maximum(a, b)

    @classmethod
    def empty(cls) -> "AABB":
        """A box containing nothing; the identity element of :meth:`union`."""
        box = cls((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
        box.minimum = np.full(3, np.inf)
        box.maximum = np.full(3, -np.inf)
        return box

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> "AABB":
        """Smallest box containing all the given points."""
        pts = np.asarray(list(points), dtype=np.float64)
        if pts.size == 0:
            return cls.empty()
        return cls(pts.min(axis=0), pts.max(axis=0))

    @classmethod
    def surrounding(cls, boxes: Iterable["AABB"]) -> "AABB":
        """Union of any number of boxes."""
        result = cls.empty()
        for box in boxes:
            result = result.union(box)
        return result

    def is_empty(self) -> bool:
        return bool(np.any(self.minimum > self.maximum))

    def union(self, other: "AABB") -> "AABB":
        """Smallest box enclosing both boxes."""
        box = AABB.empty()
        box.minimum = np.minimum(self.minimum, other.minimum)
        box.maximum = np.maximum(self.maximum, other.maximum)
        return box

    def pad(self, delta: float = AABB_PADDING) -> "AABB":
        """Grow every axis thinner than ``delta`` to exactly ``delta``."""
        size = self.maximum - self.minimum
        grow = np.where(size < delta, (delta - size) / 2.0, 0.0)
        return AABB(self.minimum - grow, self.maximum + grow)

    def corners(self) -> npt.NDArray[np.float64]:
        """The 8 corner points, shape (8, 3)."""
        lo, hi = self.minimum, self.maximum
        return np.array(
            [
                [x, y, z]
                for x in (lo[0], hi[0])
                for y in (lo[1], hi[1])
                for z in (lo[2], hi[2])
            ],
            dtype=np.float64,
        )

    def transform(self, rotation: npt.ArrayLike, offset: npt.ArrayLike) -> "AABB":
        """Box enclosing this box after ``p -> rotation @ p + offset``."""
        rotation = np.asarray(rotation, dtype=np.float64)
        offset = np.asarray(offset, dtype=np.float64)
        moved = self.corners() @ rotation.T + offset
        return AABB(moved.min(axis=0), moved.max(axis=0))

    def centroid(self) -> npt.NDArray[np.float64]:
        return 0.5 * (self.minimum + self.maximum)

    def extent(self) -> npt.NDArray[np.float64]:
        return self.maximum - self.minimum

    def longest_axis(self) -> int:
        """Index (0, 1 or 2) of the axis with the largest extent."""
        return int(np.argmax(self.extent()))

    def contains(self, point: Sequence[float], tolerance: float = 0.0) -> bool:
        p = np.asarray(point, dtype=np.float64)
        return bool(
            np.all(p >= self.minimum - tolerance) and np.all(p <= self.maximum + tolerance)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AABB):
            return NotImplemented
        return bool(
            np.array_equal(self.minimum, other.minimum)
            and np.array_equal(self.maximum, other.maximum)
        )

    def __repr__(self) -> str:
        return f"AABB(minimum={self.minimum.tolist()}, maximum={self.maximum.tolist()})"


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test of a ray against an axis-aligned box.

    Each axis narrows the interval [t_min, t_max]. A direction component of
    (almost) zero means the ray runs parallel to that slab: the slab then
    places no bound on t if the origin lies between its planes, and the box
    is missed otherwise.

    Args:
        box_min: Lower corner of the box.
        box_max: Upper corner of the box.
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Lower end of the parameter interval.
        t_max: Upper end of the parameter interval.

    Returns:
        1 if the ray overlaps the box within the interval, 0 otherwise.
    """
    lo = t_min
    hi = t_max
    hit = 1

    for axis in ti.static(range(3)):
        d = ray_direction[axis]
        o = ray_origin[axis]
        if ti.abs(d) < PARALLEL_EPSILON:
            if o < box_min[axis] or o > box_max[axis]:
                hit = 0
        else:
            inv_d = 1.0 / d
            t0 = (box_min[axis] - o) * inv_d
            t1 = (box_max[axis] - o) * inv_d
            lo = tm.max(lo, tm.min(t0, t1))
            hi = tm.min(hi, tm.max(t0, t1))

    if hi < lo:
        hit = 0

    return hit

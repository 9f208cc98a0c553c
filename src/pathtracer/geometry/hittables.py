"""Host-side scene objects.

These classes describe what a scene contains. They hold plain Python / NumPy
data and a reference to a shared material object; nothing here touches Taichi
fields. :class:`pathtracer.scene.manager.SceneManager` walks a tree of these
objects and uploads it into device arenas for rendering.

Every object answers :meth:`Hittable.bounding_box`, which is what the BVH is
built from.

Example:
    >>> from pathtracer.materials import Lambertian
    >>> ground = Lambertian((0.5, 0.5, 0.5))
    >>> world = HittableList()
    >>> world.add(Sphere((0, -1000, 0), 1000, ground))
    >>> world.add(XZRect(-1, 1, -1, 1, 3, ground))
    >>> world.bounding_box(0.0, 1.0)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import Any

import numpy as np

from pathtracer.core.aabb import AABB, AABB_PADDING

Vec = Sequence[float]


def as_vec3(value: Vec, name: str = "vector") -> np.ndarray:
    """Convert a 3-sequence to a float64 array, validating its shape."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have exactly 3 components, got {value!r}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return arr


class Hittable:
    """Base class for anything a ray can intersect."""

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        """Box enclosing the object for every instant in [time0, time1]."""
        raise NotImplementedError


# =============================================================================
# Spheres
# =============================================================================


class Sphere(Hittable):
    """A stationary sphere.

    Args:
        center: Center point (x, y, z).
        radius: Radius, must be positive.
        material: Shared material of the surface.

    Raises:
        ValueError: If the radius is not positive.
    """

    def __init__(self, center: Vec, radius: float, material: Any) -> None:
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        self.center = as_vec3(center, "center")
        self.radius = float(radius)
        self.material = material

    def center_at(self, time: float) -> np.ndarray:
        return self.center

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        r = np.full(3, self.radius)
        return AABB(self.center - r, self.center + r)

    def __repr__(self) -> str:
        return f"Sphere(center={self.center.tolist()}, radius={self.radius})"


class MovingSphere(Sphere):
    """A sphere whose center moves linearly from center0 to center1.

    The center is at ``center0`` at ``time0`` and at ``center1`` at ``time1``
    and is extrapolated linearly outside that range.

    Args:
        center0: Center at time0.
        center1: Center at time1.
        radius: Radius, must be positive.
        material: Shared material of the surface.
        time0: Time of the first keyframe.
        time1: Time of the second keyframe.

    Raises:
        ValueError: If the radius is not positive or time1 < time0.
    """

    def __init__(
        self,
        center0: Vec,
        center1: Vec,
        radius: float,
        material: Any,
        time0: float = 0.0,
        time1: float = 1.0,
    ) -> None:
        super().__init__(center0, radius, material)
        if time1 < time0:
            raise ValueError(f"time1 ({time1}) must not precede time0 ({time0})")
        self.center1 = as_vec3(center1, "center1")
        self.time0 = float(time0)
        self.time1 = float(time1)

    @property
    def center0(self) -> np.ndarray:
        return self.center

    def center_at(self, time: float) -> np.ndarray:
        span = self.time1 - self.time0
        if span == 0.0:
            return self.center
        return self.center + ((time - self.time0) / span) * (self.center1 - self.center)

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        r = np.full(3, self.radius)
        c0 = self.center_at(time0)
        c1 = self.center_at(time1)
        return AABB(c0 - r, c0 + r).union(AABB(c1 - r, c1 + r))

    def __repr__(self) -> str:
        return (
            f"MovingSphere(center0={self.center.tolist()}, "
            f"center1={self.center1.tolist()}, radius={self.radius})"
        )


# =============================================================================
# Axis-aligned rectangles
# =============================================================================


class AxisAlignedRect(Hittable):
    """Rectangle in the plane ``p[axis] == k``.

    Args:
        axis: The fixed axis (0 = x, 1 = y, 2 = z).
        a0, a1: Extent along the first free axis.
        b0, b1: Extent along the second free axis.
        k: Plane offset along the fixed axis.
        material: Shared material of the surface.
        flipped: Outward normal along -axis instead of +axis.

    Raises:
        ValueError: If an extent is empty (a0 >= a1 or b0 >= b1).
    """

    axis = 2

    def __init__(
        self,
        a0: float,
        a1: float,
        b0: float,
        b1: float,
        k: float,
        material: Any,
        flipped: bool = False,
    ) -> None:
        if not a0 < a1 or not b0 < b1:
            raise ValueError(
                f"Rectangle extents must be non-empty, got [{a0}, {a1}] x [{b0}, {b1}]"
            )
        self.a0, self.a1 = float(a0), float(a1)
        self.b0, self.b1 = float(b0), float(b1)
        self.k = float(k)
        self.material = material
        self.flipped = bool(flipped)

    def free_axes(self) -> tuple[int, int]:
        return tuple(i for i in range(3) if i != self.axis)  # type: ignore[return-value]

    def corners(self) -> tuple[np.ndarray, np.ndarray]:
        """Lower and upper corners as 3D points (both with p[axis] == k)."""
        a, b = self.free_axes()
        lower = np.zeros(3)
        upper = np.zeros(3)
        lower[a], lower[b], lower[self.axis] = self.a0, self.b0, self.k
        upper[a], upper[b], upper[self.axis] = self.a1, self.b1, self.k
        return lower, upper

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        lower, upper = self.corners()
        return AABB(lower, upper).pad(AABB_PADDING)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.a0}, {self.a1}, {self.b0}, {self.b1}, k={self.k}"
            f"{', flipped' if self.flipped else ''})"
        )


class XYRect(AxisAlignedRect):
    """Rectangle [x0, x1] x [y0, y1] in the plane z = k."""

    axis = 2

    def __init__(
        self,
        x0: float,
        x1: float,
        y0: float,
        y1: float,
        k: float,
        material: Any,
        flipped: bool = False,
    ) -> None:
        super().__init__(x0, x1, y0, y1, k, material, flipped)


class XZRect(AxisAlignedRect):
    """Rectangle [x0, x1] x [z0, z1] in the plane y = k."""

    axis = 1

    def __init__(
        self,
        x0: float,
        x1: float,
        z0: float,
        z1: float,
        k: float,
        material: Any,
        flipped: bool = False,
    ) -> None:
        super().__init__(x0, x1, z0, z1, k, material, flipped)


class YZRect(AxisAlignedRect):
    """Rectangle [y0, y1] x [z0, z1] in the plane x = k."""

    axis = 0

    def __init__(
        self,
        y0: float,
        y1: float,
        z0: float,
        z1: float,
        k: float,
        material: Any,
        flipped: bool = False,
    ) -> None:
        super().__init__(y0, y1, z0, z1, k, material, flipped)


# =============================================================================
# Planar shapes
# =============================================================================


class Quad(Hittable):
    """Parallelogram with corner Q and edges u, v.

    Raises:
        ValueError: If u and v are parallel (zero area).
    """

    def __init__(self, Q: Vec, u: Vec, v: Vec, material: Any) -> None:
        self.Q = as_vec3(Q, "Q")
        self.u = as_vec3(u, "u")
        self.v = as_vec3(v, "v")
        if np.linalg.norm(np.cross(self.u, self.v)) == 0.0:
            raise ValueError("Quad edges u and v must not be parallel")
        self.material = material

    def vertices(self) -> list[np.ndarray]:
        return [self.Q, self.Q + self.u, self.Q + self.v, self.Q + self.u + self.v]

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        return AABB.from_points(self.vertices()).pad(AABB_PADDING)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(Q={self.Q.tolist()}, u={self.u.tolist()}, v={self.v.tolist()})"


class Triangle(Quad):
    """Triangle with vertices Q, Q + u and Q + v."""

    def vertices(self) -> list[np.ndarray]:
        return [self.Q, self.Q + self.u, self.Q + self.v]


# =============================================================================
# Containers
# =============================================================================


class HittableList(Hittable):
    """An ordered collection of hittables."""

    def __init__(self, objects: Iterable[Hittable] | None = None) -> None:
        self.objects: list[Hittable] = list(objects) if objects is not None else []

    def add(self, obj: Hittable) -> HittableList:
        self.objects.append(obj)
        return self

    def clear(self) -> None:
        self.objects.clear()

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        return AABB.surrounding(obj.bounding_box(time0, time1) for obj in self.objects)

    def __len__(self) -> int:
        return len(self.objects)

    def __iter__(self) -> Iterator[Hittable]:
        return iter(self.objects)

    def __repr__(self) -> str:
        return f"HittableList({len(self.objects)} objects)"


def box(p0: Vec, p1: Vec, material: Any) -> HittableList:
    """Axis-aligned box with opposite corners p0 and p1, as six rectangles.

    The faces on the lower side of each axis are flipped so that every
    outward normal points away from the box.

    Raises:
        ValueError: If the box has zero extent along any axis.
    """
    lo = np.minimum(as_vec3(p0, "p0"), as_vec3(p1, "p1"))
    hi = np.maximum(as_vec3(p0, "p0"), as_vec3(p1, "p1"))
    return HittableList(
        [
            XYRect(lo[0], hi[0], lo[1], hi[1], hi[2], material),
            XYRect(lo[0], hi[0], lo[1], hi[1], lo[2], material, flipped=True),
            XZRect(lo[0], hi[0], lo[2], hi[2], hi[1], material),
            XZRect(lo[0], hi[0], lo[2], hi[2], lo[1], material, flipped=True),
            YZRect(lo[1], hi[1], lo[2], hi[2], hi[0], material),
            YZRect(lo[1], hi[1], lo[2], hi[2], lo[0], material, flipped=True),
        ]
    )

"""Instance wrappers: translation, rotation and face flipping.

Each wrapper places another hittable with a rigid transform
``world = rotation @ local + offset`` and optionally flips which side of the
surface counts as the outward face. Nested wrappers compose, so a rotated
then translated box is ``Translate(RotateY(box, 15), offset)``.

On the host the wrappers only describe the transform; when the scene is
uploaded, transforms along each path of the object tree are multiplied into a
single :class:`RigidTransform` per primitive. On the device a ray is taken
into the primitive's local frame with :func:`to_local`, intersected, and the
hit is brought back with :func:`hit_to_world`.
"""

import math

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.aabb import AABB
from pathtracer.geometry.hit_record import HitRecord
from pathtracer.geometry.hittables import Hittable, Vec, as_vec3

vec3 = tm.vec3
mat3 = tm.mat3


class RigidTransform:
    """A rotation followed by a translation, plus a face-flip flag.

    Attributes:
        rotation: 3x3 orthonormal matrix (float64).
        offset: Translation vector (float64).
        flip: Whether outward and inward faces are swapped.
    """

    __slots__ = ("rotation", "offset", "flip")

    def __init__(
        self,
        rotation: npt.ArrayLike | None = None,
        offset: npt.ArrayLike | None = None,
        flip: bool = False,
    ) -> None:
        self.rotation = np.eye(3) if rotation is None else np.asarray(rotation, dtype=np.float64)
        self.offset = np.zeros(3) if offset is None else np.asarray(offset, dtype=np.float64)
        self.flip = bool(flip)

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls()

    def is_identity(self) -> bool:
        return (
            not self.flip
            and np.array_equal(self.rotation, np.eye(3))
            and not np.any(self.offset)
        )

    def compose(self, inner: "RigidTransform") -> "RigidTransform":
        """Transform that applies ``inner`` first and then ``self``."""
        return RigidTransform(
            self.rotation @ inner.rotation,
            self.rotation @ inner.offset + self.offset,
            self.flip != inner.flip,
        )

    def apply_point(self, point: npt.ArrayLike) -> np.ndarray:
        return self.rotation @ np.asarray(point, dtype=np.float64) + self.offset

    def apply_box(self, box: AABB) -> AABB:
        return box.transform(self.rotation, self.offset)

    def key(self) -> tuple:
        """Hashable identity used to share uploaded transforms."""
        return (tuple(self.rotation.ravel().tolist()), tuple(self.offset.tolist()), self.flip)


def rotation_matrix(axis: int, angle_degrees: float) -> np.ndarray:
    """Right-handed rotation matrix about a coordinate axis.

    Args:
        axis: 0 for x, 1 for y, 2 for z.
        angle_degrees: Rotation angle in degrees.

    Returns:
        3x3 float64 rotation matrix.

    Raises:
        ValueError: If axis is not 0, 1 or 2.
    """
    if axis not in (0, 1, 2):
        raise ValueError(f"Rotation axis must be 0, 1 or 2, got {axis}")
    theta = math.radians(angle_degrees)
    c, s = math.cos(theta), math.sin(theta)
    if axis == 0:
        return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])
    if axis == 1:
        return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


class Instance(Hittable):
    """A hittable placed with a rigid transform."""

    def __init__(self, obj: Hittable, transform: RigidTransform) -> None:
        self.object = obj
        self.transform = transform

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        return self.transform.apply_box(self.object.bounding_box(time0, time1))


class Translate(Instance):
    """Move a hittable by ``offset``."""

    def __init__(self, obj: Hittable, offset: Vec) -> None:
        super().__init__(obj, RigidTransform(offset=as_vec3(offset, "offset")))

    def __repr__(self) -> str:
        return f"Translate({self.object!r}, offset={self.transform.offset.tolist()})"


class Rotate(Instance):
    """Rotate a hittable by ``angle`` degrees about a coordinate axis."""

    def __init__(self, obj: Hittable, angle: float, axis: int = 1) -> None:
        super().__init__(obj, RigidTransform(rotation=rotation_matrix(axis, angle)))
        self.angle = float(angle)
        self.axis = axis

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.object!r}, angle={self.angle}, axis={self.axis})"


class RotateX(Rotate):
    def __init__(self, obj: Hittable, angle: float) -> None:
        super().__init__(obj, angle, axis=0)


class RotateY(Rotate):
    def __init__(self, obj: Hittable, angle: float) -> None:
        super().__init__(obj, angle, axis=1)


class RotateZ(Rotate):
    def __init__(self, obj: Hittable, angle: float) -> None:
        super().__init__(obj, angle, axis=2)


class FlipFace(Instance):
    """Swap the outward and inward faces of a hittable."""

    def __init__(self, obj: Hittable) -> None:
        super().__init__(obj, RigidTransform(flip=True))

    def __repr__(self) -> str:
        return f"FlipFace({self.object!r})"


# =============================================================================
# Device-side transform application
# =============================================================================


@ti.func
def to_local(rotation: mat3, offset: vec3, origin: vec3, direction: vec3):
    """Take a world-space ray into an instance's local frame.

    The inverse of ``rotation @ p + offset`` is ``rotation^T @ (p - offset)``
    because the rotation is orthonormal. Ray parameters t are unchanged.

    Returns:
        Tuple of (local_origin, local_direction).
    """
    rt = rotation.transpose()
    return rt @ (origin - offset), rt @ direction


@ti.func
def hit_to_world(
    rec: HitRecord,
    rotation: mat3,
    world_origin: vec3,
    world_direction: vec3,
    flip: ti.i32,
) -> HitRecord:
    """Bring a local-frame hit back to world space.

    The point is recomputed on the world ray (same t), the normal is
    rotated, and ``front_face`` is toggled for flipped instances.
    """
    point = rec.point
    normal = rec.normal
    front_face = rec.front_face
    if rec.hit == 1:
        point = world_origin + rec.t * world_direction
        normal = tm.normalize(rotation @ rec.normal)
        if flip == 1:
            front_face = 1 - rec.front_face
    return HitRecord(
        hit=rec.hit,
        t=rec.t,
        point=point,
        normal=normal,
        front_face=front_face,
        u=rec.u,
        v=rec.v,
        material_id=rec.material_id,
    )

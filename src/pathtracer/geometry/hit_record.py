"""Hit record shared by all primitive intersection routines.

Example:
    >>> # Inside a Taichi function
    >>> normal, front_face = face_normal(ray_direction, outward_normal)
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.dataclass
class HitRecord:
    """Record of a ray-surface intersection.

    Attributes:
        hit: Whether the ray intersected the surface (1 if hit, 0 if miss).
        t: The ray parameter of the intersection. Only valid if hit == 1.
        point: The 3D intersection point.
        normal: Unit surface normal, always facing against the incoming ray.
        front_face: 1 if the ray struck the outward side of the surface,
            0 if it came from inside.
        u: First surface texture coordinate.
        v: Second surface texture coordinate.
        material_id: Unified material id of the surface, -1 when unassigned.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32
    material_id: ti.i32


@ti.func
def make_miss_record() -> HitRecord:
    """A HitRecord with hit=0 and default values."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
        material_id=-1,
    )


@ti.func
def face_normal(ray_direction: vec3, outward_normal: vec3):
    """Orient an outward normal against the ray.

    Args:
        ray_direction: Direction of the incoming ray.
        outward_normal: Unit normal pointing out of the surface.

    Returns:
        Tuple of (normal, front_face) where normal faces the ray origin and
        front_face is 1 if the ray hit the outward side.
    """
    front_face = 1
    normal = outward_normal
    if tm.dot(ray_direction, outward_normal) > 0.0:
        front_face = 0
        normal = -outward_normal
    return normal, front_face

"""Geometry module: scene objects and their intersection routines.

Host-side classes (Sphere, MovingSphere, rectangles, Quad, Triangle,
HittableList, instances, ConstantMedium) describe the world. Device-side
functions (hit_sphere, hit_rect, hit_planar) intersect the flattened
primitives uploaded by pathtracer.scene.manager.
"""

from .hit_record import HitRecord, make_miss_record
from .hittables import (
    AxisAlignedRect,
    Hittable,
    HittableList,
    MovingSphere,
    Quad,
    Sphere,
    Triangle,
    XYRect,
    XZRect,
    YZRect,
    box,
)
from .instance import FlipFace, Instance, RigidTransform, RotateX, RotateY, RotateZ, Translate

# Note: medium is NOT imported here; it depends on pathtracer.materials, which
# imports HitRecord from this package. Use pathtracer.geometry.medium.ConstantMedium.

__all__ = [
    "HitRecord",
    "make_miss_record",
    "Hittable",
    "HittableList",
    "Sphere",
    "MovingSphere",
    "AxisAlignedRect",
    "XYRect",
    "XZRect",
    "YZRect",
    "Quad",
    "Triangle",
    "box",
    "Instance",
    "RigidTransform",
    "Translate",
    "RotateX",
    "RotateY",
    "RotateZ",
    "FlipFace",
]

"""Axis-aligned rectangle primitive.

A rectangle lies in the plane ``p[axis] == k`` and spans the box between two
corners in the other two coordinates. ``axis`` is the omitted axis: 2 for an
XY rectangle, 1 for XZ, 0 for YZ. The outward normal points along +axis, or
along -axis when the rectangle is flipped (the lower faces of a box).

Texture coordinates are the normalised in-rectangle coordinates of the hit
along the two free axes, taken in increasing axis order.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.hit_record import HitRecord, face_normal

vec3 = tm.vec3

AXIS_X = 0
AXIS_Y = 1
AXIS_Z = 2


@ti.dataclass
class RectGeometry:
    """An axis-aligned rectangle.

    Attributes:
        lower: Lower corner; lower[axis] is the plane offset k.
        upper: Upper corner; upper[axis] equals lower[axis].
        axis: The fixed axis (0, 1 or 2).
        sign: +1 for a +axis outward normal, -1 for -axis.
    """

    lower: vec3
    upper: vec3
    axis: ti.i32
    sign: ti.f32


@ti.func
def component(v: vec3, axis: ti.i32) -> ti.f32:
    """Coordinate of v along the given axis (0, 1 or 2)."""
    c = v.z
    if axis == AXIS_X:
        c = v.x
    elif axis == AXIS_Y:
        c = v.y
    return c


@ti.func
def axis_vector(axis: ti.i32) -> vec3:
    """Unit vector along the given axis."""
    result = vec3(0.0, 0.0, 1.0)
    if axis == AXIS_X:
        result = vec3(1.0, 0.0, 0.0)
    elif axis == AXIS_Y:
        result = vec3(0.0, 1.0, 0.0)
    return result


@ti.func
def _free_axes(axis: ti.i32):
    """The two axes spanned by a rectangle with the given fixed axis."""
    a = 0
    b = 1
    if axis == AXIS_X:
        a = 1
        b = 2
    elif axis == AXIS_Y:
        a = 0
        b = 2
    return a, b


@ti.func
def hit_rect(
    ray_origin: vec3,
    ray_direction: vec3,
    rect: RectGeometry,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-rectangle intersection.

    Solves for the t where the ray crosses the rectangle's plane and checks
    the crossing point against the extents along the two free axes. Rays
    parallel to the plane never hit.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        rect: The rectangle to test.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord; material_id is left at -1.
    """
    axis = rect.axis
    a, b = _free_axes(axis)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_u = 0.0
    hit_v = 0.0

    d = component(ray_direction, axis)
    if ti.abs(d) > 1e-8:
        t = (component(rect.lower, axis) - component(ray_origin, axis)) / d
        if t > t_min and t < t_max:
            p = ray_origin + t * ray_direction
            pa = component(p, a)
            pb = component(p, b)
            lo_a = component(rect.lower, a)
            hi_a = component(rect.upper, a)
            lo_b = component(rect.lower, b)
            hi_b = component(rect.upper, b)
            if pa >= lo_a and pa <= hi_a and pb >= lo_b and pb <= hi_b:
                did_hit = 1
                hit_t = t
                hit_point = p
                hit_u = (pa - lo_a) / (hi_a - lo_a)
                hit_v = (pb - lo_b) / (hi_b - lo_b)
                outward_normal = rect.sign * axis_vector(axis)
                hit_normal, is_front_face = face_normal(ray_direction, outward_normal)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=hit_u,
        v=hit_v,
        material_id=-1,
    )

"""Planar quad and triangle primitives.

Both shapes are defined by:
- Q: A corner point
- u: Edge vector from Q to an adjacent corner
- v: Edge vector from Q to the other adjacent corner

A quad spans the parallelogram Q + alpha*u + beta*v with alpha, beta in
[0, 1]; a triangle is the half of it where alpha + beta <= 1. The outward
normal is normalize(cross(u, v)) (right-hand rule).

Ray intersection uses the parametric plane test:
1. Find where the ray crosses the plane containing the shape
2. Express the crossing in (alpha, beta) and check the interior condition

The planar coordinates (alpha, beta) double as texture coordinates.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.hit_record import HitRecord, face_normal

vec3 = tm.vec3

SHAPE_QUAD = 0
SHAPE_TRIANGLE = 1


@ti.dataclass
class QuadGeometry:
    """A parallelogram (or triangle) defined by a corner and two edges.

    Attributes:
        Q: The corner point (vec3).
        u: Edge vector from Q to adjacent corner (vec3).
        v: Edge vector from Q to other adjacent corner (vec3).
    """

    Q: vec3
    u: vec3
    v: vec3


@ti.func
def _compute_quad_frame(quad: QuadGeometry):
    """Compute the plane normal and barycentric helper vectors.

    Any point P of the plane is P = Q + alpha * u + beta * v; with
    n = cross(u, v) the helper vectors w_u = cross(v, n) / |n|^2 and
    w_v = cross(n, u) / |n|^2 give alpha = dot(w_u, P - Q) and
    beta = dot(w_v, P - Q).

    Args:
        quad: The quad to compute the frame for.

    Returns:
        Tuple of (normal, d, w_u, w_v, degenerate) where d is the plane
        constant dot(normal, Q) and degenerate is 1 when u and v are parallel.
    """
    n = tm.cross(quad.u, quad.v)
    n_dot_n = tm.dot(n, n)

    normal = vec3(0.0, 0.0, 0.0)
    w_u = vec3(0.0, 0.0, 0.0)
    w_v = vec3(0.0, 0.0, 0.0)
    degenerate = 1

    if n_dot_n > 1e-20:
        normal = n / ti.sqrt(n_dot_n)
        w_u = tm.cross(quad.v, n) / n_dot_n
        w_v = tm.cross(n, quad.u) / n_dot_n
        degenerate = 0

    d = tm.dot(normal, quad.Q)
    return normal, d, w_u, w_v, degenerate


@ti.func
def hit_planar(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: QuadGeometry,
    shape: ti.i32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray intersection with a quad or triangle.

    The ray-plane crossing is
        t = (d - dot(normal, ray_origin)) / dot(normal, ray_direction)

    Rays parallel to the plane and degenerate shapes (u parallel to v)
    report a miss.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        quad: Corner and edges of the shape.
        shape: SHAPE_QUAD or SHAPE_TRIANGLE.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord with u, v = (alpha, beta); material_id is left at -1.
    """
    normal, d, w_u, w_v, degenerate = _compute_quad_frame(quad)
    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_u = 0.0
    hit_v = 0.0

    if degenerate == 0 and ti.abs(denom) > 1e-8:
        t = (d - tm.dot(normal, ray_origin)) / denom

        if t > t_min and t < t_max:
            p = ray_origin + t * ray_direction
            p_minus_q = p - quad.Q
            alpha = tm.dot(w_u, p_minus_q)
            beta = tm.dot(w_v, p_minus_q)

            inside = alpha >= 0.0 and alpha <= 1.0 and beta >= 0.0 and beta <= 1.0
            if shape == SHAPE_TRIANGLE:
                inside = alpha >= 0.0 and beta >= 0.0 and alpha + beta <= 1.0

            if inside:
                did_hit = 1
                hit_t = t
                hit_point = p
                hit_u = alpha
                hit_v = beta
                hit_normal, is_front_face = face_normal(ray_direction, normal)

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


"""Ray intersection for stationary and moving spheres.

This module provides the ray-sphere intersection used for both stationary and
moving spheres. A moving sphere's center is linearly interpolated between two
keyframe centers using the ray's time; a stationary sphere is simply one whose
two centers coincide.

The intersection uses the robust quadratic formula from Ray Tracing Gems, both
for the discriminant and for the choice of root, to avoid catastrophic
cancellation when b^2 is nearly equal to 4ac.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.sphere import SphereGeometry, hit_sphere
    >>> sphere = SphereGeometry(center0=ti.math.vec3(0, 0, -1), center1=ti.math.vec3(0, 0, -1),
    ...                         radius=0.5, time0=0.0, time1=1.0)
    >>> # inside a kernel: rec = hit_sphere(origin, direction, time, sphere, 1e-3, 1e30)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.hit_record import HitRecord, face_normal

vec3 = tm.vec3


@ti.dataclass
class SphereGeometry:
    """A sphere whose center moves linearly between two keyframes.

    Attributes:
        center0: Center at time0.
        center1: Center at time1 (equal to center0 for a stationary sphere).
        radius: Radius, positive.
        time0: Time of the first keyframe.
        time1: Time of the second keyframe.
    """

    center0: vec3
    center1: vec3
    radius: ti.f32
    time0: ti.f32
    time1: ti.f32


@ti.func
def sphere_center(sphere: SphereGeometry, time: ti.f32) -> vec3:
    """Center of the sphere at the given time.

    Args:
        sphere: The (possibly moving) sphere.
        time: Ray time.

    Returns:
        center0 + ((time - time0) / (time1 - time0)) * (center1 - center0),
        or center0 when the keyframe times coincide.
    """
    center = sphere.center0
    span = sphere.time1 - sphere.time0
    if ti.abs(span) > 1e-12:
        center = sphere.center0 + ((time - sphere.time0) / span) * (
            sphere.center1 - sphere.center0
        )
    return center


@ti.func
def sphere_uv(p: vec3):
    """Texture coordinates of a point on the unit sphere.

    u is the angle around the Y axis starting at X=-1, v the angle from Y=-1
    to Y=+1, both normalised to [0, 1].

    Args:
        p: A point on the sphere of radius one centered at the origin.

    Returns:
        Tuple of (u, v).
    """
    theta = ti.acos(tm.clamp(-p.y, -1.0, 1.0))
    phi = ti.atan2(-p.z, p.x) + tm.pi
    return phi / (2.0 * tm.pi), theta / tm.pi


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 using a numerically stable method.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: sqrt(h^2 - a*c).

    Returns:
        The roots (t0, t1), ordered so that t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray through the center plane; fall back to the standard formula
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    sphere: SphereGeometry,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection using the robust quadratic formula.

    The intersection is found by solving:
        |ray_origin + t * ray_direction - center(time)|^2 = radius^2

    which in half-b form is a*t^2 + 2*h*t + c = 0 with
        a = dot(direction, direction)
        h = dot(direction, oc)
        c = dot(oc, oc) - radius^2
        oc = origin - center

    The discriminant is evaluated as a * (radius^2 - |oc - (h / a) * direction|^2),
    which equals h^2 - a*c but keeps its precision for distant spheres.

    Of the two roots, the smaller one inside (t_min, t_max) is returned; the
    larger root is used only when the smaller is out of range.

    Args:
        ray_origin: Ray origin.
        ray_direction: Ray direction, any non-zero length.
        ray_time: Ray time, places a moving sphere.
        sphere: Sphere to intersect.
        t_min: Open lower bound of the accepted t interval.
        t_max: Open upper bound of the accepted t interval.

    Returns:
        A HitRecord with u, v set from the hit point; material_id is left
        at -1 for the caller to fill in.
    """
    center = sphere_center(sphere, ray_time)
    oc = ray_origin - center

    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius

    # h*h - a*c written without the cancellation between |oc|^2 and r^2
    l = oc - ti.select(a > 0.0, h / a, 0.0) * ray_direction
    discriminant = a * (sphere.radius * sphere.radius - tm.dot(l, l))

    # Declared up front: Taichi scopes variables to their block
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_u = 0.0
    hit_v = 0.0

    if discriminant >= 0.0 and a > 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)

        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction

            outward_normal = (hit_point - center) / sphere.radius
            hit_normal, is_front_face = face_normal(ray_direction, outward_normal)
            hit_u, hit_v = sphere_uv(outward_normal)

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

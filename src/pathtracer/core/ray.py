"""Rays, plus the vector and direction-sampling helpers used while shading.

A ray carries a time stamp next to its origin and direction; moving spheres
are intersected at that instant. All functions are Taichi funcs.

Directions are drawn from an explicit sampler stream (see
:mod:`pathtracer.core.sampler`) so that renders are reproducible.

Example:
    >>> ray = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0), 0.5)
    >>> p = ray_at(ray, 5.0)  # (0, 0, -5)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.sampler import next_float

vec3 = tm.vec3


@ti.dataclass
class Ray:
    """Origin, direction and time of a ray.

    Attributes:
        origin: Where the ray starts.
        direction: Any non-zero vector; it is not normalized.
        time: Instant within the shutter interval that the ray samples.
    """

    origin: vec3
    direction: vec3
    time: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Point reached after travelling t direction-lengths along the ray."""
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, time: ti.f32) -> Ray:
    return Ray(origin=origin, direction=direction, time=time)


# =============================================================================
# Vector Helpers
# =============================================================================


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """1 when every component of v is below 1e-8 in magnitude."""
    eps = 1e-8
    return ti.abs(v.x) < eps and ti.abs(v.y) < eps and ti.abs(v.z) < eps


@ti.func
def reflect(v: vec3, n: vec3) -> vec3:
    """Mirror v about the unit normal n."""
    return v - 2.0 * tm.dot(v, n) * n


@ti.func
def refract(uv: vec3, normal: vec3, etai_over_etat: ti.f32) -> vec3:
    """Refract a unit vector through a surface using Snell's law.

    Total internal reflection must be ruled out by the caller.

    Args:
        uv: The incoming unit direction.
        normal: The unit surface normal facing against ``uv``.
        etai_over_etat: Ratio of refractive indices (incident / transmitted).

    Returns:
        The refracted direction.
    """
    cos_theta = tm.min(-tm.dot(uv, normal), 1.0)
    r_out_perp = etai_over_etat * (uv + cos_theta * normal)
    r_out_parallel = -ti.sqrt(ti.abs(1.0 - tm.dot(r_out_perp, r_out_perp))) * normal
    return r_out_perp + r_out_parallel


@ti.func
def schlick_fresnel(cosine: ti.f32, ratio: ti.f32) -> ti.f32:
    """Schlick's polynomial estimate of the Fresnel reflectance.

    Args:
        cosine: Cosine of the incidence angle.
        ratio: Refractive index ratio across the interface.
    """
    r0 = (1.0 - ratio) / (1.0 + ratio)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * (1.0 - cosine) ** 5


# =============================================================================
# Direction Sampling
# =============================================================================


@ti.func
def random_unit_vector(stream: ti.i32) -> vec3:
    """Uniform direction on the unit sphere.

    Uses the z / azimuth parameterisation, so exactly two numbers are drawn
    from the stream per call.
    """
    z = 1.0 - 2.0 * next_float(stream)
    phi = 2.0 * tm.pi * next_float(stream)
    r = ti.sqrt(tm.max(0.0, 1.0 - z * z))
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)


@ti.func
def random_in_unit_disk(stream: ti.i32) -> vec3:
    """Uniform point (x, y, 0) on the unit disk, for lens sampling."""
    r = ti.sqrt(next_float(stream))
    phi = 2.0 * tm.pi * next_float(stream)
    return vec3(r * ti.cos(phi), r * ti.sin(phi), 0.0)

"""Dielectric (glass, water) scattering.

A dielectric always scatters: it reflects or refracts with probability given
by Schlick's approximation of the Fresnel reflectance, and reflects with
certainty under total internal reflection. Clear dielectrics absorb nothing,
so the attenuation is white.

Snell's law:
    eta_i * sin(theta_i) = eta_t * sin(theta_t)

Example:
    >>> # Use within a Taichi function:
    >>> # direction, attenuation, did_scatter = scatter_dielectric(
    >>> #     ior, unit_direction, normal, front_face, stream
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect, refract, schlick_fresnel
from pathtracer.core.sampler import next_float

vec3 = tm.vec3


@ti.func
def refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    """Ratio eta_i / eta_t for a ray entering (front face) or leaving."""
    ratio = ior
    if front_face == 1:
        ratio = 1.0 / ior
    return ratio


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
):
    """Compute the scattered direction for a dielectric surface.

    Args:
        ior: Index of refraction of the material relative to its surroundings.
        incident_direction: The incoming ray direction (unit length).
        normal: Unit surface normal facing the incoming ray.
        front_face: 1 if the ray enters the material, 0 if it leaves.
        stream: Sampler stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter); the
        attenuation is (1, 1, 1) and did_scatter is always 1.
    """
    ri = refraction_ratio(ior, front_face)

    cos_theta = tm.min(-tm.dot(incident_direction, normal), 1.0)
    sin_theta = ti.sqrt(tm.max(0.0, 1.0 - cos_theta * cos_theta))

    # Total internal reflection: sin(theta_t) = ri * sin(theta_i) > 1
    cannot_refract = ri * sin_theta > 1.0

    # One draw per scatter, even under total internal reflection
    u = next_float(stream)

    # Matched indices have no interface to reflect from
    reflectance = 0.0
    if ri != 1.0:
        reflectance = schlick_fresnel(cos_theta, ri)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract or u < reflectance:
        scattered_direction = reflect(incident_direction, normal)
    else:
        scattered_direction = refract(incident_direction, normal, ri)

    return scattered_direction, vec3(1.0, 1.0, 1.0), 1

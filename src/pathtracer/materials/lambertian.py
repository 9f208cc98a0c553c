"""Lambertian (ideal diffuse) scattering.

The scattered direction is the surface normal plus a uniformly distributed
unit vector, which gives a cosine-weighted distribution over the hemisphere
around the normal. With that sampling the BRDF, the cosine term and the pdf
cancel, so the attenuation is simply the albedo.

Example:
    >>> # Use within a Taichi function:
    >>> # direction, attenuation, did_scatter = scatter_lambertian(albedo, normal, stream)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero, random_unit_vector

vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3, stream: ti.i32):
    """Sample a scattered direction for a Lambertian surface.

    Args:
        albedo: Diffuse reflectance evaluated at the hit point.
        normal: Unit surface normal facing the incoming ray.
        stream: Sampler stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). The
        direction is not normalized; did_scatter is always 1.
    """
    scattered_direction = normal + random_unit_vector(stream)

    # Catch degenerate scatter direction
    if near_zero(scattered_direction):
        scattered_direction = normal

    return scattered_direction, albedo, 1

"""Metal (specular reflective) scattering.

The incident direction is mirrored about the normal, then perturbed by a
random unit vector scaled by ``fuzz``. A perturbed direction that ends up
below the surface is absorbed.

The reflection formula is:
    R = I - 2(I . N)N

Example:
    >>> # Use within a Taichi function:
    >>> # direction, attenuation, did_scatter = scatter_metal(
    >>> #     albedo, fuzz, incident_dir, normal, stream
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector, reflect

vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    stream: ti.i32,
):
    """Compute the scattered direction for a metal surface.

    Args:
        albedo: The reflective color.
        fuzz: Perturbation radius in [0, 1]. 0 = perfect mirror.
        incident_direction: The incoming ray direction (unit length).
        normal: Unit surface normal facing the incoming ray.
        stream: Sampler stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is 0 if the fuzzed reflection points into the surface.
    """
    reflected = tm.normalize(reflect(incident_direction, normal))
    scattered_direction = reflected + fuzz * random_unit_vector(stream)

    did_scatter = 1
    if tm.dot(scattered_direction, normal) <= 0.0:
        did_scatter = 0

    return scattered_direction, albedo, did_scatter

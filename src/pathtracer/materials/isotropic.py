"""Isotropic phase function for participating media.

Light hitting a scattering point inside a medium leaves in a uniformly random
direction, tinted by the medium's albedo.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector

vec3 = tm.vec3


@ti.func
def scatter_isotropic(albedo: vec3, stream: ti.i32):
    """Sample a uniformly distributed direction.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    return random_unit_vector(stream), albedo, 1

"""Core rendering module.

Components:
    sampler: Per-pixel deterministic random streams
    ray: Ray data structure and vector/sampling helpers
    aabb: Axis-aligned bounding boxes (host and device)
    integrator: Path tracing estimator and render target
    renderer: Renderer driver over a complete Scene
"""

from .aabb import AABB, hit_aabb
from .ray import (
    Ray,
    make_ray,
    near_zero,
    random_in_unit_disk,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
)
from .sampler import next_float, pixel_stream, seed_stream

# Note: integrator and renderer are NOT imported here to avoid circular imports.
# Use pathtracer.core.renderer.Renderer for rendering a Scene.

__all__ = [
    "AABB",
    "hit_aabb",
    "Ray",
    "make_ray",
    "ray_at",
    "near_zero",
    "reflect",
    "refract",
    "schlick_fresnel",
    "random_unit_vector",
    "random_in_unit_disk",
    "next_float",
    "pixel_stream",
    "seed_stream",
]

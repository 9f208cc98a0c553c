"""Monte Carlo path tracer built on Taichi.

This package renders scenes of spheres, rectangles, quads and constant media
with unidirectional path tracing, with support for:
- Diffuse, metal, dielectric, isotropic and emissive materials
- Solid, checker, Perlin noise and image textures
- Thin-lens camera with defocus and motion blur
- BVH acceleration and deterministic, batch-independent sampling

Subpackages:
    core: Ray, sampler, bounding boxes, integrator and renderer driver
    geometry: Host-side hittables and device-side intersection routines
    materials: Material descriptions and scattering functions
    textures: Texture descriptions and lookups
    scene: Scene container, BVH and device upload
    camera: Thin-lens camera with ray generation

Taichi must be initialized (``ti.init``) before any submodule is imported.
"""

__version__ = "0.1.0"

"""Constant-density participating media (smoke, fog).

A :class:`ConstantMedium` fills the inside of a closed boundary object with a
homogeneous medium. A ray crossing the boundary scatters somewhere inside
with probability that grows with the chord length; the scatter distance is
exponentially distributed with rate ``density``.

On upload the boundary's primitives are stored after the scene primitives so
that the medium can intersect them on its own; the medium itself becomes one
leaf of the BVH with the boundary's bounding box.
"""

from __future__ import annotations

from pathtracer.core.aabb import AABB
from pathtracer.geometry.hittables import Hittable
from pathtracer.materials.material import Isotropic
from pathtracer.textures.texture import ColorOrTexture


class ConstantMedium(Hittable):
    """Homogeneous medium bounded by another hittable.

    Args:
        boundary: A closed surface (sphere, box, or wrapped versions of these).
            Its materials are ignored and may be None.
        density: Extinction coefficient, must be positive.
        albedo: Texture or color of the isotropic phase function.

    Raises:
        ValueError: If density is not positive.
    """

    def __init__(self, boundary: Hittable, density: float, albedo: ColorOrTexture) -> None:
        if density <= 0.0:
            raise ValueError(f"Medium density must be positive, got {density}")
        self.boundary = boundary
        self.density = float(density)
        self.phase_function = Isotropic(albedo)

    @property
    def neg_inv_density(self) -> float:
        return -1.0 / self.density

    def bounding_box(self, time0: float = 0.0, time1: float = 1.0) -> AABB:
        return self.boundary.bounding_box(time0, time1)

    def __repr__(self) -> str:
        return f"ConstantMedium({self.boundary!r}, density={self.density})"

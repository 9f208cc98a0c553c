"""Material models.

Components:
    lambertian: Ideal diffuse reflection
    metal: Specular reflection with optional fuzz
    dielectric: Glass-like refraction with Schlick reflectance
    isotropic: Phase function of constant media
    material: Host material classes, device table and scatter dispatch
"""

from .material import (
    Dielectric,
    DiffuseLight,
    Isotropic,
    Lambertian,
    Material,
    MaterialType,
    Metal,
)

__all__ = [
    "Material",
    "MaterialType",
    "Lambertian",
    "Metal",
    "Dielectric",
    "Isotropic",
    "DiffuseLight",
]

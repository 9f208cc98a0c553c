"""Material types, unified material registry and device-side dispatch.

Host-side material objects are shared by reference between primitives. When
a scene is uploaded each distinct material object is registered once and
given a unified material id; the device looks up its type tag and parameters
by that id and dispatches to the per-type scatter functions.

Material storage is a single structure-of-arrays table:

    material_types[id]     MaterialType tag
    material_textures[id]  texture id (Lambertian, Isotropic, DiffuseLight)
    material_albedos[id]   albedo color (Metal)
    material_fuzz[id]      fuzz radius (Metal)
    material_iors[id]      index of refraction (Dielectric)

Example:
    >>> red = Lambertian((0.65, 0.05, 0.05))
    >>> light = DiffuseLight((15.0, 15.0, 15.0))
    >>> textures: dict[int, int] = {}
    >>> materials: dict[int, int] = {}
    >>> red_id = register_material(red, materials, textures)
"""

from collections.abc import Sequence
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.errors import SceneError
from pathtracer.geometry.hit_record import HitRecord
from pathtracer.materials.dielectric import scatter_dielectric
from pathtracer.materials.isotropic import scatter_isotropic
from pathtracer.materials.lambertian import scatter_lambertian
from pathtracer.materials.metal import scatter_metal
from pathtracer.textures.texture import (
    ColorOrTexture,
    Texture,
    as_texture,
    register_texture,
    texture_value,
    validate_color,
)

vec3 = tm.vec3


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    ISOTROPIC = 3
    DIFFUSE_LIGHT = 4


MAX_MATERIALS = 1024


# =============================================================================
# Host-side Material Objects
# =============================================================================


class Material:
    """Base class for materials."""

    material_type: MaterialType


class Lambertian(Material):
    """Ideal diffuse reflector.

    Args:
        albedo: A texture, or an RGB color wrapped in a SolidColor.
    """

    material_type = MaterialType.LAMBERTIAN

    def __init__(self, albedo: ColorOrTexture) -> None:
        self.albedo: Texture = as_texture(albedo)

    def __repr__(self) -> str:
        return f"Lambertian({self.albedo!r})"


class Metal(Material):
    """Specular reflector with optional fuzz.

    Args:
        albedo: Reflective color, components in [0, 1].
        fuzz: Perturbation radius. Values above 1 are clamped to 1.

    Raises:
        ValueError: If an albedo component is outside [0, 1] or fuzz is negative.
    """

    material_type = MaterialType.METAL

    def __init__(self, albedo: Sequence[float], fuzz: float = 0.0) -> None:
        color = validate_color(albedo, "albedo")
        for i, c in enumerate(color):
            if c > 1.0:
                raise ValueError(f"Metal albedo component {i} = {c} must be in [0, 1]")
        if fuzz < 0.0:
            raise ValueError(f"Metal fuzz must be non-negative, got {fuzz}")
        self.albedo = color
        self.fuzz = min(float(fuzz), 1.0)

    def __repr__(self) -> str:
        return f"Metal({self.albedo}, fuzz={self.fuzz})"


class Dielectric(Material):
    """Clear refractive material.

    Args:
        refraction_index: Index of refraction relative to the surrounding
            medium. Values below 1 model e.g. an air bubble in water.

    Raises:
        ValueError: If refraction_index is not positive.
    """

    material_type = MaterialType.DIELECTRIC

    def __init__(self, refraction_index: float) -> None:
        if refraction_index <= 0.0:
            raise ValueError(f"Refraction index must be positive, got {refraction_index}")
        self.refraction_index = float(refraction_index)

    def __repr__(self) -> str:
        return f"Dielectric({self.refraction_index})"


class Isotropic(Material):
    """Phase function of a constant-density medium."""

    material_type = MaterialType.ISOTROPIC

    def __init__(self, albedo: ColorOrTexture) -> None:
        self.albedo: Texture = as_texture(albedo)

    def __repr__(self) -> str:
        return f"Isotropic({self.albedo!r})"


class DiffuseLight(Material):
    """Emitter that never scatters.

    Args:
        emit: Emitted radiance as a texture or color. Components may exceed 1.
    """

    material_type = MaterialType.DIFFUSE_LIGHT

    def __init__(self, emit: ColorOrTexture) -> None:
        self.emit: Texture = as_texture(emit)

    def __repr__(self) -> str:
        return f"DiffuseLight({self.emit!r})"


# =============================================================================
# Material Registry (Taichi fields)
# =============================================================================

material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_textures = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_fuzz = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_iors = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials."""
    num_materials[None] = 0


def get_material_count() -> int:
    """Get the number of registered materials."""
    return int(num_materials[None])


def _add_material_entry(
    material_type: MaterialType,
    texture_id: int = -1,
    albedo: Sequence[float] = (0.0, 0.0, 0.0),
    fuzz: float = 0.0,
    ior: float = 1.0,
) -> int:
    material_id = num_materials[None]
    if material_id >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    material_types[material_id] = int(material_type)
    material_textures[material_id] = texture_id
    material_albedos[material_id] = vec3(albedo[0], albedo[1], albedo[2])
    material_fuzz[material_id] = fuzz
    material_iors[material_id] = ior
    num_materials[None] = material_id + 1
    return material_id


def add_lambertian_material(texture_id: int) -> int:
    """Add a Lambertian material reading its albedo from a texture.

    Returns:
        The unified material ID for this material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    return _add_material_entry(MaterialType.LAMBERTIAN, texture_id=texture_id)


def add_metal_material(albedo: Sequence[float], fuzz: float = 0.0) -> int:
    """Add a metal material.

    Raises:
        ValueError: If fuzz is outside [0, 1].
        RuntimeError: If the maximum number of materials is exceeded.
    """
    if not 0.0 <= fuzz <= 1.0:
        raise ValueError(f"Metal fuzz must be in [0, 1], got {fuzz}")
    return _add_material_entry(MaterialType.METAL, albedo=albedo, fuzz=fuzz)


def add_dielectric_material(ior: float) -> int:
    """Add a dielectric material.

    Raises:
        ValueError: If ior is not positive.
        RuntimeError: If the maximum number of materials is exceeded.
    """
    if ior <= 0.0:
        raise ValueError(f"Refraction index must be positive, got {ior}")
    return _add_material_entry(MaterialType.DIELECTRIC, ior=ior)


def add_isotropic_material(texture_id: int) -> int:
    """Add an isotropic phase function reading its albedo from a texture."""
    return _add_material_entry(MaterialType.ISOTROPIC, texture_id=texture_id)


def add_diffuse_light_material(texture_id: int) -> int:
    """Add a diffuse light emitting the value of a texture."""
    return _add_material_entry(MaterialType.DIFFUSE_LIGHT, texture_id=texture_id)


def register_material(
    material: Material,
    registered_materials: dict[int, tuple[Material, int]],
    registered_textures: dict[int, tuple[Texture, int]],
) -> int:
    """Upload a host material (and its texture) once, returning its id.

    Args:
        material: The material to register.
        registered_materials: Map from ``id(material)`` to the material and
            its id, updated in place. Holding the material keeps its
            ``id()`` from being reused while the map is alive.
        registered_textures: Map from ``id(texture)`` to the texture and its
            id, passed on to :func:`register_texture`.

    Returns:
        The unified material id.

    Raises:
        SceneError: If the object is not a known material.
    """
    entry = registered_materials.get(id(material))
    if entry is not None and entry[0] is material:
        return entry[1]

    if isinstance(material, Lambertian):
        material_id = add_lambertian_material(
            register_texture(material.albedo, registered_textures)
        )
    elif isinstance(material, Metal):
        material_id = add_metal_material(material.albedo, material.fuzz)
    elif isinstance(material, Dielectric):
        material_id = add_dielectric_material(material.refraction_index)
    elif isinstance(material, Isotropic):
        material_id = add_isotropic_material(
            register_texture(material.albedo, registered_textures)
        )
    elif isinstance(material, DiffuseLight):
        material_id = add_diffuse_light_material(
            register_texture(material.emit, registered_textures)
        )
    else:
        raise SceneError(f"Unsupported material object: {material!r}")

    registered_materials[id(material)] = (material, material_id)
    return material_id


# =============================================================================
# Device-side Dispatch
# =============================================================================


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID, or -1 if invalid."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def scatter(material_id: ti.i32, ray_direction: vec3, rec: HitRecord, stream: ti.i32):
    """Scatter an incoming ray at a hit point.

    Args:
        material_id: Unified material id of the surface that was hit.
        ray_direction: Direction of the incoming ray (any non-zero length).
        rec: The hit record.
        stream: Sampler stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
        Lights and unknown ids never scatter.
    """
    mat_type = get_material_type(material_id)
    unit_direction = tm.normalize(ray_direction)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        albedo = texture_value(material_textures[material_id], rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_lambertian(
            albedo, rec.normal, stream
        )
    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal(
            material_albedos[material_id],
            material_fuzz[material_id],
            unit_direction,
            rec.normal,
            stream,
        )
    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric(
            material_iors[material_id], unit_direction, rec.normal, rec.front_face, stream
        )
    elif mat_type == int(MaterialType.ISOTROPIC):
        albedo = texture_value(material_textures[material_id], rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_isotropic(albedo, stream)

    return scattered_direction, attenuation, did_scatter


@ti.func
def emitted(material_id: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Radiance emitted at a surface point; black for everything but lights."""
    color = vec3(0.0, 0.0, 0.0)
    if get_material_type(material_id) == int(MaterialType.DIFFUSE_LIGHT):
        color = texture_value(material_textures[material_id], u, v, p)
    return color

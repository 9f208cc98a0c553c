"""Scene upload: from a tree of host objects to device arenas.

The SceneManager walks a world made of hittables, lists and instance
wrappers and:

- composes the rigid transforms along every path into one transform per leaf
  (transforms shared by several leaves are uploaded once),
- registers each distinct material and texture object once, so primitives
  refer to shared ids rather than copies,
- stores the leaves in the primitive arena, with the boundary surfaces of
  constant media after the scene leaves,
- builds the BVH over the scene leaves and uploads it.

Example:
    >>> manager = SceneManager()
    >>> stats = manager.load(world)
    >>> stats.primitives, stats.materials
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pathtracer.core.aabb import AABB
from pathtracer.errors import SceneError
from pathtracer.geometry.hittables import (
    AxisAlignedRect,
    Hittable,
    HittableList,
    MovingSphere,
    Quad,
    Sphere,
    Triangle,
)
from pathtracer.geometry.instance import Instance, RigidTransform
from pathtracer.geometry.medium import ConstantMedium
from pathtracer.materials.material import (
    Material,
    clear_materials,
    get_material_count,
    register_material,
)
from pathtracer.scene.bvh import build_bvh
from pathtracer.scene.intersection import (
    BVH_STACK_SIZE,
    add_medium,
    add_medium_primitive,
    add_planar,
    add_rect,
    add_sphere,
    add_transform,
    clear_scene,
    set_scene_primitive_count,
    upload_bvh,
)
from pathtracer.textures.texture import Texture, clear_textures, get_texture_count

logger = logging.getLogger(__name__)


@dataclass
class SceneStats:
    """Summary of an uploaded scene.

    Attributes:
        primitives: Number of scene leaves (BVH leaves).
        boundary_primitives: Number of surfaces bounding constant media.
        materials: Number of distinct materials.
        textures: Number of distinct textures.
        transforms: Number of distinct rigid transforms.
        media: Number of constant media.
        bvh_nodes: Number of BVH nodes.
        bvh_depth: Number of BVH levels.
    """

    primitives: int = 0
    boundary_primitives: int = 0
    materials: int = 0
    textures: int = 0
    transforms: int = 0
    media: int = 0
    bvh_nodes: int = 0
    bvh_depth: int = 0


@dataclass
class _Leaf:
    obj: Hittable
    transform: RigidTransform
    material_id: int
    box: AABB
    boundary: list[_Leaf] | None = None


class SceneManager:
    """Uploads worlds into the device-side scene arenas.

    Only one scene is resident at a time: :meth:`load` replaces whatever was
    uploaded before.

    Args:
        time0: Start of the time interval the BVH boxes must cover.
        time1: End of that interval.
    """

    def __init__(self, time0: float = 0.0, time1: float = 1.0) -> None:
        self.time0 = time0
        self.time1 = time1
        self.stats = SceneStats()
        self._registered_materials: dict[int, tuple[Material, int]] = {}
        self._registered_textures: dict[int, tuple[Texture, int]] = {}
        self._transform_ids: dict[tuple, int] = {}
        self.clear()

    def clear(self) -> None:
        """Clear all primitives, materials and textures."""
        clear_scene()
        clear_materials()
        clear_textures()
        self._registered_materials.clear()
        self._registered_textures.clear()
        self._transform_ids.clear()
        self.stats = SceneStats()

    # =========================================================================
    # Tree walk
    # =========================================================================

    def _material_id(self, obj: Hittable) -> int:
        material = getattr(obj, "material", None)
        if material is None:
            raise SceneError(f"{obj!r} has no material")
        return register_material(material, self._registered_materials, self._registered_textures)

    def _collect(
        self,
        obj: Any,
        transform: RigidTransform,
        out: list[_Leaf],
        in_medium: bool,
    ) -> None:
        if isinstance(obj, (HittableList, list, tuple)):
            for child in obj:
                self._collect(child, transform, out, in_medium)
        elif isinstance(obj, Instance):
            self._collect(obj.object, transform.compose(obj.transform), out, in_medium)
        elif isinstance(obj, ConstantMedium):
            if in_medium:
                raise SceneError("Constant media cannot be nested inside a medium boundary")
            boundary: list[_Leaf] = []
            self._collect(obj.boundary, transform, boundary, True)
            if not boundary:
                raise SceneError(f"{obj!r} has an empty boundary")
            material_id = register_material(
                obj.phase_function, self._registered_materials, self._registered_textures
            )
            box = transform.apply_box(obj.bounding_box(self.time0, self.time1))
            out.append(_Leaf(obj, transform, material_id, box, boundary))
        elif isinstance(obj, (Sphere, AxisAlignedRect, Quad)):
            box = transform.apply_box(obj.bounding_box(self.time0, self.time1))
            # Boundary surfaces only delimit a medium and never shade
            material_id = -1 if in_medium else self._material_id(obj)
            out.append(_Leaf(obj, transform, material_id, box))
        else:
            raise SceneError(f"Unsupported scene object: {obj!r}")

    # =========================================================================
    # Upload
    # =========================================================================

    def _transform_index(self, transform: RigidTransform) -> int:
        if transform.is_identity():
            return -1
        key = transform.key()
        if key not in self._transform_ids:
            self._transform_ids[key] = add_transform(
                transform.rotation, transform.offset, transform.flip
            )
        return self._transform_ids[key]

    def _upload_surface(self, leaf: _Leaf) -> int:
        obj = leaf.obj
        xform = self._transform_index(leaf.transform)
        if isinstance(obj, MovingSphere):
            return add_sphere(
                obj.center0,
                obj.center1,
                obj.radius,
                leaf.material_id,
                time0=obj.time0,
                time1=obj.time1,
                xform=xform,
            )
        if isinstance(obj, Sphere):
            return add_sphere(obj.center, obj.center, obj.radius, leaf.material_id, xform=xform)
        if isinstance(obj, AxisAlignedRect):
            lower, upper = obj.corners()
            return add_rect(
                lower, upper, obj.axis, leaf.material_id, flipped=obj.flipped, xform=xform
            )
        return add_planar(
            obj.Q,
            obj.u,
            obj.v,
            leaf.material_id,
            triangle=isinstance(obj, Triangle),
            xform=xform,
        )

    def load(self, world: Hittable | Iterable[Hittable]) -> SceneStats:
        """Replace the resident scene with ``world``.

        Args:
            world: A hittable (typically a HittableList) or a list of them.

        Returns:
            Counts describing the uploaded scene.

        Raises:
            SceneError: If the world contains an unknown object, a surface
                without material, or nested media.
            RuntimeError: If a device arena capacity is exceeded.
        """
        self.clear()

        leaves: list[_Leaf] = []
        self._collect(world, RigidTransform.identity(), leaves, in_medium=False)

        # Medium boundaries go right after the scene leaves
        next_boundary = len(leaves)
        medium_ids: dict[int, int] = {}
        for index, leaf in enumerate(leaves):
            if leaf.boundary is not None:
                count = len(leaf.boundary)
                medium_ids[index] = add_medium(leaf.obj.density, next_boundary, count)
                next_boundary += count

        for index, leaf in enumerate(leaves):
            if leaf.boundary is not None:
                add_medium_primitive(medium_ids[index], leaf.material_id)
            else:
                self._upload_surface(leaf)
        set_scene_primitive_count(len(leaves))

        boundary_count = 0
        for leaf in leaves:
            for surface in leaf.boundary or ():
                self._upload_surface(surface)
                boundary_count += 1

        flat = build_bvh([leaf.box for leaf in leaves])
        if flat.depth >= BVH_STACK_SIZE:
            raise RuntimeError(
                f"BVH depth {flat.depth} exceeds the traversal stack ({BVH_STACK_SIZE})"
            )
        upload_bvh(flat.mins, flat.maxs, flat.children, flat.primitives)

        self.stats = SceneStats(
            primitives=len(leaves),
            boundary_primitives=boundary_count,
            materials=get_material_count(),
            textures=get_texture_count(),
            transforms=len(self._transform_ids),
            media=len(medium_ids),
            bvh_nodes=flat.num_nodes,
            bvh_depth=flat.depth,
        )
        logger.info(
            "Loaded scene: %d primitives (%d boundary surfaces), %d materials, "
            "%d textures, %d media, %d BVH nodes",
            self.stats.primitives,
            self.stats.boundary_primitives,
            self.stats.materials,
            self.stats.textures,
            self.stats.media,
            self.stats.bvh_nodes,
        )
        return self.stats

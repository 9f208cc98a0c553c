"""Scene-level ray intersection over the primitive arena and the BVH.

All primitives of the uploaded scene live in one structure-of-arrays arena.
A primitive is a tagged record:

    kind        p0       p1       p2   f                       i
    SPHERE      center0  center1  -    (radius, time0, time1)  -
    RECT        lower    upper    -    (normal sign, -, -)     axis
    QUAD        Q        u        v    -                       -
    TRIANGLE    Q        u        v    -                       -
    MEDIUM      -        -        -    -                       medium index

plus a unified material id and the index of a rigid transform (-1 if the
primitive is not instanced). Primitives ``[0, num_scene_primitives)`` are the
scene leaves the BVH refers to; the boundary surfaces of constant media are
stored after them and are only reached through their medium.

Example:
    >>> clear_scene()
    >>> add_sphere((0, 0, -1), (0, 0, -1), 0.5, material_id=0)
    >>> # build and upload a BVH (see pathtracer.scene.bvh), then inside a kernel:
    >>> # rec = intersect_bvh(origin, direction, time, 1e-3, 1e30, stream)
"""

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.aabb import hit_aabb
from pathtracer.core.sampler import next_float_open
from pathtracer.geometry.hit_record import HitRecord, make_miss_record
from pathtracer.geometry.instance import hit_to_world, to_local
from pathtracer.geometry.quad import SHAPE_QUAD, SHAPE_TRIANGLE, QuadGeometry, hit_planar
from pathtracer.geometry.rect import RectGeometry, hit_rect
from pathtracer.geometry.sphere import SphereGeometry, hit_sphere

vec3 = tm.vec3

# Primitive kinds
PRIM_SPHERE = 0
PRIM_RECT = 1
PRIM_QUAD = 2
PRIM_TRIANGLE = 3
PRIM_MEDIUM = 4

MAX_PRIMITIVES = 16384
MAX_TRANSFORMS = 4096
MAX_MEDIA = 64
MAX_BVH_NODES = 2 * MAX_PRIMITIVES
BVH_STACK_SIZE = 64

# Stand-ins for an unbounded interval when intersecting medium boundaries
INFINITY = 1e30
MEDIUM_EXIT_OFFSET = 1e-4

# Primitive storage: Structure of Arrays layout
prim_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_p0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_p1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_p2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_f = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_i = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_material = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_xform = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())
num_scene_primitives = ti.field(dtype=ti.i32, shape=())

# Rigid transforms shared by instanced primitives
xform_rotation = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_TRANSFORMS)
xform_offset = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRANSFORMS)
xform_flip = ti.field(dtype=ti.i32, shape=MAX_TRANSFORMS)
num_transforms = ti.field(dtype=ti.i32, shape=())

# Constant media: -1/density and the range of their boundary primitives
medium_neg_inv_density = ti.field(dtype=ti.f32, shape=MAX_MEDIA)
medium_first = ti.field(dtype=ti.i32, shape=MAX_MEDIA)
medium_count = ti.field(dtype=ti.i32, shape=MAX_MEDIA)
num_media = ti.field(dtype=ti.i32, shape=())

# Flattened BVH; bvh_primitive is -1 for internal nodes
bvh_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_primitive = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Host-side Storage
# =============================================================================


def clear_scene() -> None:
    """Clear all primitives, transforms, media and the BVH.

    Resets the counts to zero. The field data is not cleared but will be
    overwritten when new entries are added.
    """
    num_primitives[None] = 0
    num_scene_primitives[None] = 0
    num_transforms[None] = 0
    num_media[None] = 0
    num_bvh_nodes[None] = 0


def _add_primitive(
    kind: int,
    material_id: int,
    xform: int,
    p0: Sequence[float] = (0.0, 0.0, 0.0),
    p1: Sequence[float] = (0.0, 0.0, 0.0),
    p2: Sequence[float] = (0.0, 0.0, 0.0),
    f: Sequence[float] = (0.0, 0.0, 0.0),
    i: int = 0,
) -> int:
    idx = num_primitives[None]
    if idx >= MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    if xform >= num_transforms[None]:
        raise ValueError(f"Invalid transform index {xform}")
    prim_kinds[idx] = kind
    prim_p0[idx] = vec3(float(p0[0]), float(p0[1]), float(p0[2]))
    prim_p1[idx] = vec3(float(p1[0]), float(p1[1]), float(p1[2]))
    prim_p2[idx] = vec3(float(p2[0]), float(p2[1]), float(p2[2]))
    prim_f[idx] = vec3(float(f[0]), float(f[1]), float(f[2]))
    prim_i[idx] = i
    prim_material[idx] = material_id
    prim_xform[idx] = xform
    num_primitives[None] = idx + 1
    return idx


def add_sphere(
    center0: Sequence[float],
    center1: Sequence[float],
    radius: float,
    material_id: int,
    time0: float = 0.0,
    time1: float = 1.0,
    xform: int = -1,
) -> int:
    """Add a (possibly moving) sphere.

    Returns:
        The index of the added primitive.

    Raises:
        ValueError: If the radius is not positive.
        RuntimeError: If MAX_PRIMITIVES is exceeded.
    """
    if radius <= 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    return _add_primitive(
        PRIM_SPHERE, material_id, xform, p0=center0, p1=center1, f=(radius, time0, time1)
    )


def add_rect(
    lower: Sequence[float],
    upper: Sequence[float],
    axis: int,
    material_id: int,
    flipped: bool = False,
    xform: int = -1,
) -> int:
    """Add an axis-aligned rectangle with ``lower[axis] == upper[axis]``.

    The outward normal is +axis, or -axis when ``flipped`` is set.
    """
    if axis not in (0, 1, 2):
        raise ValueError(f"Rectangle axis must be 0, 1 or 2, got {axis}")
    sign = -1.0 if flipped else 1.0
    return _add_primitive(
        PRIM_RECT, material_id, xform, p0=lower, p1=upper, f=(sign, 0.0, 0.0), i=axis
    )


def add_planar(
    Q: Sequence[float],
    u: Sequence[float],
    v: Sequence[float],
    material_id: int,
    triangle: bool = False,
    xform: int = -1,
) -> int:
    """Add a quad, or the triangle (Q, Q+u, Q+v) when ``triangle`` is set."""
    kind = PRIM_TRIANGLE if triangle else PRIM_QUAD
    return _add_primitive(kind, material_id, xform, p0=Q, p1=u, p2=v)


def add_medium_primitive(medium_index: int, material_id: int) -> int:
    """Add the BVH leaf standing for a constant medium."""
    if not 0 <= medium_index < num_media[None]:
        raise ValueError(f"Invalid medium index {medium_index}")
    return _add_primitive(PRIM_MEDIUM, material_id, -1, i=medium_index)


def add_transform(rotation: npt.ArrayLike, offset: Sequence[float], flip: bool = False) -> int:
    """Add a rigid transform ``world = rotation @ local + offset``.

    Returns:
        The transform index.

    Raises:
        RuntimeError: If MAX_TRANSFORMS is exceeded.
    """
    idx = num_transforms[None]
    if idx >= MAX_TRANSFORMS:
        raise RuntimeError(f"Maximum number of transforms ({MAX_TRANSFORMS}) exceeded")
    xform_rotation[idx] = np.asarray(rotation, dtype=np.float32).tolist()
    xform_offset[idx] = vec3(float(offset[0]), float(offset[1]), float(offset[2]))
    xform_flip[idx] = 1 if flip else 0
    num_transforms[None] = idx + 1
    return idx


def add_medium(density: float, first: int, count: int) -> int:
    """Add a constant medium whose boundary is primitives [first, first + count).

    Raises:
        ValueError: If density is not positive or count is not positive.
        RuntimeError: If MAX_MEDIA is exceeded.
    """
    if density <= 0.0:
        raise ValueError(f"Medium density must be positive, got {density}")
    if count <= 0:
        raise ValueError("A medium boundary needs at least one primitive")
    idx = num_media[None]
    if idx >= MAX_MEDIA:
        raise RuntimeError(f"Maximum number of media ({MAX_MEDIA}) exceeded")
    medium_neg_inv_density[idx] = -1.0 / density
    medium_first[idx] = first
    medium_count[idx] = count
    num_media[None] = idx + 1
    return idx


def set_scene_primitive_count(count: int) -> None:
    """Mark primitives [0, count) as the scene leaves."""
    if not 0 <= count <= num_primitives[None]:
        raise ValueError(f"Invalid scene primitive count {count}")
    num_scene_primitives[None] = count


def get_primitive_count() -> int:
    """Get the number of primitives, boundary surfaces included."""
    return int(num_primitives[None])


def get_bvh_node_count() -> int:
    return int(num_bvh_nodes[None])


@ti.kernel
def _copy_bvh(
    count: ti.i32,
    mins: ti.types.ndarray(),
    maxs: ti.types.ndarray(),
    children: ti.types.ndarray(),
    primitives: ti.types.ndarray(),
):
    for n in range(count):
        bvh_min[n] = vec3(mins[n, 0], mins[n, 1], mins[n, 2])
        bvh_max[n] = vec3(maxs[n, 0], maxs[n, 1], maxs[n, 2])
        bvh_left[n] = children[n, 0]
        bvh_right[n] = children[n, 1]
        bvh_primitive[n] = primitives[n]


def upload_bvh(
    mins: npt.ArrayLike,
    maxs: npt.ArrayLike,
    children: npt.ArrayLike,
    primitives: npt.ArrayLike,
) -> None:
    """Copy flattened BVH arrays into the node fields.

    Args:
        mins: (N, 3) node box minima.
        maxs: (N, 3) node box maxima.
        children: (N, 2) left and right child indices, -1 for leaves.
        primitives: (N,) primitive index of leaves, -1 for internal nodes.

    Raises:
        RuntimeError: If N exceeds MAX_BVH_NODES.
    """
    mins = np.ascontiguousarray(mins, dtype=np.float32).reshape(-1, 3)
    maxs = np.ascontiguousarray(maxs, dtype=np.float32).reshape(-1, 3)
    children = np.ascontiguousarray(children, dtype=np.int32).reshape(-1, 2)
    primitives = np.ascontiguousarray(primitives, dtype=np.int32).reshape(-1)
    count = len(primitives)
    if count > MAX_BVH_NODES:
        raise RuntimeError(f"Maximum number of BVH nodes ({MAX_BVH_NODES}) exceeded")
    if count > 0:
        _copy_bvh(count, mins, maxs, children, primitives)
    num_bvh_nodes[None] = count


# =============================================================================
# Device-side Intersection
# =============================================================================


@ti.func
def _with_material(rec: HitRecord, material_id: ti.i32) -> HitRecord:
    return HitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        u=rec.u,
        v=rec.v,
        material_id=material_id,
    )


@ti.func
def intersect_surface(
    prim: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect one surface primitive, applying its transform if any.

    Args:
        prim: Primitive index (must not be a medium).
        ray_origin: World-space ray origin.
        ray_direction: World-space ray direction.
        ray_time: Ray time.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A world-space HitRecord carrying the primitive's material id.
    """
    kind = prim_kinds[prim]
    xform = prim_xform[prim]

    local_origin = ray_origin
    local_direction = ray_direction
    if xform >= 0:
        local_origin, local_direction = to_local(
            xform_rotation[xform], xform_offset[xform], ray_origin, ray_direction
        )

    rec = make_miss_record()
    if kind == PRIM_SPHERE:
        f = prim_f[prim]
        sphere = SphereGeometry(
            center0=prim_p0[prim], center1=prim_p1[prim], radius=f[0], time0=f[1], time1=f[2]
        )
        rec = hit_sphere(local_origin, local_direction, ray_time, sphere, t_min, t_max)
    elif kind == PRIM_RECT:
        rect = RectGeometry(
            lower=prim_p0[prim], upper=prim_p1[prim], axis=prim_i[prim], sign=prim_f[prim][0]
        )
        rec = hit_rect(local_origin, local_direction, rect, t_min, t_max)
    elif kind == PRIM_QUAD:
        quad = QuadGeometry(Q=prim_p0[prim], u=prim_p1[prim], v=prim_p2[prim])
        rec = hit_planar(local_origin, local_direction, quad, SHAPE_QUAD, t_min, t_max)
    elif kind == PRIM_TRIANGLE:
        quad = QuadGeometry(Q=prim_p0[prim], u=prim_p1[prim], v=prim_p2[prim])
        rec = hit_planar(local_origin, local_direction, quad, SHAPE_TRIANGLE, t_min, t_max)

    if xform >= 0:
        rec = hit_to_world(
            rec, xform_rotation[xform], ray_origin, ray_direction, xform_flip[xform]
        )

    return _with_material(rec, prim_material[prim])


@ti.func
def _intersect_range(
    first: ti.i32,
    count: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Closest hit among the surface primitives [first, first + count)."""
    closest = make_miss_record()
    closest_t = t_max
    for k in range(count):
        rec = intersect_surface(first + k, ray_origin, ray_direction, ray_time, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            closest = rec
    return closest


@ti.func
def intersect_medium(
    prim: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> HitRecord:
    """Sample a scattering event inside a constant medium.

    The boundary is intersected along the whole line to find where the ray
    enters, then again just past the entry to find where it leaves. The
    chord is clipped to [t_min, t_max], and a scattering distance
    ``-(1/density) * ln(U)`` is drawn; the ray scatters if that distance
    falls inside the chord.

    Returns:
        A HitRecord with an arbitrary normal (1, 0, 0), front_face = 1 and
        the medium's phase function as material.
    """
    medium = prim_i[prim]
    first = medium_first[medium]
    count = medium_count[medium]

    result = make_miss_record()

    enter = _intersect_range(first, count, ray_origin, ray_direction, ray_time, -INFINITY, INFINITY)
    if enter.hit == 1:
        leave = _intersect_range(
            first,
            count,
            ray_origin,
            ray_direction,
            ray_time,
            enter.t + MEDIUM_EXIT_OFFSET,
            INFINITY,
        )
        if leave.hit == 1:
            t_enter = tm.max(enter.t, t_min)
            t_leave = tm.min(leave.t, t_max)
            if t_enter < t_leave:
                t_enter = tm.max(t_enter, 0.0)
                ray_length = tm.length(ray_direction)
                distance_inside = (t_leave - t_enter) * ray_length
                hit_distance = medium_neg_inv_density[medium] * ti.log(next_float_open(stream))
                if hit_distance <= distance_inside:
                    t = t_enter + hit_distance / ray_length
                    result = HitRecord(
                        hit=1,
                        t=t,
                        point=ray_origin + t * ray_direction,
                        normal=vec3(1.0, 0.0, 0.0),
                        front_face=1,
                        u=0.0,
                        v=0.0,
                        material_id=prim_material[prim],
                    )

    return result


@ti.func
def intersect_primitive(
    prim: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> HitRecord:
    """Intersect any primitive kind, media included."""
    rec = make_miss_record()
    if prim_kinds[prim] == PRIM_MEDIUM:
        rec = intersect_medium(prim, ray_origin, ray_direction, ray_time, t_min, t_max, stream)
    else:
        rec = intersect_surface(prim, ray_origin, ray_direction, ray_time, t_min, t_max)
    return rec


@ti.func
def intersect_linear(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> HitRecord:
    """Brute-force closest hit over every scene primitive.

    Same result as :func:`intersect_bvh`; kept as a reference for testing
    the BVH and for tiny scenes.
    """
    closest = make_miss_record()
    closest_t = t_max
    for prim in range(num_scene_primitives[None]):
        rec = intersect_primitive(
            prim, ray_origin, ray_direction, ray_time, t_min, closest_t, stream
        )
        if rec.hit == 1:
            closest_t = rec.t
            closest = rec
    return closest


@ti.func
def intersect_bvh(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> HitRecord:
    """Closest hit in (t_min, t_max) using the BVH.

    Iterative depth-first traversal with a fixed-size stack. A node is
    entered only if its box overlaps [t_min, closest_t], and closest_t
    shrinks with every hit, so the first hit found is never kept over a
    nearer one. An empty BVH reports a miss.
    """
    closest = make_miss_record()
    closest_t = t_max

    stack = ti.Vector([0 for _ in range(BVH_STACK_SIZE)], dt=ti.i32)
    stack_ptr = 0
    if num_bvh_nodes[None] > 0:
        stack[0] = 0
        stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr]

        if hit_aabb(bvh_min[node], bvh_max[node], ray_origin, ray_direction, t_min, closest_t):
            prim = bvh_primitive[node]
            if prim >= 0:
                rec = intersect_primitive(
                    prim, ray_origin, ray_direction, ray_time, t_min, closest_t, stream
                )
                if rec.hit == 1:
                    closest_t = rec.t
                    closest = rec
            else:
                # At most one pending sibling per ancestor, and the scene
                # manager rejects trees as deep as the stack, so this fits
                stack[stack_ptr] = bvh_right[node]
                stack[stack_ptr + 1] = bvh_left[node]
                stack_ptr += 2

    return closest

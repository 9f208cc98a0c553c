"""Thin-lens camera: primary rays with defocus and motion blur.

The camera is placed with lookfrom, lookat and vup and a vertical field of
view. From these it derives the basis
- w = unit(lookfrom - lookat), pointing backwards,
- u = unit(vup x w), pointing right,
- v = w x u, pointing up.
Each ray gets a uniform time in the shutter interval and a jittered
position inside its pixel.

The viewport lies on the plane of focus, ``focus_dist`` in front of the
camera. Rays start on the lens disk of radius ``aperture / 2`` and pass
through the viewport point, so only that plane is in perfect focus. With
aperture 0 the camera is a pinhole.

Example:
    >>> camera = ThinLensCamera(
    ...     lookfrom=(13.0, 2.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vfov=20.0,
    ...     aspect_ratio=16.0 / 9.0,
    ...     aperture=0.1,
    ...     focus_dist=10.0,
    ... )
    >>> setup_camera(camera)
    >>> # inside a kernel: ray = get_ray_jittered(i, j, width, height, stream)
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, make_ray, random_in_unit_disk
from pathtracer.core.sampler import next_float

vec3 = tm.vec3


# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class ThinLensCamera:
    """Configuration for a thin-lens camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation.
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height of the viewport. None means
            "match the render target", resolved by the renderer.
        aperture: Lens diameter; 0 disables defocus blur.
        focus_dist: Distance from the camera to the plane in perfect focus.
        shutter_open: Time the shutter opens.
        shutter_close: Time the shutter closes.
    """

    lookfrom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    lookat: tuple[float, float, float] = (0.0, 0.0, -1.0)
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 90.0
    aspect_ratio: float | None = None
    aperture: float = 0.0
    focus_dist: float = 1.0
    shutter_open: float = 0.0
    shutter_close: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if self.aspect_ratio is not None and self.aspect_ratio <= 0.0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if self.aperture < 0.0:
            raise ValueError(f"aperture must be non-negative, got {self.aperture}")
        if self.focus_dist <= 0.0:
            raise ValueError(f"focus_dist must be positive, got {self.focus_dist}")
        if self.shutter_close < self.shutter_open:
            raise ValueError(
                f"shutter_close ({self.shutter_close}) must not precede "
                f"shutter_open ({self.shutter_open})"
            )

    @classmethod
    def from_defocus_angle(cls, defocus_angle: float, focus_dist: float, **kwargs) -> "ThinLensCamera":
        """Build a camera whose aperture subtends ``defocus_angle`` degrees.

        The cone from the plane of focus to the lens has apex angle
        ``defocus_angle``, so aperture = 2 * focus_dist * tan(angle / 2).
        """
        aperture = 2.0 * focus_dist * math.tan(math.radians(defocus_angle) / 2.0)
        return cls(aperture=aperture, focus_dist=focus_dist, **kwargs)


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport on the plane of focus
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())

_lens_radius = ti.field(dtype=ti.f32, shape=())
_shutter_open = ti.field(dtype=ti.f32, shape=())
_shutter_close = ti.field(dtype=ti.f32, shape=())


# =============================================================================
# Camera Setup
# =============================================================================


def setup_camera(camera: ThinLensCamera, aspect_ratio: float | None = None) -> None:
    """Initialize camera state from configuration.

    Computes the orthonormal basis (u, v, w) and the viewport on the plane
    of focus. This must be called before rendering.

    Args:
        camera: Camera configuration.
        aspect_ratio: Used when ``camera.aspect_ratio`` is None.

    Raises:
        ValueError: If lookfrom equals lookat, vup is parallel to the view
            direction, or no aspect ratio is available.
    """
    ratio = camera.aspect_ratio if camera.aspect_ratio is not None else aspect_ratio
    if ratio is None or ratio <= 0.0:
        raise ValueError("An aspect ratio is required to set up the camera")

    theta = math.radians(camera.vfov)
    h = math.tan(theta / 2.0)
    viewport_height = 2.0 * h
    viewport_width = ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w_norm = np.linalg.norm(w)
    if w_norm == 0.0:
        raise ValueError("lookfrom and lookat must differ")
    w = w / w_norm

    u = np.cross(vup, w)
    u_norm = np.linalg.norm(u)
    if u_norm < 1e-12:
        raise ValueError("vup must not be parallel to the view direction")
    u = u / u_norm

    v = np.cross(w, u)

    horizontal = camera.focus_dist * viewport_width * u
    vertical = camera.focus_dist * viewport_height * v
    lower_left = lookfrom - horizontal / 2.0 - vertical / 2.0 - camera.focus_dist * w

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _lens_radius[None] = camera.aperture / 2.0
    _shutter_open[None] = camera.shutter_open
    _shutter_close[None] = camera.shutter_close


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def get_ray(s: ti.f32, t: ti.f32, stream: ti.i32) -> Ray:
    """Generate a ray through normalized image coordinates (s, t).

    - s = 0: left edge, s = 1: right edge
    - t = 0: bottom edge, t = 1: top edge

    The origin is displaced on the lens disk and the time is drawn
    uniformly from the shutter interval. The direction is not normalized.

    Args:
        s: Horizontal coordinate in [0, 1].
        t: Vertical coordinate in [0, 1].
        stream: Sampler stream to draw from.

    Returns:
        The camera ray.
    """
    rd = _lens_radius[None] * random_in_unit_disk(stream)
    offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y

    origin = _camera_origin[None] + offset
    target = _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]

    shutter_open = _shutter_open[None]
    time = shutter_open + next_float(stream) * (_shutter_close[None] - shutter_open)

    return make_ray(origin, target - origin, time)


@ti.func
def get_ray_jittered(
    pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32, stream: ti.i32
) -> Ray:
    """Generate a ray through a random point of pixel (i, j).

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.
        stream: Sampler stream to draw from.
    """
    jitter_u = next_float(stream)
    jitter_v = next_float(stream)

    s = (ti.cast(pixel_i, ti.f32) + jitter_u) / ti.cast(width, ti.f32)
    t = (ti.cast(pixel_j, ti.f32) + jitter_v) / ti.cast(height, ti.f32)

    return get_ray(s, t, stream)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, ...] | float]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left,
        lens_radius and the shutter interval.
    """

    def as_tuple(field) -> tuple[float, float, float]:
        vec = field[None]
        return (float(vec[0]), float(vec[1]), float(vec[2]))

    return {
        "origin": as_tuple(_camera_origin),
        "u": as_tuple(_camera_u),
        "v": as_tuple(_camera_v),
        "w": as_tuple(_camera_w),
        "horizontal": as_tuple(_viewport_horizontal),
        "vertical": as_tuple(_viewport_vertical),
        "lower_left": as_tuple(_lower_left_corner),
        "lens_radius": float(_lens_radius[None]),
        "shutter": (float(_shutter_open[None]), float(_shutter_close[None])),
    }

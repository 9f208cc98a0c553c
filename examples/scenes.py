"""Demo scenes.

Each builder returns a complete :class:`pathtracer.scene.Scene` with the
camera, background and render settings the scene was designed for. Keyword
overrides are forwarded to :class:`RenderSettings`, so
``cornell_box(width=200, samples_per_pixel=16)`` gives a quick preview.

Taichi must be initialized before calling a builder, because the package
allocates its device fields on import.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from examples.scenes import SCENES
    >>> scene = SCENES["cornell_box"](width=200)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np

# Background of the scenes that do not set their own
DAYLIGHT = (0.7, 0.8, 1.0)


def _settings(aspect_ratio: float, overrides: dict[str, Any], **defaults: Any):
    """RenderSettings with the height derived from width and aspect ratio."""
    from pathtracer.scene.scene import RenderSettings

    values = {"width": 400, "samples_per_pixel": 100, "max_depth": 50, **defaults, **overrides}
    if "height" not in values:
        values["height"] = max(1, int(values["width"] / aspect_ratio))
    return RenderSettings(**values)


def _cornell_walls(light_corner, light_u, light_v, light_emit):
    """The five walls and the ceiling light of the Cornell box."""
    from pathtracer.geometry.hittables import HittableList, Quad
    from pathtracer.materials.material import DiffuseLight, Lambertian

    red = Lambertian((0.65, 0.05, 0.05))
    white = Lambertian((0.73, 0.73, 0.73))
    green = Lambertian((0.12, 0.45, 0.15))
    light = DiffuseLight(light_emit)

    walls = HittableList(
        [
            Quad((555, 0, 0), (0, 555, 0), (0, 0, 555), green),
            Quad((0, 0, 0), (0, 555, 0), (0, 0, 555), red),
            Quad(light_corner, light_u, light_v, light),
            Quad((0, 0, 0), (555, 0, 0), (0, 0, 555), white),
            Quad((555, 555, 555), (-555, 0, 0), (0, 0, -555), white),
            Quad((0, 0, 555), (555, 0, 0), (0, 555, 0), white),
        ]
    )
    return walls, white


def _cornell_boxes(white):
    from pathtracer.geometry.hittables import box
    from pathtracer.geometry.instance import RotateY, Translate

    tall = Translate(RotateY(box((0, 0, 0), (165, 330, 165), white), 15), (265, 0, 295))
    short = Translate(RotateY(box((0, 0, 0), (165, 165, 165), white), -18), (130, 0, 65))
    return tall, short


def _cornell_camera():
    from pathtracer.camera.thin_lens import ThinLensCamera

    return ThinLensCamera(
        lookfrom=(278, 278, -800),
        lookat=(278, 278, 0),
        vfov=40.0,
        focus_dist=10.0,
        shutter_close=1.0,
    )


# =============================================================================
# Scene builders
# =============================================================================


def bouncing_spheres(seed: int = 0, **overrides: Any):
    """Random small spheres, some of them moving, around three large ones."""
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.geometry.hittables import HittableList, MovingSphere, Sphere
    from pathtracer.materials.material import Dielectric, Lambertian, Metal
    from pathtracer.scene.scene import Background, Scene
    from pathtracer.textures.texture import CheckerTexture

    rng = np.random.default_rng(seed)
    world = HittableList()

    checker = CheckerTexture(0.32, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
    world.add(Sphere((0, -1000, 0), 1000, Lambertian(checker)))

    for a in range(-10, 11):
        for b in range(-10, 11):
            choose_mat = rng.random()
            center = np.array([b + 0.9 * rng.random(), 0.2, a + 0.9 * rng.random()])
            if np.linalg.norm(center - np.array([4.0, 0.2, 0.0])) <= 0.9:
                continue

            if choose_mat < 0.7:
                albedo = rng.random(3) * rng.random(3)
                center1 = center + np.array([0.0, rng.uniform(0.0, 0.5), 0.0])
                world.add(MovingSphere(center, center1, 0.2, Lambertian(albedo)))
            elif choose_mat < 0.9:
                albedo = rng.uniform(0.5, 1.0, 3)
                fuzz = rng.uniform(0.0, 0.5)
                world.add(Sphere(center, 0.2, Metal(albedo, fuzz)))
            else:
                world.add(Sphere(center, 0.2, Dielectric(1.5)))

    world.add(Sphere((0, 1, 0), 1.0, Dielectric(1.5)))
    world.add(Sphere((-4, 1, 0), 1.0, Lambertian((0.4, 0.2, 0.1))))
    world.add(Sphere((4, 1, 0), 1.0, Metal((0.7, 0.6, 0.5), 0.0)))

    camera = ThinLensCamera.from_defocus_angle(
        0.6,
        10.0,
        lookfrom=(13, 2, 3),
        lookat=(0, 0, 0),
        vfov=20.0,
        shutter_close=1.0,
    )
    return Scene(world, camera, Background.solid(DAYLIGHT), _settings(16 / 9, overrides))


def checkered_spheres(**overrides: Any):
    """Two large spheres sharing one checker texture."""
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.geometry.hittables import HittableList, Sphere
    from pathtracer.materials.material import Lambertian
    from pathtracer.scene.scene import Background, Scene
    from pathtracer.textures.texture import CheckerTexture

    checker = CheckerTexture(0.32, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
    world = HittableList(
        [
            Sphere((0, -10, 0), 10, Lambertian(checker)),
            Sphere((0, 10, 0), 10, Lambertian(checker)),
        ]
    )
    camera = ThinLensCamera(lookfrom=(13, 2, 3), lookat=(0, 0, 0), vfov=20.0, focus_dist=10.0)
    return Scene(world, camera, Background.solid(DAYLIGHT), _settings(16 / 9, overrides))


def perlin_spheres(**overrides: Any):
    """Ground and sphere with a marble-like Perlin noise texture."""
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.geometry.hittables import HittableList, Sphere
    from pathtracer.materials.material import Lambertian
    from pathtracer.scene.scene import Background, Scene
    from pathtracer.textures.texture import NoiseTexture

    noise = NoiseTexture(4.0)
    world = HittableList(
        [
            Sphere((0, -1000, 0), 1000, Lambertian(noise)),
            Sphere((0, 2, 0), 2, Lambertian(noise)),
        ]
    )
    camera = ThinLensCamera(lookfrom=(13, 2, 3), lookat=(0, 0, 0), vfov=20.0, focus_dist=10.0)
    return Scene(world, camera, Background.solid(DAYLIGHT), _settings(16 / 9, overrides))


def earth(image_path: str = "assets/earthmap.jpg", **overrides: Any):
    """A globe with an image texture.

    Raises:
        SceneError: If the image cannot be read.
    """
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.geometry.hittables import Sphere
    from pathtracer.materials.material import Lambertian
    from pathtracer.scene.scene import Background, Scene
    from pathtracer.textures.texture import ImageTexture

    globe = Sphere((0, 0, 0), 2, Lambertian(ImageTexture(image_path)))
    camera = ThinLensCamera(lookfrom=(0, 0, 12), lookat=(0, 0, 0), vfov=20.0, focus_dist=10.0)
    return Scene(globe, camera, Background.solid(DAYLIGHT), _settings(16 / 9, overrides))


def quads(**overrides: Any):
    """Five colored quads facing the camera."""
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.geometry.hittables import HittableList, Quad
    from pathtracer.materials.material import Lambertian
    from pathtracer.scene.scene import Background, Scene

    world = HittableList(
        [
            Quad((-3, -2, 5), (0, 0, -4), (0, 4, 0), Lambertian((1.0, 0.2, 0.2))),
            Quad((-2, -2, 0), (4, 0, 0), (0, 4, 0), Lambertian((0.2, 1.0, 0.2))),
            Quad((3, -2, 1), (0, 0, 4), (0, 4, 0), Lambertian((0.2, 0.2, 1.0))),
            Quad((-2, 3, 1), (4, 0, 0), (0, 0, 4), Lambertian((1.0, 0.5, 0.0))),
            Quad((-2, -3, 5), (4, 0, 0), (0, 0, -4), Lambertian((0.2, 0.8, 0.8))),
        ]
    )
    camera = ThinLensCamera(lookfrom=(0, 0, 9), lookat=(0, 0, 0), vfov=80.0, focus_dist=10.0)
    return Scene(world, camera, Background.solid(DAYLIGHT), _settings(1.0, overrides))


def simple_light(**overrides: Any):
    """Noise-textured spheres lit by a rectangle and a sphere light."""
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.geometry.hittables import HittableList, Quad, Sphere
    from pathtracer.materials.material import DiffuseLight, Lambertian
    from pathtracer.scene.scene import Background, Scene
    from pathtracer.textures.texture import NoiseTexture

    noise = NoiseTexture(4.0)
    light = DiffuseLight((4, 4, 4))
    world = HittableList(
        [
            Sphere((0, -1000, 0), 1000, Lambertian(noise)),
            Sphere((0, 2, 0), 2, Lambertian(noise)),
            Quad((3, 1, -2), (2, 0, 0), (0, 2, 0), light),
            Sphere((0, 7, 0), 2, light),
        ]
    )
    camera = ThinLensCamera(lookfrom=(26, 3, 6), lookat=(0, 2, 0), vfov=20.0, focus_dist=10.0)
    return Scene(world, camera, Background.solid((0, 0, 0)), _settings(16 / 9, overrides))


def cornell_box(**overrides: Any):
    """The Cornell box with two rotated white boxes."""
    from pathtracer.geometry.hittables import HittableList
    from pathtracer.scene.scene import Background, Scene

    walls, white = _cornell_walls((343, 554, 332), (-130, 0, 0), (0, 0, -105), (15, 15, 15))
    world = HittableList([walls, *_cornell_boxes(white)])
    settings = _settings(1.0, overrides, width=600, samples_per_pixel=200)
    return Scene(world, _cornell_camera(), Background.solid((0, 0, 0)), settings)


def cornell_smoke(**overrides: Any):
    """The Cornell box with the two boxes replaced by black and white smoke."""
    from pathtracer.geometry.hittables import HittableList
    from pathtracer.geometry.medium import ConstantMedium
    from pathtracer.scene.scene import Background, Scene

    walls, white = _cornell_walls((113, 554, 127), (330, 0, 0), (0, 0, 305), (7, 7, 7))
    tall, short = _cornell_boxes(white)
    world = HittableList(
        [
            walls,
            ConstantMedium(tall, 0.01, (0, 0, 0)),
            ConstantMedium(short, 0.01, (1, 1, 1)),
        ]
    )
    settings = _settings(1.0, overrides, width=600, samples_per_pixel=200)
    return Scene(world, _cornell_camera(), Background.solid((0, 0, 0)), settings)


def final_scene(seed: int = 0, image_path: str | None = None, **overrides: Any):
    """Every feature at once: boxes, media, motion blur, textures, instances.

    Args:
        seed: Seed of the random box heights and sphere positions.
        image_path: Image for the globe; a plain blue Lambertian when None.
    """
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.geometry.hittables import HittableList, MovingSphere, Quad, Sphere, box
    from pathtracer.geometry.instance import RotateY, Translate
    from pathtracer.geometry.medium import ConstantMedium
    from pathtracer.materials.material import Dielectric, DiffuseLight, Lambertian, Metal
    from pathtracer.scene.scene import Background, Scene
    from pathtracer.textures.texture import ImageTexture, NoiseTexture

    rng = np.random.default_rng(seed)
    world = HittableList()

    ground = Lambertian((0.48, 0.83, 0.53))
    boxes_per_side = 20
    for i in range(boxes_per_side):
        for j in range(boxes_per_side):
            w = 100.0
            x0 = -1000.0 + i * w
            z0 = -1000.0 + j * w
            y1 = rng.uniform(1.0, 101.0)
            world.add(box((x0, 0.0, z0), (x0 + w, y1, z0 + w), ground))

    world.add(Quad((123, 554, 147), (300, 0, 0), (0, 0, 265), DiffuseLight((7, 7, 7))))

    center0 = np.array([400.0, 400.0, 200.0])
    world.add(
        MovingSphere(center0, center0 + np.array([30.0, 0.0, 0.0]), 50, Lambertian((0.7, 0.3, 0.1)))
    )
    world.add(Sphere((260, 150, 45), 50, Dielectric(1.5)))
    world.add(Sphere((0, 150, 145), 50, Metal((0.8, 0.8, 0.9), 1.0)))

    boundary = Sphere((360, 150, 145), 70, Dielectric(1.5))
    world.add(boundary)
    world.add(ConstantMedium(boundary, 0.2, (0.2, 0.4, 0.9)))
    mist = Sphere((0, 0, 0), 5000, Dielectric(1.5))
    world.add(ConstantMedium(mist, 0.0001, (1, 1, 1)))

    globe_texture = ImageTexture(image_path) if image_path is not None else (0.2, 0.3, 0.8)
    world.add(Sphere((400, 200, 400), 100, Lambertian(globe_texture)))
    world.add(Sphere((220, 280, 300), 80, Lambertian(NoiseTexture(0.2))))

    white = Lambertian((0.73, 0.73, 0.73))
    cluster = HittableList(Sphere(rng.uniform(0.0, 165.0, 3), 10, white) for _ in range(1000))
    world.add(Translate(RotateY(cluster, 15), (-100, 270, 395)))

    camera = ThinLensCamera(
        lookfrom=(478, 278, -600),
        lookat=(278, 278, 0),
        vfov=40.0,
        focus_dist=10.0,
        shutter_close=1.0,
    )
    settings = _settings(1.0, overrides, width=800, samples_per_pixel=10000, max_depth=40)
    return Scene(world, camera, Background.solid((0, 0, 0)), settings)


SCENES: dict[str, Callable[..., Any]] = {
    "bouncing_spheres": bouncing_spheres,
    "checkered_spheres": checkered_spheres,
    "perlin_spheres": perlin_spheres,
    "earth": earth,
    "quads": quads,
    "simple_light": simple_light,
    "cornell_box": cornell_box,
    "cornell_smoke": cornell_smoke,
    "final_scene": final_scene,
}

"""Unit tests for the SceneManager.

Tests cover:
- Scene statistics after upload
- Sharing of materials, textures and transforms
- Primitive records written to the arena
- Errors for scenes that cannot be rendered
"""

import numpy as np
import pytest


@pytest.fixture
def manager():
    """Create a fresh SceneManager for each test."""
    from pathtracer.scene.manager import SceneManager

    manager = SceneManager()
    yield manager
    manager.clear()


class TestStats:
    def test_counts(self, manager):
        from pathtracer.geometry.hittables import HittableList, Quad, Sphere, XZRect
        from pathtracer.materials.material import Dielectric, Lambertian, Metal

        world = HittableList(
            [
                Sphere((0, 0, -1), 0.5, Lambertian((0.5, 0.5, 0.5))),
                Sphere((1, 0, -1), 0.5, Metal((0.8, 0.8, 0.8), 0.1)),
                Quad((0, 0, 0), (1, 0, 0), (0, 1, 0), Dielectric(1.5)),
                XZRect(-1, 1, -1, 1, 0, Lambertian((0.2, 0.2, 0.2))),
            ]
        )
        stats = manager.load(world)
        assert stats.primitives == 4
        assert stats.boundary_primitives == 0
        assert stats.materials == 4
        assert stats.textures == 2
        assert stats.transforms == 0
        assert stats.media == 0
        assert stats.bvh_nodes == 7
        assert manager.stats is stats

    def test_empty_world(self, manager):
        from pathtracer.geometry.hittables import HittableList
        from pathtracer.scene.intersection import get_bvh_node_count

        stats = manager.load(HittableList())
        assert stats.primitives == 0
        assert stats.bvh_nodes == 0
        assert get_bvh_node_count() == 0

    def test_plain_list_is_accepted(self, manager):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian

        gray = Lambertian((0.5, 0.5, 0.5))
        stats = manager.load([Sphere((0, 0, 0), 1.0, gray), Sphere((3, 0, 0), 1.0, gray)])
        assert stats.primitives == 2

    def test_load_replaces_previous_scene(self, manager):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import get_primitive_count

        gray = Lambertian((0.5, 0.5, 0.5))
        manager.load([Sphere((0, 0, 0), 1.0, gray), Sphere((3, 0, 0), 1.0, gray)])
        stats = manager.load([Sphere((0, 0, 0), 1.0, Lambertian((0.1, 0.1, 0.1)))])
        assert stats.primitives == 1
        assert stats.materials == 1
        assert get_primitive_count() == 1


class TestSharing:
    def test_shared_material_uploaded_once(self, manager):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import prim_material

        gray = Lambertian((0.5, 0.5, 0.5))
        stats = manager.load([Sphere((0, 0, 0), 1.0, gray), Sphere((3, 0, 0), 1.0, gray)])
        assert stats.materials == 1
        assert prim_material[0] == prim_material[1] == 0

    def test_equal_but_distinct_materials_are_separate(self, manager):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian

        stats = manager.load(
            [
                Sphere((0, 0, 0), 1.0, Lambertian((0.5, 0.5, 0.5))),
                Sphere((3, 0, 0), 1.0, Lambertian((0.5, 0.5, 0.5))),
            ]
        )
        assert stats.materials == 2

    def test_shared_texture_uploaded_once(self, manager):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.textures.texture import CheckerTexture

        checker = CheckerTexture(0.32, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
        stats = manager.load(
            [
                Sphere((0, -10, 0), 10, Lambertian(checker)),
                Sphere((0, 10, 0), 10, Lambertian(checker)),
            ]
        )
        assert stats.materials == 2
        # The checker and its two solid children
        assert stats.textures == 3

    def test_box_faces_share_one_transform(self, manager):
        from pathtracer.geometry.hittables import box
        from pathtracer.geometry.instance import RotateY, Translate
        from pathtracer.materials.material import Lambertian

        white = Lambertian((0.73, 0.73, 0.73))
        tall = Translate(RotateY(box((0, 0, 0), (165, 330, 165), white), 15), (265, 0, 295))
        short = Translate(RotateY(box((0, 0, 0), (165, 165, 165), white), -18), (130, 0, 65))
        stats = manager.load([tall, short])
        assert stats.primitives == 12
        assert stats.transforms == 2
        assert stats.materials == 1

    def test_identity_transform_not_uploaded(self, manager):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.instance import Translate
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import prim_xform

        stats = manager.load(Translate(Sphere((0, 0, 0), 1.0, Lambertian((1, 1, 1))), (0, 0, 0)))
        assert stats.transforms == 0
        assert prim_xform[0] == -1


class TestPrimitiveRecords:
    def test_moving_sphere_record(self, manager):
        from pathtracer.geometry.hittables import MovingSphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import (
            PRIM_SPHERE,
            prim_f,
            prim_kinds,
            prim_p0,
            prim_p1,
        )

        manager.load(
            [MovingSphere((0, 0, 0), (0, 1, 0), 0.5, Lambertian((1, 1, 1)), time0=0.0, time1=2.0)]
        )
        assert prim_kinds[0] == PRIM_SPHERE
        np.testing.assert_allclose(prim_p0[0].to_numpy(), [0, 0, 0])
        np.testing.assert_allclose(prim_p1[0].to_numpy(), [0, 1, 0])
        np.testing.assert_allclose(prim_f[0].to_numpy(), [0.5, 0.0, 2.0])

    def test_moving_sphere_box_covers_shutter(self, manager):
        from pathtracer.geometry.hittables import MovingSphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import bvh_max, bvh_min

        manager.load([MovingSphere((0, 0, 0), (0, 2, 0), 0.5, Lambertian((1, 1, 1)))])
        np.testing.assert_allclose(bvh_min[0].to_numpy(), [-0.5, -0.5, -0.5], atol=1e-5)
        np.testing.assert_allclose(bvh_max[0].to_numpy(), [0.5, 2.5, 0.5], atol=1e-5)

    def test_triangle_and_rect_kinds(self, manager):
        from pathtracer.geometry.hittables import Quad, Triangle, YZRect
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import (
            PRIM_QUAD,
            PRIM_RECT,
            PRIM_TRIANGLE,
            prim_i,
            prim_kinds,
        )

        gray = Lambertian((0.5, 0.5, 0.5))
        manager.load(
            [
                Quad((0, 0, 0), (1, 0, 0), (0, 1, 0), gray),
                Triangle((0, 0, 1), (1, 0, 0), (0, 1, 0), gray),
                YZRect(0, 1, 0, 1, 2.0, gray),
            ]
        )
        assert [prim_kinds[k] for k in range(3)] == [PRIM_QUAD, PRIM_TRIANGLE, PRIM_RECT]
        assert prim_i[2] == 0

    def test_medium_leaf_and_boundary(self, manager):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.medium import ConstantMedium
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import (
            PRIM_MEDIUM,
            PRIM_SPHERE,
            medium_count,
            medium_first,
            medium_neg_inv_density,
            prim_kinds,
            prim_material,
        )

        gray = Lambertian((0.5, 0.5, 0.5))
        stats = manager.load(
            [
                ConstantMedium(Sphere((0, 0, 0), 1.0, None), 0.5, (1, 1, 1)),
                Sphere((5, 0, 0), 1.0, gray),
            ]
        )
        assert stats.primitives == 2
        assert stats.boundary_primitives == 1
        assert prim_kinds[0] == PRIM_MEDIUM
        assert prim_kinds[2] == PRIM_SPHERE
        assert prim_material[2] == -1
        assert medium_first[0] == 2
        assert medium_count[0] == 1
        assert medium_neg_inv_density[0] == pytest.approx(-2.0)


class TestErrors:
    def test_unknown_object(self, manager):
        from pathtracer.errors import SceneError

        with pytest.raises(SceneError):
            manager.load(["not a hittable"])

    def test_missing_material(self, manager):
        from pathtracer.errors import SceneError
        from pathtracer.geometry.hittables import Sphere

        with pytest.raises(SceneError):
            manager.load([Sphere((0, 0, 0), 1.0, None)])

    def test_unknown_material(self, manager):
        from pathtracer.errors import SceneError
        from pathtracer.geometry.hittables import Sphere

        with pytest.raises(SceneError):
            manager.load([Sphere((0, 0, 0), 1.0, "chrome")])

    def test_nested_media(self, manager):
        from pathtracer.errors import SceneError
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.medium import ConstantMedium

        inner = ConstantMedium(Sphere((0, 0, 0), 1.0, None), 0.5, (1, 1, 1))
        with pytest.raises(SceneError):
            manager.load([ConstantMedium(inner, 0.5, (1, 1, 1))])

    def test_scene_error_is_value_error(self):
        from pathtracer.errors import SceneError

        assert issubclass(SceneError, ValueError)

    def test_bvh_deeper_than_traversal_stack(self, manager, monkeypatch):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene import manager as manager_module

        # Four leaves build a three-level tree
        monkeypatch.setattr(manager_module, "BVH_STACK_SIZE", 3)
        gray = Lambertian((0.5, 0.5, 0.5))
        with pytest.raises(RuntimeError):
            manager.load([Sphere((3.0 * k, 0, 0), 1.0, gray) for k in range(4)])

    def test_bvh_as_deep_as_allowed_still_loads(self, manager, monkeypatch):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene import manager as manager_module

        monkeypatch.setattr(manager_module, "BVH_STACK_SIZE", 4)
        gray = Lambertian((0.5, 0.5, 0.5))
        stats = manager.load([Sphere((3.0 * k, 0, 0), 1.0, gray) for k in range(4)])
        assert stats.bvh_nodes == 7

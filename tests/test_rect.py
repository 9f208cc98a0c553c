"""Unit tests for axis-aligned rectangle intersection."""

import numpy as np
import pytest
import taichi as ti


def _hit(origin, direction, lower, upper, axis, t_min=0.001, t_max=1000.0, sign=1.0):
    """Run hit_rect in a kernel and return the record as a dict."""
    from pathtracer.geometry.rect import RectGeometry, hit_rect, vec3

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())
    uv = ti.Vector.field(2, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(
        o: vec3, d: vec3, lo: vec3, hi: vec3, ax: ti.i32, t0: ti.f32, t1: ti.f32, sg: ti.f32
    ):
        rect = RectGeometry(lower=lo, upper=hi, axis=ax, sign=sg)
        record = hit_rect(o, d, rect, t0, t1)
        hit[None] = record.hit
        t_val[None] = record.t
        normal[None] = record.normal
        front_face[None] = record.front_face
        uv[None] = ti.Vector([record.u, record.v])

    test_kernel(vec3(*origin), vec3(*direction), vec3(*lower), vec3(*upper), axis, t_min, t_max, sign)
    return {
        "hit": hit[None],
        "t": t_val[None],
        "normal": normal[None],
        "front_face": front_face[None],
        "uv": uv[None],
    }


class TestXYRect:
    """Rectangle in the plane z = k."""

    LOWER = (0.0, 0.0, -2.0)
    UPPER = (2.0, 1.0, -2.0)

    def test_hit_from_front(self):
        rec = _hit((1.0, 0.5, 0.0), (0, 0, -1), self.LOWER, self.UPPER, axis=2)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0)
        assert rec["front_face"] == 1
        assert rec["normal"][2] == pytest.approx(1.0)

    def test_hit_from_behind(self):
        rec = _hit((1.0, 0.5, -5.0), (0, 0, 1), self.LOWER, self.UPPER, axis=2)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(3.0)
        assert rec["front_face"] == 0
        assert rec["normal"][2] == pytest.approx(-1.0)

    def test_miss_outside_extent(self):
        rec = _hit((3.0, 0.5, 0.0), (0, 0, -1), self.LOWER, self.UPPER, axis=2)
        assert rec["hit"] == 0

    def test_parallel_ray_misses(self):
        rec = _hit((-1.0, 0.5, -2.0), (1, 0, 0), self.LOWER, self.UPPER, axis=2)
        assert rec["hit"] == 0

    def test_uv_is_normalized(self):
        rec = _hit((1.5, 0.25, 0.0), (0, 0, -1), self.LOWER, self.UPPER, axis=2)
        assert rec["uv"][0] == pytest.approx(0.75)
        assert rec["uv"][1] == pytest.approx(0.25)


class TestOtherAxes:
    def test_xz_rect(self):
        rec = _hit((0.5, 5.0, 0.5), (0, -1, 0), (0, 3, 0), (1, 3, 1), axis=1)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0)
        assert rec["normal"][1] == pytest.approx(1.0)
        assert rec["front_face"] == 1

    def test_yz_rect(self):
        rec = _hit((-4.0, 0.5, 0.5), (1, 0, 0), (1, 0, 0), (1, 1, 1), axis=0)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(5.0)
        assert rec["front_face"] == 0
        assert rec["normal"][0] == pytest.approx(-1.0)

    def test_respects_t_range(self):
        rec = _hit((0.5, 5.0, 0.5), (0, -1, 0), (0, 3, 0), (1, 3, 1), axis=1, t_max=1.5)
        assert rec["hit"] == 0


class TestFlippedRect:
    """Rectangles whose outward normal points along -axis."""

    def test_flipped_normal_faces_negative_axis(self):
        rec = _hit((0.5, -5.0, 0.5), (0, 1, 0), (0, 0, 0), (1, 0, 1), axis=1, sign=-1.0)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(5.0)
        assert rec["front_face"] == 1
        assert rec["normal"][1] == pytest.approx(-1.0)

    def test_flipped_hit_from_positive_side_is_back_face(self):
        rec = _hit((0.5, 5.0, 0.5), (0, -1, 0), (0, 0, 0), (1, 0, 1), axis=1, sign=-1.0)
        assert rec["hit"] == 1
        assert rec["front_face"] == 0
        # The shading normal still opposes the ray
        assert rec["normal"][1] == pytest.approx(1.0)


class TestRectHost:
    """Host-side rectangle classes."""

    def test_empty_extent_rejected(self):
        from pathtracer.geometry.hittables import XYRect

        with pytest.raises(ValueError):
            XYRect(1, 1, 0, 1, 0, None)
        with pytest.raises(ValueError):
            XYRect(0, 1, 2, 1, 0, None)

    def test_corners_place_k_on_fixed_axis(self):
        from pathtracer.geometry.hittables import XZRect, YZRect

        lower, upper = XZRect(0, 1, 2, 3, 5, None).corners()
        assert lower.tolist() == [0, 5, 2]
        assert upper.tolist() == [1, 5, 3]

        lower, upper = YZRect(0, 1, 2, 3, 5, None).corners()
        assert lower.tolist() == [5, 0, 2]
        assert upper.tolist() == [5, 1, 3]

    def test_bounding_box_is_padded(self):
        from pathtracer.geometry.hittables import XYRect

        box = XYRect(0, 1, 0, 1, 2, None).bounding_box()
        assert box.minimum[2] < 2.0 < box.maximum[2]

    def test_box_has_six_faces(self):
        from pathtracer.geometry.hittables import box

        faces = box((0, 0, 0), (1, 2, 3), None)
        assert len(faces) == 6
        bbox = faces.bounding_box()
        assert bbox.contains((0.5, 1.0, 1.5))

    def test_box_flips_lower_faces(self):
        from pathtracer.geometry.hittables import box

        faces = box((0, 0, 0), (1, 1, 1), None)
        for face in faces:
            lower, _ = face.corners()
            assert face.flipped == (lower[face.axis] == 0.0)


class TestUninstancedBox:
    """Every face of a plain box is seen as a front face from outside."""

    @pytest.mark.parametrize(
        "origin, direction, normal",
        [
            ((0.5, 0.5, 5.0), (0, 0, -1), (0, 0, 1)),
            ((0.5, 0.5, -4.0), (0, 0, 1), (0, 0, -1)),
            ((0.5, 5.0, 0.5), (0, -1, 0), (0, 1, 0)),
            ((0.5, -4.0, 0.5), (0, 1, 0), (0, -1, 0)),
            ((5.0, 0.5, 0.5), (-1, 0, 0), (1, 0, 0)),
            ((-4.0, 0.5, 0.5), (1, 0, 0), (-1, 0, 0)),
        ],
    )
    def test_face_seen_from_outside(self, origin, direction, normal):
        from pathtracer.geometry.hittables import box
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.intersection import intersect_bvh, vec3
        from pathtracer.scene.manager import SceneManager

        SceneManager().load(box((0, 0, 0), (1, 1, 1), Lambertian((0.5, 0.5, 0.5))))

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        hit_normal = ti.Vector.field(3, dtype=ti.f32, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(o: vec3, d: vec3):
            rec = intersect_bvh(o, d, 0.0, 1e-3, 1e30, 0)
            hit[None] = rec.hit
            t_val[None] = rec.t
            hit_normal[None] = rec.normal
            front_face[None] = rec.front_face

        test_kernel(vec3(*origin), vec3(*direction))
        assert hit[None] == 1
        assert t_val[None] == pytest.approx(4.0, abs=1e-4)
        assert front_face[None] == 1
        np.testing.assert_allclose(hit_normal[None].to_numpy(), normal, atol=1e-6)

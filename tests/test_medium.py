"""Tests for constant-density media.

A ray crossing a chord of length L through a medium of density d scatters
inside it with probability 1 - exp(-d * L).
"""

import math

import numpy as np
import pytest
import taichi as ti


def _scatter_events(origin, direction, n=20000):
    """Trace n copies of one ray with independent streams.

    Returns:
        Tuple of (hit flags, t values) as NumPy arrays.
    """
    from pathtracer.core.sampler import seed_stream
    from pathtracer.scene.intersection import intersect_bvh, vec3

    hits = ti.field(dtype=ti.i32, shape=n)
    ts = ti.field(dtype=ti.f32, shape=n)

    @ti.kernel
    def test_kernel(o: vec3, d: vec3):
        for k in range(n):
            seed_stream(k, 0, k, 0)
            rec = intersect_bvh(o, d, 0.0, 1e-3, 1e30, k)
            hits[k] = rec.hit
            ts[k] = rec.t

    test_kernel(vec3(*origin), vec3(*direction))
    return hits.to_numpy(), ts.to_numpy()


def _load(*objects):
    from pathtracer.geometry.hittables import HittableList
    from pathtracer.scene.manager import SceneManager

    return SceneManager().load(HittableList(list(objects)))


class TestConstantMediumHost:
    def test_density_must_be_positive(self):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.medium import ConstantMedium

        boundary = Sphere((0, 0, 0), 1.0, None)
        with pytest.raises(ValueError):
            ConstantMedium(boundary, 0.0, (1, 1, 1))
        with pytest.raises(ValueError):
            ConstantMedium(boundary, -2.0, (1, 1, 1))

    def test_bounding_box_is_boundary_box(self):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.medium import ConstantMedium

        medium = ConstantMedium(Sphere((1, 0, 0), 2.0, None), 0.1, (1, 1, 1))
        assert medium.bounding_box().minimum.tolist() == [-1, -2, -2]
        assert medium.neg_inv_density == pytest.approx(-10.0)

    def test_boundary_surfaces_stored_separately(self):
        from pathtracer.geometry.hittables import box
        from pathtracer.geometry.medium import ConstantMedium
        from pathtracer.scene.intersection import get_primitive_count

        stats = _load(ConstantMedium(box((0, 0, 0), (1, 1, 1), None), 0.5, (1, 1, 1)))
        assert stats.primitives == 1
        assert stats.boundary_primitives == 6
        assert stats.media == 1
        assert get_primitive_count() == 7

    def test_nested_media_rejected(self):
        from pathtracer.errors import SceneError
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.medium import ConstantMedium

        inner = ConstantMedium(Sphere((0, 0, 0), 1.0, None), 0.5, (1, 1, 1))
        with pytest.raises(SceneError):
            _load(ConstantMedium(inner, 0.5, (1, 1, 1)))


class TestScatteringProbability:
    @pytest.mark.parametrize("density", [0.2, 0.5, 2.0])
    def test_through_box(self, density):
        from pathtracer.geometry.hittables import box
        from pathtracer.geometry.medium import ConstantMedium

        _load(ConstantMedium(box((-1, -1, -1), (1, 1, 1), None), density, (1, 1, 1)))
        hits, ts = _scatter_events((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

        expected = 1.0 - math.exp(-density * 2.0)
        assert hits.mean() == pytest.approx(expected, abs=0.02)
        inside = ts[hits == 1]
        assert inside.min() >= 4.0 - 1e-4
        assert inside.max() <= 6.0 + 1e-4

    def test_unnormalized_direction(self):
        """Distances are measured in world units, not in ray parameter."""
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.medium import ConstantMedium

        _load(ConstantMedium(Sphere((0, 0, 0), 1.0, None), 0.5, (1, 1, 1)))
        hits, ts = _scatter_events((0.0, 0.0, 5.0), (0.0, 0.0, -4.0))
        assert hits.mean() == pytest.approx(1.0 - math.exp(-1.0), abs=0.02)
        assert ts[hits == 1].min() >= 1.0 - 1e-4

    def test_ray_starting_inside(self):
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.geometry.medium import ConstantMedium

        _load(ConstantMedium(Sphere((0, 0, 0), 1.0, None), 1.0, (1, 1, 1)))
        hits, _ = _scatter_events((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        assert hits.mean() == pytest.approx(1.0 - math.exp(-1.0), abs=0.02)

    def test_surface_in_front_of_medium_wins(self):
        from pathtracer.geometry.hittables import Quad, Sphere
        from pathtracer.geometry.medium import ConstantMedium
        from pathtracer.materials.material import Lambertian

        wall = Quad((-2, -2, 3), (4, 0, 0), (0, 4, 0), Lambertian((0.5, 0.5, 0.5)))
        _load(wall, ConstantMedium(Sphere((0, 0, 0), 1.0, None), 100.0, (1, 1, 1)))
        hits, ts = _scatter_events((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), n=1000)
        assert hits.all()
        np.testing.assert_allclose(ts, 2.0, atol=1e-4)

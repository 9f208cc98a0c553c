"""Unit tests for the Metal material module.

Tests cover:
- Perfect specular reflection (fuzz=0)
- Fuzzy reflection (fuzz>0)
- Ray absorption when scattered below surface
- Attenuation equals albedo
- Host-side validation and fuzz clamping
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestPerfectReflection:
    """Tests for perfect specular reflection (fuzz=0)."""

    def test_normal_incidence_reflects_straight_back(self):
        """A ray hitting the surface head-on comes straight back."""
        from pathtracer.materials.metal import scatter_metal

        result_dir = ti.Vector.field(3, dtype=ti.f32, shape=())
        result_scatter = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            albedo = ti.math.vec3(1.0, 1.0, 1.0)
            # Ray going straight down (-Y) onto a surface facing +Y
            incident = ti.math.vec3(0.0, -1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            direction, _, did_scatter = scatter_metal(albedo, 0.0, incident, normal, 0)
            result_dir[None] = direction
            result_scatter[None] = did_scatter

        test_kernel()
        d = result_dir[None]
        assert abs(d[0]) < 1e-5
        assert abs(d[1] - 1.0) < 1e-5
        assert abs(d[2]) < 1e-5
        assert result_scatter[None] == 1

    def test_reflection_45_degrees(self):
        from pathtracer.materials.metal import scatter_metal

        result_dir = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            inv_sqrt2 = 1.0 / ti.sqrt(2.0)
            incident = ti.math.vec3(inv_sqrt2, -inv_sqrt2, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            direction, _, _ = scatter_metal(ti.math.vec3(1.0), 0.0, incident, normal, 0)
            result_dir[None] = direction

        test_kernel()
        d = result_dir[None]
        inv_sqrt2 = 1.0 / math.sqrt(2.0)
        assert abs(d[0] - inv_sqrt2) < 1e-5
        assert abs(d[1] - inv_sqrt2) < 1e-5
        assert abs(d[2]) < 1e-5

    def test_attenuation_is_albedo(self):
        from pathtracer.materials.metal import scatter_metal

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            _, attenuation, _ = scatter_metal(
                ti.math.vec3(0.8, 0.6, 0.2),
                0.0,
                ti.math.vec3(0.0, -1.0, 0.0),
                ti.math.vec3(0.0, 1.0, 0.0),
                0,
            )
            result[None] = attenuation

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), [0.8, 0.6, 0.2], atol=1e-6)


class TestFuzzyReflection:
    """Tests for fuzzed reflection."""

    def test_fuzz_spreads_directions(self):
        from pathtracer.core.sampler import seed_stream
        from pathtracer.materials.metal import scatter_metal

        n = 2000
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            for k in range(n):
                seed_stream(k, 0, k, 0)
                direction, _, did_scatter = scatter_metal(
                    ti.math.vec3(1.0),
                    0.3,
                    ti.math.vec3(0.0, -1.0, 0.0),
                    ti.math.vec3(0.0, 1.0, 0.0),
                    k,
                )
                directions[k] = direction
                scattered[k] = did_scatter

        test_kernel()
        d = directions.to_numpy()
        # Perturbation stays inside a ball of radius fuzz around the mirror direction
        offsets = np.linalg.norm(d - np.array([0.0, 1.0, 0.0]), axis=1)
        assert offsets.max() <= 0.3 + 1e-5
        assert offsets.mean() > 0.2
        assert scattered.to_numpy().all()

    def test_grazing_fuzz_can_absorb(self):
        """Fuzzed reflections below the surface are absorbed."""
        from pathtracer.core.sampler import seed_stream
        from pathtracer.materials.metal import scatter_metal

        n = 2000
        scattered = ti.field(dtype=ti.i32, shape=n)
        dots = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            incident = ti.math.normalize(ti.math.vec3(1.0, -0.05, 0.0))
            for k in range(n):
                seed_stream(k, 1, k, 0)
                direction, _, did_scatter = scatter_metal(
                    ti.math.vec3(1.0), 1.0, incident, normal, k
                )
                scattered[k] = did_scatter
                dots[k] = ti.math.dot(direction, normal)

        test_kernel()
        s = scattered.to_numpy()
        dot = dots.to_numpy()
        assert 0 < s.sum() < n
        # Every absorbed sample points into the surface and vice versa
        assert np.all((dot > 0.0) == (s == 1))


class TestMetalHost:
    """Host-side Metal validation."""

    def test_fuzz_above_one_is_clamped(self):
        from pathtracer.materials.material import Metal

        assert Metal((0.5, 0.5, 0.5), fuzz=3.0).fuzz == 1.0

    def test_negative_fuzz_rejected(self):
        from pathtracer.materials.material import Metal

        with pytest.raises(ValueError):
            Metal((0.5, 0.5, 0.5), fuzz=-0.1)

    def test_albedo_out_of_range_rejected(self):
        from pathtracer.materials.material import Metal

        with pytest.raises(ValueError):
            Metal((1.5, 0.5, 0.5))
        with pytest.raises(ValueError):
            Metal((0.5, -0.5, 0.5))

    def test_registry_rejects_unclamped_fuzz(self):
        from pathtracer.materials.material import add_metal_material

        with pytest.raises(ValueError):
            add_metal_material((0.5, 0.5, 0.5), fuzz=1.5)

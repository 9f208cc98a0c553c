"""Unit tests for the path tracing integrator.

Tests cover:
- Background color for escaped rays (solid and gradient)
- Emission from lights
- Path termination at max_depth
- Exact estimates for convex diffuse objects
- Sample accumulation and image layout
- Render target errors
"""

import numpy as np
import pytest


def _load(*objects):
    from pathtracer.geometry.hittables import HittableList
    from pathtracer.scene.manager import SceneManager

    return SceneManager().load(HittableList(list(objects)))


class TestBackground:
    def test_solid_background_for_empty_scene(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.scene.scene import Background

        _load()
        set_background(Background.solid((0.2, 0.4, 0.6)))
        color, segments = trace_ray((0, 0, 0), (0.3, -0.5, 1.0), max_depth=10)
        assert color == pytest.approx((0.2, 0.4, 0.6), abs=1e-6)
        assert segments == 1

    @pytest.mark.parametrize(
        "direction, expected",
        [
            ((0.0, 1.0, 0.0), (0.0, 0.0, 1.0)),
            ((0.0, -1.0, 0.0), (1.0, 1.0, 1.0)),
            ((1.0, 0.0, 0.0), (0.5, 0.5, 1.0)),
        ],
    )
    def test_gradient_blends_by_height(self, direction, expected):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.scene.scene import Background

        _load()
        set_background(Background.sky(bottom=(1.0, 1.0, 1.0), top=(0.0, 0.0, 1.0)))
        color, _ = trace_ray((0, 0, 0), direction, max_depth=5)
        assert color == pytest.approx(expected, abs=1e-5)


class TestEmission:
    def test_light_is_seen_directly(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.geometry.hittables import XYRect
        from pathtracer.materials.material import DiffuseLight
        from pathtracer.scene.scene import Background

        _load(XYRect(-1, 1, -1, 1, -2, DiffuseLight((4.0, 3.0, 2.0))))
        set_background(Background.solid((0.0, 0.0, 0.0)))
        color, segments = trace_ray((0, 0, 0), (0, 0, -1), max_depth=10)
        assert color == pytest.approx((4.0, 3.0, 2.0), abs=1e-5)
        assert segments == 1


class TestTermination:
    def test_parallel_mirrors_stop_at_max_depth(self):
        """A ray trapped between two perfect mirrors uses up its depth."""
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.geometry.hittables import XYRect
        from pathtracer.materials.material import Metal
        from pathtracer.scene.scene import Background

        mirror = Metal((1.0, 1.0, 1.0), fuzz=0.0)
        _load(XYRect(-50, 50, -50, 50, 0.0, mirror), XYRect(-50, 50, -50, 50, 1.0, mirror))
        set_background(Background.solid((1.0, 1.0, 1.0)))

        for depth in (1, 7, 20):
            color, segments = trace_ray((0, 0, 0.5), (0, 0, -1), max_depth=depth)
            assert segments == depth
            assert color == pytest.approx((0.0, 0.0, 0.0))

    def test_depth_one_sees_nothing_behind_a_surface(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.scene import Background

        _load(Sphere((0, 0, -3), 1.0, Lambertian((0.5, 0.5, 0.5))))
        set_background(Background.solid((1.0, 1.0, 1.0)))
        color, segments = trace_ray((0, 0, 0), (0, 0, -1), max_depth=1)
        assert segments == 1
        assert color == pytest.approx((0.0, 0.0, 0.0))

    def test_convex_diffuse_object_reflects_albedo_once(self):
        """Every scattered ray leaves a sphere, so the estimate is exact."""
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.scene import Background

        _load(Sphere((0, 0, -3), 1.0, Lambertian((0.5, 0.25, 0.125))))
        set_background(Background.solid((1.0, 1.0, 1.0)))
        for sample in range(16):
            color, segments = trace_ray((0, 0, 0), (0, 0, -1), max_depth=50, sample=sample)
            assert segments == 2
            assert color == pytest.approx((0.5, 0.25, 0.125), abs=1e-6)

    def test_trace_is_deterministic(self):
        from pathtracer.core.integrator import set_background, trace_ray
        from pathtracer.geometry.hittables import Sphere, XZRect
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.scene import Background

        gray = Lambertian((0.5, 0.5, 0.5))
        _load(Sphere((0, 0, -3), 1.0, gray), XZRect(-10, 10, -10, 10, -1, gray))
        set_background(Background.sky())
        a = trace_ray((0, 0, 0), (0.1, -0.2, -1), max_depth=20, seed=3, sample=5)
        b = trace_ray((0, 0, 0), (0.1, -0.2, -1), max_depth=20, seed=3, sample=5)
        assert a == b


class TestAccumulation:
    def _setup(self, width=8, height=6, background=None):
        from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera
        from pathtracer.core.integrator import set_background, setup_render_target
        from pathtracer.scene.scene import Background

        setup_camera(ThinLensCamera(), aspect_ratio=width / height)
        set_background(background if background is not None else Background.sky())
        setup_render_target(width, height)

    def test_black_scene_renders_black(self):
        from pathtracer.core.integrator import get_image, render_samples
        from pathtracer.geometry.hittables import Sphere
        from pathtracer.materials.material import Lambertian
        from pathtracer.scene.scene import Background

        _load(Sphere((0, 0, -2), 1.0, Lambertian((0.8, 0.8, 0.8))))
        self._setup(background=Background.solid((0.0, 0.0, 0.0)))
        render_samples(0, 4, max_depth=10)
        image = get_image()
        assert image.shape == (6, 8, 3)
        assert image.max() == 0.0

    def test_sample_and_segment_counts(self):
        from pathtracer.core.integrator import (
            get_total_samples,
            get_total_segments,
            render_samples,
        )

        _load()
        self._setup()
        render_samples(0, 3, max_depth=5)
        render_samples(3, 2, max_depth=5)
        assert get_total_samples() == 5
        # Every path escapes on its first query
        assert get_total_segments() == 5 * 8 * 6

    def test_top_row_is_row_zero(self):
        from pathtracer.core.integrator import get_linear_image, render_samples
        from pathtracer.scene.scene import Background

        _load()
        self._setup(background=Background.sky(bottom=(1.0, 1.0, 1.0), top=(0.0, 0.0, 1.0)))
        render_samples(0, 4, max_depth=5)
        image = get_linear_image()
        # Looking along -z; rays through the top rows point upward and are bluer
        assert image[0, :, 0].mean() < image[-1, :, 0].mean()
        np.testing.assert_allclose(image[:, :, 2], 1.0, atol=1e-5)

    def test_display_transform_is_sqrt_of_clamped_mean(self):
        from pathtracer.core.integrator import get_image, get_linear_image, render_samples
        from pathtracer.geometry.hittables import XYRect
        from pathtracer.materials.material import DiffuseLight
        from pathtracer.scene.scene import Background

        _load(XYRect(-100, 100, -100, 100, -1, DiffuseLight((0.25, 4.0, 0.0))))
        self._setup(background=Background.solid((0.0, 0.0, 0.0)))
        render_samples(0, 2, max_depth=5)
        linear = get_linear_image()
        np.testing.assert_allclose(linear[..., 0], 0.25, atol=1e-6)
        np.testing.assert_allclose(linear[..., 1], 4.0, atol=1e-5)

        image = get_image()
        np.testing.assert_allclose(image[..., 0], 0.5, atol=1e-6)
        np.testing.assert_allclose(image[..., 1], 1.0, atol=1e-6)
        np.testing.assert_allclose(image[..., 2], 0.0, atol=1e-6)


class TestRenderTargetErrors:
    def test_render_before_setup(self):
        from pathtracer.core.integrator import get_image, render_samples

        with pytest.raises(RuntimeError):
            render_samples(0, 1, max_depth=5)
        with pytest.raises(RuntimeError):
            get_image()

    @pytest.mark.parametrize("width, height", [(0, 10), (10, 0), (4096, 10)])
    def test_invalid_dimensions(self, width, height):
        from pathtracer.core.integrator import setup_render_target

        with pytest.raises(ValueError):
            setup_render_target(width, height)

    def test_invalid_counts(self):
        from pathtracer.core.integrator import render_samples, setup_render_target

        setup_render_target(4, 4)
        with pytest.raises(ValueError):
            render_samples(0, 0, max_depth=5)
        with pytest.raises(ValueError):
            render_samples(0, 1, max_depth=0)

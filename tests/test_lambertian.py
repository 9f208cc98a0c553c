"""Unit tests for the Lambertian material module.

Tests cover:
- Scattered rays stay in the normal's hemisphere
- Cosine-weighted distribution of scattered directions
- Attenuation equals albedo
- Textured albedo through the material dispatch
"""

import numpy as np
import taichi as ti


class TestLambertianScatter:
    """Tests for scatter_lambertian."""

    def test_always_scatters_into_hemisphere(self):
        from pathtracer.core.sampler import seed_stream
        from pathtracer.materials.lambertian import scatter_lambertian

        n = 5000
        dots = ti.field(dtype=ti.f32, shape=n)
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            normal = ti.math.normalize(ti.math.vec3(0.3, 1.0, -0.2))
            for k in range(n):
                seed_stream(k, 0, k, 0)
                direction, _, did_scatter = scatter_lambertian(ti.math.vec3(0.5), normal, k)
                dots[k] = ti.math.dot(ti.math.normalize(direction), normal)
                scattered[k] = did_scatter

        test_kernel()
        assert dots.to_numpy().min() >= -1e-6
        assert scattered.to_numpy().all()

    def test_cosine_weighted(self):
        """E[cos(theta)] is 2/3 for a cosine-weighted hemisphere."""
        from pathtracer.core.sampler import seed_stream
        from pathtracer.materials.lambertian import scatter_lambertian

        n = 20000
        cosines = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            normal = ti.math.vec3(0.0, 0.0, 1.0)
            for k in range(n):
                seed_stream(k, 1, k, 0)
                direction, _, _ = scatter_lambertian(ti.math.vec3(0.5), normal, k)
                cosines[k] = ti.math.normalize(direction).z

        test_kernel()
        assert abs(cosines.to_numpy().mean() - 2.0 / 3.0) < 0.01

    def test_attenuation_is_albedo(self):
        from pathtracer.materials.lambertian import scatter_lambertian

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            _, attenuation, _ = scatter_lambertian(
                ti.math.vec3(0.1, 0.2, 0.3), ti.math.vec3(0.0, 1.0, 0.0), 0
            )
            result[None] = attenuation

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), [0.1, 0.2, 0.3], atol=1e-6)


class TestLambertianDispatch:
    """Lambertian through the unified material registry."""

    def test_checker_albedo_depends_on_hit_point(self):
        from pathtracer.geometry.hit_record import HitRecord
        from pathtracer.materials.material import Lambertian, register_material, scatter
        from pathtracer.textures.texture import CheckerTexture

        material = Lambertian(CheckerTexture(1.0, (1.0, 0.0, 0.0), (0.0, 0.0, 1.0)))
        material_id = register_material(material, {}, {})

        results = ti.Vector.field(3, dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel(mat: ti.i32):
            for k in ti.static(range(2)):
                rec = HitRecord(
                    hit=1,
                    t=1.0,
                    point=ti.math.vec3(0.5 + k, 0.5, 0.5),
                    normal=ti.math.vec3(0.0, 1.0, 0.0),
                    front_face=1,
                    u=0.0,
                    v=0.0,
                    material_id=mat,
                )
                _, attenuation, _ = scatter(mat, ti.math.vec3(0.0, -1.0, 0.0), rec, 0)
                results[k] = attenuation

        test_kernel(material_id)
        colors = results.to_numpy()
        np.testing.assert_allclose(colors[0], [1.0, 0.0, 0.0])
        np.testing.assert_allclose(colors[1], [0.0, 0.0, 1.0])

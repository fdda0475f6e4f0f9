"""Unit tests for rays, vector helpers and random streams.

Tests cover:
- Ray evaluation with unnormalized directions
- reflect / refract
- Random stream determinism and range
- Random direction helpers (unit disk, unit vector, cosine hemisphere)
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestRay:
    """Tests for Ray construction and evaluation."""

    def test_ray_at(self):
        from pathtracer.core.ray import make_ray, ray_at, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(1.0, 2.0, 3.0), vec3(0.0, 0.0, -2.0))
            result[None] = ray_at(ray, 1.5)

        test_kernel()
        p = result[None]
        assert p[0] == pytest.approx(1.0)
        assert p[1] == pytest.approx(2.0)
        assert p[2] == pytest.approx(0.0)

    def test_degrees_to_radians(self):
        from pathtracer.core.ray import degrees_to_radians

        assert degrees_to_radians(180.0) == pytest.approx(math.pi)
        assert degrees_to_radians(0.0) == 0.0


class TestVectorOps:
    """Tests for reflect and refract."""

    def test_reflect(self):
        from pathtracer.core.ray import reflect, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        r = result[None]
        assert r[0] == pytest.approx(1.0)
        assert r[1] == pytest.approx(1.0)
        assert r[2] == pytest.approx(0.0)

    def test_refract_straight_through(self):
        """Normal incidence passes undeviated for any index ratio."""
        from pathtracer.core.ray import refract, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = refract(vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0), 1.0 / 1.5)

        test_kernel()
        r = result[None]
        assert r[0] == pytest.approx(0.0, abs=1e-6)
        assert r[1] == pytest.approx(-1.0, abs=1e-6)

    def test_refract_snell(self):
        """The transmitted sine equals eta_ratio times the incident sine."""
        from pathtracer.core.ray import refract, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())
        angle = math.radians(30.0)
        ratio = 1.0 / 1.5

        @ti.kernel
        def test_kernel():
            incident = vec3(ti.sin(angle), -ti.cos(angle), 0.0)
            result[None] = refract(incident, vec3(0.0, 1.0, 0.0), ratio)

        test_kernel()
        r = np.array(result[None])
        assert np.linalg.norm(r) == pytest.approx(1.0, abs=1e-5)
        assert r[0] == pytest.approx(ratio * math.sin(angle), abs=1e-5)
        assert r[1] < 0.0


class TestRandomStreams:
    """Tests for explicit per-pixel random streams."""

    def test_same_seed_same_sequence(self):
        from pathtracer.core.rng import random_float, seed_streams

        out = ti.field(dtype=ti.f32, shape=8)

        @ti.kernel
        def draw():
            for _ in range(1):
                for k in range(8):
                    out[k] = random_float(3)

        seed_streams(seed=11, count=4)
        draw()
        first = out.to_numpy()
        seed_streams(seed=11, count=4)
        draw()
        second = out.to_numpy()
        np.testing.assert_array_equal(first, second)

    def test_different_seeds_differ(self):
        from pathtracer.core.rng import random_float, seed_streams

        out = ti.field(dtype=ti.f32, shape=8)

        @ti.kernel
        def draw():
            for _ in range(1):
                for k in range(8):
                    out[k] = random_float(0)

        seed_streams(seed=1, count=1)
        draw()
        first = out.to_numpy()
        seed_streams(seed=2, count=1)
        draw()
        second = out.to_numpy()
        assert not np.array_equal(first, second)

    def test_streams_are_independent(self):
        """Neighbouring streams seeded together do not repeat each other."""
        from pathtracer.core.rng import random_float, seed_streams

        out = ti.field(dtype=ti.f32, shape=(2, 4))

        @ti.kernel
        def draw():
            for s in range(2):
                for k in range(4):
                    out[s, k] = random_float(s)

        seed_streams(seed=5, count=2)
        draw()
        values = out.to_numpy()
        assert not np.array_equal(values[0], values[1])

    def test_random_float_range_and_mean(self):
        from pathtracer.core.rng import random_float, seed_streams

        n = 20000
        out = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def draw():
            for k in range(n):
                out[k] = random_float(k)

        seed_streams(seed=42, count=n)
        draw()
        values = out.to_numpy()
        assert values.min() >= 0.0
        assert values.max() < 1.0
        assert values.mean() == pytest.approx(0.5, abs=0.01)

    def test_seed_streams_rejects_out_of_range(self):
        from pathtracer.core.rng import MAX_STREAMS, seed_streams

        with pytest.raises(ValueError):
            seed_streams(seed=1, count=2, offset=MAX_STREAMS - 1)
        with pytest.raises(ValueError):
            seed_streams(seed=1, count=1, offset=-1)


class TestRandomDirections:
    """Tests for the random direction helpers."""

    N = 4096

    def test_random_in_unit_disk(self):
        from pathtracer.core.ray import random_in_unit_disk
        from pathtracer.core.rng import seed_streams

        n = self.N
        out = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def draw():
            for k in range(n):
                out[k] = random_in_unit_disk(k)

        seed_streams(seed=3, count=n)
        draw()
        points = out.to_numpy()
        assert np.all(points[:, 0] ** 2 + points[:, 1] ** 2 < 1.0)
        assert np.all(points[:, 2] == 0.0)

    def test_random_unit_vector(self):
        from pathtracer.core.ray import random_unit_vector
        from pathtracer.core.rng import seed_streams

        n = self.N
        out = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def draw():
            for k in range(n):
                out[k] = random_unit_vector(k)

        seed_streams(seed=4, count=n)
        draw()
        vectors = out.to_numpy()
        np.testing.assert_allclose(np.linalg.norm(vectors, axis=1), 1.0, atol=1e-5)
        # Uniform on the sphere: mean close to the origin
        assert np.all(np.abs(vectors.mean(axis=0)) < 0.06)

    def test_random_cosine_direction(self):
        from pathtracer.core.ray import random_cosine_direction
        from pathtracer.core.rng import seed_streams

        n = self.N
        out = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def draw():
            for k in range(n):
                out[k] = random_cosine_direction(k)

        seed_streams(seed=5, count=n)
        draw()
        dirs = out.to_numpy()
        np.testing.assert_allclose(np.linalg.norm(dirs, axis=1), 1.0, atol=1e-5)
        assert np.all(dirs[:, 2] >= 0.0)
        # E[cos theta] under a cosine density is 2/3
        assert dirs[:, 2].mean() == pytest.approx(2.0 / 3.0, abs=0.02)

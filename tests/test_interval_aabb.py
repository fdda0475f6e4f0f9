"""Unit tests for intervals, bounding boxes and the orthonormal basis."""

import math

import numpy as np
import pytest
import taichi as ti


def as_vec(values):
    return ti.Vector([float(c) for c in values])


class TestInterval:
    """Tests for host-side Interval."""

    def test_default_interval_is_empty(self):
        from pathtracer.core.interval import Interval

        interval = Interval()
        assert interval.size() < 0
        assert not interval.contains(0.0)

    def test_contains_is_inclusive_surrounds_is_exclusive(self):
        from pathtracer.core.interval import Interval

        interval = Interval(1.0, 2.0)
        assert interval.contains(1.0)
        assert interval.contains(2.0)
        assert not interval.surrounds(1.0)
        assert interval.surrounds(1.5)

    def test_clamp(self):
        from pathtracer.core.interval import Interval

        interval = Interval(0.0, 0.999)
        assert interval.clamp(-1.0) == 0.0
        assert interval.clamp(5.0) == 0.999
        assert interval.clamp(0.5) == 0.5

    def test_expand_and_shift(self):
        from pathtracer.core.interval import Interval

        interval = Interval(0.0, 1.0).expand(0.5)
        assert interval.min == pytest.approx(-0.25)
        assert interval.max == pytest.approx(1.25)
        shifted = Interval(0.0, 1.0) + 2.0
        assert (shifted.min, shifted.max) == (2.0, 3.0)

    def test_enclosing(self):
        from pathtracer.core.interval import Interval

        interval = Interval.enclosing(Interval(0.0, 1.0), Interval(3.0, 4.0))
        assert (interval.min, interval.max) == (0.0, 4.0)

    def test_universe(self):
        from pathtracer.core.interval import EMPTY, UNIVERSE

        assert UNIVERSE.contains(1e30)
        assert not EMPTY.contains(0.0)

    def test_kernel_membership(self):
        from pathtracer.core.interval import interval_contains, interval_surrounds

        result = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            result[0] = interval_contains(0.0, 1.0, 1.0)
            result[1] = interval_surrounds(0.0, 1.0, 1.0)
            result[2] = interval_contains(0.0, 1.0, 2.0)
            result[3] = interval_surrounds(0.0, 1.0, 0.5)

        test_kernel()
        assert list(result.to_numpy()) == [1, 0, 0, 1]


class TestAABB:
    """Tests for host-side AABB."""

    def test_from_points_any_order(self):
        from pathtracer.core.aabb import AABB

        box = AABB.from_points((1, 5, -2), (-1, 2, 3))
        assert box.minimum == (-1, 2, -2)
        assert box.maximum == (1, 5, 3)

    def test_thin_axis_is_padded(self):
        from pathtracer.core.aabb import AABB, MIN_THICKNESS

        box = AABB.from_points((0, 0, 0), (1, 0, 1))
        assert box.y.size() == pytest.approx(MIN_THICKNESS)
        assert box.y.min < 0.0 < box.y.max

    def test_padding_survives_single_precision(self):
        """Far from the origin the padding stays wider than an f32 step."""
        from pathtracer.core.aabb import AABB

        box = AABB.from_points((2000, 0, 0), (2000, 1, 1))
        assert np.float32(box.x.min) < np.float32(2000.0) < np.float32(box.x.max)

    def test_empty_box_is_not_padded(self):
        from pathtracer.core.aabb import AABB

        assert AABB().is_empty()

    def test_enclosing(self):
        from pathtracer.core.aabb import AABB

        box = AABB.enclosing(
            AABB.from_points((0, 0, 0), (1, 1, 1)),
            AABB.from_points((2, -1, 0), (3, 0, 4)),
        )
        assert box.minimum == (0, -1, 0)
        assert box.maximum == (3, 1, 4)

    def test_enclosing_with_empty(self):
        from pathtracer.core.aabb import AABB

        solid = AABB.from_points((0, 0, 0), (1, 1, 1))
        assert AABB.enclosing(AABB(), solid) == solid

    def test_corners(self):
        from pathtracer.core.aabb import AABB

        corners = list(AABB.from_points((0, 0, 0), (1, 2, 3)).corners())
        assert len(corners) == 8
        assert any(np.allclose(c, (1, 2, 3)) for c in corners)
        assert any(np.allclose(c, (0, 0, 0)) for c in corners)

    def test_offset(self):
        from pathtracer.core.aabb import AABB

        box = AABB.from_points((0, 0, 0), (1, 1, 1)) + (10, 0, -1)
        assert box.minimum == (10, 0, -1)
        assert box.maximum == (11, 1, 0)


class TestHitAABB:
    """Tests for the slab test kernel function."""

    def _run(self, origin, direction, t_min=0.001, t_max=math.inf, box=((-1, -1, -1), (1, 1, 1))):
        from pathtracer.core.aabb import hit_aabb, vec3

        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(o: vec3, d: vec3, lo: ti.f32, hi: ti.f32, bmin: vec3, bmax: vec3):
            result[None] = hit_aabb(bmin, bmax, o, d, lo, hi)

        test_kernel(as_vec(origin), as_vec(direction), t_min, t_max, as_vec(box[0]), as_vec(box[1]))
        return result[None]

    def test_hit_through_center(self):
        assert self._run((0.0, 0.0, -5.0), (0.0, 0.0, 1.0)) == 1

    def test_miss_to_the_side(self):
        assert self._run((3.0, 0.0, -5.0), (0.0, 0.0, 1.0)) == 0

    def test_box_behind_ray(self):
        assert self._run((0.0, 0.0, 5.0), (0.0, 0.0, 1.0)) == 0

    def test_window_ends_before_box(self):
        assert self._run((0.0, 0.0, -5.0), (0.0, 0.0, 1.0), 0.001, 2.0) == 0

    def test_diagonal_hit(self):
        assert self._run((-5.0, -5.0, -5.0), (1.0, 1.0, 1.0)) == 1

    def test_zero_width_slab_still_hits(self):
        """A box flat along the ray's axis narrows the window to one point."""
        flat = ((2.0, -1.0, -1.0), (2.0, 1.0, 1.0))
        assert self._run((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), box=flat) == 1
        assert self._run((0.0, 3.0, 0.0), (1.0, 0.0, 0.0), box=flat) == 0


class TestONB:
    """Tests for orthonormal basis construction."""

    @pytest.mark.parametrize(
        "normal",
        [
            (0.0, 0.0, 1.0),
            (1.0, 0.0, 0.0),
            (0.0, -3.0, 0.0),
            (0.3, -0.4, 2.0),
            (0.95, 0.1, 0.0),
        ],
    )
    def test_axes_orthonormal(self, normal):
        from pathtracer.core.onb import build_onb, vec3

        axes = ti.Vector.field(3, dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel(n: vec3):
            a0, a1, a2 = build_onb(n)
            axes[0] = a0
            axes[1] = a1
            axes[2] = a2

        test_kernel(as_vec(normal))
        basis = axes.to_numpy()
        np.testing.assert_allclose(basis @ basis.T, np.eye(3), atol=1e-5)
        expected = np.array(normal) / np.linalg.norm(normal)
        np.testing.assert_allclose(basis[2], expected, atol=1e-5)

    def test_transform_maps_local_z_to_normal(self):
        from pathtracer.core.onb import build_onb, onb_transform, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            a0, a1, a2 = build_onb(vec3(0.0, 2.0, 0.0))
            result[None] = onb_transform(vec3(0.0, 0.0, 1.0), a0, a1, a2)

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), (0.0, 1.0, 0.0), atol=1e-6)

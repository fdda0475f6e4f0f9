"""Tests for the Renderer driver.

Tests cover:
- Rendering a small Cornell box end to end
- Progress reporting per band of rows
- Seed handling and reproducibility
- Image access before rendering
- PPM and PNG output
"""

import io
import logging

import numpy as np
import pytest


@pytest.fixture
def small_box():
    """A Cornell box with a 16 pixel wide, 1 sample camera."""
    from pathtracer.scene.cornell_box import create_cornell_box_scene

    _, config = create_cornell_box_scene(image_width=16, samples_per_pixel=1, max_depth=5)
    return config


class TestRenderer:
    def test_render_returns_image(self, small_box):
        from pathtracer.core.render import Renderer

        renderer = Renderer(small_box)
        image = renderer.render(seed=1)
        assert image.shape == (16, 16, 3)
        assert image.dtype == np.float32
        assert np.all(np.isfinite(image))
        assert np.all(image >= 0.0)
        assert image.mean() > 0.0
        assert (renderer.width, renderer.height) == (16, 16)

    def test_progress_callback(self, small_box):
        from pathtracer.core.render import Renderer

        calls = []
        Renderer(small_box).render(seed=1, rows_per_batch=5, callback=lambda d, t: calls.append((d, t)))
        assert calls == [(5, 16), (10, 16), (15, 16), (16, 16)]

    def test_render_progressive_yields_bands(self, small_box):
        from pathtracer.core.render import Renderer

        renderer = Renderer(small_box)
        progress = list(renderer.render_progressive(seed=1, rows_per_batch=16))
        assert progress == [(16, 16)]
        assert renderer.rows_completed == 16

    def test_invalid_batch_size(self, small_box):
        from pathtracer.core.render import Renderer

        with pytest.raises(ValueError):
            Renderer(small_box).render(seed=1, rows_per_batch=0)

    def test_fixed_seed_reproduces_image(self, small_box):
        from pathtracer.core.render import Renderer

        first = Renderer(small_box).render(seed=123, rows_per_batch=3)
        second = Renderer(small_box).render(seed=123, rows_per_batch=16)
        np.testing.assert_array_equal(first, second)

    def test_random_seed_is_recorded(self, small_box):
        from pathtracer.core.render import Renderer

        renderer = Renderer(small_box)
        image = renderer.render()
        assert 0 <= renderer.seed < 2**32
        np.testing.assert_array_equal(image, Renderer(small_box).render(seed=renderer.seed))

    def test_image_before_render(self, small_box):
        from pathtracer.core.render import Renderer

        renderer = Renderer(small_box)
        with pytest.raises(RuntimeError):
            renderer.get_image_numpy()
        with pytest.raises(RuntimeError):
            _ = renderer.width
        assert "unrendered" in repr(renderer)

    def test_render_logs_summary(self, small_box, caplog):
        from pathtracer.core.render import Renderer

        with caplog.at_level(logging.INFO, logger="pathtracer.core.render"):
            Renderer(small_box).render(seed=5)
        assert "Rendering 16x16" in caplog.text
        assert "seed 5" in caplog.text


class TestRendererOutput:
    def test_write_ppm(self, small_box):
        from pathtracer.core.render import Renderer

        renderer = Renderer(small_box)
        renderer.render(seed=2)
        stream = io.StringIO()
        renderer.write_ppm(stream)
        lines = stream.getvalue().splitlines()
        assert lines[:3] == ["P3", "16 16", "255"]
        assert len(lines) == 3 + 16 * 16
        assert all(0 <= int(c) <= 255 for line in lines[3:] for c in line.split())

    def test_save_png(self, small_box, tmp_path):
        from PIL import Image

        from pathtracer.core.render import Renderer

        renderer = Renderer(small_box)
        renderer.render(seed=2)
        path = tmp_path / "box.png"
        renderer.save_image(path)
        with Image.open(path) as png:
            np.testing.assert_array_equal(np.asarray(png.convert("RGB")), renderer.get_image_uint8())

"""Tests for the Cornell box scene factory.

Tests cover:
- Material, instance and light counts
- Parameter overrides
- Camera configuration
- Wall, light and box placement through single-ray queries
"""

import pytest


class TestCornellBoxScene:
    def test_counts(self):
        from pathtracer.scene.cornell_box import create_cornell_box_scene

        scene, _ = create_cornell_box_scene()
        assert scene.get_material_count() == 5
        # 5 walls, the light, 6 box sides and the sphere
        assert scene.get_instance_count() == 13
        assert scene.get_renderable_count() == 13
        assert scene.get_light_count() == 2

    def test_light_weights_split_evenly(self):
        from pathtracer.scene.cornell_box import create_cornell_box_scene
        from pathtracer.scene.instances import get_light_weight

        create_cornell_box_scene()
        assert [get_light_weight(i) for i in range(2)] == pytest.approx([0.5, 0.5])

    def test_ceiling_light_only(self):
        from pathtracer.scene.cornell_box import CornellBoxParams, create_cornell_box_scene
        from pathtracer.scene.instances import get_light_weight

        scene, _ = create_cornell_box_scene(CornellBoxParams(sample_glass_sphere=False))
        assert scene.get_light_count() == 1
        assert get_light_weight(0) == pytest.approx(1.0)

    def test_params_reach_materials(self):
        from pathtracer.scene.cornell_box import CornellBoxParams, create_cornell_box_scene

        params = CornellBoxParams(light_intensity=4.0, light_color=(1.0, 0.5, 0.25), glass_ior=1.33)
        scene, _ = create_cornell_box_scene(params)
        assert scene.get_material_info(3).params["emission"] == pytest.approx((4.0, 2.0, 1.0))
        assert scene.get_material_info(4).params["ior"] == pytest.approx(1.33)

    def test_camera_config(self):
        from pathtracer.scene.cornell_box import create_cornell_box_scene

        _, config = create_cornell_box_scene(image_width=64, samples_per_pixel=9, max_depth=7)
        assert config.image_width == 64
        assert config.samples_per_pixel == 9
        assert config.max_depth == 7
        assert config.aspect_ratio == 1.0
        assert config.vfov == 40.0
        assert config.lookfrom == (278.0, 278.0, -800.0)
        assert config.background == (0.0, 0.0, 0.0)


class TestCornellBoxGeometry:
    """Single rays into the box (materials: red 0, white 1, green 2, light 3, glass 4)."""

    @pytest.fixture(autouse=True)
    def build(self):
        from pathtracer.scene.cornell_box import create_cornell_box_scene

        create_cornell_box_scene()

    def test_back_wall(self):
        from pathtracer.scene.instances import probe

        hit = probe((100, 450, -800), (0, 0, 1))
        assert hit["material_id"] == 1
        assert hit["point"][2] == pytest.approx(555.0, abs=1e-2)

    def test_side_walls(self):
        from pathtracer.scene.instances import probe

        assert probe((100, 450, 200), (1, 0, 0))["material_id"] == 2
        assert probe((100, 450, 200), (-1, 0, 0))["material_id"] == 0

    def test_ceiling_light_faces_down(self):
        from pathtracer.scene.instances import probe

        hit = probe((278, 500, 280), (0, 1, 0))
        assert hit["material_id"] == 3
        assert hit["front_face"]
        assert hit["point"][1] == pytest.approx(554.0, abs=1e-2)

    def test_glass_sphere(self):
        from pathtracer.scene.instances import probe

        hit = probe((190, 90, -800), (0, 0, 1))
        assert hit["material_id"] == 4
        assert hit["point"][2] == pytest.approx(100.0, abs=1e-1)

    def test_tall_box_blocks_view(self):
        from pathtracer.scene.instances import probe

        hit = probe((370, 200, -800), (0, 0, 1))
        assert hit["material_id"] == 1
        assert hit["point"][2] < 555.0 - 1.0

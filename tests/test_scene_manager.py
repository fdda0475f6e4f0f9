"""Tests for the SceneManager.

Tests cover:
- Material registration and material info
- Adding spheres, planar shapes, lists and boxes
- Material inheritance down surface trees
- Sharing instances between the drawn scene and the light list
- Light list weights of nested lists
- Validation errors and capacity queries
"""

import logging

import pytest


@pytest.fixture
def fresh_scene():
    """Provide a fresh SceneManager for each test."""
    from pathtracer.scene.manager import SceneManager

    return SceneManager()


class TestMaterialRegistration:
    """Tests for material registration and info."""

    def test_material_info(self, fresh_scene):
        from pathtracer.materials.material import MaterialType

        fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        metal = fresh_scene.add_metal_material((0.9, 0.9, 0.9), fuzz=0.2)

        info = fresh_scene.get_material_info(metal)
        assert info.material_type == MaterialType.METAL
        assert info.type_index == 0
        assert info.params == {"albedo": (0.9, 0.9, 0.9), "fuzz": 0.2}
        assert fresh_scene.get_material_count() == 2

    def test_unknown_material_info(self, fresh_scene):
        assert fresh_scene.get_material_info(0) is None
        assert fresh_scene.get_material_info(-1) is None

    def test_type_indices_per_type(self, fresh_scene):
        fresh_scene.add_lambertian_material((0.1, 0.1, 0.1))
        fresh_scene.add_dielectric_material(1.33)
        second = fresh_scene.add_lambertian_material((0.2, 0.2, 0.2))
        assert fresh_scene.get_material_info(second).type_index == 1


class TestAddingSurfaces:
    """Tests for add() with leaves and trees."""

    def test_add_sphere(self, fresh_scene):
        from pathtracer.scene.instances import probe

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        index = fresh_scene.add_sphere((0, 0, -3), 1.0, mat)
        assert index == 0
        assert fresh_scene.get_instance_count() == 1

        hit = probe((0, 0, 0), (0, 0, -1))
        assert hit["t"] == pytest.approx(2.0, abs=1e-4)
        assert hit["material_id"] == mat

    def test_add_quad(self, fresh_scene):
        from pathtracer.scene.instances import probe

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        fresh_scene.add_quad((-1, -1, -2), (2, 0, 0), (0, 2, 0), mat)
        hit = probe((0, 0, 0), (0, 0, -1))
        assert hit is not None
        assert hit["front_face"]

    @pytest.mark.parametrize("x", [500.0, 2000.0, 5000.0])
    def test_axis_aligned_quad_far_from_origin(self, fresh_scene, x):
        from pathtracer.scene.instances import probe

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        fresh_scene.add_quad((x, 0, 0), (0, 1, 0), (0, 0, 1), mat)
        hit = probe((0, 0.5, 0.5), (1, 0, 0))
        assert hit is not None
        assert hit["t"] == pytest.approx(x, rel=1e-5)

    def test_box_is_six_quads(self, fresh_scene):
        from pathtracer.scene.instances import get_planar_count
        from pathtracer.scene.surfaces import box

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        indices = fresh_scene.add(box((0, 0, 0), (1, 2, 3)), mat)
        assert len(indices) == 6
        assert get_planar_count() == 6

    def test_box_normals_face_outward(self, fresh_scene):
        from pathtracer.scene.instances import probe
        from pathtracer.scene.surfaces import box

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        fresh_scene.add(box((0, 0, 0), (1, 1, 1)), mat)
        for origin, direction in [
            ((0.5, 0.5, 5), (0, 0, -1)),
            ((5, 0.5, 0.5), (-1, 0, 0)),
            ((0.5, 5, 0.5), (0, -1, 0)),
            ((0.5, -5, 0.5), (0, 1, 0)),
        ]:
            assert probe(origin, direction)["front_face"]

    def test_material_inheritance(self, fresh_scene):
        from pathtracer.scene.instances import probe
        from pathtracer.scene.surfaces import SphereSurface, SurfaceList

        white = fresh_scene.add_lambertian_material((0.73, 0.73, 0.73))
        red = fresh_scene.add_lambertian_material((0.65, 0.05, 0.05))
        green = fresh_scene.add_lambertian_material((0.12, 0.45, 0.15))

        group = SurfaceList(
            [
                SphereSurface((0, 0, -3), 0.5),
                SphereSurface((5, 0, -3), 0.5, material_id=green),
            ]
        )
        group.material_id = red
        fresh_scene.add(group, white)

        assert probe((0, 0, 0), (0, 0, -1))["material_id"] == red
        assert probe((5, 0, 0), (0, 0, -1))["material_id"] == green

    def test_missing_material(self, fresh_scene):
        from pathtracer.scene.surfaces import SphereSurface

        with pytest.raises(ValueError, match="No material"):
            fresh_scene.add(SphereSurface((0, 0, 0), 1.0))

    def test_invalid_material(self, fresh_scene):
        fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        with pytest.raises(ValueError, match="Invalid material_id"):
            fresh_scene.add_sphere((0, 0, 0), 1.0, 5)

    def test_unknown_surface_type(self, fresh_scene):
        from pathtracer.core.aabb import AABB
        from pathtracer.scene.surfaces import Surface

        class Cloud(Surface):
            def bounding_box(self):
                return AABB()

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        with pytest.raises(TypeError):
            fresh_scene.add(Cloud(), mat)

    def test_degenerate_shapes(self):
        from pathtracer.scene.surfaces import PlanarSurface, SphereSurface

        with pytest.raises(ValueError):
            SphereSurface((0, 0, 0), 0.0)
        with pytest.raises(ValueError):
            PlanarSurface.triangle((0, 0, 0), (1, 1, 1), (2, 2, 2))

    def test_transform_chain_too_deep(self, fresh_scene):
        from pathtracer.scene.instances import MAX_TRANSFORM_DEPTH
        from pathtracer.scene.surfaces import SphereSurface, Translate

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        surface = SphereSurface((0, 0, 0), 1.0)
        for _ in range(MAX_TRANSFORM_DEPTH + 1):
            surface = Translate(surface, (1, 0, 0))
        with pytest.raises(ValueError):
            fresh_scene.add(surface, mat)

    def test_same_leaf_under_different_wrappers(self, fresh_scene):
        from pathtracer.scene.instances import get_sphere_count, probe
        from pathtracer.scene.surfaces import SphereSurface, Translate

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        ball = SphereSurface((0, 0, -3), 0.5)
        fresh_scene.add(Translate(ball, (-2, 0, 0)), mat)
        fresh_scene.add(Translate(ball, (2, 0, 0)), mat)

        assert fresh_scene.get_instance_count() == 2
        assert get_sphere_count() == 2
        assert probe((-2, 0, 0), (0, 0, -1)) is not None
        assert probe((2, 0, 0), (0, 0, -1)) is not None
        assert probe((0, 0, 0), (0, 0, -1)) is None

    def test_add_logs_at_debug(self, fresh_scene, caplog):
        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        with caplog.at_level(logging.DEBUG, logger="pathtracer.scene.manager"):
            fresh_scene.add_sphere((0, 0, 0), 1.0, mat)
        assert "SphereSurface" in caplog.text


class TestLights:
    """Tests for add_light and instance sharing."""

    def test_drawn_light_shares_instance(self, fresh_scene):
        from pathtracer.scene.surfaces import PlanarSurface

        lamp = fresh_scene.add_diffuse_light_material((15.0, 15.0, 15.0))
        quad = PlanarSurface.quad((-1, 2, -1), (2, 0, 0), (0, 0, 2), material_id=lamp)
        drawn = fresh_scene.add(quad)
        slots = fresh_scene.add_light(quad)

        assert fresh_scene.get_instance_count() == 1
        assert fresh_scene.get_light_count() == 1
        assert slots == [0]
        assert drawn == [0]

    def test_light_only_surface_is_invisible(self, fresh_scene):
        from pathtracer.scene.instances import probe
        from pathtracer.scene.surfaces import SphereSurface

        fresh_scene.add_light(SphereSurface((0, 0, -3), 1.0))
        assert fresh_scene.get_instance_count() == 1
        assert fresh_scene.get_renderable_count() == 0
        assert probe((0, 0, 0), (0, 0, -1)) is None

    def test_light_added_to_scene_later(self, fresh_scene):
        from pathtracer.scene.instances import probe
        from pathtracer.scene.surfaces import SphereSurface

        glass = fresh_scene.add_dielectric_material(1.5)
        ball = SphereSurface((0, 0, -3), 1.0)
        fresh_scene.add_light(ball)
        fresh_scene.add(ball, glass)

        assert fresh_scene.get_instance_count() == 1
        assert fresh_scene.get_renderable_count() == 1
        assert probe((0, 0, 0), (0, 0, -1))["material_id"] == glass

    def test_nested_list_weights(self, fresh_scene):
        from pathtracer.scene.instances import get_light_weight
        from pathtracer.scene.surfaces import SphereSurface, SurfaceList, flatten

        tree = SurfaceList(
            [
                SphereSurface((0, 5, 0), 1.0),
                SurfaceList([SphereSurface((3, 5, 0), 1.0), SphereSurface((-3, 5, 0), 1.0)]),
            ]
        )
        assert [leaf.weight for leaf in flatten(tree)] == pytest.approx([0.5, 0.25, 0.25])

        fresh_scene.add_light(tree)
        assert [get_light_weight(i) for i in range(3)] == pytest.approx([0.5, 0.25, 0.25])

    def test_empty_light_list_adds_nothing(self, fresh_scene):
        from pathtracer.scene.surfaces import SurfaceList

        assert fresh_scene.add_light(SurfaceList()) == []
        assert fresh_scene.get_light_count() == 0

    def test_empty_light_takes_no_share(self, fresh_scene):
        from pathtracer.scene.instances import get_light_weight
        from pathtracer.scene.surfaces import PlanarSurface, SurfaceList

        fresh_scene.add_light(SurfaceList())
        slots = fresh_scene.add_light(PlanarSurface.quad((-1, 2, -1), (2, 0, 0), (0, 0, 2)))
        fresh_scene.add_light(SurfaceList([SurfaceList()]))

        assert slots == [0]
        assert fresh_scene.get_light_count() == 1
        assert get_light_weight(0) == pytest.approx(1.0)

    def test_empty_members_take_no_share(self, fresh_scene):
        from pathtracer.scene.instances import get_light_weight
        from pathtracer.scene.surfaces import SphereSurface, SurfaceList, Translate, flatten

        tree = SurfaceList(
            [
                SurfaceList(),
                SphereSurface((0, 5, 0), 1.0),
                Translate(SurfaceList([SurfaceList(), SphereSurface((3, 5, 0), 1.0)]), (0, 1, 0)),
            ]
        )
        weights = [leaf.weight for leaf in flatten(tree)]
        assert weights == pytest.approx([0.5, 0.5])

        fresh_scene.add_light(tree)
        fresh_scene.add_light(SphereSurface((0, -5, 0), 1.0))
        total = sum(get_light_weight(i) for i in range(fresh_scene.get_light_count()))
        assert total == pytest.approx(1.0)
        assert get_light_weight(2) == pytest.approx(0.5)


class TestSceneClearing:
    def test_clear_scene(self, fresh_scene):
        from pathtracer.scene.surfaces import SphereSurface

        mat = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        fresh_scene.add_sphere((0, 0, -1), 0.5, mat)
        fresh_scene.add_light(SphereSurface((0, 3, 0), 0.5))

        fresh_scene.clear()

        assert fresh_scene.get_instance_count() == 0
        assert fresh_scene.get_light_count() == 0
        assert fresh_scene.get_material_count() == 0
        assert fresh_scene.surfaces == []
        assert fresh_scene.lights == []

    def test_capacity_methods(self, fresh_scene):
        from pathtracer.materials.material import MAX_MATERIALS
        from pathtracer.scene.instances import MAX_INSTANCES

        assert fresh_scene.get_max_instances() == MAX_INSTANCES
        assert fresh_scene.get_max_materials() == MAX_MATERIALS

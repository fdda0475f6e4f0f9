"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    invalidate the module-level fields of already imported modules.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear the instance table, light list, materials and render target.

    This ensures tests are isolated from each other.
    """
    # Import here so the fields are created after ti.init
    from pathtracer.core.integrator import reset_render_target
    from pathtracer.materials.material import clear_material_registry
    from pathtracer.scene.instances import clear_scene

    def _clear_all():
        clear_scene()
        clear_material_registry()
        reset_render_target()

    _clear_all()
    yield
    _clear_all()

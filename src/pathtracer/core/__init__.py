"""Core rendering module.

Components:
    ray: Ray structure, vector helpers and random direction sampling
    rng: Explicit per-pixel random number streams
    interval: Parametric ray intervals
    aabb: Axis-aligned bounding boxes and the slab test
    onb: Orthonormal basis around a normal
    pdf: Sampling densities and the 50/50 mixture
    integrator: Radiance estimator and the parallel render kernel
    render: Host-side driver rendering the image in row bands
"""

# Submodules are NOT imported here: rng and integrator declare Taichi fields,
# which must happen after ti.init. Import them directly, e.g.
#   from pathtracer.core.render import Renderer

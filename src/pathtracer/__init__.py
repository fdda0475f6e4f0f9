"""Monte Carlo path tracer built on Taichi.

This package renders scenes of spheres, planar shapes, boxes and
translated / rotated instances with unbiased path tracing:
- Mixture importance sampling of designated light surfaces and materials
- Lambertian, metal, dielectric and diffuse light materials
- Thin-lens camera with stratified pixel sampling
- Deterministic per-pixel random streams and row-band rendering

Subpackages:
    core: Rays, intervals, bounding boxes, random streams, densities,
        the integrator and the renderer
    geometry: Primitive intersection and sampling functions
    materials: Material registry and scattering models
    scene: Surface descriptions, instance table, scene manager
    camera: Camera configuration and ray generation
    preview: Image conversion and export

Modules that declare Taichi fields must be imported after ``ti.init``.
"""

__version__ = "0.1.0"

"""Material models.

Components:
    material: Unified material ids and scatter / emit dispatch
    lambertian: Ideal diffuse reflection
    metal: Specular reflection with optional fuzz
    dielectric: Refraction with Schlick reflectance
    diffuse_light: Emitter that never scatters
    scatter_record: Outcome of a scatter event
"""

"""Geometry primitives.

Components:
    hit_record: Ray-surface intersection record
    sphere: Sphere intersection, uv mapping and light sampling
    quad: Planar shapes (quad, triangle, ellipse)
    transform: Translate and rotate-Y coordinate changes
"""

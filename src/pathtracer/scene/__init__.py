"""Scene description and management.

Components:
    surfaces: Host-side surface classes (sphere, planar shapes, lists,
        boxes, translate and rotate-Y wrappers) and tree flattening
    instances: Instance table, light list and scene intersection
    manager: SceneManager tying surfaces, materials and lights together
    cornell_box: The Cornell box demo scene
"""

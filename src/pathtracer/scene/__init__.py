"""Scene description and device upload.

Components:
    scene: Scene container, Background and RenderSettings
    bvh: Host-side BVH construction
    intersection: Device primitive arena and BVH traversal
    manager: Uploads a world into the device arenas
"""

from .scene import Background, BackgroundType, RenderSettings, Scene

__all__ = ["Scene", "Background", "BackgroundType", "RenderSettings"]

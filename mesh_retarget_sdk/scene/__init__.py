"""
Scene - node hierarchy and skinned mesh bindings seen by the retargeting core.

Example usage:
    from mesh_retarget_sdk.scene import Scene

    scene = Scene()
    character = scene.create_node("Character")
    hips = scene.add_bone("Hips", character)
    scene.add_binding("Body", character, geometry="body_mesh", bones=[hips], root_bone=hips)
"""

from .scene import NO_PARENT, Scene, SceneHost, SceneNode, SkinnedMeshBinding

__all__ = [
    "NO_PARENT",
    "Scene",
    "SceneHost",
    "SceneNode",
    "SkinnedMeshBinding",
]

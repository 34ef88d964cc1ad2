"""
Mesh Retarget SDK - Skinned mesh transfer between character skeletons.

This package moves skin-bound mesh parts authored against one bone hierarchy
onto a differently named, posturally compatible hierarchy, keeping every
vertex group bound to the right bone.

Main classes:
    - Scene: In-memory node hierarchy (implements SceneHost)
    - SkeletonIndex: Name -> bone lookup of one skeleton
    - RootBoneLocator: Finds the root bone of a set of meshes
    - BoneNameMapper: Source -> target bone name resolution
    - MeshTransferExecutor: Batch transfer with per-mesh failure isolation

Example usage:
    from mesh_retarget_sdk import Scene, load_bvh_skeleton, retarget_meshes

    # Build both characters
    scene = Scene()
    source = scene.create_node("UE_Character")
    target = scene.create_node("Mixamo_Character")
    load_bvh_skeleton("ue_mannequin.bvh", scene, parent=source)
    load_bvh_skeleton("mixamo.bvh", scene, parent=target)

    # Transfer every mesh of the source character
    bindings = scene.collect_bindings(source)
    summary = retarget_meshes(scene, bindings, target, alias_table="ue_to_mixamo")
    print(summary.format("Mixamo_Character"))
"""

# Import from subpackages
from .scene import NO_PARENT, Scene, SceneHost, SceneNode, SkinnedMeshBinding
from .skeleton import DuplicateName, RootBoneLocator, RootBoneResult, RootMethod, SkeletonIndex
from .retargeter import (
    BatchPhase,
    BatchSummary,
    BoneNameMapper,
    KeywordMatchPolicy,
    MatchMethod,
    MeshPlan,
    MeshTransferExecutor,
    RetargetPlanner,
    RetargetPreconditionError,
    RetargetReport,
    TransferOptions,
    filter_untransferred,
    invert_alias_table,
    list_alias_tables,
    load_alias_table,
    resolve_bone,
    retarget_meshes,
)
from .utils import load_bvh_skeleton

__version__ = "0.1.0"
__all__ = [
    "NO_PARENT",
    "Scene",
    "SceneHost",
    "SceneNode",
    "SkinnedMeshBinding",
    "DuplicateName",
    "RootBoneLocator",
    "RootBoneResult",
    "RootMethod",
    "SkeletonIndex",
    "BatchPhase",
    "BatchSummary",
    "BoneNameMapper",
    "KeywordMatchPolicy",
    "MatchMethod",
    "MeshPlan",
    "MeshTransferExecutor",
    "RetargetPlanner",
    "RetargetPreconditionError",
    "RetargetReport",
    "TransferOptions",
    "filter_untransferred",
    "invert_alias_table",
    "list_alias_tables",
    "load_alias_table",
    "resolve_bone",
    "retarget_meshes",
    "load_bvh_skeleton",
]

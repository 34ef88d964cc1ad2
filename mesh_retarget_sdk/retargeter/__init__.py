"""
Retargeter - Skinned mesh transfer between independently named skeletons.

This package maps bone names from a source skeleton to a target skeleton,
plans index-preserving bone arrays for every mesh, and transfers whole batches
of meshes onto the target with per-mesh failure isolation.

Example usage:
    from mesh_retarget_sdk.retargeter import BoneNameMapper, MeshTransferExecutor, TransferOptions

    mapper = BoneNameMapper("ue_to_mixamo")
    executor = MeshTransferExecutor(scene, verbose=True)
    summary = executor.execute(bindings, target_character, mapper,
                               TransferOptions(delete_source_after_transfer=True))

    print(summary.format("Mixamo"))
    for report in summary.reports:
        # report.fallback_indices = bones now following the target root
        print(report.mesh_name, report.resolved_count, report.fallback_indices)
"""

from .bone_mapper import (
    BoneNameMapper,
    MatchMethod,
    ResolvedBone,
    Unresolved,
    invert_alias_table,
    list_alias_tables,
    load_alias_table,
    resolve_bone,
    validate_alias_table,
)
from .keyword_policy import KeywordMatchPolicy
from .planner import MeshPlan, RetargetPlanner, RetargetReport
from .executor import (
    BatchPhase,
    BatchSummary,
    MeshTransferExecutor,
    RetargetPreconditionError,
    TransferOptions,
    filter_untransferred,
    retarget_meshes,
)

__all__ = [
    "BoneNameMapper",
    "MatchMethod",
    "ResolvedBone",
    "Unresolved",
    "invert_alias_table",
    "list_alias_tables",
    "load_alias_table",
    "resolve_bone",
    "validate_alias_table",
    "KeywordMatchPolicy",
    "MeshPlan",
    "RetargetPlanner",
    "RetargetReport",
    "BatchPhase",
    "BatchSummary",
    "MeshTransferExecutor",
    "RetargetPreconditionError",
    "TransferOptions",
    "filter_untransferred",
    "retarget_meshes",
]

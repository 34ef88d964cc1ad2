#!/usr/bin/env python3
"""
Example: transfer mesh parts from one BVH skeleton to another.

This script builds a source character from a BVH file, binds one stand-in
mesh part to every limb chain of its skeleton, and transfers all parts onto
the skeleton of a target BVH file.

Usage:
    python transfer_meshes.py --source ue_mannequin.bvh --target mixamo.bvh --alias_table ue_to_mixamo

Output:
    - Per-mesh mapping results
    - Batch summary (transferred, fallback warnings, failures)
"""

import argparse

from mesh_retarget_sdk import (
    BoneNameMapper,
    KeywordMatchPolicy,
    MeshTransferExecutor,
    Scene,
    TransferOptions,
    load_bvh_skeleton,
)


def bind_limb_meshes(scene, character, root):
    """Create one binding per child chain of the root bone."""
    bindings = []
    for child in scene.children_of(root):
        bones = [root, child] + [handle for _, handle in scene.enumerate_descendants(child)]
        name = f"{scene.name_of(child)}_mesh"
        bindings.append(scene.add_binding(
            name,
            character,
            geometry=f"{name}_geometry",
            bones=bones,
            root_bone=root,
            materials=[f"{name}_material"],
        ))
    return bindings


def main():
    parser = argparse.ArgumentParser(description="Transfer mesh parts between BVH skeletons")

    parser.add_argument(
        "--source",
        type=str,
        required=True,
        help="Path to the source BVH file",
    )

    parser.add_argument(
        "--target",
        type=str,
        required=True,
        help="Path to the target BVH file",
    )

    parser.add_argument(
        "--alias_table",
        type=str,
        default=None,
        help="Bundled alias table name or JSON file path",
    )

    parser.add_argument(
        "--keyword_matching",
        action="store_true",
        default=False,
        help="Enable heuristic keyword matching",
    )

    parser.add_argument(
        "--delete_source",
        action="store_true",
        default=False,
        help="Delete transferred source meshes after the batch",
    )

    parser.add_argument(
        "--check_rest_pose",
        action="store_true",
        default=False,
        help="Warn about mapped bones with incompatible rest poses",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Print verbose output",
    )

    args = parser.parse_args()

    scene = Scene()
    source_character = scene.create_node("Source")
    target_character = scene.create_node("Target")

    print(f"Loading source skeleton: {args.source}")
    source_root, _ = load_bvh_skeleton(args.source, scene, parent=source_character)
    print(f"Loading target skeleton: {args.target}")
    load_bvh_skeleton(args.target, scene, parent=target_character)

    bindings = bind_limb_meshes(scene, source_character, source_root)
    print(f"Created {len(bindings)} source mesh parts")

    policy = KeywordMatchPolicy() if args.keyword_matching else None
    mapper = BoneNameMapper(args.alias_table, keyword_policy=policy, verbose=args.verbose)
    options = TransferOptions(
        delete_source_after_transfer=args.delete_source,
        check_rest_pose=args.check_rest_pose,
    )

    executor = MeshTransferExecutor(scene, verbose=args.verbose)
    summary = executor.execute(
        bindings,
        target_character,
        mapper,
        options,
        on_phase=lambda phase: print(f"[Main] Phase: {phase.value}"),
    )

    print("\nPer-mesh results:")
    for report in summary.reports:
        status = "ok" if report.transferable else f"failed ({report.failure_reason})"
        print(f"  {report.mesh_name}: {report.resolved_count}/{report.total_bones} mapped, "
              f"{len(report.fallback_indices)} on root, {status}")

    for dup in summary.duplicate_names:
        print(f"  Duplicate bone name: {dup.name}")
    for dev in summary.rest_pose_warnings:
        print(f"  Rest pose mismatch: {dev.source_name} → {dev.target_name} "
              f"({dev.angle_deg:.1f} deg, offset {dev.offset_ratio:.2f})")

    print()
    print(summary.format(scene.name_of(target_character)))

    return summary


if __name__ == "__main__":
    main()

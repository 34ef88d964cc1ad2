#!/usr/bin/env python3
"""
Example: bone mapping report between two BVH skeletons.

This script loads the hierarchy of a source and a target BVH file and prints
how every source bone resolves on the target skeleton, without transferring
anything. Use it to check an alias table before a transfer.

Usage:
    python bone_mapping_report.py --source ue_mannequin.bvh --target mixamo.bvh --alias_table ue_to_mixamo

Output:
    - One line per source bone (✓ source → target (method) / ✗ No match)
    - Duplicate bone names found in either skeleton
"""

import argparse

from mesh_retarget_sdk import (
    BoneNameMapper,
    KeywordMatchPolicy,
    Scene,
    SkeletonIndex,
    list_alias_tables,
    load_bvh_skeleton,
)


def main():
    parser = argparse.ArgumentParser(description="Bone mapping report between two BVH skeletons")

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
        help=f"Bundled alias table {list_alias_tables()} or a JSON file path",
    )

    parser.add_argument(
        "--keyword_matching",
        action="store_true",
        default=False,
        help="Enable heuristic keyword matching for bones without an exact or aliased name",
    )

    args = parser.parse_args()

    scene = Scene()
    source_root, _ = load_bvh_skeleton(args.source, scene, parent=scene.create_node("Source"))
    target_root, _ = load_bvh_skeleton(args.target, scene, parent=scene.create_node("Target"))

    source_index = SkeletonIndex.build(scene, source_root, verbose=True)
    target_index = SkeletonIndex.build(scene, target_root, verbose=True)

    policy = KeywordMatchPolicy() if args.keyword_matching else None
    mapper = BoneNameMapper(args.alias_table, keyword_policy=policy, verbose=True)
    mapping = mapper.build_mapping(source_index, target_index)

    matched = sum(1 for target_name in mapping.values() if target_name is not None)
    print(f"\n[Main] Mapped {matched}/{len(mapping)} source bones")

    return mapping


if __name__ == "__main__":
    main()

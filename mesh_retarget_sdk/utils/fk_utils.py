"""
Forward kinematics over scene rest transforms.

Rest poses are only read here, to warn when two skeletons are not posturally
compatible. Nothing in the SDK corrects a rest pose.
"""

from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation as R

from .quat_utils import quat_mul, quat_normalize, rotate_vec_by_quat


@dataclass(frozen=True)
class RestPoseDeviation:
    """A mapped bone pair whose rest poses disagree beyond tolerance."""
    source_name: str
    target_name: str
    angle_deg: float
    offset_ratio: float


def compute_rest_world_transforms(host, root):
    """
    Compute skeleton-space rest transforms below `root`.

    The root's own local transform is used as its global transform, so the
    result does not depend on where the skeleton sits in the scene. Scale is
    not used.

    Args:
        host: SceneHost owning the skeleton
        root: Root bone handle

    Returns:
        Dict handle -> (global_position (3,), global_rotation_wxyz (4,))
    """
    global_transforms = {}
    if root is None or not host.is_alive(root):
        return global_transforms

    position, rotation, _ = host.rest_transform_of(root)
    global_transforms[root] = (position, quat_normalize(rotation))

    # Pre-order traversal visits every parent before its children
    for _, handle in host.enumerate_descendants(root):
        local_pos, local_rot, _ = host.rest_transform_of(handle)
        parent_pos, parent_rot = global_transforms[host.parent_of(handle)]

        # Global position = parent_global_pos + parent_global_rot * local_pos
        global_pos = parent_pos + rotate_vec_by_quat(local_pos, parent_rot)
        # Global rotation = parent_global_rot * local_rot
        global_rot = quat_normalize(quat_mul(parent_rot, local_rot))
        global_transforms[handle] = (global_pos, global_rot)

    return global_transforms


def skeleton_extent(global_transforms, root):
    """Largest distance from the root to any bone; 1.0 for a degenerate skeleton."""
    if root not in global_transforms:
        return 1.0
    root_pos = global_transforms[root][0]
    extent = max(
        (np.linalg.norm(pos - root_pos) for pos, _ in global_transforms.values()),
        default=0.0,
    )
    return extent if extent > 1e-6 else 1.0


def compare_rest_poses(pairs, source_world, source_root, target_world, target_root,
                       tolerance_deg=30.0, tolerance_ratio=0.25):
    """
    Find mapped bones whose rest poses are incompatible.

    Positions are compared relative to each skeleton's root and scaled by each
    skeleton's extent, so skeletons of different sizes compare equal when
    their proportions match.

    Args:
        pairs: Iterable of (source_name, source_handle, target_name, target_handle)
        source_world: compute_rest_world_transforms() of the source skeleton
        source_root: Source root handle
        target_world: compute_rest_world_transforms() of the target skeleton
        target_root: Target root handle
        tolerance_deg: Largest accepted rest rotation difference
        tolerance_ratio: Largest accepted normalized position difference

    Returns:
        List of RestPoseDeviation, in pair order
    """
    if source_root not in source_world or target_root not in target_world:
        return []

    source_origin = source_world[source_root][0]
    target_origin = target_world[target_root][0]
    source_scale = skeleton_extent(source_world, source_root)
    target_scale = skeleton_extent(target_world, target_root)

    deviations = []
    for source_name, source_handle, target_name, target_handle in pairs:
        if source_handle not in source_world or target_handle not in target_world:
            continue
        s_pos, s_rot = source_world[source_handle]
        t_pos, t_rot = target_world[target_handle]

        s_rel = (s_pos - source_origin) / source_scale
        t_rel = (t_pos - target_origin) / target_scale
        offset_ratio = float(np.linalg.norm(s_rel - t_rel))

        relative = R.from_quat(s_rot, scalar_first=True).inv() * R.from_quat(t_rot, scalar_first=True)
        angle_deg = float(np.degrees(relative.magnitude()))

        if angle_deg > tolerance_deg or offset_ratio > tolerance_ratio:
            deviations.append(RestPoseDeviation(source_name, target_name, angle_deg, offset_ratio))
    return deviations

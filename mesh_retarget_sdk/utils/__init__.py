"""
Utility functions for skeleton data.

This module provides:
    - bvh_loader: BVH hierarchy parsing into a scene
    - fk_utils: Rest-pose forward kinematics and compatibility checks
    - quat_utils: Quaternion math utilities
"""

from .bvh_loader import load_bvh_skeleton, read_bvh_hierarchy
from .fk_utils import compare_rest_poses, compute_rest_world_transforms
from .quat_utils import quat_mul, quat_normalize, rotate_vec_by_quat

__all__ = [
    "load_bvh_skeleton",
    "read_bvh_hierarchy",
    "compare_rest_poses",
    "compute_rest_world_transforms",
    "quat_mul",
    "quat_normalize",
    "rotate_vec_by_quat",
]

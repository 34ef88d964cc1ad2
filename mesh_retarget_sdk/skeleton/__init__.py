"""
Skeleton - bone name indexing and root bone inference.

This package provides:
    - SkeletonIndex: name -> bone handle lookup with duplicate detection
    - RootBoneLocator: infers the root bone of a set of mesh bindings
"""

from .skeleton_index import DuplicateName, SkeletonIndex
from .root_locator import (
    RootBoneLocator,
    RootBoneResult,
    RootMethod,
    load_root_keywords,
)

__all__ = [
    "DuplicateName",
    "SkeletonIndex",
    "RootBoneLocator",
    "RootBoneResult",
    "RootMethod",
    "load_root_keywords",
]

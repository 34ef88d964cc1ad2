"""
Per-mesh retarget planning.

A plan replaces every entry of a binding's bone array with a target bone while
keeping the array order, so vertex group i keeps following bone i.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ..scene.scene import SkinnedMeshBinding


@dataclass(frozen=True)
class RetargetReport:
    """
    Outcome of planning one mesh.

    Attributes:
        mesh_name: Binding name
        total_bones: Length of the bone array
        resolved_count: Entries mapped to a target bone by name
        fallback_indices: Entries that fell back to the target root
        empty_indices: Entries that were None (or dead) and stay None
        foreign_indices: Entries whose bone is outside the source skeleton
        root_resolved: False if the mesh's root bone has no target counterpart
        root_defaulted: The mesh declared no root, the target root was used
        root_bone_name: Name of the declared source root bone
        failure_reason: Why the mesh cannot be transferred, None if it can
        resolutions: Per-index ResolvedBone / Unresolved / None
    """
    mesh_name: str
    total_bones: int
    resolved_count: int
    fallback_indices: Tuple[int, ...] = ()
    empty_indices: Tuple[int, ...] = ()
    foreign_indices: Tuple[int, ...] = ()
    root_resolved: bool = True
    root_defaulted: bool = False
    root_bone_name: Optional[str] = None
    failure_reason: Optional[str] = None
    resolutions: tuple = ()

    @property
    def has_warnings(self):
        return bool(self.fallback_indices)

    @property
    def transferable(self):
        return self.root_resolved and self.failure_reason is None


@dataclass(frozen=True)
class MeshPlan:
    """New bone array and root for one binding, plus its report."""
    binding: SkinnedMeshBinding
    bones: Tuple[Optional[int], ...]
    root_bone: Optional[int]
    report: RetargetReport

    @property
    def transferable(self):
        return self.report.transferable


class RetargetPlanner:
    """
    Builds index-preserving bone arrays for skinned mesh bindings.

    Example usage:
        planner = RetargetPlanner(mapper)
        plan = planner.plan_mesh(scene, binding, source_index, target_index, target_root)
        if plan.transferable:
            scene.attach_binding(node, binding.geometry, plan.bones, plan.root_bone, None)
    """

    def __init__(self, mapper, verbose: bool = False):
        """
        Args:
            mapper: BoneNameMapper shared by the whole batch
            verbose: Print every fallback
        """
        self.mapper = mapper
        self.verbose = verbose

    def plan_mesh(self, host, binding, source_index, target_index, target_root) -> MeshPlan:
        """
        Plan the transfer of one binding.

        Args:
            host: SceneHost owning both skeletons
            binding: Source SkinnedMeshBinding
            source_index: SkeletonIndex of the source skeleton (None skips
                          the foreign-bone check)
            target_index: SkeletonIndex of the target skeleton
            target_root: Target root bone handle, used for fallbacks

        Returns:
            MeshPlan whose bone array has the same length as binding.bones
        """
        new_bones = []
        resolutions = []
        fallback_indices = []
        empty_indices = []
        foreign_indices = []
        resolved_count = 0

        for i, bone in enumerate(binding.bones):
            if bone is None or not host.is_alive(bone):
                new_bones.append(None)
                resolutions.append(None)
                empty_indices.append(i)
                continue

            if source_index is not None and not source_index.contains_handle(bone):
                foreign_indices.append(i)

            bone_name = host.name_of(bone)
            result = self.mapper.resolve(bone_name, target_index)
            resolutions.append(result)
            if result.resolved:
                new_bones.append(result.handle)
                resolved_count += 1
            else:
                new_bones.append(target_root)
                fallback_indices.append(i)
                if self.verbose:
                    print(f"[RetargetPlanner] Could not find bone '{bone_name}' in target "
                          f"skeleton for mesh {binding.name}, using root")

        root_bone, root_resolved, root_defaulted, root_name = self._plan_root(
            host, binding, target_index, target_root)

        failure_reason = None
        if not binding.bones:
            failure_reason = "no bones"
        elif not root_resolved:
            failure_reason = f"root bone '{root_name}' not found in target skeleton"
        if failure_reason and self.verbose:
            print(f"[RetargetPlanner] Mesh {binding.name}: {failure_reason}")

        report = RetargetReport(
            mesh_name=binding.name,
            total_bones=len(binding.bones),
            resolved_count=resolved_count,
            fallback_indices=tuple(fallback_indices),
            empty_indices=tuple(empty_indices),
            foreign_indices=tuple(foreign_indices),
            root_resolved=root_resolved,
            root_defaulted=root_defaulted,
            root_bone_name=root_name,
            failure_reason=failure_reason,
            resolutions=tuple(resolutions),
        )
        return MeshPlan(binding, tuple(new_bones), root_bone, report)

    def _plan_root(self, host, binding, target_index, target_root):
        """Returns (root handle, resolved, defaulted, source root name)."""
        if binding.root_bone is None or not host.is_alive(binding.root_bone):
            return target_root, True, True, None

        root_name = host.name_of(binding.root_bone)
        result = self.mapper.resolve(root_name, target_index)
        if not result.resolved:
            return None, False, False, root_name
        return result.handle, True, False, root_name

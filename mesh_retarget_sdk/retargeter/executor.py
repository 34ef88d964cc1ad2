"""
Batch transfer of skinned mesh bindings onto a target skeleton.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..scene.scene import NO_PARENT
from ..skeleton.root_locator import KEYWORD_MATCH_MODES, RootBoneLocator
from ..skeleton.skeleton_index import SkeletonIndex
from ..utils.fk_utils import compare_rest_poses, compute_rest_world_transforms
from .bone_mapper import BoneNameMapper
from .planner import RetargetPlanner


class RetargetPreconditionError(ValueError):
    """The inputs of a transfer are unusable; nothing was modified."""


class BatchPhase(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    PLANNING = "planning"
    EXECUTING = "executing"
    CLEANUP = "cleanup"
    DONE = "done"


@dataclass(frozen=True)
class TransferOptions:
    """
    Options of one transfer batch.

    Attributes:
        preserve_materials: Copy the source material list to the new binding
        delete_source_after_transfer: Destroy the source nodes of transferred
            meshes once the whole batch is done
        replace_existing_meshes: Destroy the meshes the target container held
            before the batch, once the whole batch is done
        target_root: Target root bone handle; located automatically if None
        source_container: Container of the source character used when the
            source root has to be inferred (top of the scene if None)
        root_keywords: Ordered root name candidates (bundled list if None)
        root_keyword_match: "exact" or "contains"
        check_rest_pose: Report mapped bones whose rest poses disagree
        rest_pose_tolerance_deg: Rotation tolerance of the rest pose check
        rest_pose_tolerance_ratio: Position tolerance of the rest pose check,
            relative to skeleton size
    """
    preserve_materials: bool = True
    delete_source_after_transfer: bool = False
    replace_existing_meshes: bool = False
    target_root: Optional[int] = None
    source_container: Optional[int] = None
    root_keywords: Optional[tuple] = None
    root_keyword_match: str = "exact"
    check_rest_pose: bool = False
    rest_pose_tolerance_deg: float = 30.0
    rest_pose_tolerance_ratio: float = 0.25

    def __post_init__(self):
        for name in ("preserve_materials", "delete_source_after_transfer",
                     "replace_existing_meshes", "check_rest_pose"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be a bool, got {getattr(self, name)!r}")
        if self.root_keyword_match not in KEYWORD_MATCH_MODES:
            raise ValueError(f"Unknown keyword match mode: {self.root_keyword_match}. "
                             f"Supported: {list(KEYWORD_MATCH_MODES)}")
        if self.rest_pose_tolerance_deg <= 0 or self.rest_pose_tolerance_ratio <= 0:
            raise ValueError("Rest pose tolerances must be positive")
        if self.root_keywords is not None:
            object.__setattr__(self, "root_keywords", tuple(self.root_keywords))


@dataclass
class BatchSummary:
    """
    Result of a transfer batch.

    Attributes:
        transferred_count: Meshes created under the target container
        warning_count: Transferred meshes with at least one fallback bone
        failed_names: Meshes skipped because they could not be transferred
        failure_reasons: Mesh name -> reason, for every failed mesh
        reports: RetargetReport of every mesh, in input order
        created_nodes: Handles of the new mesh nodes, in input order
        deleted_nodes: Handles destroyed during cleanup
        duplicate_names: DuplicateName entries of both skeletons
        rest_pose_warnings: RestPoseDeviation entries (check_rest_pose only)
        source_root: Source root bone handle
        target_root: Target root bone handle
    """
    transferred_count: int = 0
    warning_count: int = 0
    failed_names: list = field(default_factory=list)
    failure_reasons: dict = field(default_factory=dict)
    reports: list = field(default_factory=list)
    created_nodes: list = field(default_factory=list)
    deleted_nodes: list = field(default_factory=list)
    duplicate_names: list = field(default_factory=list)
    rest_pose_warnings: list = field(default_factory=list)
    source_root: Optional[int] = None
    target_root: Optional[int] = None

    @property
    def succeeded(self):
        return not self.failed_names

    def format(self, target_name="target"):
        """Human-readable summary, one fact per line."""
        lines = [f"Successfully transferred {self.transferred_count} mesh parts to {target_name}."]
        if self.warning_count:
            lines.append(f"{self.warning_count} mesh parts use the root bone for unmatched bones.")
        if self.failed_names:
            lines.append("")
            lines.append("Failed to retarget bones for:")
            for name in self.failed_names:
                lines.append(f"  {name}: {self.failure_reasons.get(name, 'unknown')}")
        if self.deleted_nodes:
            lines.append(f"Deleted {len(self.deleted_nodes)} old mesh nodes.")
        return "\n".join(lines)


class MeshTransferExecutor:
    """
    Transfers skinned mesh bindings onto the skeleton of a target container.

    Each mesh succeeds or fails on its own: a mesh whose root bone cannot be
    mapped is skipped without creating anything, the rest of the batch goes
    on. Optional cleanup runs once, after every mesh has been processed.

    The executor does not lock. Callers must not run two batches into the same
    target container concurrently, and running the same batch twice creates
    duplicates (see filter_untransferred).

    Example usage:
        executor = MeshTransferExecutor(scene)
        mapper = BoneNameMapper("ue_to_mixamo")
        summary = executor.execute(bindings, target_character, mapper,
                                   TransferOptions(delete_source_after_transfer=True))
        print(summary.format("Target"))
    """

    def __init__(self, host, verbose: bool = False):
        """
        Args:
            host: SceneHost owning source and target characters
            verbose: Print progress and per-mesh outcomes
        """
        self.host = host
        self.verbose = verbose

    def execute(self, bindings, target_container, mapper, options=None, on_phase=None) -> BatchSummary:
        """
        Run one transfer batch.

        Args:
            bindings: Source SkinnedMeshBindings, in transfer order
            target_container: Target character node; new mesh nodes go here
            mapper: BoneNameMapper used for every mesh of the batch
            options: TransferOptions (defaults if None)
            on_phase: Optional callable receiving each BatchPhase as it starts

        Returns:
            BatchSummary

        Raises:
            RetargetPreconditionError: before any change to the scene, when
                there are no bindings, the target has no bones, or no root
                bone can be found
        """
        options = TransferOptions() if options is None else options
        bindings = list(bindings)
        summary = BatchSummary()

        def enter(phase):
            if self.verbose:
                print(f"[MeshTransferExecutor] {phase.value}")
            if on_phase is not None:
                on_phase(phase)

        enter(BatchPhase.IDLE)

        # ---- Scanning: validate everything before touching the scene ----
        enter(BatchPhase.SCANNING)
        scan = self._scan(bindings, target_container, mapper, options, summary)
        source_index, target_index, target_root, existing_nodes = scan

        # ---- Planning ----
        enter(BatchPhase.PLANNING)
        planner = RetargetPlanner(mapper, verbose=self.verbose)
        plans = [
            planner.plan_mesh(self.host, binding, source_index, target_index, target_root)
            for binding in bindings
        ]

        # ---- Executing ----
        enter(BatchPhase.EXECUTING)
        transferred = []
        for plan in plans:
            summary.reports.append(plan.report)
            node = self._transfer(plan, target_container, options, summary)
            if node is not None:
                transferred.append(plan.binding)
                summary.created_nodes.append(node)

        # ---- Cleanup ----
        if transferred and (options.delete_source_after_transfer or options.replace_existing_meshes):
            enter(BatchPhase.CLEANUP)
            doomed = []
            if options.delete_source_after_transfer:
                doomed.extend(b.node for b in transferred if b.node is not None)
            if options.replace_existing_meshes:
                doomed.extend(existing_nodes)
            for handle in doomed:
                # A node may already be gone with a destroyed ancestor
                if self.host.is_alive(handle):
                    self.host.destroy_node(handle)
                    summary.deleted_nodes.append(handle)

        enter(BatchPhase.DONE)
        if self.verbose:
            print(f"[MeshTransferExecutor] Transferred {summary.transferred_count}, "
                  f"warnings {summary.warning_count}, failed {len(summary.failed_names)}")
        return summary

    def _scan(self, bindings, target_container, mapper, options, summary):
        host = self.host
        if not bindings:
            raise RetargetPreconditionError("No source meshes to transfer.")
        if target_container is None or not host.is_alive(target_container):
            raise RetargetPreconditionError(f"Target container {target_container} does not exist.")

        target_nodes = host.enumerate_descendants(target_container)
        if not any(host.binding_of(h) is None for _, h in target_nodes):
            raise RetargetPreconditionError(
                f"Target container '{host.name_of(target_container)}' has no bones.")

        existing = [host.binding_of(h) for _, h in target_nodes if host.binding_of(h) is not None]
        existing_nodes = [b.node for b in existing if b.node is not None]

        locator = RootBoneLocator(options.root_keywords, options.root_keyword_match, verbose=self.verbose)

        source_container = options.source_container
        if source_container is None:
            first_node = bindings[0].node
            if first_node is not None and host.is_alive(first_node):
                parent = host.parent_of(first_node)
                source_container = None if parent == NO_PARENT else parent

        source_result = locator.locate(host, bindings, source_container)
        if not source_result.found:
            raise RetargetPreconditionError("Could not find the root bone of the source meshes.")
        source_top = self._skeleton_top(source_result.handle, source_container)
        if source_top is None:
            source_top = source_result.handle
        source_index = SkeletonIndex.build(host, source_top, verbose=self.verbose, skip_bindings=True)

        target_root = self._find_target_root(
            locator, existing, target_container, source_result.handle, mapper, options)
        if target_root is None:
            raise RetargetPreconditionError(
                f"Could not find armature in target '{host.name_of(target_container)}'. "
                "Please pass the target root bone explicitly.")

        # The index covers the whole target skeleton; the root only anchors fallbacks
        target_top = self._skeleton_top(target_root, target_container)
        if target_top is None:
            raise RetargetPreconditionError(
                f"Target root bone '{host.name_of(target_root)}' is not inside "
                f"target '{host.name_of(target_container)}'.")
        target_index = SkeletonIndex.build(host, target_top, verbose=self.verbose, skip_bindings=True)

        summary.source_root = source_result.handle
        summary.target_root = target_root
        summary.duplicate_names.extend(source_index.duplicates)
        summary.duplicate_names.extend(target_index.duplicates)

        if options.check_rest_pose:
            summary.rest_pose_warnings.extend(self._check_rest_pose(
                mapper, source_index, source_top, target_index, target_top, options))

        return source_index, target_index, target_root, existing_nodes

    def _find_target_root(self, locator, existing, target_container, source_root, mapper, options):
        host = self.host
        if options.target_root is not None:
            if not host.is_alive(options.target_root):
                raise RetargetPreconditionError(f"Target root bone {options.target_root} does not exist.")
            return options.target_root

        result = locator.locate(host, existing, target_container)
        if result.found:
            return result.handle

        # Last resort: the source root's counterpart anywhere in the target
        container_index = SkeletonIndex.build(host, target_container, skip_bindings=True)
        mapped = mapper.resolve(host.name_of(source_root), container_index)
        if mapped.resolved and mapped.handle != target_container:
            return mapped.handle
        return None

    def _skeleton_top(self, handle, container):
        """
        Ancestor of `handle` (itself included) sitting directly below `container`.

        With container None this is the top-level ancestor. Returns None when
        `handle` is the container itself or lies outside it.
        """
        host = self.host
        stop = NO_PARENT if container is None else container
        if handle == container:
            return None
        current = handle
        while True:
            parent = host.parent_of(current)
            if parent == stop:
                return current
            if parent == NO_PARENT:
                return None
            current = parent

    def _check_rest_pose(self, mapper, source_index, source_root, target_index, target_root, options):
        pairs = []
        for source_name in source_index.names:
            result = mapper.resolve(source_name, target_index)
            if result.resolved:
                pairs.append((source_name, source_index.get(source_name), result.target_name, result.handle))

        deviations = compare_rest_poses(
            pairs,
            compute_rest_world_transforms(self.host, source_root),
            source_root,
            compute_rest_world_transforms(self.host, target_root),
            target_root,
            tolerance_deg=options.rest_pose_tolerance_deg,
            tolerance_ratio=options.rest_pose_tolerance_ratio,
        )
        if self.verbose:
            for dev in deviations:
                print(f"[MeshTransferExecutor] Warning: rest pose of '{dev.source_name}' → "
                      f"'{dev.target_name}' differs by {dev.angle_deg:.1f} deg, "
                      f"offset {dev.offset_ratio:.2f}")
        return deviations

    def _transfer(self, plan, target_container, options, summary):
        """Create the target node for one plan; returns its handle or None."""
        binding = plan.binding
        report = plan.report
        if not plan.transferable:
            self._fail(summary, binding.name, report.failure_reason)
            return None

        materials = binding.materials if options.preserve_materials else None
        node = self.host.create_node(binding.name, target_container)
        try:
            self.host.attach_binding(node, binding.geometry, list(plan.bones), plan.root_bone, materials)
        except (KeyError, ValueError) as e:
            # No half-built mesh is left behind
            self.host.destroy_node(node)
            self._fail(summary, binding.name, f"attach failed: {e}")
            return None

        summary.transferred_count += 1
        if report.has_warnings:
            summary.warning_count += 1
        if self.verbose:
            print(f"[MeshTransferExecutor] {binding.name}: {report.resolved_count}/{report.total_bones} "
                  f"bones mapped, {len(report.fallback_indices)} on root")
        return node

    def _fail(self, summary, name, reason):
        summary.failed_names.append(name)
        summary.failure_reasons[name] = reason
        if self.verbose:
            print(f"[MeshTransferExecutor] Failed to retarget bones for {name}: {reason}")


def filter_untransferred(host, bindings, target_container, verbose: bool = False):
    """
    Drop bindings whose name already exists as a mesh directly under the target.

    MeshTransferExecutor is not idempotent; call this first to make a repeated
    transfer skip the meshes it already created.
    """
    present = {
        host.name_of(child)
        for child in host.children_of(target_container)
        if host.binding_of(child) is not None
    }
    remaining = []
    for binding in bindings:
        if binding.name in present:
            if verbose:
                print(f"[MeshTransferExecutor] {binding.name} already transferred, skipping")
            continue
        remaining.append(binding)
    return remaining


def retarget_meshes(host, bindings, target_container, alias_table=None, options=None,
                    keyword_policy=None, verbose: bool = False) -> BatchSummary:
    """
    One-call transfer: builds the mapper and executor and runs the batch.

    Args:
        host: SceneHost owning both characters
        bindings: Source SkinnedMeshBindings
        target_container: Target character node
        alias_table: Alias table, bundled table name or JSON path (optional)
        options: TransferOptions (optional)
        keyword_policy: KeywordMatchPolicy to enable fuzzy matching (optional)
        verbose: Print progress

    Returns:
        BatchSummary
    """
    mapper = BoneNameMapper(alias_table, keyword_policy=keyword_policy, verbose=verbose)
    executor = MeshTransferExecutor(host, verbose=verbose)
    return executor.execute(bindings, target_container, mapper, options)

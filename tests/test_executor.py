import unittest

import numpy as np

from mesh_retarget_sdk import (
    BatchPhase,
    BoneNameMapper,
    MeshTransferExecutor,
    RetargetPreconditionError,
    Scene,
    SkinnedMeshBinding,
    TransferOptions,
    filter_untransferred,
    invert_alias_table,
    retarget_meshes,
)


def add_chain(scene, parent, names, rotations=None):
    """Add a bone chain under `parent`, 0.1 apart along +Y."""
    handles = []
    for i, name in enumerate(names):
        rotation = None if rotations is None else rotations.get(name)
        handles.append(scene.add_bone(name, parent, position=(0.0, 0.1, 0.0), rotation=rotation))
        parent = handles[i]
    return handles


class FailingScene(Scene):
    """Scene whose attach_binding rejects the node names in `fail_names`."""

    fail_names = ()

    def attach_binding(self, node, geometry, bones, root_bone, materials):
        if self.name_of(node) in self.fail_names:
            raise ValueError("geometry has no vertex groups")
        return super().attach_binding(node, geometry, bones, root_bone, materials)


class ExecutorTestCase(unittest.TestCase):
    scene_class = Scene
    source_names = ["pelvis", "spine_01", "head"]
    target_names = ["Hips", "Spine", "Head"]

    def setUp(self):
        self.scene = self.scene_class()
        self.source = self.scene.create_node("Source")
        self.target = self.scene.create_node("Target")
        self.src = add_chain(self.scene, self.source, self.source_names)
        self.tgt = add_chain(self.scene, self.target, self.target_names)
        self.table = {"pelvis": "Hips", "spine_01": "Spine", "head": "Head"}

    def add_mesh(self, name, bones=None, root_bone="default", materials=("skin",)):
        bones = self.src if bones is None else bones
        root_bone = self.src[0] if root_bone == "default" else root_bone
        return self.scene.add_binding(
            name, self.source, geometry=f"{name}_geo", bones=bones,
            root_bone=root_bone, materials=list(materials),
        )

    def names(self, handles):
        return [None if h is None else self.scene.name_of(h) for h in handles]

    def mesh_children(self, container):
        return [h for h in self.scene.children_of(container) if self.scene.binding_of(h) is not None]


class TestScenarios(ExecutorTestCase):
    def test_scenario_a_all_bones_resolve(self):
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute(
            [body], self.target, BoneNameMapper(self.table))

        self.assertEqual(summary.transferred_count, 1)
        self.assertEqual(summary.warning_count, 0)
        self.assertEqual(summary.failed_names, [])
        self.assertTrue(summary.succeeded)
        self.assertEqual(summary.reports[0].resolved_count, 3)
        self.assertEqual(summary.reports[0].fallback_indices, ())

        node = summary.created_nodes[0]
        self.assertEqual(self.scene.parent_of(node), self.target)
        new = self.scene.binding_of(node)
        self.assertEqual(new.bones, self.tgt)
        self.assertEqual(new.root_bone, self.tgt[0])
        self.assertEqual(new.geometry, "Body_geo")
        self.assertEqual(new.materials, ["skin"])
        self.assertEqual(summary.source_root, self.src[0])
        self.assertEqual(summary.target_root, self.tgt[0])

    def test_scenario_b_missing_alias_falls_back_to_root(self):
        del self.table["head"]
        body = self.add_mesh("Body")
        mapper = BoneNameMapper(self.table, case_insensitive=False)
        summary = MeshTransferExecutor(self.scene).execute([body], self.target, mapper)

        self.assertEqual(summary.transferred_count, 1)
        self.assertEqual(summary.warning_count, 1)
        report = summary.reports[0]
        self.assertEqual(report.resolved_count, 2)
        self.assertEqual(report.fallback_indices, (2,))
        new = self.scene.binding_of(summary.created_nodes[0])
        self.assertEqual(new.bones, [self.tgt[0], self.tgt[1], self.tgt[0]])

    def test_scenario_b_recovered_by_case_insensitive_match(self):
        del self.table["head"]
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute([body], self.target, BoneNameMapper(self.table))
        self.assertEqual(summary.warning_count, 0)
        self.assertEqual(self.scene.binding_of(summary.created_nodes[0]).bones, self.tgt)

    def test_scenario_c_unresolved_root_skips_mesh(self):
        del self.table["pelvis"]
        body = self.add_mesh("Body")
        # Declares no root: uses the target root and still transfers
        hair = self.add_mesh("Hair", bones=[self.src[2]], root_bone=None)
        summary = MeshTransferExecutor(self.scene).execute(
            [body, hair], self.target, BoneNameMapper(self.table, case_insensitive=False))

        self.assertEqual(summary.failed_names, ["Body"])
        self.assertIn("pelvis", summary.failure_reasons["Body"])
        self.assertEqual(summary.transferred_count, 1)
        self.assertFalse(summary.succeeded)
        created = self.names(self.mesh_children(self.target))
        self.assertEqual(created, ["Hair"])
        self.assertTrue(summary.reports[1].root_defaulted)

    def test_identical_names_have_no_warnings(self):
        scene = Scene()
        source = scene.create_node("Source")
        target = scene.create_node("Target")
        names = ["Hips", "Spine", "Neck", "Head"]
        src = add_chain(scene, source, names)
        tgt = add_chain(scene, target, names)
        meshes = [
            scene.add_binding("Torso", source, bones=src[:2], root_bone=src[0]),
            scene.add_binding("Face", source, bones=src[2:], root_bone=src[0]),
        ]
        summary = MeshTransferExecutor(scene).execute(meshes, target, BoneNameMapper())
        self.assertEqual(summary.transferred_count, 2)
        self.assertEqual(summary.warning_count, 0)
        self.assertEqual(scene.binding_of(summary.created_nodes[1]).bones, tgt[2:])

    def test_round_trip_with_inverted_table(self):
        bones = [self.src[2], self.src[0], None, self.src[1]]
        body = self.add_mesh("Body", bones=bones)
        mapper = BoneNameMapper(self.table, case_insensitive=False)
        executor = MeshTransferExecutor(self.scene)

        forward = executor.execute([body], self.target, mapper)
        moved = self.scene.binding_of(forward.created_nodes[0])
        self.assertEqual(self.names(moved.bones), ["Head", "Hips", None, "Spine"])

        back = executor.execute([moved], self.source, mapper.invert())
        returned = self.scene.binding_of(back.created_nodes[0])
        self.assertEqual(self.names(returned.bones), self.names(bones))
        self.assertEqual(back.warning_count, 0)
        self.assertEqual(dict(mapper.invert().alias_table), invert_alias_table(self.table))

    def test_retarget_meshes_convenience(self):
        body = self.add_mesh("Body")
        summary = retarget_meshes(self.scene, [body], self.target, alias_table=self.table)
        self.assertEqual(summary.transferred_count, 1)
        self.assertEqual(self.scene.binding_of(summary.created_nodes[0]).bones, self.tgt)


class TestPreconditions(ExecutorTestCase):
    def assert_untouched(self, call):
        before = len(self.scene)
        children = self.scene.children_of(self.target)
        with self.assertRaises(RetargetPreconditionError):
            call()
        self.assertEqual(len(self.scene), before)
        self.assertEqual(self.scene.children_of(self.target), children)

    def test_no_bindings(self):
        executor = MeshTransferExecutor(self.scene)
        self.assert_untouched(lambda: executor.execute([], self.target, BoneNameMapper()))

    def test_target_without_bones(self):
        body = self.add_mesh("Body")
        empty = self.scene.create_node("Empty")
        executor = MeshTransferExecutor(self.scene)
        self.assert_untouched(lambda: executor.execute([body], empty, BoneNameMapper(self.table)))

    def test_dead_target(self):
        body = self.add_mesh("Body")
        gone = self.scene.create_node("Gone")
        self.scene.destroy_node(gone)
        executor = MeshTransferExecutor(self.scene)
        self.assert_untouched(lambda: executor.execute([body], gone, BoneNameMapper(self.table)))

    def test_target_root_not_found(self):
        scene = Scene()
        source = scene.create_node("Source")
        target = scene.create_node("Target")
        src = add_chain(scene, source, ["pelvis", "spine_01"])
        add_chain(scene, target, ["Torso", "Chest"])
        body = scene.add_binding("Body", source, bones=src, root_bone=src[0])
        before = len(scene)
        with self.assertRaises(RetargetPreconditionError):
            MeshTransferExecutor(scene).execute([body], target, BoneNameMapper())
        self.assertEqual(len(scene), before)

    def test_target_root_from_source_root_name(self):
        scene = Scene()
        source = scene.create_node("Source")
        target = scene.create_node("Target")
        src = add_chain(scene, source, ["pelvis", "spine_01"])
        tgt = add_chain(scene, target, ["Torso", "Chest"])
        body = scene.add_binding("Body", source, bones=src, root_bone=src[0])
        mapper = BoneNameMapper({"pelvis": "Torso", "spine_01": "Chest"})
        summary = MeshTransferExecutor(scene).execute([body], target, mapper)
        self.assertEqual(summary.target_root, tgt[0])
        self.assertEqual(summary.transferred_count, 1)

    def test_source_root_not_found(self):
        loose = SkinnedMeshBinding("Loose", bones=[])
        executor = MeshTransferExecutor(self.scene)
        self.assert_untouched(lambda: executor.execute([loose], self.target, BoneNameMapper()))

    def test_dead_explicit_target_root(self):
        body = self.add_mesh("Body")
        gone = self.scene.add_bone("Gone", self.target)
        self.scene.destroy_node(gone)
        executor = MeshTransferExecutor(self.scene)
        options = TransferOptions(target_root=gone)
        self.assert_untouched(
            lambda: executor.execute([body], self.target, BoneNameMapper(self.table), options))

    def test_explicit_target_root(self):
        body = self.add_mesh("Body", bones=[self.src[0], self.src[1]], root_bone=None)
        del self.table["spine_01"]
        options = TransferOptions(target_root=self.tgt[2])
        summary = MeshTransferExecutor(self.scene).execute(
            [body], self.target, BoneNameMapper(self.table, case_insensitive=False), options)
        new = self.scene.binding_of(summary.created_nodes[0])
        self.assertEqual(new.bones, [self.tgt[0], self.tgt[2]])
        self.assertEqual(new.root_bone, self.tgt[2])

    def test_target_root_below_top_bone(self):
        # An existing target mesh declares Spine as its root
        self.scene.add_binding("Cape", self.target, bones=[self.tgt[1]], root_bone=self.tgt[1])
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute([body], self.target, BoneNameMapper(self.table))
        self.assertEqual(summary.target_root, self.tgt[1])
        self.assertEqual(summary.warning_count, 0)
        self.assertEqual(self.scene.binding_of(summary.created_nodes[0]).bones, self.tgt)

    def test_target_with_only_meshes(self):
        body = self.add_mesh("Body")
        props = self.scene.create_node("Props")
        self.scene.add_binding("OldBody", props, bones=[self.src[0]], root_bone=self.src[0])
        executor = MeshTransferExecutor(self.scene)
        before = len(self.scene)
        with self.assertRaises(RetargetPreconditionError):
            executor.execute([body], props, BoneNameMapper())
        self.assertEqual(len(self.scene), before)

    def test_located_target_root_outside_target(self):
        # Leftover target mesh still bound to the source skeleton
        self.scene.add_binding("OldBody", self.target, bones=[self.src[0]], root_bone=self.src[0])
        body = self.add_mesh("Body")
        executor = MeshTransferExecutor(self.scene)
        self.assert_untouched(lambda: executor.execute([body], self.target, BoneNameMapper(self.table)))

    def test_explicit_target_root_outside_target(self):
        body = self.add_mesh("Body")
        executor = MeshTransferExecutor(self.scene)
        options = TransferOptions(target_root=self.src[1])
        self.assert_untouched(
            lambda: executor.execute([body], self.target, BoneNameMapper(self.table), options))

    def test_source_root_name_never_matches_a_mesh(self):
        scene = Scene()
        source = scene.create_node("Source")
        target = scene.create_node("Target")
        src = add_chain(scene, source, ["pelvis", "spine_01"])
        add_chain(scene, target, ["Torso", "Chest"])
        scene.add_binding("pelvis", target, bones=[])
        body = scene.add_binding("Body", source, bones=src, root_bone=src[0])
        before = len(scene)
        with self.assertRaises(RetargetPreconditionError):
            MeshTransferExecutor(scene).execute([body], target, BoneNameMapper())
        self.assertEqual(len(scene), before)

    def test_precondition_error_is_value_error(self):
        self.assertTrue(issubclass(RetargetPreconditionError, ValueError))


class TestTransferOptions(unittest.TestCase):
    def test_defaults(self):
        options = TransferOptions()
        self.assertTrue(options.preserve_materials)
        self.assertFalse(options.delete_source_after_transfer)
        self.assertFalse(options.replace_existing_meshes)
        self.assertEqual(options.root_keyword_match, "exact")

    def test_validation(self):
        with self.assertRaises(ValueError):
            TransferOptions(root_keyword_match="fuzzy")
        with self.assertRaises(ValueError):
            TransferOptions(rest_pose_tolerance_deg=0.0)
        with self.assertRaises(ValueError):
            TransferOptions(preserve_materials="yes")

    def test_root_keywords_frozen_as_tuple(self):
        self.assertEqual(TransferOptions(root_keywords=["hips"]).root_keywords, ("hips",))


class TestBatchBehaviour(ExecutorTestCase):
    def test_phases(self):
        body = self.add_mesh("Body")
        phases = []
        MeshTransferExecutor(self.scene).execute(
            [body], self.target, BoneNameMapper(self.table), on_phase=phases.append)
        self.assertEqual(phases, [BatchPhase.IDLE, BatchPhase.SCANNING, BatchPhase.PLANNING,
                                  BatchPhase.EXECUTING, BatchPhase.DONE])

    def test_phases_with_cleanup(self):
        body = self.add_mesh("Body")
        phases = []
        MeshTransferExecutor(self.scene).execute(
            [body], self.target, BoneNameMapper(self.table),
            TransferOptions(delete_source_after_transfer=True), on_phase=phases.append)
        self.assertEqual(phases[-2:], [BatchPhase.CLEANUP, BatchPhase.DONE])

    def test_delete_source_keeps_failed_meshes(self):
        body = self.add_mesh("Body")
        orphan = self.scene.add_bone("tail", self.src[0])
        tail = self.add_mesh("Tail", bones=[orphan], root_bone=orphan)
        summary = MeshTransferExecutor(self.scene).execute(
            [body, tail], self.target, BoneNameMapper(self.table),
            TransferOptions(delete_source_after_transfer=True))

        self.assertEqual(summary.failed_names, ["Tail"])
        self.assertFalse(self.scene.is_alive(body.node))
        self.assertTrue(self.scene.is_alive(tail.node))
        self.assertEqual(summary.deleted_nodes, [body.node])
        # Bones of the source skeleton are never deleted
        self.assertTrue(all(self.scene.is_alive(h) for h in self.src))

    def test_no_cleanup_when_nothing_transferred(self):
        orphan = self.scene.add_bone("tail", self.src[0])
        tail = self.add_mesh("Tail", bones=[orphan], root_bone=orphan)
        phases = []
        summary = MeshTransferExecutor(self.scene).execute(
            [tail], self.target, BoneNameMapper(self.table),
            TransferOptions(delete_source_after_transfer=True), on_phase=phases.append)
        self.assertEqual(summary.transferred_count, 0)
        self.assertTrue(self.scene.is_alive(tail.node))
        self.assertNotIn(BatchPhase.CLEANUP, phases)

    def test_replace_existing_meshes(self):
        old = self.scene.add_binding("OldBody", self.target, bones=[self.tgt[0]], root_bone=self.tgt[0])
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute(
            [body], self.target, BoneNameMapper(self.table),
            TransferOptions(replace_existing_meshes=True))

        self.assertFalse(self.scene.is_alive(old.node))
        self.assertEqual(self.names(self.mesh_children(self.target)), ["Body"])
        self.assertTrue(self.scene.is_alive(body.node))
        self.assertEqual(summary.deleted_nodes, [old.node])

    def test_materials_not_preserved(self):
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute(
            [body], self.target, BoneNameMapper(self.table),
            TransferOptions(preserve_materials=False))
        new = self.scene.binding_of(summary.created_nodes[0])
        self.assertIsNone(new.materials)
        self.assertEqual(new.geometry, "Body_geo")

    def test_filter_untransferred(self):
        body = self.add_mesh("Body")
        hair = self.add_mesh("Hair")
        executor = MeshTransferExecutor(self.scene)
        executor.execute([body], self.target, BoneNameMapper(self.table))

        remaining = filter_untransferred(self.scene, [body, hair], self.target)
        self.assertEqual(remaining, [hair])

    def test_duplicate_names_reported(self):
        self.scene.add_bone("Spine", self.tgt[0])
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute([body], self.target, BoneNameMapper(self.table))
        self.assertEqual([dup.name for dup in summary.duplicate_names], ["Spine"])
        # The first Spine in traversal order is used
        self.assertEqual(self.scene.binding_of(summary.created_nodes[0]).bones[1], self.tgt[1])

    def test_summary_format(self):
        body = self.add_mesh("Body")
        orphan = self.scene.add_bone("tail", self.src[0])
        tail = self.add_mesh("Tail", bones=[orphan], root_bone=orphan)
        summary = MeshTransferExecutor(self.scene).execute(
            [body, tail], self.target, BoneNameMapper(self.table))
        message = summary.format("Target")
        self.assertIn("Successfully transferred 1 mesh parts to Target.", message)
        self.assertIn("Failed to retarget bones for:", message)
        self.assertIn("Tail", message)


class TestAttachFailure(ExecutorTestCase):
    scene_class = FailingScene

    def test_attach_failure_is_item_failure(self):
        bad = self.add_mesh("Bad")
        good = self.add_mesh("Good")
        self.scene.fail_names = ("Bad",)
        summary = MeshTransferExecutor(self.scene).execute(
            [bad, good], self.target, BoneNameMapper(self.table))

        self.assertEqual(summary.failed_names, ["Bad"])
        self.assertIn("attach failed", summary.failure_reasons["Bad"])
        self.assertEqual(summary.transferred_count, 1)
        self.assertEqual(self.names(self.mesh_children(self.target)), ["Good"])
        self.assertIsNone(self.scene.find("Bad", self.target))


class TestRestPoseCheck(ExecutorTestCase):
    def setUp(self):
        super().setUp()
        # Second target character whose Spine is rotated 90 degrees about Z
        quarter_turn = np.array([np.cos(np.pi / 4), 0.0, 0.0, np.sin(np.pi / 4)])
        self.bent = self.scene.create_node("Bent")
        self.bent_bones = add_chain(self.scene, self.bent, self.target_names, {"Spine": quarter_turn})

    def test_disabled_by_default(self):
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute([body], self.bent, BoneNameMapper(self.table))
        self.assertEqual(summary.rest_pose_warnings, [])

    def test_compatible_rest_pose(self):
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute(
            [body], self.target, BoneNameMapper(self.table), TransferOptions(check_rest_pose=True))
        self.assertEqual(summary.rest_pose_warnings, [])

    def test_incompatible_rest_pose_is_reported(self):
        body = self.add_mesh("Body")
        summary = MeshTransferExecutor(self.scene).execute(
            [body], self.bent, BoneNameMapper(self.table), TransferOptions(check_rest_pose=True))

        flagged = [dev.source_name for dev in summary.rest_pose_warnings]
        self.assertEqual(flagged, ["spine_01", "head"])
        self.assertAlmostEqual(summary.rest_pose_warnings[0].angle_deg, 90.0, places=4)
        # Diagnostic only: the mesh still transfers
        self.assertEqual(summary.transferred_count, 1)


if __name__ == "__main__":
    unittest.main()

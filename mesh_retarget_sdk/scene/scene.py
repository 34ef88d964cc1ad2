"""
Scene data model and the hosting-environment seam used by the retargeting core.

The core never walks engine objects directly. It talks to a SceneHost, which
exposes four primitives (create_node, destroy_node, attach_binding,
enumerate_descendants) plus read access to node names, parents and rest
transforms. Scene is the in-memory implementation: an arena of nodes addressed
by integer handles, with parent indices like the parent arrays of a BVH file.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np


# Parent index of a top-level node
NO_PARENT = -1


@dataclass
class SkinnedMeshBinding:
    """
    Geometry bound to an ordered bone array.

    Index i of `bones` always drives the same vertex group of `geometry`, so
    the array is only ever replaced as a whole, never reordered.

    Attributes:
        name: Mesh part name, used for the node created in the target
        geometry: Opaque geometry handle (shared, never copied)
        bones: Node handles, one per vertex group; entries may be None
        root_bone: Node handle of the deformation anchor, or None
        materials: Opaque material-list handle
        node: Handle of the scene node carrying this binding, None if detached
    """
    name: str
    geometry: Any = None
    bones: List[Optional[int]] = field(default_factory=list)
    root_bone: Optional[int] = None
    materials: Any = None
    node: Optional[int] = None


class SceneNode:
    """One slot of the scene arena: a bone, a container, or a mesh node."""

    def __init__(self, handle, name, parent=NO_PARENT, position=None, rotation=None, scale=None):
        """
        Args:
            handle: Index of this node in the arena
            name: Node name
            parent: Parent handle (NO_PARENT for a top-level node)
            position: Local rest position (3,)
            rotation: Local rest rotation quaternion (w, x, y, z)
            scale: Local rest scale (3,)
        """
        self.handle = handle
        self.name = name
        self.parent = parent
        self.children = []
        self.position = np.zeros(3) if position is None else np.asarray(position, dtype=np.float64)
        self.rotation = np.array([1.0, 0.0, 0.0, 0.0]) if rotation is None else np.asarray(rotation, dtype=np.float64)
        self.scale = np.ones(3) if scale is None else np.asarray(scale, dtype=np.float64)
        self.binding = None
        self.alive = True

        if self.position.shape != (3,):
            raise ValueError(f"Rest position of '{name}' must have shape (3,), got {self.position.shape}")
        if self.rotation.shape != (4,):
            raise ValueError(f"Rest rotation of '{name}' must be a (w, x, y, z) quaternion, got {self.rotation.shape}")
        if self.scale.shape != (3,):
            raise ValueError(f"Rest scale of '{name}' must have shape (3,), got {self.scale.shape}")


class SceneHost(abc.ABC):
    """
    Operations the retargeting core needs from its hosting environment.

    Implementations wrap whatever owns the node hierarchy (an editor scene, a
    DCC tool, or the in-memory Scene below). The core is single-threaded and
    does not lock: callers must not run two transfers into the same target
    container at the same time.
    """

    @abc.abstractmethod
    def create_node(self, name, parent=None) -> int:
        """Create an empty node under `parent` (None for top level) and return its handle."""

    @abc.abstractmethod
    def destroy_node(self, handle):
        """Destroy a node together with its whole subtree."""

    @abc.abstractmethod
    def attach_binding(self, node, geometry, bones, root_bone, materials) -> SkinnedMeshBinding:
        """Attach a skinned mesh binding to an existing node."""

    @abc.abstractmethod
    def enumerate_descendants(self, node) -> List[Tuple[str, int]]:
        """Return (name, handle) for every descendant of `node`, depth-first pre-order."""

    @abc.abstractmethod
    def name_of(self, handle) -> str:
        """Name of a node."""

    @abc.abstractmethod
    def parent_of(self, handle) -> int:
        """Parent handle of a node, NO_PARENT for a top-level node."""

    @abc.abstractmethod
    def children_of(self, handle) -> Tuple[int, ...]:
        """Ordered child handles of a node."""

    @abc.abstractmethod
    def binding_of(self, handle) -> Optional[SkinnedMeshBinding]:
        """Binding attached to a node, if any."""

    @abc.abstractmethod
    def rest_transform_of(self, handle):
        """Local rest transform of a node as (position, rotation_wxyz, scale)."""

    @abc.abstractmethod
    def is_alive(self, handle) -> bool:
        """True if `handle` names a node that exists and has not been destroyed."""


class Scene(SceneHost):
    """
    In-memory node arena implementing SceneHost.

    Handles are indices into the arena and are never reused, so a destroyed
    handle stays invalid. A node's parent is fixed at creation, which rules
    out cycles.

    Example usage:
        scene = Scene()
        character = scene.create_node("Character")
        hips = scene.add_bone("Hips", character)
        spine = scene.add_bone("Spine", hips, position=(0.0, 0.1, 0.0))
        body = scene.add_binding("Body", character, geometry="body_mesh",
                                 bones=[hips, spine], root_bone=hips)
    """

    def __init__(self, name: str = "Scene"):
        self.name = name
        self._nodes = []

    def __len__(self):
        return sum(1 for node in self._nodes if node.alive)

    def _node(self, handle) -> SceneNode:
        if not self.is_alive(handle):
            raise KeyError(f"Unknown or destroyed node handle: {handle}")
        return self._nodes[handle]

    # ---------------- SceneHost primitives ----------------

    def create_node(self, name, parent=None):
        if parent is None:
            parent = NO_PARENT
        if parent != NO_PARENT:
            self._node(parent)

        handle = len(self._nodes)
        self._nodes.append(SceneNode(handle, name, parent))
        if parent != NO_PARENT:
            self._nodes[parent].children.append(handle)
        return handle

    def destroy_node(self, handle):
        node = self._node(handle)
        for _, descendant in self.enumerate_descendants(handle):
            self._nodes[descendant].alive = False
        node.alive = False
        if node.parent != NO_PARENT:
            self._nodes[node.parent].children.remove(handle)

    def attach_binding(self, node, geometry, bones, root_bone, materials):
        target = self._node(node)
        bones = list(bones)
        for bone in bones:
            if bone is not None:
                self._node(bone)
        if root_bone is not None:
            self._node(root_bone)

        binding = SkinnedMeshBinding(
            name=target.name,
            geometry=geometry,
            bones=bones,
            root_bone=root_bone,
            materials=materials,
            node=node,
        )
        target.binding = binding
        return binding

    def enumerate_descendants(self, node):
        root = self._node(node)
        result = []
        stack = list(reversed(root.children))
        while stack:
            handle = stack.pop()
            child = self._nodes[handle]
            result.append((child.name, handle))
            stack.extend(reversed(child.children))
        return result

    def name_of(self, handle):
        return self._node(handle).name

    def parent_of(self, handle):
        return self._node(handle).parent

    def children_of(self, handle):
        return tuple(self._node(handle).children)

    def binding_of(self, handle):
        return self._node(handle).binding

    def rest_transform_of(self, handle):
        node = self._node(handle)
        return node.position.copy(), node.rotation.copy(), node.scale.copy()

    def is_alive(self, handle):
        return (
            isinstance(handle, (int, np.integer))
            and 0 <= handle < len(self._nodes)
            and self._nodes[handle].alive
        )

    # ---------------- Builders ----------------

    def add_bone(self, name, parent=None, position=None, rotation=None, scale=None):
        """
        Create a node carrying a local rest transform.

        Args:
            name: Bone name
            parent: Parent handle (None for top level)
            position: Local rest position (3,)
            rotation: Local rest rotation (w, x, y, z)
            scale: Local rest scale (3,)

        Returns:
            Handle of the new bone
        """
        rest = SceneNode(len(self._nodes), name, NO_PARENT, position, rotation, scale)
        handle = self.create_node(name, parent)
        node = self._nodes[handle]
        node.position, node.rotation, node.scale = rest.position, rest.rotation, rest.scale
        return handle

    def add_binding(self, name, parent, geometry=None, bones=(), root_bone=None, materials=None):
        """Create a mesh node under `parent` and attach a binding to it."""
        node = self.create_node(name, parent)
        return self.attach_binding(node, geometry, bones, root_bone, materials)

    # ---------------- Queries ----------------

    def roots(self):
        """Handles of all live top-level nodes, in creation order."""
        return [node.handle for node in self._nodes if node.alive and node.parent == NO_PARENT]

    def find(self, name, root=None):
        """
        Find the first node called `name`, depth-first.

        Args:
            name: Node name to look for
            root: Search only below (and including) this node; whole scene if None

        Returns:
            Node handle, or None if not found
        """
        tops = self.roots() if root is None else [root]
        for top in tops:
            if self.name_of(top) == name:
                return top
            for child_name, handle in self.enumerate_descendants(top):
                if child_name == name:
                    return handle
        return None

    def path_of(self, handle):
        """Slash-joined path from the top-level ancestor down to `handle`."""
        names = [self.name_of(handle)]
        parent = self.parent_of(handle)
        while parent != NO_PARENT:
            names.append(self.name_of(parent))
            parent = self.parent_of(parent)
        return "/".join(reversed(names))

    def collect_bindings(self, container):
        """All bindings attached below `container`, in traversal order."""
        bindings = []
        for _, handle in self.enumerate_descendants(container):
            binding = self._nodes[handle].binding
            if binding is not None:
                bindings.append(binding)
        return bindings

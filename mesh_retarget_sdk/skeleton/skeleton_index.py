"""
Name lookup over one bone tree.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DuplicateName:
    """A bone name seen more than once; `kept` won, `ignored` was skipped."""
    name: str
    kept: int
    ignored: int


class SkeletonIndex:
    """
    Flattened name -> handle lookup of the subtree below a root node.

    The first bone met in depth-first order owns a name; later bones with the
    same name are recorded in `duplicates` and are otherwise unreachable by
    name. Indices are cheap and meant to be rebuilt for every transfer.

    Example usage:
        index = SkeletonIndex.build(scene, hips)
        spine = index.get("Spine")
        head = index.find_case_insensitive("head")
    """

    def __init__(self, root=None):
        self.root = root
        self.bones = {}          # name -> handle
        self.lower = {}          # lowercase name -> handle
        self.handle_names = {}   # handle -> name, duplicates included
        self.names = []          # unique names in traversal order
        self.duplicates = []

    @classmethod
    def build(cls, host, root, verbose: bool = False, skip_bindings: bool = False):
        """
        Traverse the subtree below `root` (root included) once.

        Args:
            host: SceneHost owning the hierarchy
            root: Root node handle; None or a dead handle gives an empty index
            verbose: Print duplicate-name warnings
            skip_bindings: Leave out nodes carrying a mesh binding

        Returns:
            SkeletonIndex
        """
        index = cls(root)
        if root is None or not host.is_alive(root):
            return index

        nodes = [(host.name_of(root), root)] + host.enumerate_descendants(root)
        for name, handle in nodes:
            if skip_bindings and host.binding_of(handle) is not None:
                continue
            index._add(name, handle)

        if verbose:
            for dup in index.duplicates:
                print(f"[SkeletonIndex] Warning: duplicate bone name '{dup.name}' "
                      f"(keeping {dup.kept}, ignoring {dup.ignored})")
        return index

    def _add(self, name, handle):
        self.handle_names[handle] = name
        if name in self.bones:
            self.duplicates.append(DuplicateName(name, self.bones[name], handle))
            return
        self.bones[name] = handle
        self.names.append(name)
        self.lower.setdefault(name.lower(), handle)

    def __len__(self):
        return len(self.bones)

    def __contains__(self, name):
        return name in self.bones

    def __iter__(self):
        return iter(self.names)

    def get(self, name, default=None) -> Optional[int]:
        return self.bones.get(name, default)

    def find_case_insensitive(self, name) -> Optional[int]:
        return self.lower.get(name.lower())

    def name_of(self, handle) -> Optional[str]:
        return self.handle_names.get(handle)

    def contains_handle(self, handle) -> bool:
        return handle in self.handle_names

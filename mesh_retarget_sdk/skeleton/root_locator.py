"""
Root bone inference for a set of skinned mesh bindings.
"""

import json
import pathlib
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..scene.scene import NO_PARENT


# Package paths
HERE = pathlib.Path(__file__).parent
CONFIG_ROOT = HERE.parent / "configs"
ROOT_KEYWORDS_PATH = CONFIG_ROOT / "root_keywords.json"

KEYWORD_MATCH_MODES = ("exact", "contains")


def load_root_keywords(path=None):
    """
    Load the ordered root-bone keyword list.

    Args:
        path: JSON file with a "root_keywords" list (bundled list if None)

    Returns:
        Tuple of keywords, highest priority first
    """
    path = ROOT_KEYWORDS_PATH if path is None else pathlib.Path(path)
    with open(path) as f:
        config = json.load(f)
    return tuple(config["root_keywords"])


class RootMethod(Enum):
    EXPLICIT = "explicit"
    COMMON_ANCESTOR = "common_ancestor"
    KEYWORD = "keyword"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RootBoneResult:
    handle: Optional[int]
    method: RootMethod

    @property
    def found(self):
        return self.method is not RootMethod.NOT_FOUND


NOT_FOUND = RootBoneResult(None, RootMethod.NOT_FOUND)


class RootBoneLocator:
    """
    Finds the single root bone of a set of bindings belonging to one character.

    Resolution order, first success wins:
    1. An explicit root bone declared by a binding
    2. The node right below `container` shared by every binding's parent chain
    3. A descendant of `container` named after one of the keywords
       (keyword priority first, traversal order second)

    Example usage:
        locator = RootBoneLocator()
        result = locator.locate(scene, bindings, character)
        if result.found:
            root = result.handle
    """

    def __init__(self, keywords=None, match: str = "exact", verbose: bool = False):
        """
        Args:
            keywords: Ordered root name candidates (bundled list if None)
            match: "exact" for case-insensitive equality, "contains" for
                   case-insensitive substring matching
            verbose: Print which rule located the root
        """
        if match not in KEYWORD_MATCH_MODES:
            raise ValueError(f"Unknown keyword match mode: {match}. "
                             f"Supported: {list(KEYWORD_MATCH_MODES)}")
        self.keywords = load_root_keywords() if keywords is None else tuple(keywords)
        for keyword in self.keywords:
            if not isinstance(keyword, str) or not keyword:
                raise ValueError(f"Root keywords must be non-empty strings, got {keyword!r}")
        self.match = match
        self.verbose = verbose

    def locate(self, host, bindings, container=None) -> RootBoneResult:
        """
        Locate the root bone.

        Args:
            host: SceneHost owning the hierarchy
            bindings: SkinnedMeshBindings of one character (may be empty)
            container: Character container node; None means the top of the scene

        Returns:
            RootBoneResult (method NOT_FOUND if every rule failed)
        """
        bindings = list(bindings)

        handle = self._from_explicit_root(host, bindings)
        if handle is not None:
            return self._found(host, handle, RootMethod.EXPLICIT)

        handle = self._from_common_ancestor(host, bindings, container)
        if handle is not None:
            return self._found(host, handle, RootMethod.COMMON_ANCESTOR)

        handle = self._from_keywords(host, container)
        if handle is not None:
            return self._found(host, handle, RootMethod.KEYWORD)

        if self.verbose:
            print("[RootBoneLocator] No root bone found")
        return NOT_FOUND

    def _found(self, host, handle, method):
        if self.verbose:
            print(f"[RootBoneLocator] Root bone '{host.name_of(handle)}' ({method.value})")
        return RootBoneResult(handle, method)

    def _from_explicit_root(self, host, bindings):
        for binding in bindings:
            if binding.root_bone is not None and host.is_alive(binding.root_bone):
                return binding.root_bone
        return None

    def _from_common_ancestor(self, host, bindings, container):
        if not bindings:
            return None

        candidate = None
        for binding in bindings:
            bones = [b for b in binding.bones if b is not None and host.is_alive(b)]
            if not bones:
                return None
            # Every bone of every binding must lead to the same node
            for bone in bones:
                top = self._climb(host, bone, container)
                if top is None:
                    return None
                if candidate is None:
                    candidate = top
                elif candidate != top:
                    return None
        return candidate

    def _climb(self, host, handle, container):
        """Walk up from `handle` to the node whose parent is `container`."""
        stop = NO_PARENT if container is None else container
        current = handle
        while True:
            parent = host.parent_of(current)
            if parent == stop:
                return current
            if parent == NO_PARENT:
                # Left the container without meeting it
                return None
            current = parent

    def _from_keywords(self, host, container):
        if container is None or not host.is_alive(container):
            return None

        candidates = [
            (name.lower(), handle)
            for name, handle in host.enumerate_descendants(container)
            if host.binding_of(handle) is None
        ]
        for keyword in self.keywords:
            keyword = keyword.lower()
            for name, handle in candidates:
                if self._matches(name, keyword):
                    return handle
        return None

    def _matches(self, name, keyword):
        if self.match == "contains":
            return keyword in name
        return name == keyword

"""
Opt-in fuzzy bone name matching.

Default bone resolution only uses exact, aliased and case-insensitive names.
A KeywordMatchPolicy adds a last, heuristic step for rigs whose names differ by
prefixes, separators or body-part synonyms. The heuristic is deterministic:
scores depend only on the two names and ties go to the target bone met first
in traversal order.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional, Tuple


# Rig-specific prefixes stripped before comparison
DEFAULT_PREFIXES = (
    "bip01_",
    "bip001_",
    "bip01",
    "joint_",
    "bone_",
    "def_",
    "rig_",
    "valvebiped_",
    "mixamorig_",
)

# Target keyword -> source keywords naming the same body part
DEFAULT_SYNONYMS = {
    "hips": ("pelvis", "root_joint"),
    "upleg": ("thigh",),
    "leg": ("calf", "knee", "shin"),
    "foot": ("ankle",),
    "toe": ("ball",),
    "shoulder": ("clavicle", "collar"),
    "forearm": ("lowerarm", "elbow"),
    "arm": ("upperarm",),
    "hand": ("wrist",),
    "pinky": ("little",),
}

_LEFT = re.compile(r"(^|[_.\s:-])l($|[_.\s:-])")
_RIGHT = re.compile(r"(^|[_.\s:-])r($|[_.\s:-])")
_SEPARATORS = re.compile(r"[_.\s-]")


def detect_side(name: str) -> Tuple[bool, bool]:
    """
    Detect whether a bone name marks the left or right side.

    Returns:
        (is_left, is_right)
    """
    lower = name.lower()
    is_left = "left" in lower or _LEFT.search(lower) is not None
    is_right = "right" in lower or _RIGHT.search(lower) is not None
    return is_left, is_right


@dataclass(frozen=True)
class KeywordMatchPolicy:
    """
    Heuristic name matching used only when explicitly enabled.

    Attributes:
        prefixes: Lowercase prefixes stripped from names before comparison
        synonyms: (target keyword, source keywords) pairs for the same body
            part; a mapping is accepted and stored as pairs
        min_score: Lowest similarity accepted as a match (0..1)
        require_side_match: Left/right markers must agree
    """
    prefixes: Tuple[str, ...] = DEFAULT_PREFIXES
    synonyms: Tuple[Tuple[str, Tuple[str, ...]], ...] = tuple(DEFAULT_SYNONYMS.items())
    min_score: float = 0.5
    require_side_match: bool = True

    def __post_init__(self):
        if not 0.0 < self.min_score <= 1.0:
            raise ValueError(f"min_score must be in (0, 1], got {self.min_score}")
        synonyms = self.synonyms.items() if isinstance(self.synonyms, Mapping) else self.synonyms
        object.__setattr__(self, "prefixes", tuple(p.lower() for p in self.prefixes))
        object.__setattr__(self, "synonyms", tuple(
            (target.lower(), tuple(k.lower() for k in sources)) for target, sources in synonyms))

    def normalize(self, name: str) -> str:
        """Lowercase, drop namespaces and known prefixes, strip separators."""
        lower = name.lower().split(":")[-1]
        for prefix in self.prefixes:
            if lower.startswith(prefix):
                lower = lower[len(prefix):]
                break
        return _SEPARATORS.sub("", lower)

    def score(self, source_name: str, target_name: str) -> float:
        """
        Similarity between two bone names (0.0 = no match, 1.0 = same name).
        """
        if self.require_side_match and detect_side(source_name) != detect_side(target_name):
            return 0.0

        s_norm = self.normalize(source_name)
        t_norm = self.normalize(target_name)
        if not s_norm or not t_norm:
            return 0.0
        if s_norm == t_norm:
            return 1.0

        # One contains the other
        if s_norm in t_norm or t_norm in s_norm:
            return 0.85 * min(len(s_norm), len(t_norm)) / max(len(s_norm), len(t_norm))

        # Body part synonyms
        for target_keyword, source_keywords in self.synonyms:
            if target_keyword in t_norm and any(k in s_norm for k in source_keywords):
                return 0.75

        return 0.0

    def best_match(self, source_name, target_index) -> Optional[Tuple[int, str, float]]:
        """
        Best scoring target bone for `source_name`.

        Returns:
            (handle, target_name, score) or None if nothing reaches min_score
        """
        best = None
        best_score = 0.0
        for target_name in target_index.names:
            score = self.score(source_name, target_name)
            if score > best_score:
                best_score = score
                best = target_name
        if best is None or best_score < self.min_score:
            return None
        return target_index.get(best), best, best_score

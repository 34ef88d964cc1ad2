"""
Bone name resolution between two independently named skeletons.
"""

import json
import pathlib
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Union


# Package paths
HERE = pathlib.Path(__file__).parent
CONFIG_ROOT = HERE.parent / "configs"

# Bundled alias tables
ALIAS_TABLE_DICT = {
    "ue_to_mixamo": CONFIG_ROOT / "ue_to_mixamo.json",
}


class MatchMethod(Enum):
    EXACT = "exact"
    ALIAS = "alias"
    CASE_INSENSITIVE = "case_insensitive"
    NORMALIZED = "normalized"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class ResolvedBone:
    source_name: str
    handle: int
    target_name: str
    method: MatchMethod

    @property
    def resolved(self):
        return True


@dataclass(frozen=True)
class Unresolved:
    source_name: str

    @property
    def resolved(self):
        return False

    @property
    def handle(self):
        return None


Resolution = Union[ResolvedBone, Unresolved]


# ---------------- Alias tables ----------------

def validate_alias_table(table) -> dict:
    """
    Check an alias table and return it as an ordered dict.

    Args:
        table: Mapping of source name -> target name, or an iterable of
               (source, target) pairs

    Returns:
        dict in the caller's order

    Raises:
        ValueError: on non-string or empty names, or one source name mapped
                    to two different targets
    """
    pairs = table.items() if isinstance(table, Mapping) else table
    result = {}
    for entry in pairs:
        try:
            source, target = entry
        except (TypeError, ValueError):
            raise ValueError(f"Alias entries must be (source, target) pairs, got {entry!r}")
        if not isinstance(source, str) or not source or not isinstance(target, str) or not target:
            raise ValueError(f"Alias names must be non-empty strings, got {source!r} -> {target!r}")
        if source in result and result[source] != target:
            raise ValueError(f"Alias '{source}' maps to both '{result[source]}' and '{target}'")
        result[source] = target
    return result


def load_alias_table(source) -> dict:
    """
    Load an alias table.

    Args:
        source: A bundled table name (see list_alias_tables()), a path to a
                JSON file, or an in-memory mapping / list of pairs. JSON files
                hold either {"aliases": {...}} or a bare object or pair list.

    Returns:
        Validated alias table as an ordered dict
    """
    if not isinstance(source, (str, pathlib.Path)):
        return validate_alias_table(source)

    if source in ALIAS_TABLE_DICT:
        path = ALIAS_TABLE_DICT[source]
    else:
        path = pathlib.Path(source)
        if not path.is_file():
            raise ValueError(f"Unknown alias table: {source}. "
                             f"Supported: {list_alias_tables()} or a JSON file path")

    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict) and "aliases" in data:
        data = data["aliases"]
    return validate_alias_table(data)


def list_alias_tables():
    """Names of the bundled alias tables."""
    return sorted(ALIAS_TABLE_DICT.keys())


def invert_alias_table(table) -> dict:
    """
    Build the reverse table (target name -> source name).

    For many-to-one entries the first source name in table order wins.
    """
    inverse = {}
    for source, target in validate_alias_table(table).items():
        inverse.setdefault(target, source)
    return inverse


# ---------------- Resolution ----------------

def resolve_bone(source_name, target_index, alias_table=None, keyword_policy=None,
                 case_insensitive: bool = True) -> Resolution:
    """
    Resolve a source bone name to a bone of the target skeleton.

    Candidates, first hit wins:
    1. exact name in the target index
    2. alias_table[source_name] in the target index
    3. case-insensitive exact name (if case_insensitive)
    4. keyword_policy heuristic (only when a policy is given)

    Pure function: the same arguments always give the same result.

    Args:
        source_name: Bone name on the source skeleton
        target_index: SkeletonIndex of the target skeleton
        alias_table: Mapping source name -> target name (optional)
        keyword_policy: KeywordMatchPolicy enabling fuzzy matching (optional)
        case_insensitive: Enable step 3

    Returns:
        ResolvedBone or Unresolved
    """
    handle = target_index.get(source_name)
    if handle is not None:
        return ResolvedBone(source_name, handle, source_name, MatchMethod.EXACT)

    if alias_table:
        alias = alias_table.get(source_name)
        if alias is not None:
            handle = target_index.get(alias)
            if handle is not None:
                return ResolvedBone(source_name, handle, alias, MatchMethod.ALIAS)

    if case_insensitive:
        handle = target_index.find_case_insensitive(source_name)
        if handle is not None:
            return ResolvedBone(source_name, handle, target_index.name_of(handle),
                                MatchMethod.CASE_INSENSITIVE)

    if keyword_policy is not None:
        match = keyword_policy.best_match(source_name, target_index)
        if match is not None:
            handle, target_name, score = match
            method = MatchMethod.NORMALIZED if score >= 1.0 else MatchMethod.KEYWORD
            return ResolvedBone(source_name, handle, target_name, method)

    return Unresolved(source_name)


class BoneNameMapper:
    """
    Bone name resolution with a fixed alias table and policy for one batch.

    Example usage:
        mapper = BoneNameMapper(load_alias_table("ue_to_mixamo"))
        result = mapper.resolve("spine_01", target_index)
        if result.resolved:
            spine = result.handle
    """

    def __init__(
        self,
        alias_table=None,
        keyword_policy=None,
        case_insensitive: bool = True,
        verbose: bool = False,
    ):
        """
        Args:
            alias_table: Mapping / pair list / bundled name / JSON path (optional)
            keyword_policy: KeywordMatchPolicy to enable fuzzy matching (optional)
            case_insensitive: Fall back to case-insensitive exact names
            verbose: Print mapping tables built by build_mapping()
        """
        table = {} if alias_table is None else load_alias_table(alias_table)
        self.alias_table = MappingProxyType(table)
        self.keyword_policy = keyword_policy
        self.case_insensitive = case_insensitive
        self.verbose = verbose

    def resolve(self, source_name, target_index) -> Resolution:
        return resolve_bone(
            source_name,
            target_index,
            self.alias_table,
            self.keyword_policy,
            self.case_insensitive,
        )

    def build_mapping(self, source_index, target_index) -> dict:
        """
        Resolve every bone of a source skeleton.

        Args:
            source_index: SkeletonIndex of the source skeleton
            target_index: SkeletonIndex of the target skeleton

        Returns:
            Dict source name -> target name (None where unresolved), in
            source traversal order
        """
        mapping = {}
        if self.verbose:
            print("[BoneNameMapper] === BONE MAPPING ===")
            print(f"[BoneNameMapper] Source bones: {len(source_index)}")
            print(f"[BoneNameMapper] Target bones: {len(target_index)}")

        for source_name in source_index.names:
            result = self.resolve(source_name, target_index)
            mapping[source_name] = result.target_name if result.resolved else None
            if self.verbose:
                if result.resolved:
                    print(f"  ✓ {source_name} → {result.target_name} ({result.method.value})")
                else:
                    print(f"  ✗ No match for {source_name}")
        return mapping

    def invert(self):
        """Mapper for the opposite direction, with the inverted alias table."""
        return BoneNameMapper(
            invert_alias_table(self.alias_table),
            keyword_policy=self.keyword_policy,
            case_insensitive=self.case_insensitive,
            verbose=self.verbose,
        )

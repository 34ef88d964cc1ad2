"""
BVH hierarchy loader.

Reads the HIERARCHY section of a BVH file (joint names, parents and offsets)
and builds the matching bone tree in a scene, so real skeleton files can be
used as retarget sources and targets. Motion data is ignored.
"""

import re

import numpy as np


class BVHHierarchy:
    """Skeleton description read from a BVH file."""

    def __init__(self, names, offsets, parents, order):
        """
        Args:
            names: joint names (list of strings)
            offsets: local joint offsets (J, 3)
            parents: parent index per joint, -1 for the root
            order: euler channel order of the file (e.g. "zyx"), None if absent
        """
        self.names = names
        self.offsets = offsets
        self.parents = parents
        self.order = order


def read_bvh_hierarchy(filename):
    """
    Reads the joint hierarchy of a BVH file.

    Args:
        filename: BVH filename

    Returns:
        BVHHierarchy
    """
    channelmap = {
        'Xrotation': 'x',
        'Yrotation': 'y',
        'Zrotation': 'z'
    }

    active = -1
    end_site = False
    order = None

    names = []
    offsets = np.array([]).reshape((0, 3))
    parents = np.array([], dtype=int)

    with open(filename, "r") as f:
        for line in f:
            if "HIERARCHY" in line:
                continue
            if "MOTION" in line:
                break

            rmatch = re.match(r"\s*ROOT\s+(\S+)", line)
            if rmatch:
                names.append(rmatch.group(1))
                offsets = np.append(offsets, np.array([[0, 0, 0]]), axis=0)
                parents = np.append(parents, active)
                active = (len(parents) - 1)
                continue

            if "{" in line:
                continue

            if "}" in line:
                if end_site:
                    end_site = False
                else:
                    active = parents[active]
                continue

            offmatch = re.match(r"\s*OFFSET\s+([\-\d\.e]+)\s+([\-\d\.e]+)\s+([\-\d\.e]+)", line)
            if offmatch:
                if not end_site:
                    offsets[active] = np.array([list(map(float, offmatch.groups()))])
                continue

            chanmatch = re.match(r"\s*CHANNELS\s+(\d+)", line)
            if chanmatch:
                if order is None:
                    parts = [p for p in line.split()[2:] if p in channelmap]
                    if len(parts) == 3:
                        order = "".join([channelmap[p] for p in parts])
                continue

            jmatch = re.match(r"\s*JOINT\s+(\S+)", line)
            if jmatch:
                if active < 0:
                    raise ValueError(f"JOINT {jmatch.group(1)} appears outside of ROOT in {filename}")
                names.append(jmatch.group(1))
                offsets = np.append(offsets, np.array([[0, 0, 0]]), axis=0)
                parents = np.append(parents, active)
                active = (len(parents) - 1)
                continue

            if "End Site" in line:
                end_site = True
                continue

    if not names:
        raise ValueError(f"No ROOT joint found in {filename}")

    return BVHHierarchy(names, offsets, parents, order)


def load_bvh_skeleton(bvh_file, scene, parent=None, scale=1.0):
    """
    Build the bone tree of a BVH file inside a scene.

    Joint offsets become local rest positions; rest rotations are identity,
    as BVH stores none.

    Args:
        bvh_file: Path to BVH file
        scene: Scene to add the bones to
        parent: Node to parent the root joint under (top level if None)
        scale: Multiplier applied to offsets (e.g. 0.01 for cm -> m)

    Returns:
        Tuple of (root handle, list of handles in file order)
    """
    data = read_bvh_hierarchy(bvh_file)

    handles = []
    for i, name in enumerate(data.names):
        parent_index = int(data.parents[i])
        parent_handle = parent if parent_index < 0 else handles[parent_index]
        handles.append(scene.add_bone(name, parent_handle, position=data.offsets[i] * scale))

    return handles[0], handles

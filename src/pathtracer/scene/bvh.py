"""Bounding volume hierarchy construction.

The BVH is built on the host from the bounding boxes of the scene leaves and
flattened into arrays for the device traversal in
:mod:`pathtracer.scene.intersection`.

Construction follows the classic median split: the objects of a node are
sorted by box centroid along the longest axis of the node's box and divided
into two halves. A single object becomes a leaf; two objects become an
internal node with one leaf each. Every internal node therefore has exactly
two children and a box equal to the union of theirs.

Example:
    >>> boxes = [AABB((0, 0, 0), (1, 1, 1)), AABB((2, 0, 0), (3, 1, 1))]
    >>> flat = build_bvh(boxes)
    >>> flat.num_nodes
    3
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from pathtracer.core.aabb import AABB

logger = logging.getLogger(__name__)


@dataclass
class BVHNode:
    """A node of the host-side tree.

    Attributes:
        box: Bounding box of everything below this node.
        left: Left child, None for leaves.
        right: Right child, None for leaves.
        primitive: Index of the referenced object for leaves, -1 otherwise.
    """

    box: AABB
    left: BVHNode | None = None
    right: BVHNode | None = None
    primitive: int = -1

    @property
    def is_leaf(self) -> bool:
        return self.primitive >= 0


@dataclass
class FlatBVH:
    """Depth-first flattened BVH; node 0 is the root.

    Attributes:
        mins: (N, 3) float32 node box minima.
        maxs: (N, 3) float32 node box maxima.
        children: (N, 2) int32 left/right child indices, -1 for leaves.
        primitives: (N,) int32 object index of leaves, -1 for internal nodes.
        depth: Number of levels (0 for an empty BVH).
    """

    mins: npt.NDArray[np.float32]
    maxs: npt.NDArray[np.float32]
    children: npt.NDArray[np.int32]
    primitives: npt.NDArray[np.int32]
    depth: int

    @property
    def num_nodes(self) -> int:
        return int(len(self.primitives))


def _build(boxes: Sequence[AABB], indices: list[int]) -> BVHNode:
    if len(indices) == 1:
        return BVHNode(box=boxes[indices[0]], primitive=indices[0])

    if len(indices) == 2:
        left = BVHNode(box=boxes[indices[0]], primitive=indices[0])
        right = BVHNode(box=boxes[indices[1]], primitive=indices[1])
        return BVHNode(box=left.box.union(right.box), left=left, right=right)

    box = AABB.surrounding(boxes[i] for i in indices)
    axis = box.longest_axis()
    ordered = sorted(indices, key=lambda i: boxes[i].centroid()[axis])
    mid = len(ordered) // 2

    left = _build(boxes, ordered[:mid])
    right = _build(boxes, ordered[mid:])
    return BVHNode(box=left.box.union(right.box), left=left, right=right)


def build_tree(boxes: Sequence[AABB]) -> BVHNode | None:
    """Build the host-side tree over ``boxes``; None if there are none."""
    if len(boxes) == 0:
        return None
    return _build(boxes, list(range(len(boxes))))


def flatten(root: BVHNode | None) -> FlatBVH:
    """Flatten a tree into depth-first arrays."""
    mins: list[np.ndarray] = []
    maxs: list[np.ndarray] = []
    children: list[list[int]] = []
    primitives: list[int] = []
    depth = 0

    def visit(node: BVHNode, level: int) -> int:
        nonlocal depth
        depth = max(depth, level)
        index = len(primitives)
        mins.append(node.box.minimum)
        maxs.append(node.box.maximum)
        children.append([-1, -1])
        primitives.append(node.primitive)
        if not node.is_leaf:
            children[index][0] = visit(node.left, level + 1)
            children[index][1] = visit(node.right, level + 1)
        return index

    if root is not None:
        visit(root, 1)

    # Round outward so float32 boxes still enclose their float64 contents
    mins32 = np.nextafter(np.asarray(mins, dtype=np.float32), np.float32(-np.inf))
    maxs32 = np.nextafter(np.asarray(maxs, dtype=np.float32), np.float32(np.inf))
    return FlatBVH(
        mins=mins32.reshape(-1, 3),
        maxs=maxs32.reshape(-1, 3),
        children=np.asarray(children, dtype=np.int32).reshape(-1, 2),
        primitives=np.asarray(primitives, dtype=np.int32),
        depth=depth,
    )


def build_bvh(boxes: Sequence[AABB]) -> FlatBVH:
    """Build and flatten a BVH over a list of leaf boxes.

    Args:
        boxes: Bounding box of each leaf; leaf i refers to index i.

    Returns:
        The flattened BVH. An empty input gives an empty BVH.
    """
    flat = flatten(build_tree(boxes))
    logger.debug("Built BVH over %d leaves: %d nodes, depth %d", len(boxes), flat.num_nodes, flat.depth)
    return flat

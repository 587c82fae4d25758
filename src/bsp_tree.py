"""
Binary space partition tree over convex polygons.

A node holds a partition plane, the polygons lying on that plane and
optional front/back subtrees. A missing back child marks the "inside"
(solid) half-space. Every node exclusively owns its children.

Traversals run on explicit work stacks; degenerate inputs can produce
trees as deep as the polygon count.
"""
from typing import List, Optional, Tuple

from geometry_primitives import Plane, Polygon


class BSPNode:
    """One node of a BSP tree (the root node stands for the whole tree)."""

    __slots__ = ("plane", "polygons", "front", "back")

    def __init__(self, polygons: Optional[List[Polygon]] = None):
        self.plane: Optional[Plane] = None
        self.polygons: List[Polygon] = []
        self.front: Optional["BSPNode"] = None
        self.back: Optional["BSPNode"] = None
        if polygons:
            self.build(polygons)

    def clone(self) -> "BSPNode":
        """Deep copy of every node, plane and polygon."""
        root = BSPNode()
        stack: List[Tuple[BSPNode, BSPNode]] = [(self, root)]
        while stack:
            src, dst = stack.pop()
            dst.plane = src.plane.clone() if src.plane is not None else None
            dst.polygons = [p.clone() for p in src.polygons]
            if src.front is not None:
                dst.front = BSPNode()
                stack.append((src.front, dst.front))
            if src.back is not None:
                dst.back = BSPNode()
                stack.append((src.back, dst.back))
        return root

    def invert(self) -> None:
        """Convert the tree into the complement solid, in place."""
        for node in self._nodes():
            for polygon in node.polygons:
                polygon.flip()
            if node.plane is not None:
                node.plane.flip()
            node.front, node.back = node.back, node.front

    def clip_polygons(self, polygons: List[Polygon]) -> List[Polygon]:
        """Return the parts of ``polygons`` lying outside this tree's solid.

        An empty tree clips nothing away. Fragments that reach a missing
        back child are inside the solid and dropped.
        """
        result: List[Polygon] = []
        stack: List[Tuple[BSPNode, List[Polygon]]] = [(self, polygons)]
        while stack:
            node, pending = stack.pop()
            if node.plane is None:
                result.extend(pending)
                continue
            front: List[Polygon] = []
            back: List[Polygon] = []
            for polygon in pending:
                node.plane.split_polygon(polygon, front, back, front, back)
            # Back pushed first so the front subtree drains first, matching
            # the recursive front-then-back output order.
            if node.back is not None and back:
                stack.append((node.back, back))
            if node.front is not None:
                if front:
                    stack.append((node.front, front))
            else:
                result.extend(front)
        return result

    def clip_to(self, other: "BSPNode") -> None:
        """Remove every polygon of this tree lying inside ``other``."""
        for node in self._nodes():
            node.polygons = other.clip_polygons(node.polygons)

    def all_polygons(self) -> List[Polygon]:
        """Flatten the tree, pre-order: own, front subtree, back subtree."""
        result: List[Polygon] = []
        for node in self._nodes():
            result.extend(node.polygons)
        return result

    def build(self, polygons: List[Polygon]) -> None:
        """Insert ``polygons`` into the tree, extending existing partitions."""
        stack: List[Tuple[BSPNode, List[Polygon]]] = [(self, polygons)]
        while stack:
            node, pending = stack.pop()
            if not pending:
                continue
            if node.plane is None:
                node.plane = pending[0].plane.clone()
            front: List[Polygon] = []
            back: List[Polygon] = []
            for polygon in pending:
                node.plane.split_polygon(polygon, node.polygons, node.polygons, front, back)
            if back:
                if node.back is None:
                    node.back = BSPNode()
                stack.append((node.back, back))
            if front:
                if node.front is None:
                    node.front = BSPNode()
                stack.append((node.front, front))

    def depth(self) -> int:
        """Number of levels below and including this node."""
        deepest = 0
        stack: List[Tuple[BSPNode, int]] = [(self, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            for child in (node.front, node.back):
                if child is not None:
                    stack.append((child, level + 1))
        return deepest

    def _nodes(self):
        """Yield nodes in pre-order (node, front subtree, back subtree)."""
        stack: List[BSPNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.back is not None:
                stack.append(node.back)
            if node.front is not None:
                stack.append(node.front)

"""
Constructive solid geometry on polygon soups.

A CSGSolid is a flat list of polygons describing a closed surface. Boolean
operations build two BSP trees from clones of the operands, carve them
against each other and collect the surviving polygons. The original
solids are never mutated.

Also converts to and from flat triangle arrays (the layout used by
rendering meshes) and trimesh.Trimesh objects.
"""
import logging
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from bsp_tree import BSPNode
from geometry_primitives import Polygon, Vector3, Vertex

logger = logging.getLogger(__name__)

# Vertex sign patterns and faces of a box, as (corner indices, normal).
_BOX_FACES = (
    ((0, 4, 6, 2), (-1.0, 0.0, 0.0)),
    ((1, 3, 7, 5), (1.0, 0.0, 0.0)),
    ((0, 1, 5, 4), (0.0, -1.0, 0.0)),
    ((2, 6, 7, 3), (0.0, 1.0, 0.0)),
    ((0, 2, 3, 1), (0.0, 0.0, -1.0)),
    ((4, 5, 7, 6), (0.0, 0.0, 1.0)),
)

_DEGENERATE_AREA = 1e-12


class CSGSolid:
    """A solid represented by its boundary polygons."""

    def __init__(self, polygons: Optional[List[Polygon]] = None):
        self.polygons: List[Polygon] = list(polygons) if polygons else []

    @classmethod
    def from_polygons(cls, polygons: List[Polygon]) -> "CSGSolid":
        return cls(polygons)

    def clone(self) -> "CSGSolid":
        return CSGSolid([p.clone() for p in self.polygons])

    def to_polygons(self) -> List[Polygon]:
        return self.polygons

    @property
    def is_empty(self) -> bool:
        return not self.polygons

    # ─── Boolean operations ──────────────────────────────────────────────

    def union(self, other: "CSGSolid") -> "CSGSolid":
        """Space covered by either solid."""
        a = BSPNode(self.clone().polygons)
        b = BSPNode(other.clone().polygons)
        a.clip_to(b)
        b.clip_to(a)
        b.invert()
        b.clip_to(a)
        b.invert()
        a.build(b.all_polygons())
        result = CSGSolid(a.all_polygons())
        logger.debug("union: %d | %d -> %d polygons",
                     len(self.polygons), len(other.polygons), len(result.polygons))
        return result

    def subtract(self, other: "CSGSolid") -> "CSGSolid":
        """Space covered by this solid but not by ``other``."""
        a = BSPNode(self.clone().polygons)
        b = BSPNode(other.clone().polygons)
        a.invert()
        a.clip_to(b)
        b.clip_to(a)
        b.invert()
        b.clip_to(a)
        b.invert()
        a.build(b.all_polygons())
        a.invert()
        result = CSGSolid(a.all_polygons())
        logger.debug("subtract: %d - %d -> %d polygons",
                     len(self.polygons), len(other.polygons), len(result.polygons))
        return result

    def intersect(self, other: "CSGSolid") -> "CSGSolid":
        """Space covered by both solids."""
        a = BSPNode(self.clone().polygons)
        b = BSPNode(other.clone().polygons)
        a.invert()
        b.clip_to(a)
        b.invert()
        a.clip_to(b)
        b.clip_to(a)
        a.build(b.all_polygons())
        a.invert()
        result = CSGSolid(a.all_polygons())
        logger.debug("intersect: %d & %d -> %d polygons",
                     len(self.polygons), len(other.polygons), len(result.polygons))
        return result

    def inverse(self) -> "CSGSolid":
        """Complement: every polygon flipped, no tree needed."""
        result = self.clone()
        for polygon in result.polygons:
            polygon.flip()
        return result

    # ─── Measures ────────────────────────────────────────────────────────

    def surface_area(self) -> float:
        return float(sum(p.area() for p in self.polygons))

    def volume(self) -> float:
        """Signed enclosed volume (positive for outward-facing polygons)."""
        total = 0.0
        for polygon in self.polygons:
            v0 = polygon.vertices[0].pos
            for i in range(2, len(polygon.vertices)):
                v1 = polygon.vertices[i - 1].pos
                v2 = polygon.vertices[i].pos
                total += v0.dot(v1.cross(v2))
        return total / 6.0

    def bounds(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """(min_xyz, max_xyz) over all vertices, or None when empty."""
        if not self.polygons:
            return None
        pts = np.array([tuple(v.pos) for p in self.polygons for v in p.vertices], dtype=float)
        return pts.min(axis=0), pts.max(axis=0)

    # ─── Construction ────────────────────────────────────────────────────

    @classmethod
    def box(
        cls,
        center: Sequence[float] = (0.0, 0.0, 0.0),
        extents: Sequence[float] = (1.0, 1.0, 1.0),
        shared: Any = None,
    ) -> "CSGSolid":
        """Axis-aligned box with full side lengths ``extents``."""
        c = np.asarray(center, dtype=float)
        half = np.asarray(extents, dtype=float) / 2.0
        polygons = []
        for indices, normal in _BOX_FACES:
            n = Vector3(*normal)
            vertices = []
            for i in indices:
                signs = np.array([
                    1.0 if i & 1 else -1.0,
                    1.0 if i & 2 else -1.0,
                    1.0 if i & 4 else -1.0,
                ])
                vertices.append(Vertex(Vector3.from_array(c + half * signs), n))
            polygons.append(Polygon(vertices, shared))
        return cls(polygons)

    def transformed(self, matrix: np.ndarray) -> "CSGSolid":
        """Copy with a rigid 4x4 transform applied to positions and normals."""
        m = np.asarray(matrix, dtype=float).reshape(4, 4)
        rot = m[:3, :3]
        shift = m[:3, 3]
        polygons = []
        for polygon in self.polygons:
            vertices = []
            for v in polygon.vertices:
                pos = rot @ v.pos.to_array() + shift
                normal = rot @ v.normal.to_array()
                length = float(np.linalg.norm(normal))
                if length > 0:
                    normal = normal / length
                vertices.append(Vertex(Vector3.from_array(pos), Vector3.from_array(normal)))
            polygons.append(Polygon(vertices, polygon.shared))
        return CSGSolid(polygons)

    @classmethod
    def from_mesh_arrays(
        cls,
        positions: Sequence[float],
        normals: Optional[Sequence[float]] = None,
        matrix: Optional[np.ndarray] = None,
        shared: Any = None,
    ) -> "CSGSolid":
        """Build a solid from non-indexed triangle arrays.

        Args:
            positions: Flat xyz values, three vertices per triangle.
            normals: Flat per-vertex normals; +Z is used when omitted.
            matrix: Optional 4x4 world transform (row-major, column vectors).
            shared: Tag attached to every polygon.

        Returns:
            One polygon per non-degenerate triangle.
        """
        pos = np.asarray(positions, dtype=float).reshape(-1)
        if pos.size % 9 != 0:
            raise ValueError(f"Position array length {pos.size} is not a multiple of 9")
        tris = pos.reshape(-1, 3, 3)

        if normals is None:
            norms = np.zeros_like(tris)
            norms[:, :, 2] = 1.0
        else:
            norms = np.asarray(normals, dtype=float).reshape(-1)
            if norms.size != pos.size:
                raise ValueError("Normal array length does not match positions")
            norms = norms.reshape(-1, 3, 3)

        if matrix is not None:
            m = np.asarray(matrix, dtype=float).reshape(4, 4)
            tris = tris @ m[:3, :3].T + m[:3, 3]
            norms = norms @ m[:3, :3].T
            lengths = np.linalg.norm(norms, axis=2, keepdims=True)
            norms = np.divide(norms, lengths, out=np.zeros_like(norms), where=lengths > 0)

        cross = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
        keep = np.linalg.norm(cross, axis=1) > _DEGENERATE_AREA

        polygons = []
        for tri, tri_normals in zip(tris[keep], norms[keep]):
            vertices = [
                Vertex(Vector3.from_array(p), Vector3.from_array(n))
                for p, n in zip(tri, tri_normals)
            ]
            polygons.append(Polygon(vertices, shared))

        skipped = int(len(tris) - keep.sum())
        if skipped:
            logger.debug("Skipped %d degenerate triangles", skipped)
        return cls(polygons)

    def to_mesh_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Fan-triangulate every polygon into flat float32 position/normal arrays."""
        positions: List[float] = []
        normals: List[float] = []
        for polygon in self.polygons:
            vs = polygon.vertices
            for i in range(2, len(vs)):
                for v in (vs[0], vs[i - 1], vs[i]):
                    positions.extend(v.pos)
                    normals.extend(v.normal)
        return (
            np.asarray(positions, dtype=np.float32),
            np.asarray(normals, dtype=np.float32),
        )

    @classmethod
    def from_trimesh(
        cls,
        mesh: trimesh.Trimesh,
        matrix: Optional[np.ndarray] = None,
        shared: Any = None,
    ) -> "CSGSolid":
        """One polygon per mesh face, flat-shaded with the face normal."""
        positions = mesh.vertices[mesh.faces].reshape(-1)
        normals = np.repeat(mesh.face_normals, 3, axis=0).reshape(-1)
        return cls.from_mesh_arrays(positions, normals, matrix=matrix, shared=shared)

    def to_trimesh(self, process: bool = False) -> trimesh.Trimesh:
        positions, normals = self.to_mesh_arrays()
        vertices = positions.reshape(-1, 3).astype(float)
        faces = np.arange(len(vertices), dtype=np.int64).reshape(-1, 3)
        return trimesh.Trimesh(
            vertices=vertices,
            faces=faces,
            vertex_normals=normals.reshape(-1, 3).astype(float),
            process=process,
        )

    def __repr__(self) -> str:
        return f"CSGSolid({len(self.polygons)} polygons)"

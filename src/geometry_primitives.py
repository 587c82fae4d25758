"""
Core geometry types for BSP-based constructive solid geometry.

Provides Vector3 (immutable value), Vertex (position + normal), Plane
(oriented plane with epsilon-tolerant polygon splitting) and Polygon
(convex planar face carrying an opaque ``shared`` tag).
"""
import math
from dataclasses import dataclass
from enum import IntFlag
from typing import Any, List, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class Vector3:
    """Immutable 3D vector."""
    x: float
    y: float
    z: float

    @classmethod
    def from_array(cls, values: Sequence[float]) -> "Vector3":
        return cls(float(values[0]), float(values[1]), float(values[2]))

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def negated(self) -> "Vector3":
        return Vector3(-self.x, -self.y, -self.z)

    def plus(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def minus(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def times(self, k: float) -> "Vector3":
        return Vector3(self.x * k, self.y * k, self.z * k)

    def divided_by(self, k: float) -> "Vector3":
        return Vector3(self.x / k, self.y / k, self.z / k)

    def dot(self, other: "Vector3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vector3") -> "Vector3":
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        return math.sqrt(self.dot(self))

    def unit(self) -> "Vector3":
        """Normalize. Raises ZeroDivisionError for the zero vector."""
        return self.divided_by(self.length())

    def lerp(self, other: "Vector3", t: float) -> "Vector3":
        return self.plus(other.minus(self).times(t))

    def __iter__(self):
        return iter((self.x, self.y, self.z))


class Vertex:
    """A polygon corner: position plus (interpolated) normal.

    Owned by exactly one Polygon; ``flip()`` mutates the normal in place.
    """

    __slots__ = ("pos", "normal")

    def __init__(self, pos: Vector3, normal: Vector3):
        self.pos = pos
        self.normal = normal

    def clone(self) -> "Vertex":
        return Vertex(self.pos, self.normal)

    def flip(self) -> None:
        self.normal = self.normal.negated()

    def interpolate(self, other: "Vertex", t: float) -> "Vertex":
        """New vertex at parameter ``t`` along the edge to ``other``."""
        return Vertex(self.pos.lerp(other.pos, t), self.normal.lerp(other.normal, t))

    def __repr__(self) -> str:
        return f"Vertex(pos={tuple(self.pos)}, normal={tuple(self.normal)})"


class PolygonClass(IntFlag):
    """Side of a point or polygon relative to a plane."""
    COPLANAR = 0
    FRONT = 1
    BACK = 2
    SPANNING = 3


class Plane:
    """Oriented plane ``normal . p == w``.

    Mutable only through ``flip()``; BSP nodes own a private clone.
    """

    EPSILON = 1e-5  # tolerance used by split_polygon() for "on the plane"

    __slots__ = ("normal", "w")

    def __init__(self, normal: Vector3, w: float):
        self.normal = normal
        self.w = w

    @classmethod
    def from_points(cls, a: Vector3, b: Vector3, c: Vector3) -> "Plane":
        n = b.minus(a).cross(c.minus(a))
        length = n.length()
        if length < 1e-12:
            raise ValueError("Cannot build a plane from collinear points")
        n = n.divided_by(length)
        return cls(n, n.dot(a))

    def clone(self) -> "Plane":
        return Plane(self.normal, self.w)

    def flip(self) -> None:
        self.normal = self.normal.negated()
        self.w = -self.w

    def classify_point(self, point: Vector3) -> PolygonClass:
        t = self.normal.dot(point) - self.w
        if t < -Plane.EPSILON:
            return PolygonClass.BACK
        if t > Plane.EPSILON:
            return PolygonClass.FRONT
        return PolygonClass.COPLANAR

    def split_polygon(
        self,
        polygon: "Polygon",
        coplanar_front: List["Polygon"],
        coplanar_back: List["Polygon"],
        front: List["Polygon"],
        back: List["Polygon"],
    ) -> None:
        """Split ``polygon`` by this plane and route the pieces.

        Coplanar polygons go to ``coplanar_front`` or ``coplanar_back``
        depending on whether their own normal agrees with this plane.
        Polygons strictly on one side go to ``front``/``back`` unchanged.
        Spanning polygons are cut in two; a fragment with fewer than three
        vertices is dropped.
        """
        polygon_type = PolygonClass.COPLANAR
        types = []
        for vertex in polygon.vertices:
            kind = self.classify_point(vertex.pos)
            polygon_type |= kind
            types.append(kind)

        if polygon_type == PolygonClass.COPLANAR:
            if self.normal.dot(polygon.plane.normal) > 0:
                coplanar_front.append(polygon)
            else:
                coplanar_back.append(polygon)
        elif polygon_type == PolygonClass.FRONT:
            front.append(polygon)
        elif polygon_type == PolygonClass.BACK:
            back.append(polygon)
        else:
            f: List[Vertex] = []
            b: List[Vertex] = []
            count = len(polygon.vertices)
            for i in range(count):
                j = (i + 1) % count
                ti, tj = types[i], types[j]
                vi, vj = polygon.vertices[i], polygon.vertices[j]
                if ti != PolygonClass.BACK:
                    f.append(vi)
                if ti != PolygonClass.FRONT:
                    b.append(vi.clone() if ti != PolygonClass.BACK else vi)
                if (ti | tj) == PolygonClass.SPANNING:
                    t = (self.w - self.normal.dot(vi.pos)) / self.normal.dot(
                        vj.pos.minus(vi.pos)
                    )
                    v = vi.interpolate(vj, t)
                    f.append(v)
                    b.append(v.clone())
            # Fragments keep the parent's plane, even near-degenerate slivers.
            if len(f) >= 3:
                front.append(Polygon(f, polygon.shared, polygon.plane.clone()))
            if len(b) >= 3:
                back.append(Polygon(b, polygon.shared, polygon.plane.clone()))

    def __repr__(self) -> str:
        return f"Plane(normal={tuple(self.normal)}, w={self.w:.6g})"


class Polygon:
    """Convex planar polygon.

    Vertex order defines the winding and therefore the sign of the plane
    normal. The plane is derived once at construction; ``flip()`` reverses
    the winding and flips the plane together.
    """

    __slots__ = ("vertices", "shared", "plane")

    def __init__(
        self,
        vertices: List[Vertex],
        shared: Any = None,
        plane: Optional[Plane] = None,
    ):
        if len(vertices) < 3:
            raise ValueError(f"Polygon needs at least 3 vertices, got {len(vertices)}")
        self.vertices = vertices
        self.shared = shared
        self.plane = plane if plane is not None else _plane_for(vertices)

    def clone(self) -> "Polygon":
        return Polygon([v.clone() for v in self.vertices], self.shared, self.plane.clone())

    def flip(self) -> None:
        self.vertices.reverse()
        for v in self.vertices:
            v.flip()
        self.plane.flip()

    def flipped(self) -> "Polygon":
        """Copy with reversed winding; ``self`` is left untouched."""
        copy = self.clone()
        copy.flip()
        return copy

    def area(self) -> float:
        return _newell_normal(self.vertices).length() / 2.0

    def __repr__(self) -> str:
        return f"Polygon({len(self.vertices)} vertices, shared={self.shared!r})"


# ─── Internal helpers ────────────────────────────────────────────────────────

def _plane_for(vertices: List[Vertex]) -> Plane:
    """Plane through the first three vertices, Newell normal if collinear."""
    try:
        return Plane.from_points(vertices[0].pos, vertices[1].pos, vertices[2].pos)
    except ValueError:
        n = _newell_normal(vertices)
        length = n.length()
        if length < 1e-12:
            raise ValueError("Degenerate polygon: all vertices are collinear")
        n = n.divided_by(length)
        return Plane(n, n.dot(vertices[0].pos))


def _newell_normal(vertices: List[Vertex]) -> Vector3:
    """Unnormalized area-weighted normal (twice the polygon area)."""
    nx = ny = nz = 0.0
    count = len(vertices)
    for i in range(count):
        a = vertices[i].pos
        b = vertices[(i + 1) % count].pos
        nx += (a.y - b.y) * (a.z + b.z)
        ny += (a.z - b.z) * (a.x + b.x)
        nz += (a.x - b.x) * (a.y + b.y)
    return Vector3(nx, ny, nz)

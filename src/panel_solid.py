"""
Panel bodies and cutters for CSG machining.

Builds the solid of a flat panel from its contour topology (extruded and
centered on the panel-local origin), turns grooves and pocket cuts into
cutter solids, and subtracts them from the body. Every failure degrades:
an unresolvable contour falls back to the panel's bounding box, a cutter
that cannot be built or subtracted is counted and skipped.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import shapely
import trimesh
from shapely import affinity
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.polygon import orient

from contour_chains import ChainConfig, is_chain_closed
from contour_discretize import DiscretizeConfig, chain_to_points, discretize_chain
from contour_elements import CircleSegment, LineSegment, Segment, segments_from_dicts
from contour_topology import (
    CenteringOffset,
    ContourTopology,
    resolve_panel_topology,
    topology_from_dict,
)
from csg import CSGSolid
from geometry_primitives import Polygon, Vector3, Vertex

logger = logging.getLogger(__name__)

FRONT = "front"
BACK = "back"


@dataclass
class CutterConfig:
    """Cutter sizing; margins make cutters pierce the panel surface."""

    default_depth: float = 5.0
    default_width: float = 10.0
    # Groove cutter overshoot: margin/2 pokes above the face and the floor
    # lands margin/2 deeper than cut.depth.
    groove_depth_margin: float = 2.0
    extrusion_depth_margin: float = 1.0
    groove_length_pad: float = 0.5
    groove_width_pad: float = 0.2
    min_segment_length: float = 0.01
    close_tolerance: float = 0.1
    discretize: DiscretizeConfig = field(default_factory=DiscretizeConfig)
    chains: ChainConfig = field(default_factory=ChainConfig)


@dataclass
class PanelCut:
    """A groove along a trajectory ("freeForm") or a pocket ("extrusion")."""
    name: str = ""
    cut_type: str = "freeForm"
    side: str = FRONT
    front_side: Optional[bool] = None
    depth: Optional[float] = None
    width: Optional[float] = None
    offset: float = 0.0
    trajectory: List[Segment] = field(default_factory=list)
    contour: List[Segment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "PanelCut":
        front_side = record.get("frontSide")
        return cls(
            name=record.get("name") or "",
            cut_type=record.get("cutType") or "freeForm",
            side=record.get("side") or FRONT,
            front_side=None if front_side is None else bool(front_side),
            depth=record.get("depth"),
            width=record.get("width"),
            offset=float(record.get("offset") or 0.0),
            trajectory=segments_from_dicts(record.get("trajectory") or []),
            contour=segments_from_dicts(record.get("contour") or []),
        )


@dataclass
class Panel:
    """Flat panel: contour in its own 2D frame, extruded along local Z."""
    id: str
    size: Tuple[float, float, float]
    thickness: Optional[float] = None
    contour: List[Segment] = field(default_factory=list)
    topology: Optional[ContourTopology] = None  # pre-classified by the exporter
    cuts: List[PanelCut] = field(default_factory=list)
    basis: Optional[np.ndarray] = None  # (3, 3) rows: local X, Y, Z axes

    @property
    def effective_thickness(self) -> float:
        if self.thickness:
            return float(self.thickness)
        return float(min(self.size))

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Panel":
        size = record.get("size") or (0.0, 0.0, 0.0)
        if isinstance(size, dict):
            size = (size.get("x", 0.0), size.get("y", 0.0), size.get("z", 0.0))
        material = record.get("material") or {}
        basis = record.get("basis")
        if isinstance(basis, dict):
            basis = np.array([
                [basis[axis]["x"], basis[axis]["y"], basis[axis]["z"]]
                for axis in ("axisX", "axisY", "axisZ")
            ], dtype=float)
        elif basis is not None:
            basis = np.asarray(basis, dtype=float).reshape(3, 3)
        return cls(
            id=str(record.get("id", "")),
            size=tuple(float(s) for s in size),
            thickness=material.get("thickness") or record.get("thickness"),
            contour=segments_from_dicts(record.get("contourElements") or []),
            topology=topology_from_dict(record.get("contourTopology")),
            cuts=[PanelCut.from_dict(c) for c in record.get("cuts") or []],
            basis=basis,
        )


@dataclass
class PanelSolid:
    """Panel body plus the centering offset every cutter must reuse."""
    solid: CSGSolid
    offset: CenteringOffset
    topology: Optional[ContourTopology] = None
    used_fallback: bool = False


@dataclass
class CutResult:
    solid: CSGSolid
    cuts_applied: int = 0
    cuts_failed: int = 0

    @property
    def had_cuts(self) -> bool:
        return self.cuts_applied > 0


@dataclass
class PanelGeometry:
    body: PanelSolid
    cuts: CutResult

    @property
    def solid(self) -> CSGSolid:
        return self.cuts.solid


def build_panel_geometry(panel: Panel, config: Optional[CutterConfig] = None) -> PanelGeometry:
    """Body solid with every cut of ``panel`` subtracted."""
    if config is None:
        config = CutterConfig()
    body = build_panel_solid(panel, config)
    result = apply_panel_cuts(body, panel, config)
    return PanelGeometry(body=body, cuts=result)


def build_panel_solid(panel: Panel, config: Optional[CutterConfig] = None) -> PanelSolid:
    """Extrude the panel contour, centered in XY (contour bbox) and Z.

    Falls back to an axis-aligned box of ``panel.size`` when the contour
    cannot be resolved into a valid polygon.
    """
    if config is None:
        config = CutterConfig()
    thickness = panel.effective_thickness

    topology = panel.topology
    if topology is None and panel.contour:
        topology = resolve_panel_topology(panel.contour, config.chains)

    if topology is not None:
        offset = topology.centering_offset()
        polygon = topology.to_shapely(config.discretize)
        if polygon is not None:
            solid = extrude_polygon(
                polygon, -thickness / 2.0, thickness / 2.0, offset, shared=panel.id,
            )
            if not solid.is_empty:
                logger.info(
                    "Panel %s: body from contour, %d hole(s), %d polygons",
                    panel.id, len(topology.holes), len(solid.polygons),
                )
                return PanelSolid(solid=solid, offset=offset, topology=topology)

    if panel.contour or panel.topology is not None:
        logger.warning("Panel %s: contour unusable, using bounding box", panel.id)
    return PanelSolid(
        solid=CSGSolid.box((0.0, 0.0, 0.0), panel.size, shared=panel.id),
        offset=CenteringOffset.from_size(panel.size),
        topology=topology,
        used_fallback=True,
    )


def apply_panel_cuts(
    body: PanelSolid,
    panel: Panel,
    config: Optional[CutterConfig] = None,
) -> CutResult:
    """Subtract every cut of ``panel`` from ``body``.

    Cutters that come out empty or fail to subtract are counted in
    ``cuts_failed``. When nothing was applied, or the result has no
    polygons left, the original body is returned unchanged.
    """
    if config is None:
        config = CutterConfig()
    if not panel.cuts:
        return CutResult(solid=body.solid)

    thickness = panel.effective_thickness
    result = body.solid
    applied = 0
    failed = 0

    for cut_index, cut in enumerate(panel.cuts):
        if cut.cut_type == "extrusion" and cut.contour:
            cutters = extrusion_cutters(cut, thickness, body.offset, config)
        elif cut.trajectory:
            cutters = groove_cutters(cut, panel, thickness, body.offset, config)
        else:
            cutters = []
        if not cutters:
            logger.warning("Panel %s cut %d (%s): no cutter geometry", panel.id, cut_index, cut.name)
            continue

        for seg_index, cutter in enumerate(cutters):
            if cutter.is_empty:
                failed += 1
                continue
            try:
                candidate = result.subtract(cutter)
            except ValueError as exc:
                logger.warning("Panel %s cut %d seg %d failed: %s", panel.id, cut_index, seg_index, exc)
                failed += 1
                continue
            result = candidate
            applied += 1

    if applied == 0:
        logger.warning("Panel %s: no cut applied", panel.id)
        return CutResult(solid=body.solid, cuts_failed=failed)
    if result.is_empty:
        logger.warning("Panel %s: cutting removed every polygon, keeping original", panel.id)
        return CutResult(solid=body.solid, cuts_failed=failed)

    logger.info(
        "Panel %s: %d cutter(s) applied, %d failed, %d polygons",
        panel.id, applied, failed, len(result.polygons),
    )
    return CutResult(solid=result, cuts_applied=applied, cuts_failed=failed)


def effective_side(cut: PanelCut, basis: Optional[np.ndarray] = None) -> str:
    """Face a groove starts from.

    An explicit ``front_side`` wins; otherwise a mirrored basis
    (negative determinant) swaps the declared side.
    """
    if cut.front_side is not None:
        return FRONT if cut.front_side else BACK
    side = cut.side or FRONT
    if basis is not None and np.linalg.det(basis) < 0:
        return FRONT if side == BACK else BACK
    return side


def groove_cutters(
    cut: PanelCut,
    panel: Panel,
    thickness: float,
    offset: CenteringOffset,
    config: Optional[CutterConfig] = None,
) -> List[CSGSolid]:
    """One oriented box per discretized trajectory segment."""
    if config is None:
        config = CutterConfig()
    depth = (cut.depth or config.default_depth) + config.groove_depth_margin
    width = cut.width or config.default_width
    overshoot = config.groove_depth_margin / 2.0
    if effective_side(cut, panel.basis) == BACK:
        z_center = -thickness / 2.0 + depth / 2.0 - overshoot
    else:
        z_center = thickness / 2.0 - depth / 2.0 + overshoot

    cutters = []
    for seg in discretize_chain(cut.trajectory, config.discretize):
        dx = seg.end.x - seg.start.x
        dy = seg.end.y - seg.start.y
        length = math.hypot(dx, dy)
        if length < config.min_segment_length:
            continue
        angle = math.atan2(dy, dx)
        perp = angle + math.pi / 2.0
        cx, cy = offset.apply((
            (seg.start.x + seg.end.x) / 2.0 + math.cos(perp) * cut.offset,
            (seg.start.y + seg.end.y) / 2.0 + math.sin(perp) * cut.offset,
        ))
        box = CSGSolid.box(
            (0.0, 0.0, 0.0),
            (length + config.groove_length_pad, width + config.groove_width_pad, depth),
            shared=cut.name,
        )
        matrix = trimesh.transformations.rotation_matrix(angle, [0.0, 0.0, 1.0])
        matrix[:3, 3] = (cx, cy, z_center)
        cutters.append(box.transformed(matrix))

    logger.debug("Groove %r: %d cutter segment(s), depth=%.2f width=%.2f",
                 cut.name, len(cutters), depth, width)
    return cutters


def extrusion_cutters(
    cut: PanelCut,
    thickness: float,
    offset: CenteringOffset,
    config: Optional[CutterConfig] = None,
) -> List[CSGSolid]:
    """Pocket cutters: the cut contour extruded into the panel.

    Full circles become separate cutters; the remaining elements form one
    loop, closed with a line when its ends do not meet.
    """
    if config is None:
        config = CutterConfig()
    depth = (cut.depth or config.default_depth) + config.extrusion_depth_margin
    if cut.front_side is not None:
        side = FRONT if cut.front_side else BACK
    else:
        side = cut.side or FRONT
    if side == FRONT:
        z_min = thickness / 2.0 - depth + config.extrusion_depth_margin
    else:
        z_min = -thickness / 2.0 - config.extrusion_depth_margin
    z_max = z_min + depth

    loops = [[el] for el in cut.contour if isinstance(el, CircleSegment)]
    loop = [el for el in cut.contour if not isinstance(el, CircleSegment)]
    if loop:
        if not is_chain_closed(loop, config.close_tolerance):
            loop.append(LineSegment(loop[-1].end, loop[0].start))
        loops.append(loop)

    cutters = []
    for chain in loops:
        points = chain_to_points(chain, config.discretize)
        if len(points) < 3:
            continue
        polygon = ShapelyPolygon(points)
        if not polygon.is_valid or polygon.area <= 0:
            logger.warning("Extrusion cut %r: contour is not a simple polygon", cut.name)
            continue
        cutters.append(extrude_polygon(polygon, z_min, z_max, offset, shared=cut.name))
    return cutters


def extrude_polygon(
    polygon: ShapelyPolygon,
    z_min: float,
    z_max: float,
    offset: Optional[CenteringOffset] = None,
    shared: Any = None,
) -> CSGSolid:
    """Closed prism over a polygon with holes.

    Caps come from a constrained Delaunay triangulation, so they share
    their vertices with the wall quads (one per ring edge).
    """
    if offset is not None:
        polygon = affinity.translate(polygon, -offset.x, -offset.y)
    polygon = orient(polygon, sign=1.0)

    up = Vector3(0.0, 0.0, 1.0)
    down = Vector3(0.0, 0.0, -1.0)
    faces: List[Polygon] = []

    for tri in shapely.constrained_delaunay_triangles(polygon).geoms:
        if tri.is_empty or tri.area <= 1e-12:
            continue
        coords = [c[:2] for c in orient(tri, sign=1.0).exterior.coords[:3]]
        faces.append(Polygon([Vertex(Vector3(x, y, z_max), up) for x, y in coords], shared))
        faces.append(Polygon([Vertex(Vector3(x, y, z_min), down) for x, y in reversed(coords)], shared))

    for ring in [polygon.exterior, *polygon.interiors]:
        faces.extend(_ring_walls(ring.coords[:-1], z_min, z_max, shared))

    return CSGSolid(faces)


# ─── Internal helpers ────────────────────────────────────────────────────────

def _ring_walls(
    coords: Sequence[Tuple[float, ...]],
    z_min: float,
    z_max: float,
    shared: Any,
) -> List[Polygon]:
    """Outward-facing quads; exterior rings CCW, holes CW."""
    walls = []
    count = len(coords)
    for i in range(count):
        x0, y0 = coords[i][:2]
        x1, y1 = coords[(i + 1) % count][:2]
        dx, dy = x1 - x0, y1 - y0
        length = math.hypot(dx, dy)
        if length <= 1e-12:
            continue
        n = Vector3(dy / length, -dx / length, 0.0)
        walls.append(Polygon([
            Vertex(Vector3(x0, y0, z_min), n),
            Vertex(Vector3(x1, y1, z_min), n),
            Vertex(Vector3(x1, y1, z_max), n),
            Vertex(Vector3(x0, y0, z_max), n),
        ], shared))
    return walls

"""
Outer boundary / hole classification of panel contours.

Turns loose contour elements into a ContourTopology: one counter-clockwise
outer loop plus clockwise holes nested inside it. Also owns the panel
centering offset, which must be computed once here and handed to every
consumer that works in panel-local coordinates (body extrusion, cutters).
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shapely.geometry import Polygon

from contour_chains import (
    BBox2D,
    ChainConfig,
    build_all_chains,
    calculate_chain_area,
    calculate_chain_bbox,
    is_chain_inside_outer,
    merge_chains_into_contours,
    reverse_chain,
)
from contour_discretize import DiscretizeConfig, chain_to_points
from contour_elements import Chain, Segment, segments_from_dicts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CenteringOffset:
    """Shift from contour coordinates to the panel-local origin."""
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def from_bbox(cls, bbox: BBox2D) -> "CenteringOffset":
        cx, cy = bbox.center
        return cls(cx, cy)

    @classmethod
    def from_size(cls, size: Sequence[float]) -> "CenteringOffset":
        """Fallback when no contour exists: contour assumed to span 0..size."""
        return cls(size[0] / 2.0, size[1] / 2.0)

    def apply(self, point: Tuple[float, float]) -> Tuple[float, float]:
        return (point[0] - self.x, point[1] - self.y)


@dataclass
class ContourTopology:
    """Outer loop (positive area) with the holes nested in it (negative area)."""
    outer: Chain
    holes: List[Chain] = field(default_factory=list)
    unattached: List[Chain] = field(default_factory=list)  # loops outside the outer

    def bbox(self) -> BBox2D:
        return calculate_chain_bbox(self.outer)

    def centering_offset(self) -> CenteringOffset:
        return CenteringOffset.from_bbox(self.bbox())

    def net_area(self) -> float:
        return calculate_chain_area(self.outer) + sum(calculate_chain_area(h) for h in self.holes)

    def to_shapely(self, config: Optional[DiscretizeConfig] = None) -> Optional[Polygon]:
        """Discretized polygon-with-holes, or None when the loops are unusable."""
        shell = chain_to_points(self.outer, config)
        if len(shell) < 3:
            logger.warning("Outer contour has fewer than 3 distinct points")
            return None
        interiors = []
        for hole in self.holes:
            ring = chain_to_points(hole, config)
            if len(ring) >= 3:
                interiors.append(ring)
            else:
                logger.warning("Dropping hole with fewer than 3 distinct points")
        polygon = Polygon(shell, interiors)
        if polygon.is_empty or not polygon.is_valid or polygon.area <= 0:
            logger.warning("Contour loops do not form a valid polygon")
            return None
        return polygon


def classify_contours(contours: List[Chain]) -> Optional[ContourTopology]:
    """Pick the largest loop as outer and nest the others as holes.

    The outer is normalized to positive (counter-clockwise) area and holes
    to negative. A loop whose first point is not inside the outer is kept
    in ``unattached`` instead of becoming a hole.
    """
    data = [(chain, calculate_chain_area(chain)) for chain in contours if chain]
    if not data:
        return None
    data.sort(key=lambda item: abs(item[1]), reverse=True)

    outer, outer_area = data[0]
    if outer_area == 0.0:
        logger.warning("Largest contour encloses no area")
        return None
    if outer_area < 0:
        outer = reverse_chain(outer)

    topology = ContourTopology(outer=outer)
    for chain, area in data[1:]:
        if not is_chain_inside_outer(chain, outer):
            topology.unattached.append(chain)
            continue
        topology.holes.append(reverse_chain(chain) if area > 0 else chain)

    if topology.unattached:
        logger.info("%d contour(s) lie outside the outer boundary", len(topology.unattached))
    return topology


def resolve_panel_topology(
    segments: Sequence[Segment],
    config: Optional[ChainConfig] = None,
) -> Optional[ContourTopology]:
    """Build, merge and classify loose contour elements.

    Returns None when no outer boundary can be found; callers fall back to
    a simple default shape.
    """
    if not segments:
        return None
    chains = build_all_chains(segments, config)
    contours = merge_chains_into_contours(chains, config)
    topology = classify_contours(contours)
    if topology is None:
        logger.warning("Could not resolve contour topology from %d element(s)", len(segments))
        return None
    logger.info(
        "Resolved topology: %d element(s) -> %d chain(s) -> %d contour(s), %d hole(s)",
        len(segments), len(chains), len(contours), len(topology.holes),
    )
    return topology


def normalize_topology(outer: Chain, holes: Sequence[Chain]) -> Optional[ContourTopology]:
    """Orientation-only normalization of an already classified topology."""
    if not outer:
        return None
    if calculate_chain_area(outer) < 0:
        outer = reverse_chain(outer)
    normalized = []
    for hole in holes:
        if not hole:
            continue
        normalized.append(reverse_chain(hole) if calculate_chain_area(hole) > 0 else list(hole))
    return ContourTopology(outer=list(outer), holes=normalized)


def topology_from_dict(record: Dict[str, Any]) -> Optional[ContourTopology]:
    """Parse ``{outerContour: [...], holes: [{elements: [...]} | [...]]}``."""
    if not record:
        return None
    outer = segments_from_dicts(record.get("outerContour") or [])
    holes = []
    for hole in record.get("holes") or []:
        elements = hole.get("elements") if isinstance(hole, dict) else hole
        holes.append(segments_from_dicts(elements or []))
    return normalize_topology(outer, holes)

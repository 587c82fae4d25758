"""
Chain assembly and analysis for planar contours.

Contour elements exported from panel models are unordered and sometimes
fragmented. ``build_all_chains`` links them into maximal start->end paths;
``merge_chains_into_contours`` stitches those paths into closed loops,
bridging small gaps. The remaining helpers measure chains (signed area,
perimeter, bounding box) and answer containment questions.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from contour_elements import (
    ArcSegment,
    Chain,
    CircleSegment,
    LineSegment,
    Point2,
    Segment,
)

logger = logging.getLogger(__name__)


@dataclass
class ChainConfig:
    """Distance thresholds (model units, usually mm) for chain building."""

    match_tolerance: float = 0.1  # per-axis start/end match in build_all_chains
    merge_threshold: float = 3000.0  # farthest endpoint pair still merged
    bridge_tolerance: float = 1.0  # gaps above this get a bridging line
    closed_tolerance: float = 1.0  # start/end distance counted as closed


@dataclass(frozen=True)
class BBox2D:
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)


def convert_contour_to_elements(points: Sequence[Tuple[float, float]]) -> Optional[Chain]:
    """Closed line chain through ``points``; None for fewer than 3 points."""
    if not points or len(points) < 3:
        return None
    pts = [Point2(float(p[0]), float(p[1])) for p in points]
    return [LineSegment(pts[i], pts[(i + 1) % len(pts)]) for i in range(len(pts))]


def is_chain_closed(chain: Chain, tolerance: float = 1.0) -> bool:
    if not chain:
        return False
    return chain[0].start.distance_to(chain[-1].end) < tolerance


def calculate_chain_area(chain: Chain) -> float:
    """Signed area, positive for counter-clockwise loops.

    Lines contribute the shoelace term; arcs add the circular segment
    between chord and arc, ``r^2 (theta - sin theta) / 2``.
    """
    area = 0.0
    for el in chain:
        if isinstance(el, CircleSegment):
            area += math.copysign(math.pi * el.radius * el.radius, el.direction)
            continue
        area += (el.start.x * el.end.y - el.end.x * el.start.y) / 2.0
        if isinstance(el, ArcSegment):
            theta = el.sweep()
            area += el.radius * el.radius * (theta - math.sin(theta)) / 2.0
    return area


def calculate_chain_perimeter(chain: Chain) -> float:
    return sum(el.length() for el in chain)


def calculate_chain_bbox(chain: Chain) -> Optional[BBox2D]:
    """Tight axis-aligned bounds of a chain; None for an empty chain."""
    if not chain:
        return None
    xs: List[float] = []
    ys: List[float] = []
    for el in chain:
        if isinstance(el, CircleSegment):
            xs.extend((el.center.x - el.radius, el.center.x + el.radius))
            ys.extend((el.center.y - el.radius, el.center.y + el.radius))
            continue
        xs.extend((el.start.x, el.end.x))
        ys.extend((el.start.y, el.end.y))
        if isinstance(el, ArcSegment) and el.sweep() == 0.0:
            # Coincident endpoints are drawn as a full turn.
            xs.extend((el.center.x - el.radius, el.center.x + el.radius))
            ys.extend((el.center.y - el.radius, el.center.y + el.radius))
        elif isinstance(el, ArcSegment):
            for angle in _crossed_axis_angles(el):
                xs.append(el.center.x + el.radius * math.cos(angle))
                ys.append(el.center.y + el.radius * math.sin(angle))
    return BBox2D(min(xs), max(xs), min(ys), max(ys))


def reverse_chain(chain: Chain) -> Chain:
    """Same loop travelled the other way; arcs flip their direction."""
    return [el.reversed() for el in reversed(chain)]


def build_all_chains(segments: Sequence[Segment], config: Optional[ChainConfig] = None) -> List[Chain]:
    """Group segments into maximal connected start->end paths.

    Greedy: the first unused segment seeds a chain, which is extended by
    the first unused segment whose start matches the chain's last end.
    Segment direction is never reversed here. Each chain grows at most
    ``len(segments)`` times. Circles form single-element chains.
    """
    if config is None:
        config = ChainConfig()
    tol = config.match_tolerance

    def points_equal(p1: Point2, p2: Point2) -> bool:
        return abs(p1.x - p2.x) < tol and abs(p1.y - p2.y) < tol

    chains: List[Chain] = []
    used = [False] * len(segments)
    max_iterations = len(segments)

    for seed_idx, seed in enumerate(segments):
        if used[seed_idx]:
            continue
        used[seed_idx] = True
        chain: Chain = [seed]
        if isinstance(seed, CircleSegment):
            chains.append(chain)
            continue

        last_point = seed.end
        for _ in range(max_iterations):
            next_idx = None
            for j, candidate in enumerate(segments):
                if used[j] or isinstance(candidate, CircleSegment):
                    continue
                if points_equal(last_point, candidate.start):
                    next_idx = j
                    break
            if next_idx is None:
                break
            used[next_idx] = True
            chain.append(segments[next_idx])
            last_point = segments[next_idx].end

        chains.append(chain)

    logger.debug("Built %d chain(s) from %d segment(s)", len(chains), len(segments))
    return chains


def merge_chains_into_contours(chains: Sequence[Chain], config: Optional[ChainConfig] = None) -> List[Chain]:
    """Stitch chains into closed contours.

    The longest remaining chain seeds each contour. It is extended by the
    globally nearest endpoint pair among all remaining chains (modes tried
    in the order end-start, end-end, start-end, start-start; the candidate
    is reversed when needed) until it closes or nothing lies within
    ``merge_threshold``. Gaps above ``bridge_tolerance`` get a bridging
    line, and an open result is closed with one final line.
    """
    if config is None:
        config = ChainConfig()
    # Full circles are complete loops on their own.
    contours: List[Chain] = [list(c) for c in chains if c and _is_circle_chain(c)]
    pool: List[Chain] = [list(c) for c in chains if c and not _is_circle_chain(c)]

    while pool:
        pool.sort(key=len, reverse=True)
        current = pool.pop(0)

        while pool:
            first_point = current[0].start
            last_point = current[-1].end
            if first_point.distance_to(last_point) < config.closed_tolerance:
                break

            best_idx, best_mode, best_dist = _nearest_candidate(
                pool, first_point, last_point, config.merge_threshold,
            )
            if best_idx is None:
                break

            candidate = pool.pop(best_idx)
            current = _splice(current, candidate, best_mode, best_dist, config.bridge_tolerance)

        gap = current[0].start.distance_to(current[-1].end)
        if config.closed_tolerance < gap < config.merge_threshold:
            current.append(LineSegment(current[-1].end, current[0].start))
        elif gap >= config.merge_threshold:
            logger.warning("Contour left open: endpoint gap %.2f exceeds merge threshold", gap)
        contours.append(current)

    logger.debug("Merged %d chain(s) into %d contour(s)", len(chains), len(contours))
    return contours


def is_point_in_polygon(point: Tuple[float, float], polygon: Sequence[Tuple[float, float]]) -> bool:
    """Even-odd ray casting test."""
    px, py = point[0], point[1]
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i][0], polygon[i][1]
        xj, yj = polygon[j][0], polygon[j][1]
        if (yi > py) != (yj > py) and px < (xj - xi) * (py - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def is_point_inside_chain(point: Tuple[float, float], chain: Chain) -> bool:
    """Point test against the polygon of element starts plus the last end."""
    if not chain:
        return False
    if _is_circle_chain(chain):
        circle = chain[0]
        return math.hypot(point[0] - circle.center.x, point[1] - circle.center.y) < circle.radius
    polygon = [el.start for el in chain]
    polygon.append(chain[-1].end)
    return is_point_in_polygon(point, polygon)


def is_chain_inside_outer(inner: Chain, outer: Chain) -> bool:
    """Nesting test using the first point of ``inner``."""
    if not inner:
        return False
    return is_point_inside_chain(inner[0].start, outer)


# ─── Internal helpers ────────────────────────────────────────────────────────

def _is_circle_chain(chain: Chain) -> bool:
    return len(chain) == 1 and isinstance(chain[0], CircleSegment)


def _nearest_candidate(
    pool: List[Chain],
    first_point: Point2,
    last_point: Point2,
    threshold: float,
) -> Tuple[Optional[int], str, float]:
    """Index, mode and distance of the closest endpoint pair under threshold."""
    best_idx = None
    best_mode = ""
    best_dist = threshold
    for i, cand in enumerate(pool):
        cand_start = cand[0].start
        cand_end = cand[-1].end
        for mode, dist in (
            ("end-start", last_point.distance_to(cand_start)),
            ("end-end", last_point.distance_to(cand_end)),
            ("start-end", first_point.distance_to(cand_end)),
            ("start-start", first_point.distance_to(cand_start)),
        ):
            if dist < best_dist:
                best_idx, best_mode, best_dist = i, mode, dist
    return best_idx, best_mode, best_dist


def _splice(current: Chain, cand: Chain, mode: str, dist: float, bridge_tolerance: float) -> Chain:
    """Join ``cand`` onto ``current`` according to the matched endpoints."""
    bridge = dist > bridge_tolerance
    if mode == "end-start":
        head = current + ([LineSegment(current[-1].end, cand[0].start)] if bridge else [])
        return head + cand
    if mode == "end-end":
        head = current + ([LineSegment(current[-1].end, cand[-1].end)] if bridge else [])
        return head + reverse_chain(cand)
    if mode == "start-end":
        tail = ([LineSegment(cand[-1].end, current[0].start)] if bridge else []) + current
        return cand + tail
    tail = ([LineSegment(cand[0].start, current[0].start)] if bridge else []) + current
    return reverse_chain(cand) + tail


def _crossed_axis_angles(arc: ArcSegment) -> List[float]:
    """Multiples of pi/2 passed strictly inside the arc's sweep."""
    start = arc.start_angle()
    sweep = arc.sweep()
    if sweep == 0.0:
        return []
    lo, hi = (start, start + sweep) if sweep > 0 else (start + sweep, start)
    angles = []
    k = math.ceil(lo / (math.pi / 2.0))
    while k * (math.pi / 2.0) < hi:
        angles.append(k * (math.pi / 2.0))
        k += 1
    return angles

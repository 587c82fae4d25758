"""
Discretization of curved contour elements into line segments.

BSP-based CSG only understands flat polygons, so arcs and circles are
approximated by chords of bounded length before extrusion.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from contour_elements import ArcSegment, Chain, CircleSegment, LineSegment, Point2

TWO_PI = 2.0 * math.pi


@dataclass
class DiscretizeConfig:
    max_chord: float = 5.0  # longest chord length (model units)
    min_arc_segments: int = 4
    min_circle_segments: int = 12


def discretize_arc(arc: ArcSegment, config: Optional[DiscretizeConfig] = None) -> List[LineSegment]:
    """Chords along ``arc`` from its start point, honouring its direction.

    Unlike the signed sweep used for areas, a zero sweep here means a full
    turn (start and end coincide).
    """
    if config is None:
        config = DiscretizeConfig()
    if arc.center is None or not arc.radius:
        return []

    cx, cy, r = arc.center.x, arc.center.y, arc.radius
    start_angle = arc.start_angle()
    delta = arc.end_angle() - start_angle
    if arc.direction > 0:
        if delta <= 0:
            delta += TWO_PI
    elif delta >= 0:
        delta -= TWO_PI

    count = max(config.min_arc_segments, math.ceil(abs(delta * r) / config.max_chord))
    segments = []
    prev = arc.start
    for i in range(1, count + 1):
        angle = start_angle + delta * i / count
        point = Point2(cx + r * math.cos(angle), cy + r * math.sin(angle))
        segments.append(LineSegment(prev, point))
        prev = point
    return segments


def discretize_circle(circle: CircleSegment, config: Optional[DiscretizeConfig] = None) -> List[LineSegment]:
    """Closed polygon of chords starting at angle zero."""
    if config is None:
        config = DiscretizeConfig()
    if circle.center is None or not circle.radius:
        return []

    cx, cy, r = circle.center.x, circle.center.y, circle.radius
    count = max(config.min_circle_segments, math.ceil(TWO_PI * r / config.max_chord))
    sign = 1.0 if circle.direction >= 0 else -1.0
    segments = []
    prev = Point2(cx + r, cy)
    for i in range(1, count + 1):
        angle = sign * TWO_PI * i / count
        point = Point2(cx + r * math.cos(angle), cy + r * math.sin(angle))
        segments.append(LineSegment(prev, point))
        prev = point
    return segments


def discretize_chain(chain: Chain, config: Optional[DiscretizeConfig] = None) -> List[LineSegment]:
    """Replace every arc and circle of ``chain`` with line segments."""
    lines: List[LineSegment] = []
    for el in chain:
        if isinstance(el, LineSegment):
            lines.append(el)
        elif isinstance(el, ArcSegment):
            lines.extend(discretize_arc(el, config))
        elif isinstance(el, CircleSegment):
            lines.extend(discretize_circle(el, config))
    return lines


def chain_to_points(chain: Chain, config: Optional[DiscretizeConfig] = None) -> List[Tuple[float, float]]:
    """Vertex ring (without the closing duplicate) of a discretized chain."""
    points: List[Tuple[float, float]] = []
    for seg in discretize_chain(chain, config):
        p = (seg.start.x, seg.start.y)
        if not points or _far(points[-1], p):
            points.append(p)
    if len(points) > 1 and not _far(points[0], points[-1]):
        points.pop()
    return points


def _far(a: Tuple[float, float], b: Tuple[float, float], eps: float = 1e-9) -> bool:
    return abs(a[0] - b[0]) > eps or abs(a[1] - b[1]) > eps

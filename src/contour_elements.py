"""
Planar contour elements: lines, arcs and full circles.

Panel outlines and cut trajectories arrive as loose records
``{type, start, end, center?, radius?, direction?}``. They are parsed into
frozen dataclasses here so every consumer can dispatch on the concrete
type. Arc ``direction > 0`` means counter-clockwise.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Union

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi


class Point2(NamedTuple):
    x: float
    y: float

    def distance_to(self, other: "Point2") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class LineSegment:
    start: Point2
    end: Point2

    def reversed(self) -> "LineSegment":
        return LineSegment(self.end, self.start)

    def length(self) -> float:
        return self.start.distance_to(self.end)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "line", "start": _point_dict(self.start), "end": _point_dict(self.end)}


@dataclass(frozen=True)
class ArcSegment:
    start: Point2
    end: Point2
    center: Point2
    radius: float
    direction: float = 1.0

    def start_angle(self) -> float:
        return math.atan2(self.start.y - self.center.y, self.start.x - self.center.x)

    def end_angle(self) -> float:
        return math.atan2(self.end.y - self.center.y, self.end.x - self.center.x)

    def sweep(self) -> float:
        """Signed sweep angle; positive when travelling counter-clockwise."""
        angle = self.end_angle() - self.start_angle()
        if self.direction < 0 and angle > 0:
            angle -= TWO_PI
        if self.direction > 0 and angle < 0:
            angle += TWO_PI
        return angle

    def length(self) -> float:
        return abs(self.sweep()) * self.radius

    def reversed(self) -> "ArcSegment":
        return ArcSegment(self.end, self.start, self.center, self.radius, -self.direction)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "arc",
            "start": _point_dict(self.start),
            "end": _point_dict(self.end),
            "center": _point_dict(self.center),
            "radius": self.radius,
            "direction": self.direction,
        }


@dataclass(frozen=True)
class CircleSegment:
    """Full circle; starts and ends at angle zero."""
    center: Point2
    radius: float
    direction: float = 1.0

    @property
    def start(self) -> Point2:
        return Point2(self.center.x + self.radius, self.center.y)

    @property
    def end(self) -> Point2:
        return self.start

    def length(self) -> float:
        return TWO_PI * self.radius

    def reversed(self) -> "CircleSegment":
        return CircleSegment(self.center, self.radius, -self.direction)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "circle",
            "start": _point_dict(self.start),
            "end": _point_dict(self.end),
            "center": _point_dict(self.center),
            "radius": self.radius,
            "direction": self.direction,
        }


Segment = Union[LineSegment, ArcSegment, CircleSegment]
Chain = List[Segment]


def segment_from_dict(record: Dict[str, Any]) -> Optional[Segment]:
    """Parse one loose contour record.

    Returns None (and logs why) for records that cannot form geometry:
    unknown type, missing or non-numeric endpoints, arcs or circles without
    a center or a positive radius, zero-length lines.
    """
    if not isinstance(record, dict):
        logger.warning("Skipping non-mapping contour record: %r", record)
        return None
    kind = record.get("type")
    if kind == "line":
        start, end = _point(record.get("start")), _point(record.get("end"))
        if start is None or end is None:
            logger.warning("Skipping line without endpoints: %r", record)
            return None
        if start == end:
            logger.debug("Skipping zero-length line at %r", start)
            return None
        return LineSegment(start, end)

    if kind in ("arc", "circle"):
        center = _point(record.get("center"))
        radius = _number(record.get("radius"))
        if center is None or radius is None or radius <= 0:
            logger.warning("Skipping %s without center/radius: %r", kind, record)
            return None
        direction = _number(record.get("direction")) or 1.0
        if kind == "circle":
            return CircleSegment(center, radius, direction)
        start, end = _point(record.get("start")), _point(record.get("end"))
        if start is None or end is None:
            logger.warning("Skipping arc without endpoints: %r", record)
            return None
        return ArcSegment(start, end, center, radius, direction)

    logger.warning("Skipping unknown contour element type %r", kind)
    return None


def segments_from_dicts(records: List[Dict[str, Any]]) -> List[Segment]:
    """Parse records, dropping the ones that cannot form geometry."""
    segments = []
    for record in records or []:
        segment = segment_from_dict(record)
        if segment is not None:
            segments.append(segment)
    return segments


# ─── Internal helpers ────────────────────────────────────────────────────────

def _point(value: Any) -> Optional[Point2]:
    """Point from ``{x, y}`` or ``[x, y]``; None when malformed."""
    if value is None:
        return None
    if isinstance(value, dict):
        x, y = _number(value.get("x")), _number(value.get("y"))
    else:
        try:
            x, y = _number(value[0]), _number(value[1])
        except (TypeError, IndexError, KeyError):
            return None
    if x is None or y is None:
        return None
    return Point2(x, y)


def _number(value: Any) -> Optional[float]:
    """Finite float, or None for missing or non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _point_dict(p: Point2) -> Dict[str, float]:
    return {"x": p.x, "y": p.y}

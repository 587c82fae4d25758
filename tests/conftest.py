"""
Shared test fixtures for CSG and contour tests.
"""
import json
import sys
from pathlib import Path

import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from contour_chains import convert_contour_to_elements
from contour_elements import ArcSegment, CircleSegment, LineSegment, Point2
from csg import CSGSolid


@pytest.fixture
def unit_cube():
    """Axis-aligned cube [0,1]^3."""
    return CSGSolid.box((0.5, 0.5, 0.5), (1.0, 1.0, 1.0))


@pytest.fixture
def shifted_cube():
    """Unit cube offset by 0.5 along X."""
    return CSGSolid.box((1.0, 0.5, 0.5), (1.0, 1.0, 1.0))


@pytest.fixture
def box_mesh():
    """A 100x100x100mm trimesh box centred at the origin."""
    return trimesh.creation.box(extents=[100, 100, 100])


@pytest.fixture
def square_chain():
    """Counter-clockwise 100x100 square from (0,0)."""
    return convert_contour_to_elements([(0, 0), (100, 0), (100, 100), (0, 100)])


@pytest.fixture
def rounded_chain():
    """200x100 outline whose right edge is a CCW half circle of radius 50."""
    return [
        LineSegment(Point2(0, 0), Point2(150, 0)),
        ArcSegment(Point2(150, 0), Point2(150, 100), Point2(150, 50), 50.0, 1.0),
        LineSegment(Point2(150, 100), Point2(0, 100)),
        LineSegment(Point2(0, 100), Point2(0, 0)),
    ]


@pytest.fixture
def hole_circle():
    return CircleSegment(Point2(50, 50), 10.0)


@pytest.fixture
def panel_record():
    """600x400 panel, 18mm thick, with a round hole, a groove and a pocket."""
    return {
        "id": "side_left",
        "size": {"x": 600, "y": 400, "z": 18},
        "material": {"thickness": 18},
        "contourElements": [
            {"type": "line", "start": {"x": 0, "y": 0}, "end": {"x": 600, "y": 0}},
            {"type": "line", "start": {"x": 600, "y": 0}, "end": {"x": 600, "y": 400}},
            {"type": "line", "start": {"x": 600, "y": 400}, "end": {"x": 0, "y": 400}},
            {"type": "line", "start": {"x": 0, "y": 400}, "end": {"x": 0, "y": 0}},
            {"type": "circle", "center": {"x": 300, "y": 200}, "radius": 20},
        ],
        "cuts": [
            {
                "name": "back_groove",
                "cutType": "freeForm",
                "side": "back",
                "depth": 6,
                "width": 8,
                "trajectory": [
                    {"type": "line", "start": {"x": 50, "y": 20}, "end": {"x": 550, "y": 20}},
                ],
            },
            {
                "name": "pocket",
                "cutType": "extrusion",
                "depth": 4,
                "contour": [
                    {"type": "line", "start": {"x": 100, "y": 300}, "end": {"x": 160, "y": 300}},
                    {"type": "line", "start": {"x": 160, "y": 300}, "end": {"x": 160, "y": 360}},
                    {"type": "line", "start": {"x": 160, "y": 360}, "end": {"x": 100, "y": 360}},
                ],
            },
        ],
    }


@pytest.fixture
def panel_json_file(tmp_path, panel_record):
    path = tmp_path / "panels.json"
    path.write_text(json.dumps({"panels": [panel_record]}))
    return str(path)


#!/usr/bin/env python3
"""
Build the machined solid of one or more panels.

Reads panel records (JSON: a single panel object, a list of panels, or
``{"panels": [...]}``), resolves each contour, subtracts grooves and
pocket cuts, and prints a per-panel summary. Optionally writes the
resulting meshes as STL.

Usage:
    python scripts/cut_panel.py --input panels.json
    python scripts/cut_panel.py --input panels.json --stl out_dir/ --max-chord 2
"""
import sys
import json
import argparse
import logging
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from contour_discretize import DiscretizeConfig
from panel_solid import CutterConfig, Panel, build_panel_geometry


def _load_panels(path: Path):
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict) and "panels" in data:
        data = data["panels"]
    if isinstance(data, dict):
        data = [data]
    return [Panel.from_dict(record) for record in data]


def main():
    parser = argparse.ArgumentParser(
        description="Build CSG-machined panel solids from contour and cut records.",
    )
    parser.add_argument(
        "--input", required=True,
        help="Path to a panel JSON file",
    )
    parser.add_argument(
        "--stl", default=None,
        help="Directory for one STL per panel (default: no export)",
    )
    parser.add_argument(
        "--max-chord", type=float, default=5.0,
        help="Longest chord when discretizing arcs and circles (default: 5)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    # Logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(args.input).resolve()
    if not input_path.is_file():
        parser.error(f"Input file not found: {input_path}")
    if args.max_chord <= 0:
        parser.error("--max-chord must be positive")

    try:
        panels = _load_panels(input_path)
    except (json.JSONDecodeError, IndexError, KeyError, TypeError, ValueError) as exc:
        print(f"ERROR: cannot read panels from {input_path}: {exc}", file=sys.stderr)
        return 1

    config = CutterConfig(discretize=DiscretizeConfig(max_chord=args.max_chord))
    stl_dir = Path(args.stl) if args.stl else None
    if stl_dir is not None:
        stl_dir.mkdir(parents=True, exist_ok=True)

    for panel in panels:
        geometry = build_panel_geometry(panel, config)
        solid = geometry.solid
        source = "bbox fallback" if geometry.body.used_fallback else "contour"
        print(f"Panel {panel.id}:")
        print(f"  Body:     {source}, {len(geometry.body.solid.polygons)} polygons")
        print(f"  Cuts:     {geometry.cuts.cuts_applied} applied, {geometry.cuts.cuts_failed} failed")
        print(f"  Polygons: {len(solid.polygons)}")
        print(f"  Volume:   {solid.volume():.2f}")

        if stl_dir is not None and not solid.is_empty:
            out_path = stl_dir / f"{panel.id or 'panel'}.stl"
            solid.to_trimesh().export(str(out_path))
            print(f"  STL:      {out_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

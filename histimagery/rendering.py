"""
Handles rendering of availability grids: console glyph maps and GeoJSON export.
"""
import json
import sys
from typing import Any, Dict, Iterable, List, Optional, TextIO

from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import unary_union

from histimagery.data_types import AvailabilityGrid, format_date
from histimagery.logging_config import get_logger
from histimagery.tile_geometry import GridFrame

logger = get_logger(__name__)

# Two grid rows share one console line: (top cell, bottom cell) -> glyph
GLYPHS = {
    (True, True): '█',
    (True, False): '▀',
    (True, None): '▀',
    (False, True): '▄',
    (False, False): ':',
    (False, None): '˙',
    (None, True): '▄',
    (None, False): '.',
    (None, None): ' ',
}


def map_lines(grid: AvailabilityGrid) -> List[str]:
    """Glyph lines for a grid, two rows per line. An odd last row is drawn against unknown."""
    lines = []
    for y in range(0, grid.height, 2):
        top = grid.row(y)
        bottom = grid.row(y + 1) if y + 1 < grid.height else [None] * grid.width
        lines.append(''.join(GLYPHS[(t, b)] for t, b in zip(top, bottom)))
    return lines


def draw_map(grid: AvailabilityGrid, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    for line in map_lines(grid):
        out.write(line + '\n')


def draw_grid_option(grid: AvailabilityGrid, out: Optional[TextIO] = None, header: Optional[str] = None) -> None:
    """
    Draw one grid under a blank line and an underlined header.

    Args:
        grid: Grid to draw
        out: Text sink
        header: Header text (default 'Tile availability on YYYY-MM-DD')
    """
    out = out or sys.stdout
    if header is None:
        header = f"Tile availability on {grid.display_value}"
    out.write('\n' + header + '\n')
    out.write('=' * len(header) + '\n')
    out.write('\n')
    draw_map(grid, out)


def _polygons(geometry) -> List[Polygon]:
    if isinstance(geometry, Polygon):
        return [] if geometry.is_empty else [geometry]
    if isinstance(geometry, MultiPolygon):
        return [p for p in geometry.geoms if not p.is_empty]
    # GeometryCollection from a degenerate union
    return [p for g in getattr(geometry, 'geoms', []) for p in _polygons(g)]


def grid_polygons(grid: AvailabilityGrid, frame: GridFrame) -> List[Polygon]:
    """Merged WGS84 polygons covering every available cell of a grid."""
    tiles = [frame.tile_at(r, c).to_polygon() for r, c in grid.available_cells()]
    if not tiles:
        return []
    merged = unary_union(tiles)
    return [orient(polygon, sign=1.0) for polygon in _polygons(merged)]


def build_feature_collection(grids: Iterable[AvailabilityGrid], frame: GridFrame) -> Dict[str, Any]:
    """
    GeoJSON FeatureCollection with one Polygon feature per merged area per date.

    Grids without available cells contribute nothing. Each polygon is written as its exterior ring only; holes left by unavailable
    cells inside a merged area are not emitted.
    """
    features = []
    for grid in grids:
        if not grid.has_any_tiles():
            continue
        polygons = grid_polygons(grid, frame)
        logger.debug("%s: %d merged polygon(s)", grid.display_value, len(polygons))
        for polygon in polygons:
            features.append({
                'type': 'Feature',
                'properties': {'date': format_date(grid.date)},
                'geometry': {
                    'type': 'Polygon',
                    'coordinates': [[list(point) for point in polygon.exterior.coords]],
                },
            })

    return {'type': 'FeatureCollection', 'features': features}


def write_geojson(grids: Iterable[AvailabilityGrid], frame: GridFrame, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    json.dump(build_feature_collection(grids, frame), out, indent=2)
    out.write('\n')

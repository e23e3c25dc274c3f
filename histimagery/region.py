"""
Polygonal area of interest (AOI) in WGS84.

Regions are rings of (lon, lat) points. They can be built from:
- a "lat,lon+lat,lon+..." string (the CLI --region format)
- lower-left / upper-right corners
- a GeoJSON Polygon, MultiPolygon, Feature or FeatureCollection (first polygon wins)

Longitudes are unwrapped before any tile math so that rings crossing the
antimeridian stay continuous (e.g. 179 -> -179 becomes 179 -> 181).
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union

from shapely.geometry import Polygon

LonLat = Tuple[float, float]


def parse_lat_lon(text: str) -> LonLat:
    """
    Parse "lat,lon" into a (lon, lat) tuple.

    Raises:
        ValueError: if the text is not two comma-separated numbers
    """
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2:
        raise ValueError(f"Expected 'lat,lon' but got '{text}'")
    lat, lon = float(parts[0]), float(parts[1])
    return lon, lat


def wrap_longitude(lon: float) -> float:
    """Longitude folded into [-180, 180)."""
    return ((lon + 180.0) % 360.0) - 180.0


@dataclass(frozen=True)
class GeoRegion:
    """
    Polygon ring in WGS84 degrees, stored as (lon, lat) without the closing point.
    """
    points: Tuple[LonLat, ...]

    @classmethod
    def from_points(cls, points: Sequence[LonLat]) -> "GeoRegion":
        pts = [(float(lon), float(lat)) for lon, lat in points]
        if len(pts) > 1 and pts[0] == pts[-1]:
            pts = pts[:-1]
        return cls(tuple(pts))

    @classmethod
    def parse(cls, text: str) -> "GeoRegion":
        """
        Parse the CLI format "lat,lon+lat,lon+lat,lon".

        Consecutive vertices are joined the short way round the globe, so an
        edge wider than 180 degrees of longitude needs intermediate vertices.
        """
        return cls.from_points([parse_lat_lon(p) for p in text.split("+") if p.strip()])

    @classmethod
    def from_corners(cls, lower_left: LonLat, upper_right: LonLat) -> "GeoRegion":
        """
        Rectangle from its south-west and north-east corners, both (lon, lat).

        The rectangle always runs eastward from the lower-left longitude, so a
        lower-left longitude east of the upper-right longitude means it crosses
        the antimeridian. Each side gets a midpoint so that no edge spans more
        than 180 degrees and unwrapping keeps the intended direction.
        """
        west, south = lower_left
        east, north = upper_right
        span = east - west if east >= west else east + 360.0 - west
        mid = wrap_longitude(west + span / 2.0)
        return cls.from_points([
            (west, south), (mid, south), (east, south),
            (east, north), (mid, north), (west, north),
        ])

    @classmethod
    def from_geojson(cls, source: Union[str, Path, Dict[str, Any]]) -> "GeoRegion":
        """
        Region from a GeoJSON object or file path.

        Raises:
            ValueError: if no polygon can be found
        """
        if isinstance(source, dict):
            obj = source
        else:
            obj = json.loads(Path(source).read_text(encoding="utf-8"))
        return cls.from_points(_first_polygon_ring(obj))

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    def unwrapped_ring(self) -> List[LonLat]:
        """
        Ring with continuous longitudes.

        Each edge takes the short way round: consecutive vertices never differ by
        more than 180 degrees of longitude. The westernmost vertex lies in
        [-180, 180).
        """
        if not self.points:
            return []

        ring = [self.points[0]]
        for lon, lat in self.points[1:]:
            prev_lon = ring[-1][0]
            while lon - prev_lon > 180.0:
                lon -= 360.0
            while prev_lon - lon > 180.0:
                lon += 360.0
            ring.append((lon, lat))

        west = min(lon for lon, _ in ring)
        shift = 0.0
        while west + shift < -180.0:
            shift += 360.0
        while west + shift >= 180.0:
            shift -= 360.0
        return [(lon + shift, lat) for lon, lat in ring]

    def longitude_span(self) -> float:
        ring = self.unwrapped_ring()
        if not ring:
            return 0.0
        lons = [lon for lon, _ in ring]
        return max(lons) - min(lons)

    def to_polygon(self) -> Polygon:
        """Shapely polygon of the unwrapped ring (lon, lat)."""
        return Polygon(self.unwrapped_ring())


def _first_polygon_ring(obj: Dict[str, Any]) -> List[LonLat]:
    kind = obj.get("type")
    if kind == "FeatureCollection":
        for feature in obj.get("features", []):
            try:
                return _first_polygon_ring(feature)
            except ValueError:
                continue
        raise ValueError("FeatureCollection contains no polygon")
    if kind == "Feature":
        geometry = obj.get("geometry")
        if not geometry:
            raise ValueError("Feature has no geometry")
        return _first_polygon_ring(geometry)
    if kind == "Polygon":
        return [(c[0], c[1]) for c in obj["coordinates"][0]]
    if kind == "MultiPolygon":
        return [(c[0], c[1]) for c in obj["coordinates"][0][0]]
    raise ValueError(f"Unsupported GeoJSON type: {kind}")

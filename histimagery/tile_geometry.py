"""
Tile geometry for the two imagery tile systems.

This module handles all tile-related geometric calculations:
- Tile coordinates for the geodetic quadtree (Keyhole) and Web Mercator (Esri) systems
- Conversion between Web Mercator metres and WGS84 degrees
- Enumerating the tiles that cover a polygonal region at a zoom level
- Bounding statistics of those tiles, with column wraparound at the antimeridian
- Mapping tiles to availability grid indices and back

TILE SYSTEMS:
    KeyholeTile: the square lon/lat -180..180 split into 2^level x 2^level cells.
                 Row 0 is the southernmost row.
    EsriTile:    the Web Mercator square +/-20037508.34 m split into 2^level x 2^level
                 cells. Row 0 is the northernmost row.

Columns always wrap: column c and c + 2^level are the same tile.
"""

import math
from dataclasses import dataclass
from typing import Iterator, Tuple, Type

from shapely.geometry import Polygon, box
from shapely.prepared import prep

from histimagery.errors import RegionValidationError
from histimagery.region import GeoRegion


EARTH_RADIUS_M = 6378137.0
WEB_MERCATOR_EXTENT = math.pi * EARTH_RADIUS_M  # 20037508.342789244
MAX_MERCATOR_LATITUDE = 85.0511287798066


def mod(value: int, modulus: int) -> int:
    """Non-negative remainder, always in [0, modulus)."""
    return value % modulus


def wgs84_to_web_mercator(lon: float, lat: float) -> Tuple[float, float]:
    """
    Convert WGS84 degrees to Web Mercator (EPSG:3857) metres.

    Latitude is clamped to the Web Mercator limit (+/-85.0511 degrees).
    Longitude is not wrapped, so unwrapped rings stay continuous.
    """
    lat = max(-MAX_MERCATOR_LATITUDE, min(MAX_MERCATOR_LATITUDE, lat))
    x = math.radians(lon) * EARTH_RADIUS_M
    y = math.log(math.tan(math.pi / 4.0 + math.radians(lat) / 2.0)) * EARTH_RADIUS_M
    return x, y


def web_mercator_to_wgs84(x: float, y: float) -> Tuple[float, float]:
    """Convert Web Mercator (EPSG:3857) metres to WGS84 (lon, lat) degrees."""
    lon = math.degrees(x / EARTH_RADIUS_M)
    lat = math.degrees(2.0 * math.atan(math.exp(y / EARTH_RADIUS_M)) - math.pi / 2.0)
    return lon, lat


@dataclass(frozen=True)
class Tile:
    """
    A tile address (row, column, level).

    The column is reduced modulo 2^level on construction, so tiles that differ
    only by whole wraps of the world are equal and hash the same.
    """
    row: int
    column: int
    level: int

    def __post_init__(self):
        if self.level < 0:
            raise ValueError(f"Invalid tile level: {self.level}")
        if not 0 <= self.row < self.tiles_per_side:
            raise ValueError(f"Row {self.row} out of range for level {self.level}")
        object.__setattr__(self, "column", mod(self.column, self.tiles_per_side))

    @classmethod
    def create(cls, row: int, column: int, level: int) -> "Tile":
        return cls(int(row), int(column), int(level))

    @property
    def tiles_per_side(self) -> int:
        return 1 << self.level

    # Subclasses define the native CRS
    def native_bounds(self) -> Tuple[float, float, float, float]:
        """(xmin, ymin, xmax, ymax) in the tile system's native CRS."""
        raise NotImplementedError

    def native_to_wgs84(self, x: float, y: float) -> Tuple[float, float]:
        raise NotImplementedError

    @classmethod
    def to_tile_space(cls, lon: float, lat: float, level: int) -> Tuple[float, float]:
        """
        Fractional (column, row) of a geodetic point at `level`.

        Row grows in the same direction as the tile system's row numbers.
        Longitude is not wrapped.
        """
        raise NotImplementedError

    def _corner(self, x: float, y: float) -> Tuple[float, float]:
        lon, lat = self.native_to_wgs84(x, y)
        return lon, max(-90.0, min(90.0, lat))

    @property
    def lower_left(self) -> Tuple[float, float]:
        xmin, ymin, _, _ = self.native_bounds()
        return self._corner(xmin, ymin)

    @property
    def upper_left(self) -> Tuple[float, float]:
        xmin, _, _, ymax = self.native_bounds()
        return self._corner(xmin, ymax)

    @property
    def upper_right(self) -> Tuple[float, float]:
        _, _, xmax, ymax = self.native_bounds()
        return self._corner(xmax, ymax)

    @property
    def lower_right(self) -> Tuple[float, float]:
        _, ymin, xmax, _ = self.native_bounds()
        return self._corner(xmax, ymin)

    def geodetic_ring(self):
        """Closed counter-clockwise ring of (lon, lat) corners."""
        return [self.lower_left, self.lower_right, self.upper_right, self.upper_left, self.lower_left]

    def to_polygon(self) -> Polygon:
        """Tile outline as a shapely polygon in WGS84 (lon, lat)."""
        return Polygon(self.geodetic_ring())


class KeyholeTile(Tile):
    """Geodetic quadtree tile; native CRS is lon/lat degrees."""

    def native_bounds(self) -> Tuple[float, float, float, float]:
        size = 360.0 / self.tiles_per_side
        west = -180.0 + self.column * size
        south = -180.0 + self.row * size
        return (west, south, west + size, south + size)

    def native_to_wgs84(self, x: float, y: float) -> Tuple[float, float]:
        return x, y

    @classmethod
    def to_tile_space(cls, lon: float, lat: float, level: int) -> Tuple[float, float]:
        n = 1 << level
        return (lon + 180.0) / 360.0 * n, (lat + 180.0) / 360.0 * n


class EsriTile(Tile):
    """Web Mercator XYZ tile; native CRS is EPSG:3857 metres."""

    def native_bounds(self) -> Tuple[float, float, float, float]:
        size = 2.0 * WEB_MERCATOR_EXTENT / self.tiles_per_side
        xmin = -WEB_MERCATOR_EXTENT + self.column * size
        ymax = WEB_MERCATOR_EXTENT - self.row * size
        return (xmin, ymax - size, xmin + size, ymax)

    def native_to_wgs84(self, x: float, y: float) -> Tuple[float, float]:
        return web_mercator_to_wgs84(x, y)

    @classmethod
    def to_tile_space(cls, lon: float, lat: float, level: int) -> Tuple[float, float]:
        n = 1 << level
        x, y = wgs84_to_web_mercator(lon, lat)
        span = 2.0 * WEB_MERCATOR_EXTENT
        return (x + WEB_MERCATOR_EXTENT) / span * n, (WEB_MERCATOR_EXTENT - y) / span * n


@dataclass(frozen=True)
class TileStats:
    """
    Tile-aligned bounding box of a region at one zoom level.

    min_column is always in [0, 2^level). When the region crosses the antimeridian,
    max_column continues past 2^level - 1 so that
    num_columns == max_column - min_column + 1 still holds.
    """
    min_row: int
    max_row: int
    min_column: int
    max_column: int

    @property
    def num_rows(self) -> int:
        return self.max_row - self.min_row + 1

    @property
    def num_columns(self) -> int:
        return self.max_column - self.min_column + 1


class TileCoverage:
    """
    Lazy, restartable sequence of the tiles intersecting a region.

    Each iteration recomputes the tiles; nothing is cached. A tile is included
    when its cell shares interior area with the region (edge contact is not enough).
    """

    def __init__(self, region: GeoRegion, level: int, tile_cls: Type[Tile]):
        if level < 0:
            raise ValueError(f"Invalid zoom level: {level}")
        self.region = region
        self.level = level
        self.tile_cls = tile_cls

    def __iter__(self) -> Iterator[Tile]:
        for _, tile in self.iter_unwrapped():
            yield tile

    def iter_unwrapped(self) -> Iterator[Tuple[int, Tile]]:
        """Yield (unwrapped_column, tile) pairs; tile.column is the wrapped column."""
        n = 1 << self.level
        ring = [self.tile_cls.to_tile_space(lon, lat, self.level) for lon, lat in self.region.unwrapped_ring()]
        if len(ring) < 3:
            return

        polygon = Polygon(ring)
        if polygon.is_empty or polygon.area == 0:
            return
        prepared = prep(polygon)

        minx, miny, maxx, maxy = polygon.bounds
        first_col = math.floor(minx)
        last_col = min(max(first_col, math.ceil(maxx) - 1), first_col + n - 1)
        first_row = max(0, math.floor(miny))
        last_row = min(n - 1, math.ceil(maxy) - 1)

        for row in range(first_row, last_row + 1):
            for col in range(first_col, last_col + 1):
                cell = box(col, row, col + 1, row + 1)
                if prepared.intersects(cell) and not prepared.touches(cell):
                    yield col, self.tile_cls.create(row, col, self.level)


def tiles_covering(region: GeoRegion, level: int, tile_cls: Type[Tile]) -> TileCoverage:
    """
    Tiles of `tile_cls` intersecting `region` at `level`.

    Args:
        region: Polygonal area of interest
        level: Zoom level
        tile_cls: KeyholeTile or EsriTile

    Returns:
        A restartable lazy iterable of tiles
    """
    return TileCoverage(region, level, tile_cls)


def region_stats(region: GeoRegion, level: int, tile_cls: Type[Tile]) -> TileStats:
    """
    Bounding statistics over tiles_covering(region, level, tile_cls).

    Raises:
        RegionValidationError: if the region covers no tile at this level
    """
    n = 1 << level
    rows = []
    columns = []
    for unwrapped_column, tile in TileCoverage(region, level, tile_cls).iter_unwrapped():
        rows.append(tile.row)
        columns.append(unwrapped_column)

    if not rows:
        raise RegionValidationError(f"Region does not cover any tile at zoom level {level}")

    min_unwrapped = min(columns)
    min_column = mod(min_unwrapped, n)
    return TileStats(
        min_row=min(rows),
        max_row=max(rows),
        min_column=min_column,
        max_column=min_column + (max(columns) - min_unwrapped),
    )


@dataclass(frozen=True)
class GridFrame:
    """
    Alignment between tiles and availability grid cells.

    Grid row 0 is always the northernmost tile row:
    - top_origin=True  (Keyhole, rows grow northward): r = max_row - row
    - top_origin=False (Esri, rows grow southward):    r = row - min_row
    Grid column c = (column - min_column) mod 2^level for both.
    """
    stats: TileStats
    level: int
    tile_cls: Type[Tile]
    top_origin: bool

    @classmethod
    def for_region(cls, region: GeoRegion, level: int, tile_cls: Type[Tile], top_origin: bool) -> "GridFrame":
        return cls(region_stats(region, level, tile_cls), level, tile_cls, top_origin)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.stats.num_rows, self.stats.num_columns

    def index_of(self, tile: Tile) -> Tuple[int, int]:
        c = mod(tile.column - self.stats.min_column, 1 << self.level)
        if self.top_origin:
            r = self.stats.max_row - tile.row
        else:
            r = tile.row - self.stats.min_row
        return r, c

    def tile_at(self, r: int, c: int) -> Tile:
        row = self.stats.max_row - r if self.top_origin else self.stats.min_row + r
        column = mod(c + self.stats.min_column, 1 << self.level)
        return self.tile_cls.create(row, column, self.level)

"""
Data type definitions for imagery availability.

DATA FLOW:
    Archive client result -> DatedFact (one tile, one date, available or not)
         ->
    AvailabilityGrid (one date, tri-state cell per tile of the region's bounding box)
         ->
    LayerGroup (date-layered archive only: one layer, its grids newest first)

Grid cells are tri-state:
    True  - imagery exists for this tile on this date
    False - the tile was queried and has no imagery on this date
    None  - unknown: never queried, or outside the polygonal AOI
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from histimagery.config import DATE_FORMAT
from histimagery.tile_geometry import Tile

UNKNOWN = -1
UNAVAILABLE = 0
AVAILABLE = 1

# Year used by the quadtree archive for "no date recorded"
NO_DATE_YEAR = 1


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


@dataclass(frozen=True)
class Layer:
    """One snapshot (release) of the date-layered archive."""
    layer_id: int
    title: str
    date: date
    metadata_url: Optional[str] = None


@dataclass(frozen=True)
class DatedTile:
    """A dated snapshot attached to a quadtree node."""
    date: date
    tile: Tile


@dataclass(frozen=True)
class DatedFact:
    """
    Atomic observation produced by an archive adapter.

    Attributes:
        date: Capture date
        tile: Tile the observation is about
        is_available: Whether imagery exists for the tile on that date
        layer: Date-layered archive layer the fact came from (None for quadtree facts)
        region_index: Position of the date region within its layer (None for quadtree facts)
    """
    date: date
    tile: Tile
    is_available: bool
    layer: Optional[Layer] = None
    region_index: Optional[int] = None


class AvailabilityGrid:
    """
    Tri-state availability matrix for one capture date.

    Backed by an int8 numpy array (1 = available, 0 = unavailable, -1 = unknown)
    addressed by (row_index, column_index) offsets into the region's tile
    bounding box. Grids start all-unknown and can be frozen once populated.
    """

    def __init__(self, capture_date: date, height: int, width: int):
        if height < 1 or width < 1:
            raise ValueError(f"Invalid grid size: {height}x{width}")
        self.date = capture_date
        self._cells = np.full((height, width), UNKNOWN, dtype=np.int8)

    @property
    def height(self) -> int:
        return self._cells.shape[0]

    @property
    def width(self) -> int:
        return self._cells.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self._cells.shape

    @property
    def frozen(self) -> bool:
        return not self._cells.flags.writeable

    @property
    def display_value(self) -> str:
        return format_date(self.date)

    def __getitem__(self, index: Tuple[int, int]) -> Optional[bool]:
        value = self._cells[index]
        if value == UNKNOWN:
            return None
        return bool(value == AVAILABLE)

    def __setitem__(self, index: Tuple[int, int], value: Optional[bool]) -> None:
        if self.frozen:
            raise ValueError(f"Availability grid for {self.display_value} is frozen")
        if value is None:
            self._cells[index] = UNKNOWN
        else:
            self._cells[index] = AVAILABLE if value else UNAVAILABLE

    def mark(self, index: Tuple[int, int], is_available: bool) -> None:
        """Merge one observation; an available cell is never downgraded."""
        if self._cells[index] != AVAILABLE:
            self[index] = is_available

    def freeze(self) -> "AvailabilityGrid":
        self._cells.flags.writeable = False
        return self

    def has_any_tiles(self) -> bool:
        return bool(np.any(self._cells == AVAILABLE))

    def available_cells(self) -> Iterator[Tuple[int, int]]:
        """(row_index, column_index) of every available cell, row-major."""
        for r, c in np.argwhere(self._cells == AVAILABLE):
            yield int(r), int(c)

    def unknown_cells(self) -> Iterator[Tuple[int, int]]:
        for r, c in np.argwhere(self._cells == UNKNOWN):
            yield int(r), int(c)

    def row(self, r: int) -> List[Optional[bool]]:
        return [self[r, c] for c in range(self.width)]

    def equals(self, other: "AvailabilityGrid") -> bool:
        """Structural equality: same date, same dimensions, identical cells."""
        if not isinstance(other, AvailabilityGrid):
            return False
        return (
            other.date == self.date
            and other.shape == self.shape
            and bool(np.array_equal(other._cells, self._cells))
        )

    def __eq__(self, other):
        if not isinstance(other, AvailabilityGrid):
            return NotImplemented
        return self.equals(other)

    # Mutable until frozen, so not hashable
    __hash__ = None

    def __repr__(self) -> str:
        return f"AvailabilityGrid({self.display_value}, {self.height}x{self.width})"


def grid_lists_equal(a: Sequence[AvailabilityGrid], b: Sequence[AvailabilityGrid]) -> bool:
    """Element-wise structural equality of two ordered grid lists."""
    if len(a) != len(b):
        return False
    return all(x.equals(y) for x, y in zip(a, b))


@dataclass
class LayerGroup:
    """
    A date-layered archive layer and its availability grids (newest capture first).
    """
    layer: Layer
    grids: List[AvailabilityGrid]

    @property
    def date(self) -> date:
        return self.layer.date

    @property
    def display_value(self) -> str:
        return format_date(self.layer.date)

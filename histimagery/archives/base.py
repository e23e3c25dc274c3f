"""
Client interfaces for the two imagery archives.

The archive adapters only depend on these protocols; any object with the
right methods works (the bundled WaybackClient, a quadtree packet client
supplied through --client-factory, or an in-memory fake in tests).
"""

from datetime import date
from typing import Iterable, Optional, Protocol, Sequence, runtime_checkable

from histimagery.data_types import DatedTile, Layer
from histimagery.region import GeoRegion
from histimagery.tile_geometry import Tile


@runtime_checkable
class DateRegion(Protocol):
    """Area of one layer captured on one date."""

    date: date

    def contains_tile(self, tile: Tile) -> bool:
        ...


@runtime_checkable
class DateLayeredClient(Protocol):
    """Date-layered archive (one layer per release)."""

    def layers(self) -> Sequence[Layer]:
        ...

    def date_regions_for(self, layer: Layer, region: GeoRegion, level: int) -> Sequence[DateRegion]:
        ...


@runtime_checkable
class QuadtreeNode(Protocol):
    """Quadtree archive node for one tile."""

    def get_all_dated_tiles(self) -> Iterable[DatedTile]:
        ...


@runtime_checkable
class QuadtreeClient(Protocol):
    """Quadtree-indexed archive."""

    def get_node(self, tile: Tile) -> Optional[QuadtreeNode]:
        ...

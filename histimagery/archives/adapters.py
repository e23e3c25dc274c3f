"""
Archive adapters: turn archive client results into dated facts.

Two strategies behind one ArchiveAdapter interface:

DateLayeredAdapter (one fetch task per layer):
    For each layer, ask the client for the capture-date regions intersecting the
    AOI, then test every AOI tile against every date region. A date region that
    contains none of the AOI tiles produces no facts at all.

QuadtreeAdapter (one fetch task per tile):
    Ask the client for the tile's node. A missing node produces no facts.
    Otherwise every distinct capture date on the node (first occurrence wins,
    year-1 "no date" entries skipped) marks the tile available on that date.

The aggregator only sees the facts; it never talks to a client.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

from histimagery.archives.base import DateLayeredClient, QuadtreeClient
from histimagery.archives.source_registry import ProviderCapability, get_provider_for_kind
from histimagery.data_types import NO_DATE_YEAR, DatedFact, Layer
from histimagery.logging_config import get_logger
from histimagery.parallel import BoundedRunner
from histimagery.region import GeoRegion
from histimagery.tile_geometry import GridFrame, Tile, tiles_covering
from histimagery.types import ProviderKind

logger = get_logger(__name__)


class ArchiveAdapter:
    """
    Common adapter state: the AOI, its tiles and the grid frame they map into.
    """
    kind: ProviderKind

    def __init__(self, client, region: GeoRegion, level: int):
        self.client = client
        self.region = region
        self.level = level
        self.provider: ProviderCapability = get_provider_for_kind(self.kind)
        self.tiles = tiles_covering(region, level, self.provider.tile_cls)
        self.frame = GridFrame.for_region(region, level, self.provider.tile_cls, self.provider.top_origin)
        self._tile_list: Optional[List[Tile]] = None

    @property
    def tile_list(self) -> List[Tile]:
        if self._tile_list is None:
            self._tile_list = list(self.tiles)
        return self._tile_list

    @property
    def task_count(self) -> int:
        raise NotImplementedError

    def tasks(self):
        """Iterable of zero-argument fetch tasks, each returning a list of facts."""
        raise NotImplementedError

    def fetch_batches(self, runner: BoundedRunner) -> Iterator[List[DatedFact]]:
        """One list of facts per completed task, in completion order."""
        return runner.run(self.tasks())

    def fetch(self, runner: BoundedRunner) -> Iterator[DatedFact]:
        """Flat stream of dated facts."""
        for batch in self.fetch_batches(runner):
            yield from batch


@dataclass(frozen=True)
class LayerTask:
    """Fetch task for one date-layered archive layer."""
    adapter: "DateLayeredAdapter"
    layer: Layer

    def __call__(self) -> List[DatedFact]:
        return self.adapter.fetch_layer(self.layer)


@dataclass(frozen=True)
class TileTask:
    """Fetch task for one quadtree tile."""
    adapter: "QuadtreeAdapter"
    tile: Tile

    def __call__(self) -> List[DatedFact]:
        return self.adapter.fetch_tile(self.tile)


class DateLayeredAdapter(ArchiveAdapter):
    kind = ProviderKind.DATE_LAYERED

    def __init__(self, client: DateLayeredClient, region: GeoRegion, level: int):
        super().__init__(client, region, level)
        self._layers: Optional[Sequence[Layer]] = None

    @property
    def layers(self) -> Sequence[Layer]:
        if self._layers is None:
            self._layers = list(self.client.layers())
            logger.info("Date-layered archive has %d layers", len(self._layers))
        return self._layers

    @property
    def task_count(self) -> int:
        return len(self.layers)

    def tasks(self) -> Iterator[LayerTask]:
        for layer in self.layers:
            yield LayerTask(self, layer)

    def fetch_layer(self, layer: Layer) -> List[DatedFact]:
        """
        Facts for every AOI tile and every capture date of one layer.

        Each date region keeps its own grid, even when two regions share a
        capture date. Date regions containing no AOI tile are dropped entirely.
        """
        date_regions = self.client.date_regions_for(layer, self.region, self.level)
        tiles = self.tile_list

        facts: List[DatedFact] = []
        for region_index, date_region in enumerate(date_regions):
            region_facts = [
                DatedFact(date_region.date, tile, bool(date_region.contains_tile(tile)), layer, region_index)
                for tile in tiles
            ]
            if any(fact.is_available for fact in region_facts):
                facts.extend(region_facts)
            else:
                logger.debug("Layer %s: %s does not intersect the AOI", layer.title, date_region.date)
        return facts


class QuadtreeAdapter(ArchiveAdapter):
    kind = ProviderKind.QUADTREE_INDEXED

    def __init__(self, client: QuadtreeClient, region: GeoRegion, level: int):
        super().__init__(client, region, level)

    @property
    def task_count(self) -> int:
        return len(self.tile_list)

    def tasks(self) -> Iterator[TileTask]:
        for tile in self.tiles:
            yield TileTask(self, tile)

    def fetch_tile(self, tile: Tile) -> List[DatedFact]:
        """One available fact per distinct capture date on the tile's node."""
        node = self.client.get_node(tile)
        if node is None:
            return []

        facts: List[DatedFact] = []
        seen = set()
        for dated_tile in node.get_all_dated_tiles():
            if dated_tile.date.year == NO_DATE_YEAR:
                continue
            if dated_tile.date in seen:
                continue
            seen.add(dated_tile.date)
            facts.append(DatedFact(dated_tile.date, dated_tile.tile, True))
        return facts


ADAPTERS = {
    ProviderKind.DATE_LAYERED: DateLayeredAdapter,
    ProviderKind.QUADTREE_INDEXED: QuadtreeAdapter,
}


def create_adapter(kind: ProviderKind, client, region: GeoRegion, level: int) -> ArchiveAdapter:
    """
    Build the adapter for a provider kind.

    Raises:
        RegionValidationError: if the region covers no tile at `level`
    """
    return ADAPTERS[ProviderKind(kind)](client, region, level)

"""
Provider capability registry.

Each imagery archive declares its capabilities (tile system, zoom range, coverage,
concurrency limit). Validation, the CLI and the adapters read these records
instead of branching on provider names.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Type

from histimagery.config import WAYBACK_MAX_CONCURRENCY
from histimagery.tile_geometry import EsriTile, KeyholeTile, MAX_MERCATOR_LATITUDE, Tile
from histimagery.types import ProviderKind


@dataclass(frozen=True)
class ProviderCapability:
    """Declares what an imagery archive provides."""

    kind: ProviderKind                 # Adapter strategy
    cli_name: str                      # Value of --provider
    name: str                          # Human-readable name
    tile_cls: Type[Tile]               # Tile system used for indexing
    top_origin: bool                   # Tile rows grow northward (grid row = max_row - row)
    min_zoom: int
    max_zoom: int
    coverage_lat: Tuple[float, float]  # (min_lat, max_lat) the tile system can address
    max_concurrency: Optional[int]     # Hard cap on concurrent metadata queries
    bundled_client: bool               # A client ships with this package
    no_imagery_message: str            # Printed when no date is found; {zoom} placeholder
    notes: str = ""

    def supports_zoom(self, zoom: int) -> bool:
        return self.min_zoom <= zoom <= self.max_zoom

    def covers_latitudes(self, south: float, north: float) -> bool:
        return self.coverage_lat[0] <= south and north <= self.coverage_lat[1]

    def clamp_concurrency(self, requested: int) -> int:
        if self.max_concurrency is not None and requested > self.max_concurrency:
            return self.max_concurrency
        return requested


PROVIDER_REGISTRY: List[ProviderCapability] = [
    ProviderCapability(
        kind=ProviderKind.QUADTREE_INDEXED,
        cli_name='keyhole',
        name='Google Earth historical imagery',
        tile_cls=KeyholeTile,
        top_origin=True,
        min_zoom=1,
        max_zoom=24,
        coverage_lat=(-90.0, 90.0),
        max_concurrency=None,
        bundled_client=False,
        no_imagery_message='No dated imagery available at zoom level {zoom}',
        notes='Quadtree packets; client supplied through --client-factory'
    ),
    ProviderCapability(
        kind=ProviderKind.DATE_LAYERED,
        cli_name='wayback',
        name='Esri World Imagery Wayback',
        tile_cls=EsriTile,
        top_origin=False,
        min_zoom=1,
        max_zoom=23,
        coverage_lat=(-MAX_MERCATOR_LATITUDE, MAX_MERCATOR_LATITUDE),
        max_concurrency=WAYBACK_MAX_CONCURRENCY,
        bundled_client=True,
        no_imagery_message='No imagery available at zoom level {zoom}',
        notes='Metadata is scraped per layer; keep concurrency low'
    ),
]


def get_provider(cli_name: str) -> Optional[ProviderCapability]:
    """Get provider capability by CLI name."""
    for provider in PROVIDER_REGISTRY:
        if provider.cli_name == cli_name:
            return provider
    return None


def get_provider_for_kind(kind: ProviderKind) -> ProviderCapability:
    for provider in PROVIDER_REGISTRY:
        if provider.kind == kind:
            return provider
    raise KeyError(f"No provider registered for {kind}")


def provider_names() -> List[str]:
    return [provider.cli_name for provider in PROVIDER_REGISTRY]

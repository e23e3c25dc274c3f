"""
Validation utilities for availability requests.

This module provides validation functions for:
- Regions (point count, coordinate ranges, polygon validity, longitude span)
- Zoom levels against a provider's supported range
- Latitude coverage of the provider's tile system
- Concurrency settings

Each get_*_errors function returns a list of human-readable messages (empty when
valid) so the CLI can report every problem at once. validate_request raises
RegionValidationError carrying all of them.
"""

from typing import List, Optional

from histimagery.archives.source_registry import ProviderCapability
from histimagery.errors import RegionValidationError
from histimagery.region import GeoRegion


def get_region_errors(region: Optional[GeoRegion]) -> List[str]:
    """
    Check that a region describes a usable polygon.

    Args:
        region: Region to check (None means no region was given)

    Returns:
        List of error messages, empty if the region is valid
    """
    if region is None or region.is_empty:
        return ["Region is empty"]

    errors = []
    if len(region.points) < 3:
        errors.append(f"Region needs at least 3 points, got {len(region.points)}")

    for lon, lat in region.points:
        if not -90.0 <= lat <= 90.0:
            errors.append(f"Latitude {lat} is out of range [-90, 90]")
        if not -180.0 <= lon <= 180.0:
            errors.append(f"Longitude {lon} is out of range [-180, 180]")
    if errors:
        return errors

    points = region.points
    for (lon1, lat1), (lon2, lat2) in zip(points, points[1:] + points[:1]):
        if abs(lon2 - lon1) % 360.0 == 180.0:
            errors.append(
                f"Edge from {lat1},{lon1} to {lat2},{lon2} spans exactly 180 degrees of longitude; "
                "add a vertex between them to choose its direction"
            )
    if errors:
        return errors

    if region.longitude_span() >= 360.0:
        errors.append("Region must span less than 360 degrees of longitude")

    polygon = region.to_polygon()
    if polygon.area == 0:
        errors.append("Region has zero area")
    elif not polygon.is_valid:
        errors.append("Region polygon is self-intersecting")
    return errors


def get_zoom_errors(provider: ProviderCapability, zoom: int) -> List[str]:
    if not provider.supports_zoom(zoom):
        return [
            f"Zoom level {zoom} is not supported by {provider.cli_name} "
            f"(valid range {provider.min_zoom}-{provider.max_zoom})"
        ]
    return []


def get_coverage_errors(provider: ProviderCapability, region: GeoRegion) -> List[str]:
    """Latitudes the provider's tile system cannot address."""
    if region is None or region.is_empty:
        return []
    lats = [lat for _, lat in region.points]
    south, north = min(lats), max(lats)
    if not provider.covers_latitudes(south, north):
        low, high = provider.coverage_lat
        return [
            f"{provider.name} only covers latitudes {low:.4f} to {high:.4f}; "
            f"region spans {south:.4f} to {north:.4f}"
        ]
    return []


def get_concurrency_errors(concurrency: int) -> List[str]:
    if concurrency < 1:
        return [f"Parallel query count must be at least 1, got {concurrency}"]
    return []


def get_request_errors(
    provider: ProviderCapability,
    region: Optional[GeoRegion],
    zoom: int,
    concurrency: int
) -> List[str]:
    """All problems with an availability request."""
    errors = get_region_errors(region)
    errors += get_zoom_errors(provider, zoom)
    if region is not None and not errors:
        errors += get_coverage_errors(provider, region)
    errors += get_concurrency_errors(concurrency)
    return errors


def validate_request(
    provider: ProviderCapability,
    region: Optional[GeoRegion],
    zoom: int,
    concurrency: int
) -> None:
    """
    Raise if the request cannot be run.

    Raises:
        RegionValidationError: with every message from get_request_errors
    """
    errors = get_request_errors(provider, region, zoom, concurrency)
    if errors:
        raise RegionValidationError(errors)

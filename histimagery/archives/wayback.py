"""
Esri World Imagery Wayback metadata client.

Wayback publishes one imagery layer per release. Each release has a metadata
feature service whose polygons record the capture date (SRC_DATE2) of the
imagery at each zoom band.

Endpoints:
    Config:   {WAYBACK_CONFIG_URL}                 -> {layer_id: {itemTitle, metadataLayerUrl, ...}}
    Metadata: {metadataLayerUrl}/{index}/query     -> ArcGIS feature set (esriGeometryPolygon, EPSG:3857)

All geometry stays in Web Mercator metres, the native CRS of EsriTile.
"""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from shapely.geometry import LinearRing, Polygon, box
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.prepared import prep

from histimagery.config import HTTP_TIMEOUT_SECONDS, USER_AGENT, WAYBACK_CONFIG_URL
from histimagery.data_types import Layer
from histimagery.errors import ArchiveFetchError
from histimagery.logging_config import get_logger
from histimagery.region import GeoRegion
from histimagery.settings import get_setting
from histimagery.tile_geometry import WEB_MERCATOR_EXTENT, Tile, wgs84_to_web_mercator

logger = get_logger(__name__)

TITLE_DATE_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2})")

CAPTURE_DATE_FIELD = "SRC_DATE2"

# Metadata sublayer 0 describes zoom 23; the last one (13) covers zoom 10 and below
METADATA_MAX_LEVEL = 23
METADATA_MIN_LEVEL = 10

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Envelope = Tuple[float, float, float, float]


def metadata_layer_index(level: int) -> int:
    """Metadata sublayer holding capture dates for a zoom level."""
    clamped = max(METADATA_MIN_LEVEL, min(METADATA_MAX_LEVEL, level))
    return METADATA_MAX_LEVEL - clamped


def epoch_millis_to_date(millis: float) -> date:
    return (EPOCH + timedelta(milliseconds=millis)).date()


def parse_title_date(title: str) -> Optional[date]:
    """Release date embedded in a layer title like 'World Imagery (Wayback 2014-02-20)'."""
    match = TITLE_DATE_PATTERN.search(title or "")
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%Y-%m-%d").date()
    except ValueError:
        return None


def rings_to_geometry(rings: Sequence[Sequence[Sequence[float]]]) -> BaseGeometry:
    """
    Shapely geometry from ArcGIS polygon rings.

    ArcGIS exterior rings are clockwise and holes counter-clockwise.
    """
    shells = []
    holes = []
    for ring in rings:
        if len(ring) < 4:
            continue
        coords = [(float(p[0]), float(p[1])) for p in ring]
        if LinearRing(coords).is_ccw:
            holes.append(Polygon(coords))
        else:
            shells.append(Polygon(coords))

    geometry = unary_union([s.buffer(0) for s in shells]) if shells else Polygon()
    if holes and not geometry.is_empty:
        geometry = geometry.difference(unary_union([h.buffer(0) for h in holes]))
    return geometry


def region_envelopes(region: GeoRegion) -> List[Envelope]:
    """
    Web Mercator envelopes (xmin, ymin, xmax, ymax) of a region.

    A region crossing the antimeridian yields two envelopes, one on each side.
    """
    points = [wgs84_to_web_mercator(lon, lat) for lon, lat in region.unwrapped_ring()]
    xs = [x for x, _ in points]
    ys = [y for _, y in points]
    xmin, xmax, ymin, ymax = min(xs), max(xs), min(ys), max(ys)

    if xmax <= WEB_MERCATOR_EXTENT:
        return [(xmin, ymin, xmax, ymax)]
    return [
        (xmin, ymin, WEB_MERCATOR_EXTENT, ymax),
        (-WEB_MERCATOR_EXTENT, ymin, xmax - 2.0 * WEB_MERCATOR_EXTENT, ymax),
    ]


@dataclass
class WaybackDateRegion:
    """Area of one Wayback layer whose imagery was captured on `date`."""
    date: date
    geometry: BaseGeometry
    _prepared: Any = field(default=None, init=False, repr=False, compare=False)

    def contains_tile(self, tile: Tile) -> bool:
        """True when the tile's mercator box shares interior area with this region."""
        if self.geometry.is_empty:
            return False
        if self._prepared is None:
            self._prepared = prep(self.geometry)
        cell = box(*tile.native_bounds())
        return self._prepared.intersects(cell) and not self._prepared.touches(cell)


class WaybackClient:
    """
    Date-layered archive client for Esri World Imagery Wayback.

    Args:
        session: requests session (a new one with our User-Agent if omitted)
        config_url: Wayback release catalogue URL
        timeout: Seconds per HTTP request
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        config_url: str = WAYBACK_CONFIG_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS
    ):
        if session is None:
            session = requests.Session()
            session.headers.update({'User-Agent': USER_AGENT})
        self.session = session
        self.config_url = config_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "WaybackClient":
        """Client configured from settings.json (wayback.config_url, wayback.timeout)."""
        return cls(
            config_url=get_setting('wayback.config_url', WAYBACK_CONFIG_URL),
            timeout=float(get_setting('wayback.timeout', HTTP_TIMEOUT_SECONDS)),
        )

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.Timeout as e:
            raise ArchiveFetchError(f"Timed out after {self.timeout}s: {url}") from e
        except requests.exceptions.RequestException as e:
            raise ArchiveFetchError(f"Request failed for {url}: {e}") from e
        except ValueError as e:
            raise ArchiveFetchError(f"Invalid JSON from {url}: {e}") from e

        if isinstance(payload, dict) and 'error' in payload:
            error = payload['error'] or {}
            message = error.get('message', 'unknown error') if isinstance(error, dict) else error
            raise ArchiveFetchError(f"ArcGIS error from {url}: {message}")
        return payload

    def layers(self) -> List[Layer]:
        """All Wayback releases, newest first."""
        config = self._get_json(self.config_url)
        if not isinstance(config, dict):
            raise ArchiveFetchError(f"Unexpected Wayback config format from {self.config_url}")

        layers = []
        for key, entry in config.items():
            title = entry.get('itemTitle', '')
            release_date = parse_title_date(title)
            if release_date is None:
                logger.debug("Skipping Wayback entry %s without a date: %r", key, title)
                continue
            layers.append(Layer(
                layer_id=int(key),
                title=title,
                date=release_date,
                metadata_url=entry.get('metadataLayerUrl'),
            ))

        layers.sort(key=lambda layer: layer.date, reverse=True)
        return layers

    def _query_features(self, url: str, envelope: Envelope) -> List[Dict[str, Any]]:
        xmin, ymin, xmax, ymax = envelope
        params = {
            'geometry': f"{xmin},{ymin},{xmax},{ymax}",
            'geometryType': 'esriGeometryEnvelope',
            'inSR': 3857,
            'spatialRel': 'esriSpatialRelIntersects',
            'outFields': CAPTURE_DATE_FIELD,
            'returnGeometry': 'true',
            'outSR': 3857,
            'f': 'json',
        }

        features: List[Dict[str, Any]] = []
        while True:
            if features:
                params['resultOffset'] = len(features)
            payload = self._get_json(url, params=dict(params))
            batch = payload.get('features') or []
            features.extend(batch)
            if not batch or not payload.get('exceededTransferLimit'):
                return features

    def date_regions_for(self, layer: Layer, region: GeoRegion, level: int) -> List[WaybackDateRegion]:
        """
        Capture-date regions of `layer` intersecting `region` at `level`.

        Raises:
            ArchiveFetchError: on HTTP, JSON or ArcGIS errors
        """
        if not layer.metadata_url:
            logger.debug("Layer %s has no metadata service", layer.title)
            return []

        url = f"{layer.metadata_url.rstrip('/')}/{metadata_layer_index(level)}/query"
        polygons_by_date = defaultdict(list)
        for envelope in region_envelopes(region):
            for feature in self._query_features(url, envelope):
                millis = (feature.get('attributes') or {}).get(CAPTURE_DATE_FIELD)
                rings = (feature.get('geometry') or {}).get('rings')
                if millis is None or not rings:
                    continue
                polygons_by_date[epoch_millis_to_date(millis)].append(rings_to_geometry(rings))

        regions = [
            WaybackDateRegion(capture_date, unary_union(geometries))
            for capture_date, geometries in polygons_by_date.items()
        ]
        regions.sort(key=lambda r: r.date, reverse=True)
        logger.debug("Layer %s: %d capture date(s)", layer.title, len(regions))
        return regions

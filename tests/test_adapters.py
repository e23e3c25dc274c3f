"""
Tests for the archive adapters that turn client results into dated facts.

Run with: pytest tests/test_adapters.py -v
"""

from datetime import date

import pytest

from fakes import FakeDateRegion, FakeLayeredClient, FakeQuadtreeClient, layer
from histimagery.archives.adapters import (
    DateLayeredAdapter,
    LayerTask,
    QuadtreeAdapter,
    TileTask,
    create_adapter,
)
from histimagery.errors import RegionValidationError
from histimagery.parallel import BoundedRunner
from histimagery.region import GeoRegion
from histimagery.tile_geometry import EsriTile, KeyholeTile
from histimagery.types import ProviderKind

# 2x2 Esri tiles at level 1, 2x2 Keyhole tiles at level 1
ORIGIN_REGION = GeoRegion.from_corners((-0.1, -0.1), (0.1, 0.1))
# One Keyhole tile (row 8, column 8) at level 4
SMALL_REGION = GeoRegion.from_corners((10.0, 10.0), (20.0, 20.0))


class TestDateLayeredAdapter:
    """One task per layer; every AOI tile is tested against every date region."""

    def test_one_task_per_layer(self):
        layers = [layer(1, date(2022, 1, 1)), layer(2, date(2021, 1, 1))]
        adapter = DateLayeredAdapter(FakeLayeredClient(layers, {}), ORIGIN_REGION, 1)
        tasks = list(adapter.tasks())
        assert adapter.task_count == 2
        assert all(isinstance(task, LayerTask) for task in tasks)
        assert [task.layer for task in tasks] == layers

    def test_facts_for_every_tile(self):
        release = layer(1, date(2022, 1, 1))
        region_date = FakeDateRegion(date(2019, 5, 5), frozenset({EsriTile(0, 0, 1)}))
        client = FakeLayeredClient([release], {1: [region_date]})
        adapter = DateLayeredAdapter(client, ORIGIN_REGION, 1)

        facts = adapter.fetch_layer(release)
        assert len(facts) == 4
        assert {f.tile for f in facts} == {EsriTile(r, c, 1) for r in (0, 1) for c in (0, 1)}
        assert [f.tile for f in facts if f.is_available] == [EsriTile(0, 0, 1)]
        assert all(f.layer == release and f.date == date(2019, 5, 5) for f in facts)
        assert client.calls == [(1, 1)]

    def test_date_region_without_tiles_emits_nothing(self):
        release = layer(1, date(2022, 1, 1))
        empty = FakeDateRegion(date(2018, 1, 1), frozenset({EsriTile(0, 0, 5)}))
        client = FakeLayeredClient([release], {1: [empty]})
        adapter = DateLayeredAdapter(client, ORIGIN_REGION, 1)
        assert adapter.fetch_layer(release) == []

    def test_facts_carry_region_index(self):
        """Indices follow the client's region order, including dropped regions."""
        release = layer(1, date(2022, 1, 1))
        empty = FakeDateRegion(date(2018, 1, 1), frozenset({EsriTile(0, 0, 5)}))
        first = FakeDateRegion(date(2019, 5, 5), frozenset({EsriTile(0, 0, 1)}))
        second = FakeDateRegion(date(2019, 5, 5), frozenset({EsriTile(1, 1, 1)}))
        client = FakeLayeredClient([release], {1: [empty, first, second]})
        adapter = DateLayeredAdapter(client, ORIGIN_REGION, 1)

        facts = adapter.fetch_layer(release)
        assert [f.region_index for f in facts] == [1] * 4 + [2] * 4

    def test_grid_indices(self):
        """Esri rows map to grid rows directly."""
        adapter = DateLayeredAdapter(FakeLayeredClient([], {}), ORIGIN_REGION, 1)
        assert adapter.frame.index_of(EsriTile(1, 0, 1)) == (1, 0)
        assert adapter.frame.shape == (2, 2)

    def test_fetch_through_runner(self):
        layers = [layer(i, date(2020 + i, 1, 1)) for i in range(1, 4)]
        regions = {i: [FakeDateRegion(date(2019, 1, i), frozenset({EsriTile(1, 1, 1)}))] for i in range(1, 4)}
        adapter = DateLayeredAdapter(FakeLayeredClient(layers, regions), ORIGIN_REGION, 1)

        batches = list(adapter.fetch_batches(BoundedRunner(2)))
        assert len(batches) == 3
        facts = list(adapter.fetch(BoundedRunner(2)))
        assert len(facts) == 12


class TestQuadtreeAdapter:
    """One task per tile; distinct dated snapshots become available facts."""

    def test_one_task_per_tile(self):
        adapter = QuadtreeAdapter(FakeQuadtreeClient({}), ORIGIN_REGION, 1)
        tasks = list(adapter.tasks())
        assert adapter.task_count == 4
        assert all(isinstance(task, TileTask) for task in tasks)

    def test_missing_node_yields_nothing(self):
        adapter = QuadtreeAdapter(FakeQuadtreeClient({}), SMALL_REGION, 4)
        assert adapter.fetch_tile(KeyholeTile(8, 8, 4)) == []

    def test_skips_undated_and_duplicate_dates(self):
        tile = KeyholeTile(8, 8, 4)
        client = FakeQuadtreeClient({
            tile: [date(2001, 1, 1), date(2005, 6, 15), date(1, 1, 1), date(2001, 1, 1)]
        })
        adapter = QuadtreeAdapter(client, SMALL_REGION, 4)

        facts = adapter.fetch_tile(tile)
        assert [f.date for f in facts] == [date(2001, 1, 1), date(2005, 6, 15)]
        assert all(f.is_available and f.tile == tile and f.layer is None for f in facts)

    def test_grid_indices_top_origin(self):
        """Keyhole rows grow northward, so the northern row is grid row 0."""
        adapter = QuadtreeAdapter(FakeQuadtreeClient({}), ORIGIN_REGION, 1)
        assert adapter.frame.index_of(KeyholeTile(1, 0, 1)) == (0, 0)
        assert adapter.frame.index_of(KeyholeTile(0, 0, 1)) == (1, 0)


class TestCreateAdapter:
    def test_dispatch_by_kind(self):
        assert isinstance(create_adapter(ProviderKind.DATE_LAYERED, FakeLayeredClient([], {}), ORIGIN_REGION, 1),
                          DateLayeredAdapter)
        assert isinstance(create_adapter("quadtree_indexed", FakeQuadtreeClient({}), ORIGIN_REGION, 1),
                          QuadtreeAdapter)

    def test_region_without_tiles(self):
        flat = GeoRegion.from_points([(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)])
        with pytest.raises(RegionValidationError):
            create_adapter(ProviderKind.QUADTREE_INDEXED, FakeQuadtreeClient({}), flat, 3)

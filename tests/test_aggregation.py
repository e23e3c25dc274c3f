"""
End-to-end tests for availability aggregation with in-memory archive clients.

Run with: pytest tests/test_aggregation.py -v
"""

import threading
from datetime import date

import pytest

from fakes import FakeDateRegion, FakeLayeredClient, FakeQuadtreeClient, layer
from histimagery.aggregation import aggregate, dedup_layer_groups, fill_queried_cells
from histimagery.archives.adapters import DateLayeredAdapter, QuadtreeAdapter
from histimagery.data_types import AvailabilityGrid, LayerGroup
from histimagery.errors import AggregationError, ArchiveFetchError, RunCancelledError
from histimagery.region import GeoRegion
from histimagery.tile_geometry import EsriTile, KeyholeTile
from histimagery.types import ProviderKind

ORIGIN_REGION = GeoRegion.from_corners((-0.1, -0.1), (0.1, 0.1))
SMALL_REGION = GeoRegion.from_corners((10.0, 10.0), (20.0, 20.0))


class TestQuadtreeAggregation:
    """Quadtree runs: one grid per capture date, queried cells filled with False."""

    def test_single_tile_two_dates(self):
        """Dates [2001-01-01, 2005-06-15, year 1] give two 1x1 grids, newest first."""
        tile = KeyholeTile(8, 8, 4)
        client = FakeQuadtreeClient({tile: [date(2001, 1, 1), date(2005, 6, 15), date(1, 1, 1)]})

        result = aggregate(QuadtreeAdapter(client, SMALL_REGION, 4), concurrency=4)

        assert result.kind == ProviderKind.QUADTREE_INDEXED
        assert [g.date for g in result.grids] == [date(2005, 6, 15), date(2001, 1, 1)]
        for grid in result.grids:
            assert grid.shape == (1, 1)
            assert grid[0, 0] is True
            assert grid.frozen
        assert result.groups == []
        assert not result.is_empty

    def test_fill_only_queried_cells(self):
        """
        Cells seen in any fact become False where unknown; other cells stay unknown.

        Level 1 Keyhole tiles around the origin (grid row 0 is tile row 1):
            (1,0) -> [A]        grid (0,0)
            (0,1) -> [A, B]     grid (1,1)
            (1,1) -> [year 1]   grid (0,1), no facts
            (0,0) -> no node    grid (1,0)
        """
        a, b = date(2010, 1, 1), date(2015, 1, 1)
        client = FakeQuadtreeClient({
            KeyholeTile(1, 0, 1): [a],
            KeyholeTile(0, 1, 1): [a, b],
            KeyholeTile(1, 1, 1): [date(1, 1, 1)],
        })

        result = aggregate(QuadtreeAdapter(client, ORIGIN_REGION, 1), concurrency=2)
        grid_b, grid_a = result.grids

        assert grid_a.date == a
        assert grid_a.row(0) == [True, None]
        assert grid_a.row(1) == [None, True]

        assert grid_b.date == b
        assert grid_b.row(0) == [False, None]
        assert grid_b.row(1) == [None, True]

    def test_no_nodes_is_empty(self):
        result = aggregate(QuadtreeAdapter(FakeQuadtreeClient({}), ORIGIN_REGION, 1), concurrency=2)
        assert result.is_empty
        assert result.grids == []

    def test_task_failure_aborts(self):
        tile = KeyholeTile(8, 8, 4)
        client = FakeQuadtreeClient({}, failing=[tile], error=ArchiveFetchError("HTTP 503"))

        with pytest.raises(AggregationError, match="HTTP 503") as excinfo:
            aggregate(QuadtreeAdapter(client, SMALL_REGION, 4), concurrency=1)
        assert isinstance(excinfo.value.__cause__, ArchiveFetchError)

    def test_cancelled_run(self):
        event = threading.Event()
        event.set()
        adapter = QuadtreeAdapter(FakeQuadtreeClient({}), ORIGIN_REGION, 1)
        with pytest.raises(RunCancelledError):
            aggregate(adapter, concurrency=2, cancel_event=event)


class TestDateLayeredAggregation:
    """Wayback-style runs: one group per layer, duplicate layers removed."""

    def test_duplicate_layers_removed(self):
        """
        Layers 2020 and 2022 see identical imagery; the later one is dropped.
        Layer 2023 has no date regions and does not appear at all.
        """
        l2020, l2021, l2022, l2023 = (layer(i, date(2019 + i, 1, 1)) for i in range(1, 5))
        shared = FakeDateRegion(date(2019, 5, 5), frozenset({EsriTile(0, 0, 1)}))
        other = FakeDateRegion(date(2020, 6, 6), frozenset({EsriTile(1, 1, 1)}))
        client = FakeLayeredClient(
            [l2023, l2022, l2021, l2020],
            {1: [shared], 2: [other], 3: [shared], 4: []},
        )

        result = aggregate(DateLayeredAdapter(client, ORIGIN_REGION, 1), concurrency=3)

        assert result.kind == ProviderKind.DATE_LAYERED
        assert [g.layer for g in result.groups] == [l2021, l2020]
        assert [g.date for g in result.grids] == [date(2020, 6, 6), date(2019, 5, 5)]

        kept = result.groups[1].grids[0]
        assert kept.row(0) == [True, False]
        assert kept.row(1) == [False, False]

    def test_group_grids_newest_first(self):
        release = layer(1, date(2022, 1, 1))
        older = FakeDateRegion(date(2017, 1, 1), frozenset({EsriTile(0, 0, 1)}))
        newer = FakeDateRegion(date(2021, 1, 1), frozenset({EsriTile(0, 1, 1)}))
        client = FakeLayeredClient([release], {1: [older, newer]})

        result = aggregate(DateLayeredAdapter(client, ORIGIN_REGION, 1), concurrency=1)
        (group,) = result.groups
        assert [g.date for g in group.grids] == [date(2021, 1, 1), date(2017, 1, 1)]

    def test_same_date_regions_keep_separate_grids(self):
        """Two date regions sharing a capture date are listed as two grids."""
        release = layer(1, date(2022, 1, 1))
        west = FakeDateRegion(date(2019, 5, 5), frozenset({EsriTile(0, 0, 1)}))
        east = FakeDateRegion(date(2019, 5, 5), frozenset({EsriTile(1, 1, 1)}))
        client = FakeLayeredClient([release], {1: [west, east]})

        result = aggregate(DateLayeredAdapter(client, ORIGIN_REGION, 1), concurrency=1)
        (group,) = result.groups
        assert len(group.grids) == 2
        assert [g.date for g in group.grids] == [date(2019, 5, 5)] * 2
        first, second = group.grids
        assert first.row(0) == [True, False]
        assert first.row(1) == [False, False]
        assert second.row(0) == [False, False]
        assert second.row(1) == [False, True]

    def test_region_outside_date_regions(self):
        """A date region containing none of the 2x2 tiles produces no grid."""
        release = layer(1, date(2022, 1, 1))
        elsewhere = FakeDateRegion(date(2018, 1, 1), frozenset({EsriTile(3, 3, 2)}))
        client = FakeLayeredClient([release], {1: [elsewhere]})

        result = aggregate(DateLayeredAdapter(client, ORIGIN_REGION, 1), concurrency=1)
        assert result.is_empty
        assert result.grids == []

    def test_layer_failure_aborts(self):
        layers = [layer(1, date(2021, 1, 1)), layer(2, date(2022, 1, 1))]
        region_date = FakeDateRegion(date(2019, 1, 1), frozenset({EsriTile(0, 0, 1)}))
        client = FakeLayeredClient(layers, {1: [region_date]}, failing=[2])

        with pytest.raises(AggregationError):
            aggregate(DateLayeredAdapter(client, ORIGIN_REGION, 1), concurrency=2)


class TestFinalizationHelpers:
    """fill_queried_cells and dedup_layer_groups in isolation."""

    def test_fill_leaves_available_cells(self):
        grid = AvailabilityGrid(date(2020, 1, 1), 1, 3)
        grid[0, 0] = True
        fill_queried_cells([grid], {(0, 0), (0, 1)})
        assert grid.row(0) == [True, False, None]

    def test_dedup_keeps_earliest(self):
        def group(layer_id, release, cell_value):
            grid = AvailabilityGrid(date(2019, 1, 1), 1, 1)
            grid[0, 0] = cell_value
            return LayerGroup(layer(layer_id, release), [grid.freeze()])

        g2018 = group(1, date(2018, 1, 1), True)
        g2019 = group(2, date(2019, 1, 1), False)
        g2020 = group(3, date(2020, 1, 1), True)
        g2021 = group(4, date(2021, 1, 1), False)

        kept = dedup_layer_groups([g2021, g2019, g2020, g2018])
        assert kept == [g2019, g2018]

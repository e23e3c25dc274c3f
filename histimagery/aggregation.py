"""
Availability aggregation.

Drives an archive adapter through the bounded runner and folds the resulting
dated facts into per-date availability grids.

PIPELINE:
    1. Fetch   - adapter tasks run with at most `concurrency` in flight
    2. Merge   - facts go into {(layer, date, region_index): grid}; True is never
                 downgraded. Date-layered facts get one grid per date region,
                 quadtree facts one grid per date
    3. Fill    - quadtree only: queried cells still unknown become False
    4. Freeze  - grids become read-only
    5. Dedup   - date-layered only: a layer whose grid list equals an earlier
                 layer's is dropped (the earliest layer is kept)
    6. Sort    - newest first

Merging, filling and dedup all run on the calling thread.
"""

import sys
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from tqdm import tqdm

from histimagery.archives.adapters import ArchiveAdapter
from histimagery.data_types import AvailabilityGrid, DatedFact, Layer, LayerGroup, grid_lists_equal
from histimagery.errors import AggregationError, RunCancelledError
from histimagery.logging_config import get_logger
from histimagery.parallel import BoundedRunner
from histimagery.tile_geometry import GridFrame
from histimagery.types import ProviderKind

logger = get_logger(__name__)

GridKey = Tuple[Optional[Layer], date, Optional[int]]
CellIndex = Tuple[int, int]


@dataclass
class AggregationResult:
    """
    Outcome of one availability run.

    Attributes:
        kind: Provider kind the facts came from
        frame: Grid alignment shared by every grid
        grids: Frozen grids, newest first (flattened over groups for date-layered runs)
        groups: Layer groups, newest layer first (empty for quadtree runs)
    """
    kind: ProviderKind
    frame: GridFrame
    grids: List[AvailabilityGrid]
    groups: List[LayerGroup] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        if self.kind == ProviderKind.DATE_LAYERED:
            return not self.groups
        return not self.grids


class GridAccumulator:
    """Merges dated facts into lazily created grids and records queried cells."""

    def __init__(self, frame: GridFrame):
        self.frame = frame
        self.grids: Dict[GridKey, AvailabilityGrid] = {}
        self.queried: Set[CellIndex] = set()

    def add(self, fact: DatedFact) -> None:
        key = (fact.layer, fact.date, fact.region_index)
        grid = self.grids.get(key)
        if grid is None:
            height, width = self.frame.shape
            grid = AvailabilityGrid(fact.date, height, width)
            self.grids[key] = grid

        index = self.frame.index_of(fact.tile)
        grid.mark(index, fact.is_available)
        self.queried.add(index)


def fill_queried_cells(grids, queried: Set[CellIndex]) -> None:
    """Set every queried cell that is still unknown to False. Never-queried cells stay unknown."""
    for grid in grids:
        for index in queried:
            if grid[index] is None:
                grid[index] = False


def dedup_layer_groups(groups: List[LayerGroup]) -> List[LayerGroup]:
    """
    Drop layers whose grids duplicate an earlier layer's.

    Groups are compared oldest first; a group equal to any kept group is dropped.

    Returns:
        Kept groups, newest layer first
    """
    kept: List[LayerGroup] = []
    for group in sorted(groups, key=lambda g: g.layer.date):
        duplicate_of = next((k for k in kept if grid_lists_equal(k.grids, group.grids)), None)
        if duplicate_of is not None:
            logger.debug("Layer %s duplicates %s", group.layer.title, duplicate_of.layer.title)
            continue
        kept.append(group)

    kept.sort(key=lambda g: g.layer.date, reverse=True)
    return kept


def _build_groups(grids: Dict[GridKey, AvailabilityGrid]) -> List[LayerGroup]:
    by_layer: Dict[Layer, List[AvailabilityGrid]] = defaultdict(list)
    for (layer, _, _), grid in grids.items():
        by_layer[layer].append(grid)
    return [
        LayerGroup(layer, sorted(layer_grids, key=lambda g: g.date, reverse=True))
        for layer, layer_grids in by_layer.items()
    ]


def aggregate(
    adapter: ArchiveAdapter,
    concurrency: int,
    show_progress: bool = False,
    cancel_event: Optional[threading.Event] = None
) -> AggregationResult:
    """
    Run every fetch task of `adapter` and assemble availability grids.

    Args:
        adapter: DateLayeredAdapter or QuadtreeAdapter
        concurrency: Maximum fetch tasks in flight
        show_progress: Show a tqdm bar (stderr) counting finished tasks
        cancel_event: Set to stop submitting tasks

    Returns:
        AggregationResult with frozen, deduplicated, sorted grids

    Raises:
        AggregationError: if any fetch task failed (chained to the original error)
        RunCancelledError: if cancel_event was set
    """
    runner = BoundedRunner(concurrency, cancel_event)
    accumulator = GridAccumulator(adapter.frame)

    try:
        total = adapter.task_count
        batches = adapter.fetch_batches(runner)
        try:
            with tqdm(total=total, desc="Querying archive", unit="task",
                      file=sys.stderr, disable=not show_progress) as pbar:
                for batch in batches:
                    for fact in batch:
                        accumulator.add(fact)
                    pbar.update(1)
        finally:
            batches.close()
    except RunCancelledError:
        raise
    except Exception as e:
        raise AggregationError(f"{type(e).__name__}: {e}") from e

    logger.info("Merged %d grid(s) over %d queried cell(s)", len(accumulator.grids), len(accumulator.queried))

    if adapter.kind == ProviderKind.QUADTREE_INDEXED:
        fill_queried_cells(accumulator.grids.values(), accumulator.queried)

    for grid in accumulator.grids.values():
        grid.freeze()

    if adapter.kind == ProviderKind.DATE_LAYERED:
        groups = dedup_layer_groups(_build_groups(accumulator.grids))
        grids = [grid for group in groups for grid in group.grids]
        return AggregationResult(adapter.kind, adapter.frame, grids, groups)

    grids = sorted(accumulator.grids.values(), key=lambda g: g.date, reverse=True)
    return AggregationResult(adapter.kind, adapter.frame, grids)

"""
Tests for the interactive option chooser.

Input is scripted through input_func; output goes to a StringIO sink.

Run with: pytest tests/test_selection.py -v
"""

import io
from datetime import date

from fakes import layer
from histimagery.aggregation import AggregationResult
from histimagery.data_types import AvailabilityGrid, LayerGroup
from histimagery.selection import GridOption, LayerOption, OptionChooser, options_for
from histimagery.tile_geometry import EsriTile, GridFrame, TileStats
from histimagery.types import ProviderKind

FRAME = GridFrame(TileStats(0, 0, 0, 0), 1, EsriTile, top_origin=False)


def scripted(*answers):
    """input() replacement returning `answers` in order, then end of input."""
    remaining = list(answers)
    prompts = []

    def read(prompt):
        prompts.append(prompt)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    read.prompts = prompts
    return read


def available_grid(capture_date):
    grid = AvailabilityGrid(capture_date, 1, 1)
    grid[0, 0] = True
    return grid.freeze()


class RecordingOption:
    def __init__(self, name, ends_menu=False):
        self.display_value = name
        self.ends_menu = ends_menu
        self.drawn = 0

    def draw_option(self, chooser):
        self.drawn += 1
        return self.ends_menu


class TestOptionChooser:
    """Menu loop behaviour."""

    def test_lists_numbered_options(self):
        out = io.StringIO()
        OptionChooser(scripted(''), out).wait_for_options([RecordingOption('2021-01-01'), RecordingOption('2019-01-01')])
        assert '[1] 2021-01-01' in out.getvalue()
        assert '[2] 2019-01-01' in out.getvalue()

    def test_selected_option_drawn_until_quit(self):
        first, second = RecordingOption('a'), RecordingOption('b')
        OptionChooser(scripted('2', '1', '2', 'q'), io.StringIO()).wait_for_options([first, second])
        assert (first.drawn, second.drawn) == (1, 2)

    def test_invalid_input_reprompts(self):
        out = io.StringIO()
        option = RecordingOption('a')
        OptionChooser(scripted('x', '7', '1'), out).wait_for_options([option])
        assert option.drawn == 1
        assert "'x' is not a number" in out.getvalue()
        assert "between 1 and 1" in out.getvalue()

    def test_option_can_end_menu(self):
        option = RecordingOption('a', ends_menu=True)
        read = scripted('1', '1')
        OptionChooser(read, io.StringIO()).wait_for_options([option])
        assert option.drawn == 1
        assert len(read.prompts) == 1

    def test_no_options_no_prompt(self):
        read = scripted()
        OptionChooser(read, io.StringIO()).wait_for_options([])
        assert read.prompts == []


class TestResultOptions:
    """Grid and layer options built from aggregation results."""

    def test_grid_option_draws_map(self):
        out = io.StringIO()
        OptionChooser(scripted('1', ''), out).wait_for_options([GridOption(available_grid(date(2005, 6, 15)))])
        assert 'Tile availability on 2005-06-15\n' in out.getvalue()
        assert '▀' in out.getvalue()

    def test_single_grid_layer(self):
        group = LayerGroup(layer(7, date(2022, 3, 4)), [available_grid(date(2021, 8, 9))])
        out = io.StringIO()
        OptionChooser(scripted('1', ''), out).wait_for_options([LayerOption(group)])
        assert 'Tile availability on 2022-03-04 (captured on 2021-08-09)' in out.getvalue()

    def test_multi_grid_layer_opens_nested_menu(self):
        release = layer(7, date(2022, 3, 4))
        group = LayerGroup(release, [available_grid(date(2021, 8, 9)), available_grid(date(2020, 1, 2))])
        out = io.StringIO()
        read = scripted('1', '2', '', '')
        OptionChooser(read, out).wait_for_options([LayerOption(group)])

        text = out.getvalue()
        assert f'Layer {release.title} has imagery from 2 different dates' in text
        assert 'Tile availability on 2020-01-02' in text
        assert len(read.prompts) == 4

    def test_options_for_result(self):
        grids = [available_grid(date(2010, 1, 1))]
        quadtree = AggregationResult(ProviderKind.QUADTREE_INDEXED, FRAME, grids)
        assert [o.display_value for o in options_for(quadtree)] == ['2010-01-01']

        group = LayerGroup(layer(1, date(2022, 1, 1)), grids)
        layered = AggregationResult(ProviderKind.DATE_LAYERED, FRAME, grids, [group])
        assert [o.display_value for o in options_for(layered)] == ['2022-01-01']

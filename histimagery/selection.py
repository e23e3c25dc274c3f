"""
Interactive console selection over availability results.

Any object with a `display_value` string and a `draw_option(chooser) -> bool`
method can be offered. Returning True from draw_option ends the menu that
offered the option.
"""

import sys
from typing import Callable, List, Optional, Sequence, TextIO

from histimagery.aggregation import AggregationResult
from histimagery.data_types import AvailabilityGrid, LayerGroup, format_date
from histimagery.rendering import draw_grid_option
from histimagery.types import ProviderKind

QUIT_ANSWERS = ('', 'q', 'quit')


class OptionChooser:
    """
    Numbered console menu.

    Args:
        input_func: Prompt reader (input() by default)
        out: Text sink for the menu and drawn options
    """

    def __init__(self, input_func: Optional[Callable[[str], str]] = None, out: Optional[TextIO] = None):
        self.input_func = input_func or input
        self.out = out or sys.stdout

    def _read(self, prompt: str):
        try:
            return self.input_func(prompt)
        except EOFError:
            return None

    def wait_for_options(self, options: Sequence) -> None:
        """Offer `options` until one ends the menu or the user leaves (blank, q, or end of input)."""
        if not options:
            return

        while True:
            self.out.write('\n')
            for number, option in enumerate(options, start=1):
                self.out.write(f"[{number}] {option.display_value}\n")
            self.out.flush()

            answer = self._read(f"Select an option [1-{len(options)}], or press Enter to go back: ")
            if answer is None or answer.strip().lower() in QUIT_ANSWERS:
                return

            try:
                choice = int(answer.strip())
            except ValueError:
                self.out.write(f"'{answer.strip()}' is not a number\n")
                continue
            if not 1 <= choice <= len(options):
                self.out.write(f"Choose a number between 1 and {len(options)}\n")
                continue

            if options[choice - 1].draw_option(self):
                return


class GridOption:
    """One capture date of a quadtree result, or one capture date inside a layer."""

    def __init__(self, grid: AvailabilityGrid):
        self.grid = grid

    @property
    def display_value(self) -> str:
        return self.grid.display_value

    def draw_option(self, chooser: OptionChooser) -> bool:
        draw_grid_option(self.grid, chooser.out)
        return False


class LayerOption:
    """A date-layered archive layer; opens a nested menu when it holds several capture dates."""

    def __init__(self, group: LayerGroup):
        self.group = group

    @property
    def display_value(self) -> str:
        return self.group.display_value

    def draw_option(self, chooser: OptionChooser) -> bool:
        grids = self.group.grids
        if len(grids) == 1:
            header = (f"Tile availability on {format_date(self.group.date)} "
                      f"(captured on {grids[0].display_value})")
            draw_grid_option(grids[0], chooser.out, header=header)
        elif len(grids) > 1:
            header = f"Layer {self.group.layer.title} has imagery from {len(grids)} different dates"
            chooser.out.write('\n' + header + '\n')
            chooser.out.write('=' * len(header) + '\n')
            chooser.wait_for_options([GridOption(grid) for grid in grids])
        return False


def options_for(result: AggregationResult) -> List:
    """Menu options for an aggregation result, newest first."""
    if result.kind == ProviderKind.DATE_LAYERED:
        return [LayerOption(group) for group in result.groups]
    return [GridOption(grid) for grid in result.grids]

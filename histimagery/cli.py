"""
Command line interface: which historical imagery dates exist for a region?

Usage:
    imagery-availability --provider wayback -z 17 --region "47.60,-122.34+47.61,-122.34+47.61,-122.33"
    imagery-availability --provider wayback -z 15 --lower-left 47.5,-122.4 --upper-right 47.7,-122.2 --json
    imagery-availability --provider keyhole -z 18 --region-file aoi.geojson --client-factory mypkg.keyhole:create_client

Exit status:
    0   success (including "no imagery available")
    1   the availability check did not complete
    2   invalid arguments
    130 cancelled
"""

import argparse
import sys
import threading
from typing import List, Optional, Sequence

from histimagery import __version__
from histimagery.aggregation import aggregate
from histimagery.archives import create_adapter, create_client, get_provider, provider_names
from histimagery.archives.source_registry import PROVIDER_REGISTRY
from histimagery.config import DEFAULT_CONCURRENCY, DEFAULT_PROVIDER
from histimagery.errors import AggregationError, RegionValidationError, RunCancelledError
from histimagery.logging_config import get_logger, setup_logging, silence_library_loggers
from histimagery.region import GeoRegion, parse_lat_lon
from histimagery.rendering import write_geojson
from histimagery.selection import OptionChooser, options_for
from histimagery.settings import get_setting
from histimagery.validation import validate_request

logger = get_logger(__name__)

# Options whose values are coordinates and may start with a minus sign
COORDINATE_OPTIONS = ('--region', '--lower-left', '--upper-right')


def join_coordinate_values(argv: Sequence[str]) -> List[str]:
    """
    Rewrite "--lower-left -33.9,18.4" as "--lower-left=-33.9,18.4".

    argparse only accepts a dash-prefixed value when it looks like a plain
    negative number, so "lat,lon" pairs south or west of zero would be read
    as unknown options.
    """
    joined = []
    args = list(argv)
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in COORDINATE_OPTIONS and i + 1 < len(args) and args[i + 1].startswith('-'):
            joined.append(f"{arg}={args[i + 1]}")
            i += 2
            continue
        joined.append(arg)
        i += 1
    return joined


def _provider_notes() -> str:
    return '\n'.join(
        f"  {p.cli_name:8s} {p.name}, zoom {p.min_zoom}-{p.max_zoom}. {p.notes}" for p in PROVIDER_REGISTRY
    )


def _lat_lon_arg(text: str):
    try:
        return parse_lat_lon(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _region_arg(text: str) -> GeoRegion:
    try:
        return GeoRegion.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid region '{text}': {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='imagery-availability',
        description='Find the historical imagery capture dates available for a region',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            'Regions are given as "LAT,LON+LAT,LON+..." polygons, as a lower-left/upper-right\n'
            'rectangle, or as a GeoJSON file. Results are shown in an interactive menu,\n'
            'or printed as GeoJSON with --json.\n\nProviders:\n' + _provider_notes()
        )
    )
    parser.add_argument(
        '--provider',
        choices=provider_names(),
        default=DEFAULT_PROVIDER,
        help=f'Imagery archive to query (default: {DEFAULT_PROVIDER})'
    )
    parser.add_argument(
        '-z', '--zoom',
        type=int,
        required=True,
        help='Zoom level'
    )
    parser.add_argument(
        '--region',
        type=_region_arg,
        help='Polygon as "LAT,LON+LAT,LON+LAT,LON..."'
    )
    parser.add_argument(
        '--lower-left',
        type=_lat_lon_arg,
        metavar='LAT,LON',
        help='South-west corner of a rectangular region'
    )
    parser.add_argument(
        '--upper-right',
        type=_lat_lon_arg,
        metavar='LAT,LON',
        help='North-east corner of a rectangular region'
    )
    parser.add_argument(
        '--region-file',
        type=str,
        help='GeoJSON file with a Polygon, Feature or FeatureCollection (first polygon is used)'
    )
    parser.add_argument(
        '-p', '--parallel',
        type=int,
        default=None,
        help=f'Number of concurrent archive queries (default: {DEFAULT_CONCURRENCY})'
    )
    parser.add_argument(
        '-j', '--json',
        action='store_true',
        help='Print availability polygons as GeoJSON instead of the interactive menu'
    )
    parser.add_argument(
        '--client-factory',
        type=str,
        metavar='MODULE:CALLABLE',
        help='Callable returning the archive client (required for keyhole)'
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Do not show the progress bar'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        help='Logging level (default: LOG_LEVEL environment variable, else WARNING)'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def resolve_region(args) -> GeoRegion:
    """
    The single region described by the command line.

    Raises:
        RegionValidationError: if no region or more than one region was given
    """
    has_corners = args.lower_left is not None or args.upper_right is not None
    sources = [args.region is not None, has_corners, args.region_file is not None]
    if sum(sources) == 0:
        raise RegionValidationError("Specify a region with --region, --lower-left/--upper-right or --region-file")
    if sum(sources) > 1:
        raise RegionValidationError("Use only one of --region, --lower-left/--upper-right and --region-file")

    if args.region is not None:
        return args.region
    if has_corners:
        if args.lower_left is None or args.upper_right is None:
            raise RegionValidationError("--lower-left and --upper-right must be given together")
        return GeoRegion.from_corners(args.lower_left, args.upper_right)

    try:
        return GeoRegion.from_geojson(args.region_file)
    except OSError as e:
        raise RegionValidationError(f"Cannot read {args.region_file}: {e}") from e
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise RegionValidationError(f"No usable polygon in {args.region_file}: {e}") from e


def _report(messages: List[str]) -> None:
    for message in messages:
        print(f" {message}", file=sys.stderr, flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    if argv is None:
        argv = sys.argv[1:]
    args = parser.parse_args(join_coordinate_values(argv))

    setup_logging(args.log_level, detailed=str(args.log_level).upper() == 'DEBUG')
    silence_library_loggers()

    provider = get_provider(args.provider)
    requested = args.parallel if args.parallel is not None else int(get_setting('availability.parallel', DEFAULT_CONCURRENCY))

    try:
        region = resolve_region(args)
    except RegionValidationError as e:
        _report(e.messages)
        return 2

    try:
        validate_request(provider, region, args.zoom, requested)
    except RegionValidationError as e:
        _report(e.messages)
        return 2

    concurrency = provider.clamp_concurrency(requested)
    if concurrency < requested:
        print(f"Limiting to {concurrency} concurrent scrapes of Esri metadata.", file=sys.stderr, flush=True)

    try:
        client = create_client(provider, args.client_factory)
    except (ImportError, ValueError) as e:
        _report([str(e)])
        return 2

    try:
        adapter = create_adapter(provider.kind, client, region, args.zoom)
    except RegionValidationError as e:
        _report(e.messages)
        return 2

    rows, columns = adapter.frame.shape
    print(f"Checking {provider.name} at zoom level {args.zoom} ({rows} x {columns} tiles)", file=sys.stderr, flush=True)

    cancel_event = threading.Event()
    try:
        result = aggregate(adapter, concurrency, show_progress=not args.no_progress, cancel_event=cancel_event)
    except KeyboardInterrupt:
        cancel_event.set()
        print("\n Cancelled", file=sys.stderr, flush=True)
        return 130
    except RunCancelledError:
        print(" Cancelled", file=sys.stderr, flush=True)
        return 130
    except AggregationError as e:
        logger.debug("Aggregation failed", exc_info=True)
        print(f"Availability check did not complete: {e}", file=sys.stderr, flush=True)
        return 1

    if result.is_empty:
        print(provider.no_imagery_message.format(zoom=args.zoom), file=sys.stderr, flush=True)
        return 0

    if args.json:
        write_geojson(result.grids, result.frame, sys.stdout)
    else:
        OptionChooser().wait_for_options(options_for(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())

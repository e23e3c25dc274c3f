"""
Historical imagery availability for arbitrary regions.

Determines which capture dates two tile-imagery archives hold for a region at a
zoom level and renders the result as a console map or as merged GeoJSON polygons.

Main entry points:
    from histimagery.aggregation import aggregate
    from histimagery.archives.adapters import create_adapter
    from histimagery.rendering import draw_map, write_geojson
"""

__version__ = "1.0.0"

"""
Type definitions for the historical imagery project.

This module contains enums used throughout the codebase.
"""

from enum import Enum


class ProviderKind(str, Enum):
    """
    Archive provider classification.

    This enum defines the two kinds of imagery archive:
    - DATE_LAYERED: one layer per release, each layer split into capture-date
      regions (Esri World Imagery Wayback)
    - QUADTREE_INDEXED: one node per quadtree tile carrying dated snapshots
      (Google Earth historical imagery)

    Inherits from str so it's JSON-serializable and works with string comparisons.
    """
    DATE_LAYERED = "date_layered"
    QUADTREE_INDEXED = "quadtree_indexed"

    def __str__(self) -> str:
        """Return the string value for easy printing."""
        return self.value

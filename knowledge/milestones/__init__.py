"""
Milestone catalog and citations.
"""

from .catalog import (
    MilestoneCatalog,
    REGIONS,
    get_catalog,
    get_milestone,
    get_sources,
    get_sources_for_region,
    format_age_range,
)

__all__ = [
    "MilestoneCatalog",
    "REGIONS",
    "get_catalog",
    "get_milestone",
    "get_sources",
    "get_sources_for_region",
    "format_age_range",
]

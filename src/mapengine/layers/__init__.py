"""Map layer data — point ingestion, GeoJSON export, and the layer catalog.

The CSV parser and GeoJSON exporter use only the Python stdlib.
"""

from mapengine.layers.catalog import LayerCatalog, default_catalog
from mapengine.layers.layer import (
    BoundingBox,
    FeatureCollection,
    LayerDescriptor,
    PointFeature,
    RenderKind,
)
from mapengine.layers.parsers.csv_import import MissingColumnError, parse_csv

__all__ = [
    "BoundingBox",
    "FeatureCollection",
    "LayerCatalog",
    "LayerDescriptor",
    "MissingColumnError",
    "PointFeature",
    "RenderKind",
    "default_catalog",
    "parse_csv",
]

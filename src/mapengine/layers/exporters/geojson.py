"""Export feature collections to GeoJSON dicts (RFC 7946 compliant).

Coordinates are [lng, lat], already the internal storage convention.
"""

from __future__ import annotations

from mapengine.layers.layer import FeatureCollection, PointFeature


def export_geojson(collection: FeatureCollection) -> dict:
    """Export a FeatureCollection to a GeoJSON FeatureCollection dict.

    Args:
        collection: The collection to export.

    Returns:
        Dict representing a valid GeoJSON FeatureCollection.
    """
    return {
        "type": collection.type,
        "features": [_feature_to_geojson(f) for f in collection.features],
    }


def polygon_geojson(ring) -> dict:
    """Wrap a single closed ring as a one-feature FeatureCollection."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[list(pt) for pt in ring]],
                },
            }
        ],
    }


def line_geojson(coords) -> dict:
    """Wrap a coordinate path as a one-feature LineString collection."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {},
                "geometry": {
                    "type": "LineString",
                    "coordinates": [list(pt) for pt in coords],
                },
            }
        ],
    }


def _feature_to_geojson(feature: PointFeature) -> dict:
    """Convert a PointFeature to a GeoJSON Feature dict."""
    return {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            "coordinates": [feature.lng, feature.lat],
        },
        "properties": dict(feature.attributes),
    }

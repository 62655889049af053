"""Point feature, feature collection and layer descriptor types.

All coordinates are stored in GeoJSON convention: (lng, lat).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

FEATURE_COLLECTION = "FeatureCollection"


@dataclass
class PointFeature:
    """A single point record ingested from tabular data.

    Attributes:
        coordinates: (lng, lat) pair.
        weight: Heatmap weight. Defaults to 1.0.
        attributes: Raw string fields keyed by header, plus the resolved
            ``weight``.
    """

    coordinates: tuple[float, float]
    weight: float = 1.0
    attributes: dict = field(default_factory=dict)

    @property
    def lng(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]


@dataclass
class BoundingBox:
    """Axis-aligned lng/lat box grown one point at a time."""

    west: float
    south: float
    east: float
    north: float

    @classmethod
    def around(cls, lng: float, lat: float) -> BoundingBox:
        return cls(west=lng, south=lat, east=lng, north=lat)

    def extend(self, lng: float, lat: float) -> None:
        self.west = min(self.west, lng)
        self.south = min(self.south, lat)
        self.east = max(self.east, lng)
        self.north = max(self.north, lat)

    def as_pairs(self) -> list[list[float]]:
        """Return [[west, south], [east, north]] as the map client expects."""
        return [[self.west, self.south], [self.east, self.north]]


@dataclass
class FeatureCollection:
    """Ordered point features. Order is input row order; empty is valid."""

    features: list[PointFeature] = field(default_factory=list)
    type: str = FEATURE_COLLECTION

    def __len__(self) -> int:
        return len(self.features)

    def bounds(self) -> BoundingBox | None:
        """Accumulate a bounding box over every feature coordinate.

        Returns None when the collection has no features.
        """
        box: BoundingBox | None = None
        for feature in self.features:
            lng, lat = feature.coordinates
            if box is None:
                box = BoundingBox.around(lng, lat)
            else:
                box.extend(lng, lat)
        return box

    def to_geojson(self) -> dict:
        from mapengine.layers.exporters.geojson import export_geojson
        return export_geojson(self)


class RenderKind(str, Enum):
    BASE = "base"
    OVERLAY = "overlay"


@dataclass(frozen=True)
class LayerDescriptor:
    """A selectable map layer.

    Attributes:
        id: Unique catalog id ("base", "heat", ...).
        label: Human-readable button label.
        render_kind: Whether the layer is the base context or an overlay.
        style_ref: Map style URL applied when chosen as the base.
        caption: Figure caption text.
        layer_id: Rendering layer id for overlays (e.g. "overlay-heat").
        color: Fill color for overlays.
        ring: Closed polygon ring [[lng, lat], ...] drawn for overlays.
    """

    id: str
    label: str
    render_kind: RenderKind
    style_ref: str
    caption: str = ""
    layer_id: str | None = None
    color: str | None = None
    ring: tuple[tuple[float, float], ...] = ()

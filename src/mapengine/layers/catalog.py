"""LayerCatalog — fixed registry of selectable base and overlay layers.

The catalog is built once at startup from an immutable mapping and never
changes afterwards. The synthetic overlay selectors ``none`` and ``csv`` are
not catalog entries; the session controller handles them.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from mapengine.layers.layer import LayerDescriptor, RenderKind

DEFAULT_BASE_ID = "base"
DEFAULT_OVERLAY_ID = "heat"
OVERLAY_NONE = "none"
OVERLAY_CSV = "csv"

DARK_STYLE = "mapbox://styles/mapbox/dark-v11"

_DESCRIPTORS = (
    LayerDescriptor(
        id="base",
        label="Base",
        render_kind=RenderKind.BASE,
        style_ref=DARK_STYLE,
        caption="Base context: corridor boundary over the basemap.",
    ),
    LayerDescriptor(
        id="heat",
        label="Heat",
        render_kind=RenderKind.OVERLAY,
        style_ref=DARK_STYLE,
        caption="Heat exposure overlay.",
        layer_id="overlay-heat",
        color="#ff6b6b",
        ring=(
            (-118.45, 33.96),
            (-118.31, 33.96),
            (-118.31, 34.03),
            (-118.45, 34.03),
            (-118.45, 33.96),
        ),
    ),
    LayerDescriptor(
        id="canopy",
        label="Tree Canopy",
        render_kind=RenderKind.OVERLAY,
        style_ref=DARK_STYLE,
        caption="Tree canopy coverage layer.",
        layer_id="overlay-canopy",
        color="#4ade80",
        ring=(
            (-118.41, 33.93),
            (-118.3, 33.93),
            (-118.3, 33.98),
            (-118.41, 33.98),
            (-118.41, 33.93),
        ),
    ),
    LayerDescriptor(
        id="impervious",
        label="Impervious",
        render_kind=RenderKind.OVERLAY,
        style_ref=DARK_STYLE,
        caption="Impervious surface layer.",
        layer_id="overlay-impervious",
        color="#60a5fa",
        ring=(
            (-118.39, 33.985),
            (-118.26, 33.985),
            (-118.26, 34.045),
            (-118.39, 34.045),
            (-118.39, 33.985),
        ),
    ),
)


class LayerCatalog:
    """Read-only lookup over a fixed, ordered set of layer descriptors."""

    def __init__(
        self,
        descriptors: tuple[LayerDescriptor, ...] = _DESCRIPTORS,
        default_id: str = DEFAULT_BASE_ID,
    ) -> None:
        by_id: dict[str, LayerDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in by_id:
                raise ValueError(f"Duplicate layer id: {descriptor.id}")
            by_id[descriptor.id] = descriptor
        if default_id not in by_id:
            raise ValueError(f"Default layer not in catalog: {default_id}")

        self._ordered = tuple(descriptors)
        self._by_id: Mapping[str, LayerDescriptor] = MappingProxyType(by_id)
        self._default = by_id[default_id]

    @property
    def default(self) -> LayerDescriptor:
        return self._default

    def list_layers(self) -> list[LayerDescriptor]:
        """All descriptors in display order."""
        return list(self._ordered)

    def resolve(self, layer_id: str | None) -> LayerDescriptor:
        """Look up a descriptor, falling back to the default for unknown ids."""
        return self._by_id.get(layer_id or "", self._default)

    def contains(self, layer_id: str) -> bool:
        return layer_id in self._by_id

    def overlays(self) -> list[LayerDescriptor]:
        """Descriptors that render as overlays, in display order."""
        return [d for d in self._ordered if d.render_kind == RenderKind.OVERLAY]

    def base_choices(self) -> list[str]:
        """Ids offered by the base selector (every catalog entry)."""
        return [d.id for d in self._ordered]

    def overlay_choices(self) -> list[str]:
        """Ids offered by the overlay selector."""
        return [OVERLAY_NONE, OVERLAY_CSV] + [d.id for d in self.overlays()]

    def label_for_overlay(self, overlay_id: str) -> str:
        if overlay_id == OVERLAY_NONE:
            return "None"
        if overlay_id == OVERLAY_CSV:
            return "CSV"
        return self.resolve(overlay_id).label


def default_catalog() -> LayerCatalog:
    """Build the application's layer catalog."""
    return LayerCatalog()

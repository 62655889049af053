"""MapSessionController — owns the live map and keeps it in sync with the view.

Session FSM:
  uninitialized -> provisioning -> ready -> torn_down

  open():   view visible AND valid access token AND no live session.
            Creates the map with the default base style and a fixed camera.
  load / style.load signals:
            (re)provision sources and layers, then mark ready. A style swap
            drops every source and layer on the map, so provisioning runs
            after every reload. Each add is guarded by an existence check
            because the number and order of reload signals is not guaranteed.
  close():  view hidden or owner shutting down. Destroys the map and resets
            the overlay fetcher so late fetch completions are discarded.

Parameter reactions (only while a session exists; paint/style only while
ready, everything is re-applied on the next ready signal):
  base change      -> set_style (back to provisioning)
  overlay/opacity  -> push per-layer opacity paint values
  zoom factor      -> ease the camera
  overlay == "csv" -> activate the overlay data fetcher
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Coroutine, Optional

from loguru import logger

from mapengine.comms.event_bus import EventBus
from mapengine.layers.catalog import OVERLAY_CSV, LayerCatalog
from mapengine.layers.exporters.geojson import line_geojson, polygon_geojson
from mapengine.layers.layer import FeatureCollection, LayerDescriptor
from mapengine.session.capability import (
    EVENT_LOAD,
    EVENT_STYLE_LOAD,
    MapCapability,
    MapInstance,
)
from mapengine.session.fetcher import FetchState, OverlayDataFetcher
from mapengine.session.params import (
    DEFAULT_ZOOM,
    PARAMS_CHANGED,
    ViewParameters,
    ViewParameterStore,
)

SESSION_STATE = "session.state"

PLACEHOLDER_TOKEN = "YOUR_TOKEN"

# Camera
INITIAL_CENTER = (-118.35, 33.98)
BASE_ZOOM = 11.4
ZOOM_SPAN = 2.0
ZOOM_EASE_MS = 700

# Fit-to-data framing for the CSV overlay
FIT_PADDING = 60
FIT_DURATION_MS = 800
FIT_MAX_ZOOM = 14

# Cosmetic: keeps point markers visible above the heat blend.
POINTS_OPACITY_BIAS = 0.15

CORRIDOR_SOURCE = "corridor"
CORRIDOR_LAYER = "corridor-line"
CORRIDOR_PATH = (
    (-118.46, 33.93),
    (-118.43, 33.95),
    (-118.4, 33.96),
    (-118.37, 33.98),
    (-118.34, 34.0),
    (-118.31, 34.02),
    (-118.28, 34.03),
    (-118.25, 34.05),
)
CORRIDOR_PAINT = {
    "line-color": "#d4af37",
    "line-width": 4,
    "line-opacity": 0.9,
}

POINTS_SOURCE = "csv-points"
POINTS_HEATMAP_LAYER = "csv-heatmap"
POINTS_CIRCLE_LAYER = "csv-points"

HEATMAP_PAINT = {
    "heatmap-weight": ["coalesce", ["to-number", ["get", "weight"]], 1],
    "heatmap-intensity": ["interpolate", ["linear"], ["zoom"], 10, 1, 14, 2.2],
    "heatmap-radius": ["interpolate", ["linear"], ["zoom"], 10, 18, 14, 40],
    "heatmap-opacity": 0,
    "heatmap-color": [
        "interpolate",
        ["linear"],
        ["heatmap-density"],
        0, "rgba(0,0,0,0)",
        0.2, "rgba(96,165,250,0.55)",
        0.4, "rgba(74,222,128,0.65)",
        0.65, "rgba(244,208,63,0.75)",
        0.85, "rgba(255,107,107,0.85)",
        1, "rgba(255,107,107,1)",
    ],
}
HEATMAP_MAX_ZOOM = 15

CIRCLE_PAINT = {
    "circle-radius": ["interpolate", ["linear"], ["zoom"], 12, 2, 16, 6],
    "circle-color": "#f4d03f",
    "circle-stroke-color": "#0a0a0a",
    "circle-stroke-width": 1,
    "circle-opacity": 0,
}
CIRCLE_MIN_ZOOM = 12


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    PROVISIONING = "provisioning"
    READY = "ready"
    TORN_DOWN = "torn_down"


def has_valid_token(token: Optional[str]) -> bool:
    """A token is usable unless absent, blank, or the placeholder value."""
    return bool(token and token.strip() and token != PLACEHOLDER_TOKEN)


def target_zoom(zoom_factor: float) -> float:
    return BASE_ZOOM + (zoom_factor - 1.0) * ZOOM_SPAN


Scheduler = Callable[[Coroutine[Any, Any, Any]], Optional[asyncio.Future]]


def _spawn(coro: Coroutine[Any, Any, Any]) -> Optional[asyncio.Future]:
    """Run ``coro`` as a task on the running loop."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        logger.warning("No running event loop; CSV overlay fetch not started")
        return None
    return loop.create_task(coro)


class MapSessionController:
    """Owns the single map instance and reacts to view parameter changes."""

    def __init__(
        self,
        capability: MapCapability,
        catalog: LayerCatalog,
        store: ViewParameterStore,
        fetcher: OverlayDataFetcher,
        bus: EventBus,
        access_token: Optional[str],
        dataset_url: str,
        container: str = "map",
        schedule: Scheduler = _spawn,
    ) -> None:
        self._capability = capability
        self._catalog = catalog
        self._store = store
        self._fetcher = fetcher
        self._bus = bus
        self._access_token = access_token
        self._dataset_url = dataset_url
        self._container = container
        self._schedule = schedule

        self._instance: MapInstance | None = None
        self._state = SessionState.UNINITIALIZED
        self._ready = False
        self._visible = False
        self._applied_base_id: str | None = None
        self._session_epoch = 0
        self._fetch_task: Optional[asyncio.Future] = None

        self._bus.subscribe(PARAMS_CHANGED, self._on_params_changed)
        self._fetcher.set_data_handler(self._on_dataset_loaded)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def instance(self) -> MapInstance | None:
        return self._instance

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def credential_valid(self) -> bool:
        return has_valid_token(self._access_token)

    @property
    def dataset_url(self) -> str:
        return self._dataset_url

    @property
    def session_epoch(self) -> int:
        return self._session_epoch

    @property
    def fetch_task(self) -> Optional[asyncio.Future]:
        return self._fetch_task

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def can_open(self) -> bool:
        return self._visible and self.credential_valid and self._instance is None

    def set_visible(self, visible: bool) -> None:
        """Show or hide the map view, opening or closing the session."""
        self._visible = visible
        if visible:
            self.open()
        else:
            self.close()

    def open(self) -> bool:
        """Create the map instance if the open precondition holds."""
        if not self.can_open():
            if self._visible and not self.credential_valid:
                logger.info("Map access token not configured; map session not created")
            return False

        default = self._catalog.default
        instance = self._capability.create_instance(
            self._container, default.style_ref, INITIAL_CENTER, BASE_ZOOM
        )
        self._session_epoch += 1
        epoch = self._session_epoch
        self._instance = instance
        self._applied_base_id = default.id
        self._ready = False

        instance.add_navigation_control("top-right", visualize_pitch=True)
        instance.on(EVENT_LOAD, lambda: self._on_map_ready(epoch, EVENT_LOAD))
        instance.on(EVENT_STYLE_LOAD, lambda: self._on_map_ready(epoch, EVENT_STYLE_LOAD))
        self._set_state(SessionState.PROVISIONING)
        logger.info(f"Map session {epoch} opened ({instance.instance_id})")

        zoom_factor = self._store.params.zoom_factor
        if zoom_factor != DEFAULT_ZOOM:
            self._ease(zoom_factor)
        return True

    def close(self) -> None:
        """Destroy the map instance, if any. Safe to call repeatedly."""
        instance = self._instance
        if instance is None:
            return
        self._instance = None
        self._ready = False
        self._applied_base_id = None
        self._fetch_task = None
        instance.destroy()
        self._fetcher.reset()
        self._set_state(SessionState.TORN_DOWN)
        logger.info(f"Map session {self._session_epoch} closed")

    def shutdown(self) -> None:
        """Owner scope ending: close the session and stop observing."""
        self._visible = False
        self.close()
        self._bus.unsubscribe(PARAMS_CHANGED, self._on_params_changed)
        self._fetcher.set_data_handler(None)

    # ------------------------------------------------------------------
    # Map lifecycle signals
    # ------------------------------------------------------------------

    def _on_map_ready(self, epoch: int, event: str) -> None:
        if epoch != self._session_epoch or self._instance is None:
            logger.debug(f"Ignoring {event} from stale map session {epoch}")
            return

        self._provision()
        self._ready = True
        self._set_state(SessionState.READY)
        logger.debug(f"Map ready after {event}")

        params = self._store.params
        wanted = self._catalog.resolve(params.base_layer_id)
        if wanted.id != self._applied_base_id:
            self._swap_style(wanted)
            return

        self._apply_overlay_paint(params)
        if params.overlay_layer_id == OVERLAY_CSV:
            self._activate_dataset()

    def _provision(self) -> None:
        """Ensure every source and layer exists on the current style."""
        self._ensure_source(CORRIDOR_SOURCE, line_geojson(CORRIDOR_PATH))
        self._ensure_layer(CORRIDOR_LAYER, "line", CORRIDOR_SOURCE, CORRIDOR_PAINT)

        for overlay in self._catalog.overlays():
            self._ensure_source(overlay.layer_id, polygon_geojson(overlay.ring))
            self._ensure_layer(
                overlay.layer_id,
                "fill",
                overlay.layer_id,
                {"fill-color": overlay.color, "fill-opacity": 0},
            )

        # Re-seed with already loaded points so a style swap keeps the data.
        loaded = self._fetcher.collection or FeatureCollection()
        self._ensure_source(POINTS_SOURCE, loaded.to_geojson())
        self._ensure_layer(
            POINTS_HEATMAP_LAYER, "heatmap", POINTS_SOURCE, HEATMAP_PAINT,
            max_zoom=HEATMAP_MAX_ZOOM,
        )
        self._ensure_layer(
            POINTS_CIRCLE_LAYER, "circle", POINTS_SOURCE, CIRCLE_PAINT,
            min_zoom=CIRCLE_MIN_ZOOM,
        )

    def _ensure_source(self, source_id: str, data: dict) -> None:
        if not self._instance.source_exists(source_id):
            self._instance.add_vector_source(source_id, data)

    def _ensure_layer(
        self,
        layer_id: str,
        kind: str,
        source_id: str,
        paint: dict,
        min_zoom: float | None = None,
        max_zoom: float | None = None,
    ) -> None:
        if not self._instance.layer_exists(layer_id):
            self._instance.add_styled_layer(
                layer_id, kind, source_id, paint, min_zoom=min_zoom, max_zoom=max_zoom
            )

    # ------------------------------------------------------------------
    # Parameter reactions
    # ------------------------------------------------------------------

    def _on_params_changed(self, msg: dict) -> None:
        if self._instance is None:
            return
        previous: ViewParameters = msg["data"]["previous"]
        current: ViewParameters = msg["data"]["current"]

        if current.zoom_factor != previous.zoom_factor:
            self._ease(current.zoom_factor)

        if not self._ready:
            return

        if current.base_layer_id != previous.base_layer_id:
            wanted = self._catalog.resolve(current.base_layer_id)
            if wanted.id != self._applied_base_id:
                self._swap_style(wanted)
                return

        if (
            current.overlay_layer_id != previous.overlay_layer_id
            or current.opacity != previous.opacity
        ):
            self._apply_overlay_paint(current)

        if (
            current.overlay_layer_id == OVERLAY_CSV
            and previous.overlay_layer_id != OVERLAY_CSV
        ):
            self._activate_dataset()

    def _swap_style(self, descriptor: LayerDescriptor) -> None:
        logger.info(f"Switching base style to {descriptor.id}")
        self._ready = False
        self._applied_base_id = descriptor.id
        self._set_state(SessionState.PROVISIONING)
        self._instance.set_style(descriptor.style_ref)

    def overlay_paint_values(self, params: ViewParameters) -> dict[tuple[str, str], float]:
        """Target opacity per (layer id, paint property) for ``params``."""
        selected = params.overlay_layer_id
        values: dict[tuple[str, str], float] = {}
        for overlay in self._catalog.overlays():
            values[(overlay.layer_id, "fill-opacity")] = (
                params.opacity if overlay.id == selected else 0.0
            )
        values[(POINTS_HEATMAP_LAYER, "heatmap-opacity")] = (
            params.opacity if selected == OVERLAY_CSV else 0.0
        )
        values[(POINTS_CIRCLE_LAYER, "circle-opacity")] = (
            min(1.0, params.opacity + POINTS_OPACITY_BIAS) if selected == OVERLAY_CSV else 0.0
        )
        return values

    def _apply_overlay_paint(self, params: ViewParameters) -> None:
        instance = self._instance
        for (layer_id, prop), value in self.overlay_paint_values(params).items():
            if not instance.layer_exists(layer_id):
                continue
            instance.set_paint_property(layer_id, prop, value)

    def _ease(self, zoom_factor: float) -> None:
        self._instance.ease_camera(target_zoom(zoom_factor), ZOOM_EASE_MS)

    # ------------------------------------------------------------------
    # CSV overlay
    # ------------------------------------------------------------------

    def _activate_dataset(self) -> None:
        if self._fetcher.status.state != FetchState.IDLE:
            return
        if self._fetch_task is not None and not self._fetch_task.done():
            return
        if not self._instance.source_exists(POINTS_SOURCE):
            return
        self._fetch_task = self._schedule(
            self._fetcher.activate(self._dataset_url, epoch=self._fetcher.epoch)
        )

    def _on_dataset_loaded(self, collection: FeatureCollection) -> None:
        instance = self._instance
        if instance is None or not instance.source_exists(POINTS_SOURCE):
            # Provisioning seeds the source from the fetcher once ready.
            return
        instance.replace_source_data(POINTS_SOURCE, collection.to_geojson())

        bounds = collection.bounds()
        if bounds is not None:
            instance.fit_bounds(
                bounds.as_pairs(),
                padding=FIT_PADDING,
                duration_ms=FIT_DURATION_MS,
                max_zoom=FIT_MAX_ZOOM,
            )

    # ------------------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        self._bus.publish(
            SESSION_STATE,
            {
                "state": state.value,
                "ready": self._ready,
                "map": self._instance.instance_id if self._instance else None,
            },
        )

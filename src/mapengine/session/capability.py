"""Map capability — the fixed interface the session controller drives.

The rendering engine itself (Mapbox GL in the browser) is an external
collaborator. ``MapCapability`` creates instances; ``MapInstance`` exposes the
handful of operations the controller needs plus lifecycle signals
(``load``, ``style.load``).

``CommandMap`` is the concrete implementation used by the app: it keeps a
server-side mirror of which sources and layers exist, so existence queries
are answered synchronously, and emits one JSON-serializable command per call
to a sink. The browser client replays the commands against the real map and
reports lifecycle signals back, which are delivered through ``fire``.

Like the real library, ``CommandMap`` raises for calls that reference a
missing source/layer or re-add an existing one. Callers prevent those
structurally with existence checks.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable

from loguru import logger

EVENT_LOAD = "load"
EVENT_STYLE_LOAD = "style.load"
LIFECYCLE_EVENTS = (EVENT_LOAD, EVENT_STYLE_LOAD)

Command = dict
CommandSink = Callable[[Command], None]


class MapInstance(ABC):
    """One live map bound to a container."""

    instance_id: str

    @abstractmethod
    def add_vector_source(self, source_id: str, data: dict) -> None: ...

    @abstractmethod
    def add_styled_layer(
        self,
        layer_id: str,
        kind: str,
        source_id: str,
        paint: dict,
        min_zoom: float | None = None,
        max_zoom: float | None = None,
    ) -> None: ...

    @abstractmethod
    def source_exists(self, source_id: str) -> bool: ...

    @abstractmethod
    def layer_exists(self, layer_id: str) -> bool: ...

    @abstractmethod
    def set_paint_property(self, layer_id: str, prop: str, value: Any) -> None: ...

    @abstractmethod
    def set_style(self, style_ref: str) -> None: ...

    @abstractmethod
    def ease_camera(self, zoom: float, duration_ms: int) -> None: ...

    @abstractmethod
    def fit_bounds(
        self,
        bounds: list[list[float]],
        padding: int,
        duration_ms: int,
        max_zoom: float,
    ) -> None: ...

    @abstractmethod
    def replace_source_data(self, source_id: str, data: dict) -> None: ...

    @abstractmethod
    def add_navigation_control(self, position: str = "top-right", visualize_pitch: bool = True) -> None: ...

    @abstractmethod
    def on(self, event: str, handler: Callable[[], None]) -> None: ...

    @abstractmethod
    def fire(self, event: str) -> None:
        """Deliver a lifecycle signal to the handlers registered with ``on``."""

    @abstractmethod
    def destroy(self) -> None: ...


class MapCapability(ABC):
    """Factory for map instances."""

    @abstractmethod
    def create_instance(
        self,
        container: str,
        style: str,
        center: tuple[float, float],
        zoom: float,
    ) -> MapInstance: ...


class MapDestroyedError(RuntimeError):
    """Raised when a destroyed map instance is used."""


class CommandMap(MapInstance):
    """MapInstance that mirrors state locally and emits commands to a sink."""

    def __init__(
        self,
        sink: CommandSink,
        container: str,
        style: str,
        center: tuple[float, float],
        zoom: float,
        access_token: str = "",
    ) -> None:
        self.instance_id = f"map-{uuid.uuid4().hex[:8]}"
        self.container = container
        self.style = style
        self.center = center
        self.zoom = zoom
        self.controls: list[dict] = []
        self.destroyed = False
        self._sink = sink
        self._sources: dict[str, dict] = {}
        self._layers: dict[str, dict] = {}
        self._handlers: dict[str, list[Callable[[], None]]] = defaultdict(list)

        self._emit(
            "create",
            container=container,
            style=style,
            center=list(center),
            zoom=zoom,
            accessToken=access_token,
        )

    # ------------------------------------------------------------------
    # Mirror queries
    # ------------------------------------------------------------------

    def source_exists(self, source_id: str) -> bool:
        return source_id in self._sources

    def layer_exists(self, layer_id: str) -> bool:
        return layer_id in self._layers

    def source_data(self, source_id: str) -> dict:
        return self._sources[source_id]["data"]

    def paint_value(self, layer_id: str, prop: str) -> Any:
        return self._layers[layer_id]["paint"].get(prop)

    @property
    def source_ids(self) -> list[str]:
        return list(self._sources)

    @property
    def layer_ids(self) -> list[str]:
        return list(self._layers)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_vector_source(self, source_id: str, data: dict) -> None:
        self._check_alive()
        if source_id in self._sources:
            raise ValueError(f"There is already a source with ID {source_id!r}")
        self._sources[source_id] = {"type": "geojson", "data": data}
        self._emit("addSource", id=source_id, source={"type": "geojson", "data": data})

    def add_styled_layer(
        self,
        layer_id: str,
        kind: str,
        source_id: str,
        paint: dict,
        min_zoom: float | None = None,
        max_zoom: float | None = None,
    ) -> None:
        self._check_alive()
        if layer_id in self._layers:
            raise ValueError(f"Layer with ID {layer_id!r} already exists on this map")
        if source_id not in self._sources:
            raise KeyError(f"Source not found: {source_id}")
        layer: dict = {"id": layer_id, "type": kind, "source": source_id, "paint": dict(paint)}
        if min_zoom is not None:
            layer["minzoom"] = min_zoom
        if max_zoom is not None:
            layer["maxzoom"] = max_zoom
        self._layers[layer_id] = layer
        self._emit("addLayer", layer=layer)

    def set_paint_property(self, layer_id: str, prop: str, value: Any) -> None:
        self._check_alive()
        if layer_id not in self._layers:
            raise KeyError(f"Layer not found: {layer_id}")
        self._layers[layer_id]["paint"][prop] = value
        self._emit("setPaintProperty", layer=layer_id, name=prop, value=value)

    def set_style(self, style_ref: str) -> None:
        """Swap the style. A style reload drops every source and layer."""
        self._check_alive()
        self.style = style_ref
        self._sources.clear()
        self._layers.clear()
        self._emit("setStyle", style=style_ref)

    def ease_camera(self, zoom: float, duration_ms: int) -> None:
        self._check_alive()
        self.zoom = zoom
        self._emit("easeTo", zoom=zoom, duration=duration_ms)

    def fit_bounds(
        self,
        bounds: list[list[float]],
        padding: int,
        duration_ms: int,
        max_zoom: float,
    ) -> None:
        self._check_alive()
        self._emit(
            "fitBounds",
            bounds=bounds,
            options={"padding": padding, "duration": duration_ms, "maxZoom": max_zoom},
        )

    def replace_source_data(self, source_id: str, data: dict) -> None:
        self._check_alive()
        if source_id not in self._sources:
            raise KeyError(f"Source not found: {source_id}")
        self._sources[source_id]["data"] = data
        self._emit("setData", source=source_id, data=data)

    def add_navigation_control(self, position: str = "top-right", visualize_pitch: bool = True) -> None:
        self._check_alive()
        control = {"kind": "navigation", "position": position, "visualizePitch": visualize_pitch}
        self.controls.append(control)
        self._emit("addControl", control=control)

    def destroy(self) -> None:
        if self.destroyed:
            return
        self._emit("remove")
        self.destroyed = True
        self._sources.clear()
        self._layers.clear()
        self._handlers.clear()

    # ------------------------------------------------------------------
    # Lifecycle signals
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Callable[[], None]) -> None:
        if event not in LIFECYCLE_EVENTS:
            raise ValueError(f"Unsupported map event: {event}")
        self._handlers[event].append(handler)

    def fire(self, event: str) -> None:
        """Deliver a lifecycle signal reported by the rendering client."""
        if self.destroyed:
            logger.debug(f"Ignoring {event} for destroyed map {self.instance_id}")
            return
        for handler in list(self._handlers.get(event, ())):
            handler()

    # ------------------------------------------------------------------

    def _check_alive(self) -> None:
        if self.destroyed:
            raise MapDestroyedError(f"Map {self.instance_id} has been destroyed")

    def _emit(self, op: str, **payload: Any) -> None:
        command = {"op": op, "map": self.instance_id, **payload}
        logger.debug(f"map command {op} ({self.instance_id})")
        self._sink(command)


class CommandMapCapability(MapCapability):
    """Creates CommandMap instances that share one command sink."""

    def __init__(self, sink: CommandSink, access_token: str = "") -> None:
        self._sink = sink
        self._access_token = access_token
        self.instances: list[CommandMap] = []

    def create_instance(
        self,
        container: str,
        style: str,
        center: tuple[float, float],
        zoom: float,
    ) -> CommandMap:
        instance = CommandMap(
            self._sink,
            container=container,
            style=style,
            center=center,
            zoom=zoom,
            access_token=self._access_token,
        )
        self.instances.append(instance)
        return instance

    @property
    def live_instances(self) -> list[CommandMap]:
        return [m for m in self.instances if not m.destroyed]

"""MapView — one map viewer: catalog, parameters, overlay fetcher, session.

Wires the components to a shared EventBus and produces the read-only
snapshot the presentation layer renders (selector choices, caption, CSV
status line, configuration notice).
"""

from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger

from mapengine.comms.event_bus import EventBus
from mapengine.layers.catalog import OVERLAY_CSV, OVERLAY_NONE, LayerCatalog, default_catalog
from mapengine.session.capability import MapCapability
from mapengine.session.controller import MapSessionController, Scheduler, _spawn
from mapengine.session.fetcher import OverlayDataFetcher
from mapengine.session.params import Action, ViewParameters, ViewParameterStore

TOKEN_NOTICE = (
    "Map access token not configured. Set MAPBOX_TOKEN in .env "
    "(any value other than YOUR_TOKEN) and restart the server."
)


class MapView:
    """Facade over the map viewer's components."""

    def __init__(
        self,
        capability: MapCapability,
        access_token: Optional[str],
        dataset_url: str,
        container: str = "map",
        catalog: Optional[LayerCatalog] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        fetch_timeout: float = 30.0,
        schedule: Scheduler = _spawn,
    ) -> None:
        self.bus = EventBus()
        self.catalog = catalog or default_catalog()
        self.store = ViewParameterStore(self.bus)
        self.fetcher = OverlayDataFetcher(self.bus, transport=transport, timeout=fetch_timeout)
        self.controller = MapSessionController(
            capability,
            self.catalog,
            self.store,
            self.fetcher,
            self.bus,
            access_token=access_token,
            dataset_url=dataset_url,
            container=container,
            schedule=schedule,
        )

    @property
    def params(self) -> ViewParameters:
        return self.store.params

    def dispatch(self, action: Action) -> ViewParameters:
        return self.store.dispatch(action)

    def show(self) -> None:
        self.controller.set_visible(True)

    def hide(self) -> None:
        self.controller.set_visible(False)

    def shutdown(self) -> None:
        self.controller.shutdown()

    def map_event(self, event: str, map_id: str) -> bool:
        """Forward a lifecycle signal from the rendering client.

        Returns False when there is no live map, or when ``map_id`` names a
        map other than the live one.
        """
        instance = self.controller.instance
        if instance is None:
            return False
        if map_id != instance.instance_id:
            logger.debug(f"Dropping {event} from stale map {map_id}")
            return False
        instance.fire(event)
        return True

    def caption(self) -> str:
        params = self.params
        text = f"Base: {self.catalog.resolve(params.base_layer_id).label}"
        if params.overlay_layer_id != OVERLAY_NONE:
            label = self.catalog.label_for_overlay(params.overlay_layer_id)
            text += f" • Overlay: {label} ({round(params.opacity * 100)}%)"
        return text

    def snapshot(self) -> dict:
        params = self.params
        controller = self.controller
        status = self.fetcher.status
        return {
            "params": params.to_dict(),
            "choices": {
                "base": self.catalog.base_choices(),
                "overlay": self.catalog.overlay_choices(),
            },
            "caption": self.caption(),
            "opacity_enabled": params.overlay_layer_id != OVERLAY_NONE,
            "map": {
                "available": controller.credential_valid,
                "notice": "" if controller.credential_valid else TOKEN_NOTICE,
                "visible": controller.visible,
                "state": controller.state.value,
                "ready": controller.ready,
            },
            "csv": {
                **status.to_dict(),
                "url": controller.dataset_url,
                "status_text": status.status_text() if status.url else f"CSV: {controller.dataset_url}",
                "shown": params.overlay_layer_id == OVERLAY_CSV,
            },
        }

"""Map session subsystem — view parameters, overlay fetch, and map lifecycle."""

from mapengine.session.capability import (
    CommandMap,
    CommandMapCapability,
    MapCapability,
    MapDestroyedError,
    MapInstance,
)
from mapengine.session.controller import MapSessionController, SessionState, has_valid_token
from mapengine.session.fetcher import FetchError, FetchState, FetchStatus, OverlayDataFetcher
from mapengine.session.params import (
    Reset,
    SelectBase,
    SelectOverlay,
    SetOpacity,
    SetZoom,
    StepZoom,
    ViewParameters,
    ViewParameterStore,
    reduce,
)

__all__ = [
    "CommandMap",
    "CommandMapCapability",
    "FetchError",
    "FetchState",
    "FetchStatus",
    "MapCapability",
    "MapDestroyedError",
    "MapInstance",
    "MapSessionController",
    "OverlayDataFetcher",
    "Reset",
    "SelectBase",
    "SelectOverlay",
    "SessionState",
    "SetOpacity",
    "SetZoom",
    "StepZoom",
    "ViewParameterStore",
    "ViewParameters",
    "has_valid_token",
    "reduce",
]

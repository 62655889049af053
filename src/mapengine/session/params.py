"""View parameters and the reducer that mutates them.

Every user action yields a new immutable ``ViewParameters``. Numeric inputs
are clamped here, at the point of mutation, so consumers never see
out-of-range values. No action is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from loguru import logger

from mapengine.comms.event_bus import EventBus
from mapengine.layers.catalog import DEFAULT_BASE_ID, DEFAULT_OVERLAY_ID

OPACITY_MIN = 0.0
OPACITY_MAX = 1.0
DEFAULT_OPACITY = 0.6

ZOOM_MIN = 1.0
ZOOM_MAX = 2.2
DEFAULT_ZOOM = 1.0
ZOOM_STEP = 0.1

PARAMS_CHANGED = "params.changed"


@dataclass(frozen=True)
class ViewParameters:
    base_layer_id: str = DEFAULT_BASE_ID
    overlay_layer_id: str = DEFAULT_OVERLAY_ID
    opacity: float = DEFAULT_OPACITY
    zoom_factor: float = DEFAULT_ZOOM

    def to_dict(self) -> dict:
        return {
            "base_layer_id": self.base_layer_id,
            "overlay_layer_id": self.overlay_layer_id,
            "opacity": self.opacity,
            "zoom_factor": self.zoom_factor,
        }


DEFAULT_PARAMETERS = ViewParameters()


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SelectBase:
    layer_id: str


@dataclass(frozen=True)
class SelectOverlay:
    layer_id: str


@dataclass(frozen=True)
class SetOpacity:
    value: float


@dataclass(frozen=True)
class SetZoom:
    value: float


@dataclass(frozen=True)
class StepZoom:
    """Move the zoom stepper by ``steps`` increments of 10%."""
    steps: int = 1


@dataclass(frozen=True)
class Reset:
    pass


Action = Union[SelectBase, SelectOverlay, SetOpacity, SetZoom, StepZoom, Reset]


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(value)))


def reduce(params: ViewParameters, action: Action) -> ViewParameters:
    """Apply one action and return the resulting parameters."""
    if isinstance(action, Reset):
        return DEFAULT_PARAMETERS
    if isinstance(action, SelectBase):
        return replace(params, base_layer_id=action.layer_id)
    if isinstance(action, SelectOverlay):
        return replace(params, overlay_layer_id=action.layer_id)
    if isinstance(action, SetOpacity):
        return replace(params, opacity=clamp(action.value, OPACITY_MIN, OPACITY_MAX))
    if isinstance(action, SetZoom):
        return replace(params, zoom_factor=clamp(action.value, ZOOM_MIN, ZOOM_MAX))
    if isinstance(action, StepZoom):
        stepped = round(params.zoom_factor + action.steps * ZOOM_STEP, 2)
        return replace(params, zoom_factor=clamp(stepped, ZOOM_MIN, ZOOM_MAX))
    raise TypeError(f"Unknown view action: {action!r}")


class ViewParameterStore:
    """Holds the current parameters and announces changes on the bus.

    Publishes ``params.changed`` with ``previous`` and ``current``
    ViewParameters, only when an action actually changed something.
    """

    def __init__(self, bus: EventBus, initial: ViewParameters = DEFAULT_PARAMETERS) -> None:
        self._bus = bus
        self._params = initial

    @property
    def params(self) -> ViewParameters:
        return self._params

    def dispatch(self, action: Action) -> ViewParameters:
        previous = self._params
        current = reduce(previous, action)
        if current == previous:
            return current
        self._params = current
        logger.debug(f"View parameters: {previous} -> {current}")
        self._bus.publish(PARAMS_CHANGED, {"previous": previous, "current": current})
        return current

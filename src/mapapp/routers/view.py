"""Map view control API — layer selection, opacity, zoom, visibility."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from mapengine.session.params import Reset, SelectBase, SelectOverlay, SetOpacity, SetZoom, StepZoom
from mapengine.view import MapView

router = APIRouter(prefix="/api/view", tags=["view"])

# Opacity slider granularity, in percent.
OPACITY_STEP_PERCENT = 5


class LayerSelection(BaseModel):
    layer_id: str


class OpacityRequest(BaseModel):
    percent: float = Field(allow_inf_nan=False)  # 0..100, snapped to 5


class ZoomRequest(BaseModel):
    """Either ``step`` (+1 / -1 stepper clicks) or an absolute ``factor``."""
    step: Optional[int] = None
    factor: Optional[float] = Field(default=None, allow_inf_nan=False)


class VisibilityRequest(BaseModel):
    visible: bool


def _get_view(request: Request) -> MapView:
    view = getattr(request.app.state, "view", None)
    if view is None:
        raise HTTPException(503, "Map view not available")
    return view


@router.get("/state")
async def get_state(request: Request):
    """Current parameters, selector choices, caption and CSV status."""
    return _get_view(request).snapshot()


@router.get("/layers")
async def list_layers(request: Request):
    """The layer catalog in declaration order."""
    view = _get_view(request)
    return [
        {
            "id": d.id,
            "label": d.label,
            "render_kind": d.render_kind.value,
            "caption": d.caption,
            "color": d.color,
        }
        for d in view.catalog.list_layers()
    ]


@router.post("/base")
async def select_base(body: LayerSelection, request: Request):
    view = _get_view(request)
    if body.layer_id not in view.catalog.base_choices():
        raise HTTPException(400, f"Unknown base layer: {body.layer_id}")
    view.dispatch(SelectBase(body.layer_id))
    return view.snapshot()


@router.post("/overlay")
async def select_overlay(body: LayerSelection, request: Request):
    view = _get_view(request)
    if body.layer_id not in view.catalog.overlay_choices():
        raise HTTPException(400, f"Unknown overlay: {body.layer_id}")
    view.dispatch(SelectOverlay(body.layer_id))
    return view.snapshot()


@router.post("/opacity")
async def set_opacity(body: OpacityRequest, request: Request):
    view = _get_view(request)
    snapped = round(body.percent / OPACITY_STEP_PERCENT) * OPACITY_STEP_PERCENT
    view.dispatch(SetOpacity(snapped / 100.0))
    return view.snapshot()


@router.post("/zoom")
async def set_zoom(body: ZoomRequest, request: Request):
    view = _get_view(request)
    if body.step is not None:
        view.dispatch(StepZoom(body.step))
    elif body.factor is not None:
        view.dispatch(SetZoom(body.factor))
    else:
        raise HTTPException(400, "Provide either 'step' or 'factor'")
    return view.snapshot()


@router.post("/reset")
async def reset_view(request: Request):
    """Back to base / heat / 60% / 1.0x."""
    view = _get_view(request)
    view.dispatch(Reset())
    return view.snapshot()


@router.post("/visibility")
async def set_visibility(body: VisibilityRequest, request: Request):
    """Show or hide the map; showing opens a session when a token is set."""
    view = _get_view(request)
    if body.visible:
        view.show()
    else:
        view.hide()
    return view.snapshot()

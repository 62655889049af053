"""Tests for the view parameter reducer and store."""

import pytest

from mapengine.comms.event_bus import EventBus
from mapengine.session.params import (
    DEFAULT_PARAMETERS,
    PARAMS_CHANGED,
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


@pytest.mark.unit
class TestReduce:

    def test_defaults(self):
        assert DEFAULT_PARAMETERS == ViewParameters("base", "heat", 0.6, 1.0)

    def test_select_base_and_overlay(self):
        p = reduce(DEFAULT_PARAMETERS, SelectBase("canopy"))
        p = reduce(p, SelectOverlay("csv"))
        assert p.base_layer_id == "canopy"
        assert p.overlay_layer_id == "csv"

    @pytest.mark.parametrize("value,expected", [(1.5, 1.0), (-0.2, 0.0), (0.35, 0.35)])
    def test_opacity_clamped(self, value, expected):
        assert reduce(DEFAULT_PARAMETERS, SetOpacity(value)).opacity == expected

    @pytest.mark.parametrize("value,expected", [(0.5, 1.0), (3.0, 2.2), (1.7, 1.7)])
    def test_zoom_clamped(self, value, expected):
        assert reduce(DEFAULT_PARAMETERS, SetZoom(value)).zoom_factor == expected

    def test_step_zoom_rounds(self):
        p = DEFAULT_PARAMETERS
        for _ in range(3):
            p = reduce(p, StepZoom(1))
        assert p.zoom_factor == 1.3
        p = reduce(p, StepZoom(-1))
        assert p.zoom_factor == 1.2

    def test_step_zoom_clamps_at_bounds(self):
        assert reduce(DEFAULT_PARAMETERS, StepZoom(-1)).zoom_factor == 1.0
        top = reduce(DEFAULT_PARAMETERS, SetZoom(2.2))
        assert reduce(top, StepZoom(1)).zoom_factor == 2.2

    def test_reset_from_any_state(self):
        messy = ViewParameters("impervious", "none", 0.05, 2.1)
        assert reduce(messy, Reset()) == DEFAULT_PARAMETERS
        assert reduce(reduce(messy, Reset()), Reset()) == DEFAULT_PARAMETERS

    def test_unknown_action_rejected(self):
        with pytest.raises(TypeError):
            reduce(DEFAULT_PARAMETERS, object())

    def test_to_dict(self):
        assert DEFAULT_PARAMETERS.to_dict() == {
            "base_layer_id": "base",
            "overlay_layer_id": "heat",
            "opacity": 0.6,
            "zoom_factor": 1.0,
        }


@pytest.mark.unit
class TestViewParameterStore:

    def test_dispatch_publishes_change(self):
        bus = EventBus()
        got = []
        bus.subscribe(PARAMS_CHANGED, got.append)
        store = ViewParameterStore(bus)
        store.dispatch(SetOpacity(0.8))
        assert store.params.opacity == 0.8
        assert len(got) == 1
        assert got[0]["data"]["previous"] == DEFAULT_PARAMETERS
        assert got[0]["data"]["current"].opacity == 0.8

    def test_no_event_when_unchanged(self):
        bus = EventBus()
        got = []
        bus.subscribe(PARAMS_CHANGED, got.append)
        store = ViewParameterStore(bus)
        store.dispatch(Reset())
        store.dispatch(SetOpacity(2.0))
        store.dispatch(SetOpacity(1.0))
        assert len(got) == 1

    def test_initial_parameters(self):
        initial = ViewParameters(overlay_layer_id="csv")
        store = ViewParameterStore(EventBus(), initial)
        assert store.params is initial

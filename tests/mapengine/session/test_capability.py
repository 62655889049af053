"""Tests for CommandMap — local mirror, emitted commands, lifecycle signals."""

import pytest

from mapengine.session.capability import (
    CommandMap,
    CommandMapCapability,
    MapDestroyedError,
)


def _make_map():
    commands = []
    m = CommandMap(commands.append, "map", "style://a", (-118.0, 34.0), 11.4, access_token="tok")
    return m, commands


@pytest.mark.unit
class TestCommandMapCreate:

    def test_create_command(self):
        m, commands = _make_map()
        assert commands == [
            {
                "op": "create",
                "map": m.instance_id,
                "container": "map",
                "style": "style://a",
                "center": [-118.0, 34.0],
                "zoom": 11.4,
                "accessToken": "tok",
            }
        ]

    def test_instance_ids_unique(self):
        a, _ = _make_map()
        b, _ = _make_map()
        assert a.instance_id != b.instance_id


@pytest.mark.unit
class TestSourcesAndLayers:

    def test_add_source_and_layer(self):
        m, commands = _make_map()
        m.add_vector_source("pts", {"type": "FeatureCollection", "features": []})
        m.add_styled_layer("pts-heat", "heatmap", "pts", {"heatmap-opacity": 0}, max_zoom=15)
        assert m.source_exists("pts")
        assert m.layer_exists("pts-heat")
        layer_cmd = commands[-1]
        assert layer_cmd["op"] == "addLayer"
        assert layer_cmd["layer"] == {
            "id": "pts-heat",
            "type": "heatmap",
            "source": "pts",
            "paint": {"heatmap-opacity": 0},
            "maxzoom": 15,
        }

    def test_duplicate_source_raises(self):
        m, _ = _make_map()
        m.add_vector_source("s", {})
        with pytest.raises(ValueError):
            m.add_vector_source("s", {})

    def test_duplicate_layer_raises(self):
        m, _ = _make_map()
        m.add_vector_source("s", {})
        m.add_styled_layer("l", "fill", "s", {})
        with pytest.raises(ValueError):
            m.add_styled_layer("l", "fill", "s", {})

    def test_layer_needs_source(self):
        m, _ = _make_map()
        with pytest.raises(KeyError):
            m.add_styled_layer("l", "fill", "missing", {})

    def test_paint_property(self):
        m, commands = _make_map()
        m.add_vector_source("s", {})
        m.add_styled_layer("l", "fill", "s", {"fill-opacity": 0})
        m.set_paint_property("l", "fill-opacity", 0.4)
        assert m.paint_value("l", "fill-opacity") == 0.4
        assert commands[-1] == {
            "op": "setPaintProperty", "map": m.instance_id,
            "layer": "l", "name": "fill-opacity", "value": 0.4,
        }

    def test_paint_property_missing_layer(self):
        m, _ = _make_map()
        with pytest.raises(KeyError):
            m.set_paint_property("nope", "fill-opacity", 1)

    def test_paint_is_copied(self):
        m, _ = _make_map()
        paint = {"fill-opacity": 0}
        m.add_vector_source("s", {})
        m.add_styled_layer("l", "fill", "s", paint)
        m.set_paint_property("l", "fill-opacity", 1)
        assert paint == {"fill-opacity": 0}

    def test_replace_source_data(self):
        m, commands = _make_map()
        m.add_vector_source("s", {"features": []})
        m.replace_source_data("s", {"features": [1]})
        assert m.source_data("s") == {"features": [1]}
        assert commands[-1]["op"] == "setData"

    def test_set_style_drops_everything(self):
        m, commands = _make_map()
        m.add_vector_source("s", {})
        m.add_styled_layer("l", "fill", "s", {})
        m.set_style("style://b")
        assert m.source_ids == []
        assert m.layer_ids == []
        assert m.style == "style://b"
        assert commands[-1]["op"] == "setStyle"


@pytest.mark.unit
class TestCameraAndControls:

    def test_ease_camera(self):
        m, commands = _make_map()
        m.ease_camera(12.0, 700)
        assert m.zoom == 12.0
        assert commands[-1] == {"op": "easeTo", "map": m.instance_id, "zoom": 12.0, "duration": 700}

    def test_fit_bounds(self):
        m, commands = _make_map()
        m.fit_bounds([[0, 0], [1, 1]], padding=60, duration_ms=800, max_zoom=14)
        assert commands[-1]["options"] == {"padding": 60, "duration": 800, "maxZoom": 14}

    def test_navigation_control(self):
        m, _ = _make_map()
        m.add_navigation_control("top-right", visualize_pitch=True)
        assert m.controls == [{"kind": "navigation", "position": "top-right", "visualizePitch": True}]


@pytest.mark.unit
class TestLifecycle:

    def test_fire_calls_handlers(self):
        m, _ = _make_map()
        calls = []
        m.on("load", lambda: calls.append("load"))
        m.on("style.load", lambda: calls.append("style"))
        m.fire("load")
        m.fire("style.load")
        assert calls == ["load", "style"]

    def test_unknown_event_rejected(self):
        m, _ = _make_map()
        with pytest.raises(ValueError):
            m.on("click", lambda: None)

    def test_destroy(self):
        m, commands = _make_map()
        calls = []
        m.on("load", lambda: calls.append(1))
        m.destroy()
        m.destroy()
        assert m.destroyed
        assert [c["op"] for c in commands].count("remove") == 1
        m.fire("load")
        assert calls == []

    def test_commands_after_destroy_raise(self):
        m, _ = _make_map()
        m.destroy()
        with pytest.raises(MapDestroyedError):
            m.add_vector_source("s", {})
        with pytest.raises(MapDestroyedError):
            m.ease_camera(12, 700)


@pytest.mark.unit
class TestCommandMapCapability:

    def test_instances_share_sink(self):
        commands = []
        cap = CommandMapCapability(commands.append, access_token="tok")
        a = cap.create_instance("map", "s", (0.0, 0.0), 10)
        b = cap.create_instance("map", "s", (0.0, 0.0), 10)
        assert [c["map"] for c in commands] == [a.instance_id, b.instance_id]
        assert commands[0]["accessToken"] == "tok"

    def test_live_instances(self):
        cap = CommandMapCapability(lambda c: None)
        a = cap.create_instance("map", "s", (0.0, 0.0), 10)
        b = cap.create_instance("map", "s", (0.0, 0.0), 10)
        a.destroy()
        assert cap.live_instances == [b]
        assert cap.instances == [a, b]

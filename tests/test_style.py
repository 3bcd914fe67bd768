import json
import os
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from PIL import Image

from vtstyle import fetch
from vtstyle.style import (
    LayerFilter,
    StyleDocument,
    StyleLayer,
    feature_in_zoom_range,
    resolve_background,
)


def _layers(*objs):
    return [StyleLayer.from_json(obj) for obj in objs]


class TestLayerFilter:
    water = LayerFilter.from_json(["==", "class", "water"])

    def test_matching_value_passes(self):
        assert self.water.matches({"class": "water"})

    def test_missing_property_passes(self):
        assert self.water.matches({"name": "Lake"})

    def test_different_value_is_excluded(self):
        assert not self.water.matches({"class": "land"})

    def test_numeric_literal_coerces_feature_value(self):
        f = LayerFilter.from_json(["==", "admin_level", 2])
        assert f.matches({"admin_level": 2})
        assert f.matches({"admin_level": "2"})
        assert f.matches({"admin_level": 2.0})
        assert not f.matches({"admin_level": "two"})
        assert not f.matches({"admin_level": 4})

    def test_string_literal_coerces_feature_value(self):
        f = LayerFilter.from_json(["==", "rank", "1"])
        assert f.matches({"rank": 1})
        assert f.matches({"rank": 1.0})
        assert not f.matches({"rank": 1.5})

    def test_boolean_literal(self):
        f = LayerFilter.from_json(["==", "oneway", True])
        assert f.matches({"oneway": True})
        assert f.matches({"oneway": 1})
        assert f.matches({"oneway": "true"})
        assert not f.matches({"oneway": "no"})
        assert not f.matches({"oneway": False})

    @pytest.mark.parametrize(
        "expr",
        [["all", ["==", "class", "water"]], ["in", "class", "a", "b"], ["!=", "class", "x"], "class"],
    )
    def test_unsupported_filters_are_ignored(self, expr):
        assert LayerFilter.from_json(expr) is None
        layer = StyleLayer.from_json({"id": "x", "type": "fill", "filter": expr})
        assert layer.accepts({"class": "anything"})


class TestZoomGates:
    def test_layer_range_is_half_open(self):
        (layer,) = _layers({"id": "x", "type": "fill", "minzoom": 5, "maxzoom": 10})
        assert not layer.in_zoom_range(4)
        assert layer.in_zoom_range(5)
        assert layer.in_zoom_range(9)
        assert not layer.in_zoom_range(10)

    def test_layer_without_bounds_is_always_in_range(self):
        (layer,) = _layers({"id": "x", "type": "fill"})
        assert layer.in_zoom_range(0)
        assert layer.in_zoom_range(22)

    def test_string_zoom_bounds_parse_like_integers(self):
        (layer,) = _layers({"id": "x", "type": "fill", "minzoom": "5.7"})
        assert layer.minzoom == 5

    def test_feature_zoom_properties(self):
        assert not feature_in_zoom_range({"_minzoom": "6"}, 5)
        assert feature_in_zoom_range({"_minzoom": "6"}, 6)
        assert not feature_in_zoom_range({"_maxzoom": 8}, 8)
        assert feature_in_zoom_range({"_maxzoom": 8}, 7)
        assert feature_in_zoom_range({"_minzoom": "abc"}, 0)
        assert feature_in_zoom_range({}, 3)


class TestBackground:
    def test_last_background_layer_wins(self):
        layers = _layers(
            {"id": "bg1", "type": "background", "paint": {"background-color": "blue"}},
            {"id": "water", "type": "fill", "source-layer": "water"},
            {"id": "bg2", "type": "background", "paint": {"background-color": "red"}},
        )
        assert resolve_background(layers, 5) == "red"

    def test_default_when_no_background_layer(self):
        assert resolve_background([], 5) == "black"
        assert resolve_background([], 5, default="white") == "white"

    def test_background_stops(self):
        layers = _layers(
            {
                "id": "bg",
                "type": "background",
                "paint": {"background-color": {"stops": [[0, "#000"], [10, "#fff"]]}},
            }
        )
        assert resolve_background(layers, 4) == "#000"
        assert resolve_background(layers, 12) == "#fff"


STYLE = {
    "version": 8,
    "sprite": "sprites/basic",
    "layers": [
        {"id": "z-last-alphabetically", "type": "background", "paint": {"background-color": "#eee"}},
        {"id": "water", "type": "fill", "source-layer": "water", "paint": {"fill-color": "#00f"}},
        {"id": "a-roads", "type": "line", "source-layer": "transportation"},
        {"id": "river", "type": "line", "source-layer": "water"},
    ],
}


class TestStyleDocument:
    def test_from_dict_preserves_document_order(self):
        doc = StyleDocument.from_dict(STYLE)
        assert [layer.id for layer in doc] == ["z-last-alphabetically", "water", "a-roads", "river"]
        assert doc.layer("water").paint == {"fill-color": "#00f"}
        assert doc.layer("missing") is None
        assert [layer.id for layer in doc.layers_for_source("water")] == ["water", "river"]
        assert doc.source_layers() == ["water", "transportation"]
        assert doc.loaded

    def test_sprite_urls_use_fixed_suffixes(self):
        doc = StyleDocument.from_dict({"layers": [], "sprite": "https://example.com/sprites/basic"})
        assert doc.sprite_index_url == "https://example.com/sprites/basic.json"
        assert doc.sprite_image_url == "https://example.com/sprites/basic.png"

    def test_relative_sprite_resolves_against_style(self):
        doc = StyleDocument.from_dict(STYLE, base="https://example.com/styles/bright.json")
        assert doc.sprite_index_url == "https://example.com/styles/sprites/basic.json"

    def test_rejects_style_without_layers(self):
        with pytest.raises(ValueError):
            StyleDocument.from_dict({"sprite": "x"})

    def test_async_load_from_file(self, tmp_path):
        path = tmp_path / "style.json"
        path.write_text(json.dumps(STYLE))
        doc = StyleDocument(str(path), load_sprites=False)
        assert doc.wait(10)
        assert [layer.id for layer in doc.layers][:2] == ["z-last-alphabetically", "water"]
        assert doc.sprite_index_url == os.path.join(str(tmp_path), "sprites/basic") + ".json"
        assert doc.error is None

    def test_load_fetches_sprites(self, tmp_path):
        (tmp_path / "sprites").mkdir()
        sheet = Image.new("RGBA", (4, 4), (0, 255, 0, 255))
        sheet.save(tmp_path / "sprites" / "basic.png")
        (tmp_path / "sprites" / "basic.json").write_text(
            json.dumps({"dot": {"x": 0, "y": 0, "width": 2, "height": 2, "pixelRatio": 1}})
        )
        path = tmp_path / "style.json"
        path.write_text(json.dumps(STYLE))

        doc = StyleDocument(str(path))
        assert doc.wait(10)
        assert "dot" in doc.sprites
        assert doc.sprites.get("dot").size == (2, 2)

    def test_missing_sprites_leave_atlas_empty(self, tmp_path):
        path = tmp_path / "style.json"
        path.write_text(json.dumps(STYLE))
        doc = StyleDocument(str(path))
        assert doc.wait(10)
        assert len(doc.layers) == 4
        assert len(doc.sprites) == 0

    def test_failed_load_leaves_layers_empty(self, tmp_path):
        doc = StyleDocument(str(tmp_path / "missing.json"))
        assert doc.wait(10)
        assert doc.layers == ()
        assert not doc.loaded
        assert isinstance(doc.error, fetch.FetchError)

    def test_malformed_style_leaves_layers_empty(self, tmp_path):
        path = tmp_path / "style.json"
        path.write_text(json.dumps({"layers": "nope"}))
        doc = StyleDocument(str(path))
        assert doc.wait(10)
        assert doc.layers == ()
        assert isinstance(doc.error, ValueError)

    def test_non_object_paint_and_layout_are_ignored(self, tmp_path):
        path = tmp_path / "style.json"
        path.write_text(json.dumps({"layers": [{"id": "a", "type": "fill", "paint": 5, "layout": [1]}]}))
        doc = StyleDocument(str(path))
        assert doc.wait(10)
        assert doc.error is None
        assert [layer.id for layer in doc.layers] == ["a"]
        assert doc.layer("a").paint == {}
        assert doc.layer("a").layout == {}

    def test_cancel_pending_load(self, tmp_path):
        path = tmp_path / "style.json"
        path.write_text(json.dumps(STYLE))
        gate = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            executor.submit(gate.wait, 10)
            doc = StyleDocument(str(path), executor=executor)
            assert not doc.wait(0.05)
            doc.cancel()
            assert doc.wait(1)
            gate.set()
        finally:
            gate.set()
            executor.shutdown(wait=True)
        assert doc.layers == ()

    def test_layers_empty_before_load_completes(self, tmp_path):
        path = tmp_path / "style.json"
        path.write_text(json.dumps(STYLE))
        gate = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            executor.submit(gate.wait, 10)
            doc = StyleDocument(str(path), executor=executor, load_sprites=False)
            assert doc.layers == ()
            gate.set()
            assert doc.wait(10)
            assert len(doc.layers) == 4
        finally:
            gate.set()
            executor.shutdown(wait=True)

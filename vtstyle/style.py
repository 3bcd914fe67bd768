"""
Style documents: ordered style layers, their filters and zoom gates, and the
asynchronous loader that fills them in.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from numbers import Number

from loguru import logger

from vtstyle import config, fetch
from vtstyle.sprites import SpriteAtlas
from vtstyle.stops import resolve_property

BACKGROUND = "background"
FILL = "fill"
LINE = "line"
SYMBOL = "symbol"
LAYER_TYPES = (BACKGROUND, FILL, LINE, SYMBOL)

_shared_executor = None
_shared_lock = threading.Lock()


def _default_executor():
    global _shared_executor
    with _shared_lock:
        if _shared_executor is None:
            _shared_executor = ThreadPoolExecutor(
                max_workers=config.LOAD_WORKERS, thread_name_prefix="vtstyle-load"
            )
        return _shared_executor


def _as_zoom(value):
    """parseInt-style zoom parsing; None when there is no usable number."""
    if isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def in_zoom_range(zoom, minzoom, maxzoom):
    """Half-open ``[minzoom, maxzoom)``; a missing bound does not gate."""
    if minzoom is not None and zoom < minzoom:
        return False
    if maxzoom is not None and zoom >= maxzoom:
        return False
    return True


def feature_in_zoom_range(properties, zoom):
    return in_zoom_range(
        zoom, _as_zoom(properties.get("_minzoom")), _as_zoom(properties.get("_maxzoom"))
    )


def _canonical_string(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class LayerFilter:
    """
    Equality filter ``["==", key, value]``.

    The feature value is converted to the literal's type before comparing:
    a numeric literal compares against ``float(value)``, a boolean literal
    against a bool (or the strings "true"/"false"), a string literal against
    the value rendered as a string.
    """

    key: str
    value: object

    @classmethod
    def from_json(cls, expr):
        if (
            isinstance(expr, list)
            and len(expr) == 3
            and expr[0] == "=="
            and isinstance(expr[1], str)
        ):
            return cls(expr[1], expr[2])
        logger.debug(f"Unsupported filter {expr!r}, layer is unfiltered")
        return None

    def _equals(self, actual):
        expected = self.value
        if isinstance(expected, bool):
            if isinstance(actual, str):
                return actual.strip().lower() == ("true" if expected else "false")
            return isinstance(actual, (bool, Number)) and bool(actual) == expected
        if isinstance(expected, Number):
            try:
                return float(actual) == float(expected)
            except (TypeError, ValueError):
                return False
        if expected is None:
            return actual is None
        return _canonical_string(actual) == _canonical_string(expected)

    def matches(self, properties):
        """A feature without the property is not excluded."""
        if self.key not in properties:
            return True
        return self._equals(properties[self.key])


def _section(obj, name):
    value = obj.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.debug(f"Layer {obj.get('id')!r}: ignoring non-object {name} {value!r}")
        return {}
    return dict(value)


@dataclass(frozen=True)
class StyleLayer:
    id: str
    type: str
    source_layer: str = ""
    filter: object = None
    minzoom: object = None
    maxzoom: object = None
    paint: dict = field(default_factory=dict)
    layout: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, obj):
        layer_type = obj.get("type", "")
        if layer_type not in LAYER_TYPES:
            logger.debug(f"Layer {obj.get('id')!r}: type {layer_type!r} never draws")
        raw_filter = obj.get("filter")
        return cls(
            id=str(obj.get("id", "")),
            type=layer_type,
            source_layer=obj.get("source-layer", "") or "",
            filter=LayerFilter.from_json(raw_filter) if raw_filter is not None else None,
            minzoom=_as_zoom(obj.get("minzoom")),
            maxzoom=_as_zoom(obj.get("maxzoom")),
            paint=_section(obj, "paint"),
            layout=_section(obj, "layout"),
        )

    def in_zoom_range(self, zoom):
        return in_zoom_range(zoom, self.minzoom, self.maxzoom)

    def accepts(self, properties):
        return self.filter is None or self.filter.matches(properties)


def resolve_background(layers, zoom, default=None):
    """Last background layer's resolved background-color wins."""
    color = config.DEFAULT_BACKGROUND if default is None else default
    for layer in layers:
        if layer.type != BACKGROUND:
            continue
        value = resolve_property(layer.paint, "background-color", zoom)
        if value is not None:
            color = value
    return color


class StyleDocument:
    """
    A style loaded from ``resource`` (URL or path) in the background.

    The layer table stays empty until the load finishes, so rendering
    before then produces a background-only tile. A failed load is logged
    and leaves the table empty for good.
    """

    def __init__(self, resource, executor=None, load_sprites=True):
        self.resource = resource
        self.layers = ()
        self.sprites = SpriteAtlas()
        self.sprite_index_url = None
        self.sprite_image_url = None
        self._by_id = {}
        self._abandoned = threading.Event()
        self._done = threading.Event()
        self._load_sprites = load_sprites
        self.error = None

        if resource is None:
            self._done.set()
            self._future = None
            return
        executor = executor or _default_executor()
        self._future = executor.submit(self._load)

    @classmethod
    def from_dict(cls, style, base=None, sprites=None):
        """Build a document synchronously from an already-parsed style mapping."""
        doc = cls(None)
        doc.resource = base
        doc._apply(style)
        if sprites is not None:
            doc.sprites = sprites
        return doc

    def _apply(self, style):
        if not isinstance(style, dict) or not isinstance(style.get("layers"), list):
            raise ValueError("style has no layers array")
        layers = tuple(StyleLayer.from_json(obj) for obj in style["layers"] if isinstance(obj, dict))
        sprite = style.get("sprite")
        if isinstance(sprite, str) and sprite:
            sprite = fetch.resolve_url(self.resource, sprite)
            self.sprite_index_url = sprite + ".json"
            self.sprite_image_url = sprite + ".png"
        self._by_id = {layer.id: layer for layer in layers}
        self.layers = layers

    def _load(self):
        try:
            style = fetch.fetch_json(self.resource)
            if self._abandoned.is_set():
                return False
            self._apply(style)
            logger.info(f"Style loaded: {len(self.layers)} layers from {self.resource}")

            if self._load_sprites and self.sprite_index_url:
                atlas = SpriteAtlas()
                atlas.load(self.sprite_index_url, self.sprite_image_url)
                if not self._abandoned.is_set():
                    self.sprites = atlas
            return True
        except (fetch.FetchError, ValueError, TypeError) as e:
            self.error = e
            logger.warning(f"Style error: {e}")
            return False
        finally:
            self._done.set()

    @property
    def loaded(self):
        return bool(self.layers)

    def wait(self, timeout=None):
        """Block until the load job (style and sprites) has finished."""
        return self._done.wait(timeout)

    def cancel(self):
        """Abandon a pending load; whatever was already applied stays."""
        self._abandoned.set()
        if self._future is not None and self._future.cancel():
            self._done.set()

    def layer(self, layer_id):
        return self._by_id.get(layer_id)

    def layers_for_source(self, source_layer):
        return [layer for layer in self.layers if layer.source_layer == source_layer]

    def source_layers(self):
        names = []
        for layer in self.layers:
            if layer.source_layer and layer.source_layer not in names:
                names.append(layer.source_layer)
        return names

    def __len__(self):
        return len(self.layers)

    def __iter__(self):
        return iter(self.layers)

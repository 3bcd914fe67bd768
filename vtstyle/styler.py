from loguru import logger

from vtstyle import config
from vtstyle.draw import draw_feature
from vtstyle.mvt_decoder import UNKNOWN
from vtstyle.overzoom import TileID, footprint_size, overzoom_geometry
from vtstyle.render import Canvas
from vtstyle.stops import resolve_property, resolve_style
from vtstyle.style import BACKGROUND, feature_in_zoom_range, resolve_background


def _check_resolution(style, tile, native, requested):
    """Raise before anything is drawn if any referenced layer is too coarse."""
    for name in style.source_layers():
        layer = tile.layers.get(name)
        if layer is not None:
            footprint_size(layer.extent, native, requested)


def draw_tile(surface, style, tile, native, requested=None, overzoom=None):
    """
    Draw ``tile`` (decoded at ``native``) onto ``surface`` as the ``requested``
    tile, painting style layers in document order.

    Returns the surface. Raises InsufficientResolutionError when the native
    tile has too little detail for the requested zoom; nothing is drawn then.
    """
    requested = native if requested is None else requested
    overzoom = config.OVERZOOM_ENABLED if overzoom is None else overzoom
    if not overzoom:
        requested = native
    zoom = requested.level
    layers = style.layers

    if native.level != requested.level:
        _check_resolution(style, tile, native, requested)

    background = config.DEFAULT_BACKGROUND
    surface.fill_rect(resolve_background(layers, zoom, background))

    for style_layer in layers:
        if style_layer.type == BACKGROUND:
            value = resolve_property(style_layer.paint, "background-color", zoom)
            if value is not None:
                background = value

        if not style_layer.in_zoom_range(native.level):
            continue

        values = resolve_style(style_layer, zoom)
        if values.hidden:
            surface.fill_rect(background)
            continue

        if style_layer.source_layer not in tile.layers:
            continue
        layer = tile.layers[style_layer.source_layer]
        if layer is None:
            # blank tile
            return surface

        extent_factor = surface.width / layer.extent

        for i in range(len(layer)):
            feature = layer.feature(i)
            properties = feature.properties
            if not style_layer.accepts(properties):
                continue
            if not feature_in_zoom_range(properties, native.level):
                continue
            if feature.type <= UNKNOWN:
                continue
            if feature.type > 3:
                logger.debug(f"Unexpected geometry type {feature.type} on tile {requested}")
                continue

            rings = overzoom_geometry(feature, layer.extent, native, requested)
            if rings is None:
                continue
            draw_feature(
                surface,
                style_layer.type,
                feature.type,
                values,
                rings,
                extent_factor,
                properties,
                style.sprites,
            )

    return surface


class TileStyler:
    """Renders decoded tiles with one style into fresh canvases."""

    def __init__(self, style, tile_size=None):
        self.style = style
        self.tile_size = config.TILE_SIZE if tile_size is None else tile_size

    def render(self, tile, native, requested=None):
        native = TileID(*native)
        requested = native if requested is None else TileID(*requested)
        canvas = Canvas(self.tile_size, self.tile_size)
        return draw_tile(canvas, self.style, tile, native, requested)

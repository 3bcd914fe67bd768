"""
Feature drawing: maps (geometry type, layer type) to a drawing routine.

Combinations missing from DISPATCH are valid and draw nothing; a style may
point any layer type at any source layer.
"""

from loguru import logger

from vtstyle import config
from vtstyle.mvt_decoder import LINESTRING, POINT, POLYGON
from vtstyle.render import load_font
from vtstyle.style import FILL, LINE, SYMBOL


def trace_path(surface, rings, extent_factor, close=False):
    surface.begin_path()
    for ring in rings:
        if not ring:
            continue
        x, y = ring[0]
        surface.move_to(x * extent_factor, y * extent_factor)
        for x, y in ring[1:]:
            surface.line_to(x * extent_factor, y * extent_factor)
        if close:
            surface.close_path()


def text_field_value(text_field, properties):
    """
    Strip one leading "{" and one trailing "}" from the field name and look
    it up in the feature properties. Templates are not interpolated.
    """
    if not text_field:
        return None
    name = text_field
    if name.startswith("{"):
        name = name[1:]
    if name.endswith("}"):
        name = name[:-1]
    value = properties.get(name)
    if value is None or value == "":
        return None
    return str(value)


def draw_polygon_fill(surface, values, rings, extent_factor, properties, sprites):
    if values.fill_color is None and values.fill_outline_color is None:
        return
    trace_path(surface, rings, extent_factor, close=True)
    if values.fill_color is not None:
        surface.fill(values.fill_color, values.fill_opacity)
    if values.fill_outline_color is not None:
        surface.stroke(values.fill_outline_color, 1, values.fill_opacity)


def _line_pixels(values, default):
    # strokes are half the styled line-width
    if values.line_width is None:
        return default
    return values.line_width / 2.0


def _stroke(surface, values, width, dash):
    surface.stroke(
        values.line_color,
        width,
        values.line_opacity,
        dash=dash,
        cap=values.line_cap,
        join=values.line_join,
    )


def draw_polygon_line(surface, values, rings, extent_factor, properties, sprites):
    if values.line_color is None or values.line_width is None:
        return
    trace_path(surface, rings, extent_factor, close=True)
    _stroke(surface, values, _line_pixels(values, None), None)


def draw_line(surface, values, rings, extent_factor, properties, sprites):
    if values.line_color is None:
        return
    trace_path(surface, rings, extent_factor)
    _stroke(surface, values, _line_pixels(values, surface.line_width), values.line_dasharray)


def draw_symbol(surface, values, anchor, text, sprites):
    x, y = anchor
    if values.icon_image is not None and sprites is not None:
        icon = sprites.get(values.icon_image)
        if icon is not None:
            surface.draw_image(icon, x - icon.width / 2.0, y - icon.height / 2.0, values.icon_opacity)

    if text is not None and values.text_color is not None:
        size = values.text_size if values.text_size is not None else config.DEFAULT_TEXT_SIZE
        names = tuple(values.text_font or ()) + (config.DEFAULT_FONT,)
        surface.fill_text(text, x, y, load_font(names, size), values.text_color, values.text_opacity)


def draw_anchored_symbol(surface, values, rings, extent_factor, properties, sprites):
    """Label (and icon) at the first point of the first ring; needs a label."""
    text = text_field_value(values.text_field, properties)
    if text is None or not rings or not rings[0]:
        return
    x, y = rings[0][0]
    draw_symbol(surface, values, (x * extent_factor, y * extent_factor), text, sprites)


def draw_point_symbol(surface, values, rings, extent_factor, properties, sprites):
    text = text_field_value(values.text_field, properties)
    for ring in rings:
        if not ring:
            continue
        x, y = ring[0]
        draw_symbol(surface, values, (x * extent_factor, y * extent_factor), text, sprites)


DISPATCH = {
    (POLYGON, FILL): draw_polygon_fill,
    (POLYGON, LINE): draw_polygon_line,
    (POLYGON, SYMBOL): draw_anchored_symbol,
    (LINESTRING, LINE): draw_line,
    (LINESTRING, SYMBOL): draw_anchored_symbol,
    (POINT, SYMBOL): draw_point_symbol,
}


def draw_feature(surface, layer_type, feature_type, values, rings, extent_factor, properties, sprites=None):
    """Returns True when the combination has a drawing routine."""
    routine = DISPATCH.get((feature_type, layer_type))
    if routine is None:
        logger.debug(f"No drawing for geometry {feature_type} in {layer_type} layer")
        return False
    routine(surface, values, rings, extent_factor, properties, sprites)
    return True

"""
Zoom-dependent style values.

A style property is either a constant (color string, number, string, array)
or a zoom "stops" table::

    {"base": 1.2, "stops": [[10, 1], [14, 3], [18, 12]]}

Stops are piecewise constant here: the value of the last stop whose zoom is
at or below the current zoom is used as-is. Mapbox GL styles can also
interpolate between stops (``base``); that blend is not implemented.
"""

from dataclasses import dataclass
from numbers import Number

from loguru import logger

ABSENT = None


def is_stops(expr):
    return isinstance(expr, dict) and isinstance(expr.get("stops"), list)


def resolve(expr, zoom):
    """Resolve a value expression at ``zoom``. Returns ABSENT when no stop applies."""
    if not is_stops(expr):
        return expr
    for stop in reversed(expr["stops"]):
        try:
            threshold, value = stop
        except (TypeError, ValueError):
            continue
        if isinstance(threshold, Number) and threshold <= zoom:
            return value
    return ABSENT


def resolve_property(properties, name, zoom):
    if not properties or name not in properties:
        return ABSENT
    return resolve(properties[name], zoom)


def _is_number(value):
    return isinstance(value, Number) and not isinstance(value, bool)


def _is_string(value):
    return isinstance(value, str)


def _is_number_list(value):
    return isinstance(value, list) and all(_is_number(v) for v in value)


def _is_dash_array(value):
    return _is_number_list(value) and all(v >= 0 for v in value)


def _is_string_list(value):
    return isinstance(value, list) and all(_is_string(v) for v in value)


# property name -> (section, attribute, validator)
KNOWN_PROPERTIES = {
    "background-color": ("paint", "background_color", _is_string),
    "fill-color": ("paint", "fill_color", _is_string),
    "fill-outline-color": ("paint", "fill_outline_color", _is_string),
    "fill-opacity": ("paint", "fill_opacity", _is_number),
    "line-color": ("paint", "line_color", _is_string),
    "line-width": ("paint", "line_width", _is_number),
    "line-opacity": ("paint", "line_opacity", _is_number),
    "line-dasharray": ("paint", "line_dasharray", _is_dash_array),
    "text-color": ("paint", "text_color", _is_string),
    "text-opacity": ("paint", "text_opacity", _is_number),
    "icon-opacity": ("paint", "icon_opacity", _is_number),
    "line-cap": ("layout", "line_cap", _is_string),
    "line-join": ("layout", "line_join", _is_string),
    "text-field": ("layout", "text_field", _is_string),
    "text-size": ("layout", "text_size", _is_number),
    "text-font": ("layout", "text_font", _is_string_list),
    "icon-image": ("layout", "icon_image", _is_string),
    "visibility": ("layout", "visibility", _is_string),
}


@dataclass(frozen=True)
class ResolvedStyle:
    """Paint and layout values of one layer at one zoom. ``None`` means absent."""

    background_color: object = None
    fill_color: object = None
    fill_outline_color: object = None
    fill_opacity: object = None
    line_color: object = None
    line_width: object = None
    line_opacity: object = None
    line_dasharray: object = None
    line_cap: object = None
    line_join: object = None
    text_field: object = None
    text_size: object = None
    text_font: object = None
    text_color: object = None
    text_opacity: object = None
    icon_image: object = None
    icon_opacity: object = None
    visibility: object = None

    @property
    def hidden(self):
        return self.visibility == "none"


def resolve_style(layer, zoom):
    values = {}
    sections = {"paint": layer.paint, "layout": layer.layout}
    for name, (section, attr, valid) in KNOWN_PROPERTIES.items():
        value = resolve_property(sections[section], name, zoom)
        if value is ABSENT:
            continue
        if not valid(value):
            logger.debug(f"Layer {layer.id}: dropping {name}={value!r}")
            continue
        values[attr] = value
    return ResolvedStyle(**values)

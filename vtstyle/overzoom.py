"""
Rendering a tile at a deeper zoom than its data was fetched for.

The native tile's geometry is cropped to the requested descendant's
footprint and shifted so the descendant's corner becomes the origin.

The scale of projected geometry differs from a same-zoom fetch: the
footprint size is used as the offset unit while drawing still scales by
``surface / layer.extent``.
"""

from collections import namedtuple

# Below this many extent units per requested tile the source has too little
# detail to draw from.
MIN_TILE_SIZE = 16


class TileID(namedtuple("TileID", ["level", "x", "y"])):
    __slots__ = ()

    def __str__(self):
        return f"{self.level}/{self.x}/{self.y}"


def ancestor(tile, level):
    """The tile at ``level`` containing ``tile``; the tile itself when not deeper."""
    if tile.level <= level:
        return tile
    diff = tile.level - level
    return TileID(level, tile.x >> diff, tile.y >> diff)


class InsufficientResolutionError(Exception):
    def __init__(self, extent, native, requested, size):
        self.extent = extent
        self.native = native
        self.requested = requested
        self.size = size
        super().__init__(
            f"tile {requested} from {native}: extent {extent} leaves {size} units "
            f"per tile (< {MIN_TILE_SIZE})"
        )


def level_delta(native, requested):
    diff = requested.level - native.level
    if diff < 0:
        raise ValueError(f"requested tile {requested} is shallower than native tile {native}")
    return diff


def footprint_size(extent, native, requested):
    """Size of the requested tile in native-tile extent units."""
    size = extent >> level_delta(native, requested)
    if size < MIN_TILE_SIZE:
        raise InsufficientResolutionError(extent, native, requested, size)
    return size


def tile_footprint(extent, native, requested):
    """(x, y, width, height) of the requested tile inside the native tile."""
    diff = level_delta(native, requested)
    size = footprint_size(extent, native, requested)
    x1 = size * (requested.x - (native.x << diff))
    y1 = size * (requested.y - (native.y << diff))
    return x1, y1, size, size


def bbox(rings):
    points = [p for ring in rings for p in ring]
    if not points:
        return None
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return min(xs), min(ys), max(xs), max(ys)


def intersects(box, rect):
    """Touching edges count as intersecting."""
    minx, miny, maxx, maxy = box
    x, y, width, height = rect
    return not (maxx < x or minx > x + width or maxy < y or miny > y + height)


def project(rings, native, requested, extent):
    diff = level_delta(native, requested)
    if diff == 0:
        return rings
    # (offset_x, offset_y) is the (0, 0) of the requested tile
    offset_x = extent * (requested.x - (native.x << diff))
    offset_y = extent * (requested.y - (native.y << diff))
    return [[(x - offset_x, y - offset_y) for x, y in ring] for ring in rings]


def overzoom_geometry(feature, extent, native, requested):
    """
    Geometry of ``feature`` for the requested tile, or None when the feature
    lies outside the requested tile's footprint.
    """
    if native.level == requested.level:
        return feature.load_geometry()

    rect = tile_footprint(extent, native, requested)
    rings = feature.load_geometry()
    box = bbox(rings)
    if box is None or not intersects(box, rect):
        return None
    return project(rings, native, requested, rect[2])

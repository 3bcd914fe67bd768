import math

# Web Mercator constants
MAX_LATITUDE = 85.05112878


def get_tile_coords(lat, lon, zoom):
    """
    Returns the tile (x, y) containing the given lat/lon at zoom.
    """
    n = 2 ** zoom
    lat = max(min(lat, MAX_LATITUDE), -MAX_LATITUDE)
    xtile = int((lon + 180.0) / 360.0 * n) % n
    ytile = int((1.0 - math.asinh(math.tan(math.radians(lat))) / math.pi) / 2.0 * n)
    return xtile, min(max(ytile, 0), n - 1)


def tile_bounds(zoom, x, y):
    """
    Returns (west, south, east, north) in degrees for a tile.
    """
    n = 2.0 ** zoom

    def lat_at(ty):
        return math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * ty / n))))

    return x / n * 360.0 - 180.0, lat_at(y + 1), (x + 1) / n * 360.0 - 180.0, lat_at(y)

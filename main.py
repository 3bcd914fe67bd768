import sys

from loguru import logger

from vtstyle import config, coords, fetch
from vtstyle.overzoom import InsufficientResolutionError, TileID, ancestor
from vtstyle.style import StyleDocument
from vtstyle.styler import TileStyler

START_LAT = 43.6446
START_LON = -79.3849
START_ZOOM = 13
STYLE_LOAD_TIMEOUT = 30


def _str_arg(name, default):
    token = f"--{name}="
    for arg in sys.argv:
        if arg.startswith(token):
            return arg.split("=", 1)[1]
    return default


def _float_arg(name, default):
    try:
        return float(_str_arg(name, default))
    except (TypeError, ValueError):
        return float(default)


def _int_arg(name, default):
    raw = _str_arg(name, default)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return default


def requested_tile():
    zoom = _int_arg("z", None)
    if zoom is None:
        zoom = _int_arg("zoom", START_ZOOM)
    x = _int_arg("x", None)
    y = _int_arg("y", None)
    if x is None or y is None:
        lat = _float_arg("lat", START_LAT)
        lon = _float_arg("lon", START_LON)
        x, y = coords.get_tile_coords(lat, lon, zoom)
    return TileID(zoom, x, y)


def load_tile(native):
    path = _str_arg("tile", None)
    if path:
        try:
            raw = fetch.fetch_bytes(path)
        except fetch.FetchError as e:
            logger.error(f"{e}")
            return None
    else:
        raw = fetch.fetch_tile(native.level, native.x, native.y)
    return fetch.decode_tile(raw)


def run_render_mode():
    requested = requested_tile()
    native_level = _int_arg("native-z", min(requested.level, config.MAX_NATIVE_ZOOM))
    native = ancestor(requested, native_level)
    size = _int_arg("size", config.TILE_SIZE)
    out = _str_arg("out", f"tile-{requested.level}-{requested.x}-{requested.y}.png")

    style = StyleDocument(_str_arg("style", config.STYLE_URL))
    tile = load_tile(native)
    if not style.wait(STYLE_LOAD_TIMEOUT):
        logger.warning("Style still loading, rendering with what is available")
    if tile is None:
        logger.error(f"No data for tile {native}")
        return 1

    west, south, east, north = coords.tile_bounds(*requested)
    logger.info(
        f"Rendering {requested} from {native} "
        f"({west:.4f}, {south:.4f}, {east:.4f}, {north:.4f}) at {size}px"
    )
    try:
        canvas = TileStyler(style, size).render(tile, native, requested)
    except InsufficientResolutionError as e:
        logger.error(f"{e}")
        return 2
    canvas.save(out)
    logger.info(f"Wrote {out}")
    return 0


def main_wrapper():
    logger.remove()
    logger.add(sys.stderr, level=config.LOG_LEVEL)
    sys.exit(run_render_mode())


if __name__ == "__main__":
    main_wrapper()

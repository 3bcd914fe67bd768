import os


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return int(default)


def _env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return float(default)


def _env_flag(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


TILE_URL_TEMPLATE = os.environ.get(
    "VTSTYLE_TILE_URL", "https://tiles.openfreemap.org/planet/latest/{z}/{x}/{y}.pbf"
)
STYLE_URL = os.environ.get(
    "VTSTYLE_STYLE_URL", "https://tiles.openfreemap.org/styles/bright"
)
USER_AGENT = "vtstyle/0.1"

TILE_SIZE = _env_int("VTSTYLE_TILE_SIZE", 256)
FETCH_TIMEOUT = _env_float("VTSTYLE_FETCH_TIMEOUT", 5)
# Deepest zoom the tile source serves; deeper requests are overzoomed.
MAX_NATIVE_ZOOM = _env_int("VTSTYLE_MAX_NATIVE_ZOOM", 14)
OVERZOOM_ENABLED = _env_flag("VTSTYLE_OVERZOOM", True)
DEFAULT_BACKGROUND = os.environ.get("VTSTYLE_DEFAULT_BACKGROUND", "black")
LOAD_WORKERS = _env_int("VTSTYLE_LOAD_WORKERS", 4)
LOG_LEVEL = os.environ.get("VTSTYLE_LOG_LEVEL", "INFO")

DEFAULT_FONT = "Arial Unicode MS Regular"
DEFAULT_TEXT_SIZE = 16

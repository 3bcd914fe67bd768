import re
import sys
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

from loguru import logger

from vtstyle import config, fetch
from vtstyle.overzoom import InsufficientResolutionError, TileID, ancestor
from vtstyle.style import StyleDocument
from vtstyle.styler import TileStyler

START_LAT = 43.6446
START_LON = -79.3849
START_ZOOM = 13
MAX_ZOOM = 18
HOST = "127.0.0.1"
PORT = 8000

TILE_PATH = re.compile(r"^/tiles/(\d+)/(\d+)/(\d+)\.png$")

HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>vtstyle</title>
  <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css" />
  <style>
    html, body, #map { margin: 0; height: 100%%; background: #101010; }
  </style>
</head>
<body>
  <div id="map"></div>
  <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
  <script>
    const map = L.map("map").setView([%(lat)s, %(lon)s], %(zoom)s);
    L.tileLayer("/tiles/{z}/{x}/{y}.png", {
      tileSize: %(tile_size)s,
      zoomOffset: 0,
      maxZoom: %(max_zoom)s,
    }).addTo(map);
  </script>
</body>
</html>
""" % {
    "lat": START_LAT,
    "lon": START_LON,
    "zoom": START_ZOOM,
    "max_zoom": MAX_ZOOM,
    "tile_size": config.TILE_SIZE,
}

# One style for every request; draw_tile keeps no per-render state on it.
STYLE = None


def render_tile(z, x, y):
    """
    Returns (status, content_type, body) for a tile request.
    """
    requested = TileID(z, x, y)
    if z > MAX_ZOOM or x >= 2 ** z or y >= 2 ** z:
        return 404, "text/plain; charset=utf-8", b"Not found"

    native = ancestor(requested, config.MAX_NATIVE_ZOOM)
    tile = fetch.decode_tile(fetch.fetch_tile(native.level, native.x, native.y))
    if tile is None:
        return 204, "image/png", b""
    try:
        canvas = TileStyler(STYLE).render(tile, native, requested)
    except InsufficientResolutionError as e:
        logger.warning(f"{e}")
        return 422, "text/plain; charset=utf-8", str(e).encode("utf-8")
    return 200, "image/png", canvas.to_png()


class Handler(BaseHTTPRequestHandler):
    def _send(self, status, content_type, body, cache="no-store"):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Cache-Control", cache)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path == "/":
            self._send(200, "text/html; charset=utf-8", HTML.encode("utf-8"))
            return
        match = TILE_PATH.match(parsed.path)
        if match:
            z, x, y = (int(v) for v in match.groups())
            status, content_type, body = render_tile(z, x, y)
            self._send(status, content_type, body, cache="max-age=300")
            return
        self._send(404, "text/plain; charset=utf-8", b"Not found")

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} {format % args}")


def main():
    global STYLE
    logger.remove()
    logger.add(sys.stderr, level=config.LOG_LEVEL)
    STYLE = StyleDocument(config.STYLE_URL)
    server = ThreadingHTTPServer((HOST, PORT), Handler)
    logger.info(f"Tile server running at http://{HOST}:{PORT}")
    server.serve_forever()


if __name__ == "__main__":
    main()

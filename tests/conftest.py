import pytest

from vtstyle.mvt_decoder import POLYGON, Feature, Layer, VectorTile

FULL_EXTENT = [(0, 0), (4096, 0), (4096, 4096), (0, 4096), (0, 0)]


def square(x0, y0, x1, y1):
    return [(x0, y0), (x1, y0), (x1, y1), (x0, y1), (x0, y0)]


def polygon(ring, **properties):
    return Feature.from_rings(POLYGON, [ring], properties)


def make_tile(extent=4096, **layers):
    """make_tile(water=[feature, ...]) -> VectorTile; a None value stays None."""
    built = {}
    for name, features in layers.items():
        built[name] = None if features is None else Layer(name, features, extent=extent)
    return VectorTile(built)


# -- protobuf encoding for hand-built tiles ---------------------------------

SQUARE_COMMANDS = [9, 0, 0, 26, 20, 0, 0, 20, 19, 0, 15]


def varint(value):
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def zz(value):
    return (value << 1) ^ (value >> 63)


def field(number, payload):
    """Length-delimited field for bytes and str, varint field for ints."""
    if isinstance(payload, int):
        return varint(number << 3) + varint(payload)
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return varint(number << 3 | 2) + varint(len(payload)) + payload


def packed(values):
    return b"".join(varint(v) for v in values)


def feature(geom_type, commands, tags=(), id=None):
    data = b""
    if id is not None:
        data += field(1, id)
    if tags:
        data += field(2, packed(tags))
    return data + field(3, geom_type) + field(4, packed(commands))


def layer(name, features, keys=(), values=(), extent=None):
    data = field(15, 2) + field(1, name)
    for f in features:
        data += field(2, f)
    for key in keys:
        data += field(3, key)
    for value in values:
        data += field(4, value)
    if extent is not None:
        data += field(5, extent)
    return field(3, data)


class RecordingSurface:
    """Stands in for a Canvas and records every drawing call."""

    def __init__(self, width=256, height=256):
        self.width = width
        self.height = height
        self.line_width = 1
        self.calls = []

    def names(self):
        return [call[0] for call in self.calls]

    def painted(self):
        return [call for call in self.calls if call[0] not in ("begin_path", "move_to", "line_to", "close_path")]

    def begin_path(self):
        self.calls.append(("begin_path",))

    def move_to(self, x, y):
        self.calls.append(("move_to", x, y))

    def line_to(self, x, y):
        self.calls.append(("line_to", x, y))

    def close_path(self):
        self.calls.append(("close_path",))

    def fill(self, color, opacity=None):
        self.calls.append(("fill", color, opacity))

    def fill_rect(self, color, opacity=None):
        self.calls.append(("fill_rect", color, opacity))

    def stroke(self, color, width=None, opacity=None, dash=None, cap=None, join=None):
        self.calls.append(("stroke", color, width, opacity, dash, cap, join))

    def fill_text(self, text, x, y, font, color, opacity=None):
        self.calls.append(("fill_text", text, x, y, color, opacity))

    def draw_image(self, image, x, y, opacity=None):
        self.calls.append(("draw_image", image.size, x, y, opacity))


@pytest.fixture
def surface():
    return RecordingSurface()

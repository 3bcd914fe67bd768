"""
Lightweight Mapbox Vector Tile (MVT) decoder.

Decodes into the read-only shape the styler consumes:

    tile.layers["water"]          -> Layer
    layer.extent, len(layer)      -> 4096, feature count
    layer.feature(i)              -> Feature
    feature.type                  -> 0 unknown, 1 point, 2 line, 3 polygon
    feature.properties            -> {"class": "lake", ...}
    feature.load_geometry()       -> [[(x, y), ...], ...] rings in extent space

Geometry commands are kept packed until ``load_geometry()`` is called, so
features that get filtered out never pay for decoding.
"""

import struct

# ── Protobuf wire-format helpers (no external dependency) ────────────────

def _read_varint(buf, pos):
    result = 0
    shift = 0
    while True:
        if pos >= len(buf):
            raise ValueError("Truncated varint")
        b = buf[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if (b & 0x80) == 0:
            return result, pos
        shift += 7


def _zigzag(v):
    return (v >> 1) ^ -(v & 1)


def _parse_message(buf, start=0, end=None):
    """Yield (field_number, wire_type, value) tuples."""
    if end is None:
        end = len(buf)
    pos = start
    while pos < end:
        tag, pos = _read_varint(buf, pos)
        field = tag >> 3
        wtype = tag & 0x07
        if wtype == 0:  # varint
            val, pos = _read_varint(buf, pos)
            yield field, wtype, val
        elif wtype == 2:  # length-delimited
            length, pos = _read_varint(buf, pos)
            if pos + length > end:
                raise ValueError("Truncated length-delimited field")
            yield field, wtype, buf[pos : pos + length]
            pos += length
        elif wtype == 5:  # 32-bit
            if pos + 4 > end:
                raise ValueError("Truncated fixed32 field")
            yield field, wtype, struct.unpack_from("<f", buf, pos)[0]
            pos += 4
        elif wtype == 1:  # 64-bit
            if pos + 8 > end:
                raise ValueError("Truncated fixed64 field")
            yield field, wtype, struct.unpack_from("<d", buf, pos)[0]
            pos += 8
        else:
            raise ValueError(f"Unsupported wire type {wtype}")


def _decode_packed_uint32(buf):
    """Decode a packed repeated uint32 field."""
    values = []
    pos = 0
    end = len(buf)
    while pos < end:
        v, pos = _read_varint(buf, pos)
        values.append(v)
    return values


# ── MVT geometry decoding ────────────────────────────────────────────────

_CMD_MOVE_TO = 1
_CMD_LINE_TO = 2
_CMD_CLOSE_PATH = 7

UNKNOWN = 0
POINT = 1
LINESTRING = 2
POLYGON = 3


def _decode_geometry(commands):
    """
    Decode MVT geometry commands into rings of integer points.

    Every MoveTo starts a new ring, so a multipoint decodes as one ring per
    point. ClosePath repeats the ring's first point.
    """
    idx = 0
    cx, cy = 0, 0
    rings = []
    current_ring = []

    while idx < len(commands):
        cmd_int = commands[idx]
        idx += 1
        cmd_id = cmd_int & 0x07
        cmd_count = cmd_int >> 3

        if cmd_id == _CMD_MOVE_TO:
            for _ in range(cmd_count):
                if idx + 1 >= len(commands):
                    break
                cx += _zigzag(commands[idx])
                cy += _zigzag(commands[idx + 1])
                idx += 2
                if current_ring:
                    rings.append(current_ring)
                current_ring = [(cx, cy)]
        elif cmd_id == _CMD_LINE_TO:
            for _ in range(cmd_count):
                if idx + 1 >= len(commands):
                    break
                cx += _zigzag(commands[idx])
                cy += _zigzag(commands[idx + 1])
                idx += 2
                current_ring.append((cx, cy))
        elif cmd_id == _CMD_CLOSE_PATH:
            if current_ring and len(current_ring) >= 2:
                current_ring.append(current_ring[0])
            if current_ring:
                rings.append(current_ring)
                current_ring = []
        else:
            raise ValueError(f"Unknown geometry command {cmd_id}")

    if current_ring:
        rings.append(current_ring)
    return rings


class Feature:
    def __init__(self, geom_type, properties, commands=None, id=None, rings=None):
        self.type = geom_type
        self.properties = properties
        self.id = id
        self._commands = commands or []
        self._rings = rings

    @classmethod
    def from_rings(cls, geom_type, rings, properties=None, id=None):
        rings = [[(int(x), int(y)) for x, y in ring] for ring in rings]
        return cls(geom_type, dict(properties or {}), id=id, rings=rings)

    def load_geometry(self):
        if self._rings is None:
            self._rings = _decode_geometry(self._commands)
        return self._rings

    def bbox(self):
        """[minx, miny, maxx, maxy] of the decoded geometry."""
        points = [p for ring in self.load_geometry() for p in ring]
        if not points:
            return [0, 0, 0, 0]
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return [min(xs), min(ys), max(xs), max(ys)]

    def __repr__(self):
        return f"Feature(type={self.type}, id={self.id}, properties={self.properties!r})"


class Layer:
    def __init__(self, name, features, extent=4096, version=2):
        self.name = name
        self.extent = extent
        self.version = version
        self._features = list(features)

    def __len__(self):
        return len(self._features)

    def __iter__(self):
        return iter(self._features)

    def feature(self, i):
        return self._features[i]


class VectorTile:
    def __init__(self, layers):
        self.layers = dict(layers)

    def __repr__(self):
        return f"VectorTile(layers={sorted(self.layers)!r})"


# ── MVT tile decoding ────────────────────────────────────────────────────

# Protobuf field numbers from vector_tile.proto
_TILE_LAYER = 3

_LAYER_NAME = 1
_LAYER_FEATURE = 2
_LAYER_KEY = 3
_LAYER_VALUE = 4
_LAYER_EXTENT = 5
_LAYER_VERSION = 15

_FEATURE_ID = 1
_FEATURE_TAGS = 2
_FEATURE_TYPE = 3
_FEATURE_GEOMETRY = 4

_VALUE_STRING = 1
_VALUE_FLOAT = 2
_VALUE_DOUBLE = 3
_VALUE_INT = 4
_VALUE_UINT = 5
_VALUE_SINT = 6
_VALUE_BOOL = 7


def _decode_value(data):
    """Decode a protobuf Value message."""
    for field, wtype, val in _parse_message(data):
        if field == _VALUE_STRING:
            return val.decode("utf-8", errors="replace")
        elif field in (_VALUE_FLOAT, _VALUE_DOUBLE, _VALUE_UINT):
            return val
        elif field == _VALUE_INT:
            # int64 is two's complement on the wire
            return val - (1 << 64) if val >= (1 << 63) else val
        elif field == _VALUE_SINT:
            return _zigzag(val)
        elif field == _VALUE_BOOL:
            return bool(val)
    return None


def _decode_feature(data, keys, values):
    """Decode a single Feature message."""
    geom_type = UNKNOWN
    geom_data = b""
    tags_raw = b""
    feature_id = None
    properties = {}

    for field, wtype, val in _parse_message(data):
        if field == _FEATURE_ID and wtype == 0:
            feature_id = val
        elif field == _FEATURE_TYPE and wtype == 0:
            geom_type = val
        elif field == _FEATURE_GEOMETRY and wtype == 2:
            geom_data = val
        elif field == _FEATURE_TAGS and wtype == 2:
            tags_raw = val

    # Decode tags (alternating key/value indices)
    if tags_raw:
        tag_indices = _decode_packed_uint32(tags_raw)
        for i in range(0, len(tag_indices) - 1, 2):
            ki = tag_indices[i]
            vi = tag_indices[i + 1]
            if ki < len(keys) and vi < len(values):
                properties[keys[ki]] = values[vi]

    return Feature(geom_type, properties, _decode_packed_uint32(geom_data), id=feature_id)


def _decode_layer(data):
    """Decode a single Layer message."""
    name = ""
    keys = []
    values = []
    extent = 4096
    version = 1
    feature_datas = []

    for field, wtype, val in _parse_message(data):
        if field == _LAYER_NAME and wtype == 2:
            name = val.decode("utf-8", errors="replace")
        elif field == _LAYER_KEY and wtype == 2:
            keys.append(val.decode("utf-8", errors="replace"))
        elif field == _LAYER_VALUE and wtype == 2:
            values.append(_decode_value(val))
        elif field == _LAYER_EXTENT and wtype == 0:
            extent = val
        elif field == _LAYER_VERSION and wtype == 0:
            version = val
        elif field == _LAYER_FEATURE and wtype == 2:
            feature_datas.append(val)

    features = [_decode_feature(fd, keys, values) for fd in feature_datas]
    return Layer(name, features, extent=extent, version=version)


def decode(tile_bytes):
    """
    Decode MVT tile bytes into a VectorTile. Raises ValueError on malformed input.
    """
    buf = bytes(tile_bytes) if not isinstance(tile_bytes, (bytes, bytearray)) else tile_bytes

    layers = {}
    for field, wtype, val in _parse_message(buf):
        if field == _TILE_LAYER and wtype == 2:
            layer = _decode_layer(val)
            if layer.name:
                layers[layer.name] = layer

    return VectorTile(layers)

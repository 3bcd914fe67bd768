import io
import math
import re
from functools import lru_cache

from loguru import logger
from PIL import Image, ImageColor, ImageDraw, ImageFont

_ALPHA_FUNC = re.compile(r"^\s*(rgba|hsla)\(\s*([^)]*)\)\s*$", re.IGNORECASE)


def parse_color(value):
    """CSS color string -> (r, g, b, a), or None when it cannot be parsed."""
    if isinstance(value, tuple):
        return value if len(value) == 4 else tuple(value) + (255,)
    if not isinstance(value, str):
        return None
    try:
        m = _ALPHA_FUNC.match(value)
        if m:
            parts = [p.strip() for p in m.group(2).split(",")]
            if len(parts) != 4:
                raise ValueError(f"expected 4 components in {value!r}")
            alpha = min(max(float(parts[3]), 0.0), 1.0)
            r, g, b = ImageColor.getrgb(f"{m.group(1)[:3]}({', '.join(parts[:3])})")[:3]
            return r, g, b, int(round(alpha * 255))
        return ImageColor.getcolor(value, "RGBA")
    except ValueError:
        logger.debug(f"Unparseable color {value!r}")
        return None


def _with_opacity(rgba, opacity):
    if opacity is None:
        return rgba
    opacity = min(max(float(opacity), 0.0), 1.0)
    return rgba[:3] + (int(round(rgba[3] * opacity)),)


@lru_cache(maxsize=64)
def load_font(names, size):
    """First TrueType font found among ``names``, else Pillow's default font."""
    size = max(1, int(round(size)))
    for name in names:
        for candidate in (name, f"{name}.ttf", f"{name.replace(' ', '')}.ttf"):
            try:
                return ImageFont.truetype(candidate, size)
            except OSError:
                continue
    return ImageFont.load_default(size=size)


def scanline_spans(rings, width, height):
    """Even-odd scanline fill for polygon rings (supports holes).

    Yields (y, x_start, x_end) pixel spans, sampling at pixel centers.
    """
    valid_rings = [ring for ring in rings if len(ring) >= 3]
    if not valid_rings:
        return

    min_y = min(p[1] for ring in valid_rings for p in ring)
    max_y = max(p[1] for ring in valid_rings for p in ring)
    min_y = max(0, int(math.floor(min_y)))
    max_y = min(height - 1, int(math.ceil(max_y)))

    for y in range(min_y, max_y + 1):
        yc = y + 0.5
        nodes = []
        for ring in valid_rings:
            j = len(ring) - 1
            for i in range(len(ring)):
                xi, yi = ring[i]
                xj, yj = ring[j]
                if (yi < yc and yj >= yc) or (yj < yc and yi >= yc):
                    nodes.append(xi + (yc - yi) / (yj - yi) * (xj - xi))
                j = i

        nodes.sort()
        for i in range(0, len(nodes) - 1, 2):
            x_start = max(0, math.ceil(nodes[i] - 0.5))
            x_end = min(width - 1, math.ceil(nodes[i + 1] - 0.5) - 1)
            if x_start <= x_end:
                yield y, x_start, x_end


def dash_polyline(points, pattern):
    """Split a polyline into the "on" runs of a dash pattern (lengths in pixels)."""
    if len(pattern) % 2:
        pattern = list(pattern) * 2
    # all-zero or negative patterns draw solid
    if len(points) < 2 or not any(v > 0 for v in pattern) or any(v < 0 for v in pattern):
        return [points]

    runs = []
    idx = 0
    remaining = pattern[0]
    on = True
    current = [points[0]]
    for (x0, y0), (x1, y1) in zip(points, points[1:]):
        seg = math.hypot(x1 - x0, y1 - y0)
        pos = 0.0
        while seg - pos > remaining:
            pos += remaining
            t = pos / seg
            pt = (x0 + (x1 - x0) * t, y0 + (y1 - y0) * t)
            if on:
                current.append(pt)
                runs.append(current)
            else:
                current = [pt]
            on = not on
            idx = (idx + 1) % len(pattern)
            remaining = pattern[idx]
        remaining -= seg - pos
        if on:
            current.append((x1, y1))
    if on and len(current) >= 2:
        runs.append(current)
    return runs


class Canvas:
    """RGBA drawing surface with a path API shaped like a 2D canvas context.

    Every draw call renders into an off-screen transparent layer that is then
    alpha-composited onto the image, so translucent colors and sprite alpha
    blend correctly.
    """

    def __init__(self, width, height, background=None):
        self.width = width
        self.height = height
        self.image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        self.line_width = 1
        self._subpaths = []
        if background is not None:
            self.fill_rect(background)

    def _layer(self):
        return Image.new("RGBA", self.image.size, (0, 0, 0, 0))

    def _composite(self, overlay):
        self.image.alpha_composite(overlay)

    # -- paths ---------------------------------------------------------------

    def begin_path(self):
        self._subpaths = []

    def move_to(self, x, y):
        self._subpaths.append([[(x, y)], False])

    def line_to(self, x, y):
        if not self._subpaths:
            self.move_to(x, y)
            return
        self._subpaths[-1][0].append((x, y))

    def close_path(self):
        if self._subpaths:
            self._subpaths[-1][1] = True

    @property
    def subpaths(self):
        return [list(points) for points, _ in self._subpaths]

    # -- painting ------------------------------------------------------------

    def fill_rect(self, color, opacity=None):
        rgba = parse_color(color)
        if rgba is None:
            return False
        overlay = self._layer()
        overlay.paste(_with_opacity(rgba, opacity), (0, 0, self.width, self.height))
        self._composite(overlay)
        return True

    def fill(self, color, opacity=None):
        rgba = parse_color(color)
        if rgba is None:
            return False
        mask = Image.new("L", self.image.size, 0)
        draw = ImageDraw.Draw(mask)
        rings = [points for points, _ in self._subpaths]
        for y, x_start, x_end in scanline_spans(rings, self.width, self.height):
            draw.line([(x_start, y), (x_end, y)], fill=255)
        overlay = self._layer()
        overlay.paste(_with_opacity(rgba, opacity), None, mask)
        self._composite(overlay)
        return True

    def stroke(self, color, width=None, opacity=None, dash=None, cap=None, join=None):
        rgba = parse_color(color)
        if rgba is None:
            return False
        width = self.line_width if width is None else width
        if width <= 0:
            return False
        pixels = max(1, int(round(width)))
        rgba = _with_opacity(rgba, opacity)

        overlay = self._layer()
        draw = ImageDraw.Draw(overlay)
        joint = "curve" if join == "round" else None
        for points, closed in self._subpaths:
            if closed and len(points) > 1:
                points = points + [points[0]]
            runs = dash_polyline(points, [v * width for v in dash]) if dash else [points]
            for run in runs:
                if len(run) < 2:
                    continue
                draw.line(run, fill=rgba, width=pixels, joint=joint)
                if cap == "round" and pixels > 1:
                    r = pixels / 2.0
                    for x, y in (run[0], run[-1]):
                        draw.ellipse([x - r, y - r, x + r, y + r], fill=rgba)
        self._composite(overlay)
        return True

    def fill_text(self, text, x, y, font, color, opacity=None):
        """Draw ``text`` centered horizontally and vertically on (x, y)."""
        rgba = parse_color(color)
        if rgba is None or not text:
            return False
        overlay = self._layer()
        draw = ImageDraw.Draw(overlay)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        origin = (x - (left + right) / 2.0, y - (top + bottom) / 2.0)
        draw.text(origin, text, font=font, fill=_with_opacity(rgba, opacity))
        self._composite(overlay)
        return True

    def draw_image(self, image, x, y, opacity=None):
        """Composite an RGBA image with its top-left corner at (x, y)."""
        icon = image.convert("RGBA") if image.mode != "RGBA" else image.copy()
        if opacity is not None and opacity < 1:
            factor = max(float(opacity), 0.0)
            icon.putalpha(icon.getchannel("A").point(lambda a: int(round(a * factor))))
        overlay = self._layer()
        # plain paste copies alpha verbatim; compositing happens below
        overlay.paste(icon, (int(round(x)), int(round(y))))
        self._composite(overlay)

    # -- output --------------------------------------------------------------

    def get_pixel(self, x, y):
        return self.image.getpixel((x, y))

    def to_png(self):
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()

    def save(self, path):
        self.image.save(path, format="PNG")

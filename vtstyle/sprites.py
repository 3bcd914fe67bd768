import io
from concurrent.futures import ThreadPoolExecutor

from loguru import logger
from PIL import Image

from vtstyle import fetch


class SpriteAtlas:
    """
    Icons cut out of a single sprite sheet, keyed by name.

    Each entry is its own RGBA image (a copy, not a view into the sheet).
    The atlas is empty until a load finishes; an empty atlas only means
    symbols draw without icons.
    """

    def __init__(self):
        self._images = {}
        self.loaded = False

    @classmethod
    def from_image(cls, index, image):
        atlas = cls()
        atlas._populate(index, image)
        return atlas

    def _populate(self, index, image):
        sheet = image.convert("RGBA")
        images = {}
        for name, rect in index.items():
            try:
                x, y = int(rect["x"]), int(rect["y"])
                width, height = int(rect["width"]), int(rect["height"])
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Sprite {name!r}: malformed entry {rect!r}")
                continue
            if (
                width <= 0
                or height <= 0
                or x < 0
                or y < 0
                or x + width > sheet.width
                or y + height > sheet.height
            ):
                logger.warning(f"Sprite {name!r}: rectangle outside {sheet.width}x{sheet.height} sheet")
                continue
            images[name] = sheet.crop((x, y, x + width, y + height))
        self._images = images
        self.loaded = True

    def load(self, index_url, image_url, executor=None):
        """
        Fetch the index JSON and the sheet PNG in parallel and cut the icons.
        Failures are logged and leave the atlas empty.
        """
        own_executor = executor is None
        if own_executor:
            executor = ThreadPoolExecutor(max_workers=2)
        try:
            index_future = executor.submit(fetch.fetch_json, index_url)
            image_future = executor.submit(fetch.fetch_bytes, image_url)
            index = index_future.result()
            raw = image_future.result()
            if not isinstance(index, dict):
                raise fetch.FetchError(f"sprite index {index_url} is not an object")
            with Image.open(io.BytesIO(raw)) as image:
                image.load()
                self._populate(index, image)
        except (fetch.FetchError, OSError) as e:
            logger.warning(f"Sprite load failed: {e}")
            return False
        finally:
            if own_executor:
                executor.shutdown(wait=False)
        logger.info(f"Sprites loaded: {len(self._images)} icons from {image_url}")
        return True

    def get(self, name):
        return self._images.get(name)

    def __contains__(self, name):
        return name in self._images

    def __len__(self):
        return len(self._images)

    def names(self):
        return sorted(self._images)

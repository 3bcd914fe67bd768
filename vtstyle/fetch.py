import gzip
import json
import os
from urllib.parse import urljoin, urlparse
from urllib.request import url2pathname

import requests
from loguru import logger

from vtstyle import config, mvt_decoder


class FetchError(Exception):
    pass


def _is_remote(url):
    return urlparse(url).scheme in ("http", "https")


def _local_path(url):
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return url2pathname(parsed.path)
    return url


def resolve_url(base, ref):
    """Resolve ``ref`` against the resource it was found in."""
    if not base or _is_remote(ref) or urlparse(ref).scheme == "file" or os.path.isabs(ref):
        return ref
    if _is_remote(base) or urlparse(base).scheme == "file":
        return urljoin(base, ref)
    return os.path.join(os.path.dirname(base), ref)


def fetch_bytes(url):
    if not _is_remote(url):
        try:
            with open(_local_path(url), "rb") as f:
                return f.read()
        except OSError as e:
            raise FetchError(f"cannot read {url}: {e}") from e

    try:
        resp = requests.get(
            url, timeout=config.FETCH_TIMEOUT, headers={"User-Agent": config.USER_AGENT}
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"cannot fetch {url}: {e}") from e
    return resp.content


def fetch_json(url):
    raw = fetch_bytes(url)
    try:
        return json.loads(raw)
    except ValueError as e:
        raise FetchError(f"invalid JSON from {url}: {e}") from e


def fetch_tile(z, x, y):
    """
    Returns tile bytes, or None when the tile is missing or unreachable.
    """
    url = config.TILE_URL_TEMPLATE.format(z=z, x=x, y=y)
    try:
        raw = fetch_bytes(url)
    except FetchError as e:
        logger.warning(f"Tile {z}/{x}/{y} unavailable: {e}")
        return None
    if not raw:
        return None
    return raw


def decode_tile(tile_bytes):
    """
    Decodes MVT bytes into a VectorTile, or None for unreadable data.
    """
    if not tile_bytes:
        return None
    try:
        if tile_bytes[:2] == b"\x1f\x8b":
            tile_bytes = gzip.decompress(tile_bytes)
        return mvt_decoder.decode(tile_bytes)
    except (OSError, EOFError, ValueError) as e:
        logger.warning(f"Undecodable tile: {e}")
        return None

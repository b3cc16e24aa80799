"""
region_token.py — Opaque region handles for map tiles.

A token is URL-safe base64 of "z|x|y". Clients treat it as a cursor:
they get one on every cluster marker and send it back to drill into
that tile. decode_region() is the only gate between client input and
the bounding-box / SQL code, so it rejects anything that isn't three
in-range integers.
"""

from __future__ import annotations

import base64
import binascii

from intentmap.services.webmercator import TileCoord

_DELIMITER = "|"

# Deepest zoom a token may name. Web maps stop around 22.
MAX_TOKEN_ZOOM = 30


class InvalidRegionToken(ValueError):
    """Raised when a region token cannot be decoded into a tile."""


def encode_region(z: int, x: int, y: int) -> str:
    raw = _DELIMITER.join(str(v) for v in (z, x, y))
    return base64.urlsafe_b64encode(raw.encode("ascii")).decode("ascii")


def decode_region(token: str) -> TileCoord:
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii")).decode("ascii")
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidRegionToken("Invalid region token") from exc

    parts = raw.split(_DELIMITER)
    if len(parts) != 3:
        raise InvalidRegionToken("Invalid region token")

    # isdigit() also refuses signs and whitespace, which int() would accept
    if not all(p.isascii() and p.isdigit() for p in parts):
        raise InvalidRegionToken("Invalid region token")
    z, x, y = (int(p, 10) for p in parts)

    if z > MAX_TOKEN_ZOOM or x >= 2 ** z or y >= 2 ** z:
        raise InvalidRegionToken("Region token is outside the tile grid")

    return TileCoord(z=z, x=x, y=y)

"""
jitter.py — Deterministic few-metre offsets for single markers.

Many intents share a venue, so their markers would sit exactly on top of
each other. jitter() moves a point by at most ±J/2 degrees (~2.5 m) in each
axis using the classic sin-hash trick: same (lat, lng, salt) → same offset,
a different salt → a different offset. Rendering aid only, not randomness.
"""

from __future__ import annotations

import math

_J = 0.00005  # ~5 m in degrees (good enough at any latitude we care about)


def _frac(v: float) -> float:
    return v - math.floor(v)


def jitter(lat: float, lng: float, salt: int) -> tuple[float, float]:
    s = math.sin((lat + lng + salt) * 12.9898) * 43758.5453
    r1 = _frac(s) - 0.5
    r2 = _frac(s * 1.1337) - 0.5
    return lat + r1 * _J, lng + r2 * _J

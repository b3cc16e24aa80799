"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address. Map panning fires a clusters
request on every move, so the limits live in settings and are generous.

Usage in routes:
    from fastapi import Request
    from intentmap.core.rate_limit import limiter

    @router.post("/clusters")
    @limiter.limit(settings.clusters_rate_limit)
    async def clusters(request: Request, payload: ClustersRequest):
        ...
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

"""
minihost — Rate Limiting Middleware
=====================================

What:  Per-client sliding window rate limiter.
How:   Keeps the request timestamps of each client address in memory. On
       every exchange, timestamps older than the window are dropped; if the
       remaining count has reached the limit the exchange is answered with
       429 and the rest of the pipeline is skipped.
When:  Registered early so rejected exchanges do no further work.

Algorithm: Sliding Window Counter
    1. Each client gets a list of request timestamps
    2. On each request, remove timestamps older than the window
    3. If remaining count >= limit, reject with 429 + Retry-After
    4. Otherwise, record the current timestamp and call next

State is per process. Every exchange runs on the host's single event loop,
so the bookkeeping needs no lock.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from minihost.config import HostSettings, settings as default_settings
from minihost.http import HttpContext
from minihost.pipeline import RequestDelegate

logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS = 429
CLEANUP_EVERY = 1000


class RateLimitMiddleware:
    """
    In-memory sliding window rate limiter.

    Configuration (from settings):
        rate_limit_requests: Max requests per window (default: 100)
        rate_limit_window: Window duration in seconds (default: 3600)

    Response on rate limit:
        429 Too Many Requests, Retry-After header, JSON error body.
    """

    def __init__(
        self,
        settings: Optional[HostSettings] = None,
        excluded_paths: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or default_settings
        self.excluded_paths = frozenset(excluded_paths)
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    def __call__(self, next: RequestDelegate) -> RequestDelegate:
        async def handler(context: HttpContext) -> None:
            if context.request.path in self.excluded_paths:
                await next(context)
                return

            client_ip = context.request.remote_address or "unknown"
            now = self._clock()
            window = self.settings.rate_limit_window
            window_start = now - window

            # ── Sliding Window: Clean old entries ─────────────────────────
            timestamps = [ts for ts in self._requests[client_ip] if ts > window_start]
            self._requests[client_ip] = timestamps

            # ── Check rate limit ──────────────────────────────────────────
            if len(timestamps) >= self.settings.rate_limit_requests:
                retry_after = int(timestamps[0] + window - now) + 1
                logger.warning(
                    "Rate limit exceeded for %s: %d requests in %ds window",
                    client_ip,
                    len(timestamps),
                    window,
                )
                await context.response.write_json(
                    {
                        "error": "rate_limit_exceeded",
                        "message": (
                            f"Too many requests. Please wait {retry_after} "
                            "seconds before retrying."
                        ),
                        "details": {"retry_after": retry_after},
                    },
                    status_code=TOO_MANY_REQUESTS,
                    headers={"Retry-After": str(retry_after)},
                )
                return

            # ── Record this request ───────────────────────────────────────
            timestamps.append(now)
            self._seen += 1
            if self._seen % CLEANUP_EVERY == 0:
                self._cleanup_inactive_clients(window_start)

            await next(context)

        return handler

    def _cleanup_inactive_clients(self, window_start: float) -> None:
        """Remove clients that have no requests within the current window."""
        inactive = [
            client for client, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for client in inactive:
            del self._requests[client]

        if inactive:
            logger.debug("Cleaned up %d inactive client entries", len(inactive))

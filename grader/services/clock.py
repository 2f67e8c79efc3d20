"""
Server Clock
============

Local time corrected by the skew against a reference time source.

The reference endpoint answers `{"serverTime": <epoch ms>}` (this service's
own GET /api/v1/time does). Synchronization happens once, at startup; any
failure leaves the skew at 0.

Usage:
    clock = ServerClock()
    await clock.synchronize("https://grader.example.com/api/v1/time")
    stamp = clock.now()
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import httpx

from grader.logging import get_logger

logger = get_logger("ServerClock")


class ServerClock:
    """Clock with an explicit, once-initialized skew in milliseconds."""

    def __init__(self, skew_ms: float = 0.0, local_time: Callable[[], float] = time.time):
        self.skew_ms = skew_ms
        self._local_time = local_time
        self.synchronized = False

    async def synchronize(
        self,
        url: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ) -> float:
        """
        Measure the skew against `url`.

        Returns:
            The skew in milliseconds (0 if the time source could not be used)
        """
        self.skew_ms = 0.0
        if not url:
            return self.skew_ms

        try:
            if http_client is not None:
                response = await http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            server_time = float(response.json()["serverTime"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Clock sync with {url} failed ({e}); using local time")
            return self.skew_ms

        self.skew_ms = server_time - self._local_time() * 1000
        self.synchronized = True
        logger.info(f"Clock skew against {url}: {self.skew_ms:.0f}ms")
        return self.skew_ms

    def now_ms(self) -> float:
        return self._local_time() * 1000 + self.skew_ms

    def now(self) -> float:
        """Skew-corrected epoch seconds."""
        return self.now_ms() / 1000


__all__ = ["ServerClock"]

"""Network idle detection.

Playwright only offers a zero-in-flight `networkidle` load state and it only
fires once per navigation. NetworkIdleMonitor counts in-flight requests itself
so the capture can wait for "at most N requests" and wait again after every
scroll step.
"""

import asyncio
import logging
from typing import Optional, Set

logger = logging.getLogger(__name__)


class NetworkIdleTimeout(asyncio.TimeoutError):
    """Raised when the network does not become idle in time."""


class NetworkIdleMonitor:
    """Tracks the requests a page has in flight."""

    POLL_INTERVAL = 0.05

    def __init__(self, page, idle_time: float = 0.5):
        """
        Args:
            page: Playwright page to observe
            idle_time: Seconds the in-flight count must stay at or below the
                threshold before the network counts as idle
        """
        self.idle_time = idle_time
        self._inflight: Set[object] = set()
        page.on("request", self._on_request)
        page.on("requestfinished", self._on_request_done)
        page.on("requestfailed", self._on_request_done)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def _on_request(self, request) -> None:
        self._inflight.add(request)

    def _on_request_done(self, request) -> None:
        self._inflight.discard(request)

    async def _poll(self, max_inflight: int) -> None:
        loop = asyncio.get_running_loop()
        idle_since: Optional[float] = None
        while True:
            now = loop.time()
            if self.inflight <= max_inflight:
                if idle_since is None:
                    idle_since = now
                if now - idle_since >= self.idle_time:
                    return
            else:
                idle_since = None
            await asyncio.sleep(self.POLL_INTERVAL)

    async def wait_for_idle(self, max_inflight: int = 0, timeout: Optional[float] = None) -> None:
        """Wait until at most `max_inflight` requests stay in flight for `idle_time`.

        Args:
            max_inflight: Number of requests tolerated while idle
            timeout: Seconds to wait, None or 0 to wait indefinitely

        Raises:
            NetworkIdleTimeout: If the network did not settle in time
        """
        try:
            await asyncio.wait_for(self._poll(max_inflight), timeout or None)
        except asyncio.TimeoutError:
            logger.debug(
                "Network not idle after %ss (%d requests in flight)", timeout, self.inflight
            )
            raise NetworkIdleTimeout(
                f"Network did not become idle within {timeout}s "
                f"({self.inflight} requests in flight)"
            ) from None

"""Background network reachability monitor."""

import asyncio
import logging
import threading
from typing import Callable, Optional

import aiohttp

logger = logging.getLogger(__name__)


async def _head_request(url: str, timeout_seconds: float) -> bool:
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.head(url, allow_redirects=False):
            # Any HTTP response means the network is reachable
            return True


def http_probe(url: str, timeout_seconds: float) -> Callable[[], bool]:
    """Build a probe that HEADs ``url`` and reports whether it answered."""
    def probe() -> bool:
        try:
            return asyncio.run(_head_request(url, timeout_seconds))
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.debug(f"Connectivity probe to {url} failed: {e}")
            return False
    return probe


class ConnectivityMonitor:
    """Polls reachability on its own thread and reports changes only."""

    def __init__(self,
                 on_change: Callable[[bool], None],
                 probe: Optional[Callable[[], bool]] = None,
                 interval_seconds: float = 5.0,
                 probe_url: str = "http://www.google.com",
                 timeout_seconds: float = 3.0,
                 initial_online: bool = True):
        """Initialize connectivity monitor.

        Args:
            on_change: Called with the new online flag whenever it flips
            probe: Callable returning True when online; defaults to an HTTP HEAD probe
            interval_seconds: Time between checks
            initial_online: Status assumed before the first check
        """
        self.on_change = on_change
        self.probe = probe or http_probe(probe_url, timeout_seconds)
        self.interval_seconds = interval_seconds
        self.online = initial_online

        self.stop_event = threading.Event()
        self.monitor_thread: Optional[threading.Thread] = None
        self.check_count = 0

    def start(self) -> None:
        if self.monitor_thread and self.monitor_thread.is_alive():
            logger.warning("Connectivity monitor already running")
            return
        self.stop_event.clear()
        self.monitor_thread = threading.Thread(target=self._monitor_loop,
                                               name="connectivity_monitor",
                                               daemon=True)
        self.monitor_thread.start()
        logger.info(f"Connectivity monitor started (interval: {self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0) -> None:
        self.stop_event.set()
        if self.monitor_thread:
            self.monitor_thread.join(timeout)
            if self.monitor_thread.is_alive():
                logger.warning("Connectivity monitor thread did not terminate cleanly.")
            self.monitor_thread = None
        logger.info("Connectivity monitor stopped")

    def _monitor_loop(self) -> None:
        self.check_now()
        while not self.stop_event.wait(self.interval_seconds):
            self.check_now()

    def check_now(self) -> bool:
        """Run one probe and report a change if the status flipped."""
        try:
            online = bool(self.probe())
        except Exception as e:
            logger.error(f"Connectivity probe raised: {e}", exc_info=True)
            online = False
        self.check_count += 1

        if online != self.online:
            self.online = online
            logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
            self.on_change(online)
        return online

"""
Network reachability signal.

Sync requests are skipped entirely while the device reports being offline.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Holds the device's online/offline flag.

    Hosts flip the flag from their own network events, or call ``probe``
    to test reachability of an endpoint directly.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[Callable[[bool], None]] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Update the flag and notify listeners on a transition."""
        if online == self._online:
            return
        self._online = online
        logger.info("Network %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception as e:
                logger.error(f"Connectivity listener raised: {e}")

    def add_listener(self, callback: Callable[[bool], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[bool], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def probe(self, url: str, timeout: float = 3.0) -> bool:
        """Try a TCP connection to the URL's host and update the flag."""
        parts = urlsplit(url)
        host = parts.hostname
        if not host:
            return self._online
        port = parts.port or (443 if parts.scheme == "https" else 80)

        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
            writer.close()
            await writer.wait_closed()
            reachable = True
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Probe of {host}:{port} failed: {e}")
            reachable = False

        self.set_online(reachable)
        return reachable

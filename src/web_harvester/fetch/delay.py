"""
Per-host request delay.

Requests to the same host are admitted one at a time, in arrival order, and
spaced by at least the requested delay. Different hosts never wait on each
other.
"""

import logging
import threading
import time
from typing import Dict, Optional
from urllib.parse import urlparse

from ..utils.locks import ReadWriteLock


class HostGate:
    """
    Single-slot signal for one host.

    ``signal`` never blocks and keeps at most one pending signal. ``close``
    releases every current and future waiter.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._signaled = False
        self._closed = False

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until signaled or closed. Returns False on timeout."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._signaled or self._closed, timeout):
                return False
            if not self._closed:
                self._signaled = False
            return True

    def signal(self):
        with self._cond:
            self._signaled = True
            self._cond.notify()

    def close(self):
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed


class RequestDelay:
    """
    Manages the delay between requests to the same host.

    Protocol for one request:
        delay.wait(url, seconds)   # blocks for the previous request, then spaces
        ... make request ...
        delay.stamp(url)           # record when the request finished
        delay.done(url)            # admit the next waiter
    """

    def __init__(self):
        self.timestamps: Dict[str, float] = {}
        self.gates: Dict[str, HostGate] = {}
        self.lock = ReadWriteLock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def _host(url: str) -> str:
        return urlparse(url).netloc.lower()

    def wait(self, url: str, delay: float):
        """
        Wait for the previous request to the same host, then sleep so that at
        least ``delay`` seconds separate it from this one.

        The first request to a host never waits.
        """
        host = self._host(url)

        with self.lock.write():
            gate = self.gates.get(host)
            first = gate is None
            if first:
                self.gates[host] = HostGate()

        if not first:
            gate.wait()

        with self.lock.read():
            last = self.timestamps.get(host)

        if last is not None:
            remaining = delay - (time.monotonic() - last)
            if remaining > 0:
                self.logger.debug(f"Delaying {host}: sleeping {remaining:.3f}s")
                time.sleep(remaining)

    def done(self, url: str):
        """Signal that the request to the host has been made."""
        host = self._host(url)
        with self.lock.read():
            gate = self.gates.get(host)
        if gate is not None:
            gate.signal()

    def stamp(self, url: str):
        """Record the time at which the request to the host was made."""
        host = self._host(url)
        with self.lock.write():
            self.timestamps[host] = time.monotonic()

    def clear(self):
        """Forget every timestamp and release every waiting request."""
        with self.lock.write():
            self.timestamps.clear()
            for gate in self.gates.values():
                gate.close()
            self.gates.clear()
        self.logger.debug("Cleared request delay state")

    def get_stats(self) -> dict:
        with self.lock.read():
            return {
                'tracked_hosts': len(self.timestamps),
                'hosts': list(self.timestamps.keys()),
            }

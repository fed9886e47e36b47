"""Virtual user identity and in-flight request tracking."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from loadgen.http.executor import PendingSample


class VirtualUser:
    """One simulated client.

    ``id`` is 1-based and unique across the whole run; ``index`` is the
    0-based position inside the scenario's pool. Owns its HTTP client and
    at most one in-flight request at a time.
    """

    def __init__(self, id: int, index: int, scenario: str, client: httpx.Client) -> None:
        self.id = id
        self.index = index
        self.scenario = scenario
        self.client = client
        self.iteration = 0
        self._lock = threading.Lock()
        self._in_flight: PendingSample | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"VirtualUser(id={self.id}, scenario={self.scenario!r})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_in_flight(self) -> bool:
        with self._lock:
            return self._in_flight is not None

    def begin_request(self, pending: PendingSample) -> bool:
        """Register a request as in flight. False once the VU was aborted."""
        with self._lock:
            if self._closed:
                return False
            self._in_flight = pending
            return True

    def end_request(self, pending: PendingSample) -> None:
        with self._lock:
            if self._in_flight is pending:
                self._in_flight = None

    def abort_in_flight(self) -> bool:
        """Close the VU and abort its in-flight request, if any.

        Returns True when an aborted sample was recorded. Once this returns,
        any sample that won the race against the abort has been delivered.
        When the abort wins, the client is closed so the blocked exchange
        is torn down instead of running until the request timeout.
        """
        with self._lock:
            self._closed = True
            pending = self._in_flight
            self._in_flight = None
        if pending is None or not pending.abort():
            return False
        self.client.close()
        return True

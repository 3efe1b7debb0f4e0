"""Rate limiting of clients with a limit that adapts to overall traffic."""

from __future__ import annotations

import asyncio
import math
import threading
import time

from .honeypot import ProjectHoneypotQuery
from .security import Error, HttpRequest, IPAddress, SecurityChecker, SecurityCheckResult

ZSCORE_WINDOW_SIZE = 100

ALPHA = 0.1
BETA = 0.9
MAX_SCALE_RLIMIT = 1.5
MIN_SCALE_RLIMIT = 0.5

_BLOCK_MESSAGE = "Too many request initiated. IP blocked until: "


def time_to_date(timestamp: float) -> str:
    """Render a UTC timestamp the way asctime does, newline included."""
    try:
        return time.asctime(time.gmtime(timestamp)) + "\n"
    except (OverflowError, OSError, ValueError):
        return "Error formatting time"


class DDOSChecker(SecurityChecker):
    """Blocks clients that send too many requests or hold too many connections."""

    def __init__(
        self,
        active_connections_per_ip: int,
        request_limit: int,
        block_time: float,
        interval: float,
        query: ProjectHoneypotQuery | None = None,
    ) -> None:
        self.active_connections_per_ip = active_connections_per_ip
        self.request_limit = request_limit
        self.current_request_limit = request_limit
        self.block_time = block_time
        self.interval = interval
        self._query = query if query is not None else ProjectHoneypotQuery()
        self._tracker = self._query.tracker
        self._lock = self._query.lock
        self._requests_lock = threading.Lock()
        self._requests_in_period = 0
        self._samples: list[int] = []

    @property
    def samples(self) -> tuple[int, ...]:
        """Request counts of the recent periods, oldest first."""
        return tuple(self._samples)

    @staticmethod
    def _blocked(until: float) -> SecurityCheckResult:
        return SecurityCheckResult(False, Error.DDOS, _BLOCK_MESSAGE + time_to_date(until))

    def check(self, request: HttpRequest, client_address: IPAddress) -> SecurityCheckResult:
        with self._requests_lock:
            self._requests_in_period += 1

        with self._lock:
            data = self._tracker.get(client_address)
        if data is None:
            self._query.update_tracker_info(client_address)
            return SecurityCheckResult(True, Error.NONE, "")

        now = time.time()
        with self._lock:
            if data.blocked_until > now:
                return self._blocked(data.blocked_until)

            timestamps = data.timestamps
            while timestamps and now - timestamps[0] >= self.interval:
                timestamps.popleft()
            timestamps.append(now)
            data.current_connections += 1

            if (
                len(timestamps) >= self.current_request_limit
                or data.current_connections >= self.active_connections_per_ip
            ):
                data.blocked_until = now + self.block_time
                return self._blocked(data.blocked_until)

        return SecurityCheckResult(True, Error.NONE, "")

    def remove_expired_connection(self, client_address: IPAddress) -> None:
        """Note that a client closed one of its connections."""
        with self._lock:
            data = self._tracker.get(client_address)
            if data is not None:
                data.current_connections -= 1

    def calc_zscore(self) -> float:
        """How far the latest period's traffic lies from the recent mean, in standard deviations."""
        n = len(self._samples)
        if n < 2:
            return 0.0
        total = float(sum(self._samples))
        squares = sum(float(count) * count for count in self._samples)
        mean = total / n
        variance = (squares + mean * (-2 * total + mean)) / (n - 1)
        stddev = math.sqrt(max(variance, 1e-9))
        return (self._samples[-1] - mean) / stddev

    def modify_rate_limit(self) -> None:
        """Tighten the limit when traffic spikes and relax it when traffic drops."""
        target_scale = 1 - ALPHA * self.calc_zscore()
        ratio = self.current_request_limit / self.request_limit if self.request_limit else 1.0
        smoothed = BETA * ratio + (1 - BETA) * target_scale
        scale = min(max(smoothed, MIN_SCALE_RLIMIT), MAX_SCALE_RLIMIT)
        self.current_request_limit = int(self.request_limit * scale)

    def update_total_traffic(self) -> None:
        """Close the current period: record its request count and adapt the limit."""
        with self._requests_lock:
            self._samples.append(self._requests_in_period)
            self._requests_in_period = 0
        if len(self._samples) >= ZSCORE_WINDOW_SIZE:
            del self._samples[0]
        self.modify_rate_limit()

    async def run(self) -> None:
        """Close a period every interval until cancelled."""
        while True:
            await asyncio.sleep(self.interval)
            self.update_total_traffic()
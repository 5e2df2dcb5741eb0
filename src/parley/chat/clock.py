import threading
import time


class MonotonicClock:
    """Wall-clock milliseconds that never repeat or go backwards.

    Used for both message ids and timestamps, so two messages created in
    the same millisecond still get distinct ids and a stable order.
    """

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            now = time.time_ns() // 1_000_000
            self._last = max(now, self._last + 1)
            return self._last

"""Process-wide count of accepted submissions."""

import threading


class StatusCounter:
    """Monotonic, thread-safe counter of accepted submissions.

    Starts at zero with the process and is never persisted.
    """

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        """Record one accepted submission and return the new total."""
        with self._lock:
            self._count += 1
            return self._count

    def current_count(self) -> int:
        """Snapshot of the number of accepted submissions."""
        with self._lock:
            return self._count

"""Thread-safe, append-only record of every probe attempt, keyed by marker."""

import threading
from typing import Dict, List, Optional

from log4scan.core.models import (
    ProbeAttempt, SENT, CONFIRMED, UNCONFIRMED, TRANSPORT_ERROR,
)


class DuplicateMarkerError(ValueError):
    pass


class AttemptLedger:

    def __init__(self):
        self._lock = threading.Lock()
        self._attempts: Dict[str, ProbeAttempt] = {}
        self._latest_sent = 0.0

    def __len__(self):
        with self._lock:
            return len(self._attempts)

    def add(self, attempt: ProbeAttempt) -> None:
        with self._lock:
            if attempt.marker in self._attempts:
                raise DuplicateMarkerError(f"marker {attempt.marker} already in use")
            self._attempts[attempt.marker] = attempt
            self._latest_sent = max(self._latest_sent, attempt.sent_at)

    def record_outcome(self, marker: str, status_code: Optional[int] = None,
                       error: str = "") -> None:
        """Store the response status or transport error.

        A callback may land before the response does; a confirmed attempt
        keeps its state.
        """
        with self._lock:
            attempt = self._attempts[marker]
            attempt.status_code = status_code
            attempt.error = error
            if error and attempt.state == SENT:
                attempt.state = TRANSPORT_ERROR

    def confirm(self, marker: str, observed_at: float, kind: str,
                wait: Optional[float]) -> Optional[ProbeAttempt]:
        """Mark an attempt confirmed if the callback is inside its window.

        ``wait`` of None means no deadline. Returns the attempt on the
        transition, None for unknown markers, late callbacks or repeats.
        """
        with self._lock:
            attempt = self._attempts.get(marker)
            if attempt is None or attempt.state == CONFIRMED:
                return None
            if wait is not None and observed_at > attempt.sent_at + wait:
                return None
            attempt.state = CONFIRMED
            attempt.confirmed_at = observed_at
            attempt.catcher_kind = kind
            return attempt

    def expire_pending(self) -> int:
        """sent → unconfirmed for every attempt still waiting."""
        count = 0
        with self._lock:
            for attempt in self._attempts.values():
                if attempt.state == SENT:
                    attempt.state = UNCONFIRMED
                    count += 1
        return count

    def get(self, marker: str) -> Optional[ProbeAttempt]:
        with self._lock:
            return self._attempts.get(marker)

    def attempts(self) -> List[ProbeAttempt]:
        with self._lock:
            return list(self._attempts.values())

    @property
    def latest_sent(self) -> float:
        with self._lock:
            return self._latest_sent

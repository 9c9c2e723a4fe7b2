"""Joins sent markers with the callbacks a catcher observes."""

import threading
import time
from typing import List, Optional

from log4scan.core.ledger import AttemptLedger
from log4scan.core.models import CallbackEvent, ScanResult, CONFIRMED, UNCONFIRMED


class Correlator:
    """Drains the catcher's event stream on its own thread.

    An attempt is confirmed when a callback with its marker arrives within
    ``wait`` seconds of sending (no deadline with ``no_wait_timeout``).
    Everything still pending when the window closes is unconfirmed.
    """

    def __init__(self, ledger: AttemptLedger, catcher, wait: float = 5.0,
                 no_wait_timeout: bool = False, logger=None):
        self.ledger = ledger
        self.catcher = catcher
        self.wait = wait
        self.no_wait_timeout = no_wait_timeout
        self.logger = logger
        self.confirmed = 0
        self.dropped = 0
        self._thread: Optional[threading.Thread] = None

    @property
    def window(self) -> Optional[float]:
        return None if self.no_wait_timeout else self.wait

    def start(self) -> "Correlator":
        self._thread = threading.Thread(target=self._drain, name="correlator", daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)

    def _drain(self):
        for event in self.catcher.events():
            self.handle_event(event)

    def handle_event(self, event: CallbackEvent) -> bool:
        attempt = self.ledger.confirm(event.marker, event.observed_at,
                                      event.catcher_kind, self.window)
        if attempt is None:
            self.dropped += 1
            if self.logger:
                self.logger.debug(f"Ignoring callback {event.marker} from {event.remote_addr} "
                                  "(unknown, late or repeated)")
            return False

        self.confirmed += 1
        if self.logger:
            self.logger.finding(attempt.target, attempt.point, attempt.variant.text,
                                attempt.marker, event.catcher_kind, event.remote_addr)
        return True

    def wait_for_callbacks(self, stop_event: threading.Event) -> None:
        """Block until the wait window of the last attempt closes.

        Returns at once without an active catcher or with ``wait == 0``.
        With ``no_wait_timeout`` it only returns when ``stop_event`` is set.
        """
        if not self.catcher.active or not len(self.ledger):
            return
        if self.no_wait_timeout:
            if self.logger:
                self.logger.info("Waiting for callbacks until interrupted (Ctrl+C)")
            while not stop_event.wait(0.5):
                pass
            return
        if self.wait <= 0:
            return

        remaining = self.ledger.latest_sent + self.wait - time.time()
        if remaining > 0:
            if self.logger:
                self.logger.info(f"Waiting {remaining:.1f}s for callbacks")
            stop_event.wait(remaining)

    def finalize(self) -> List[ScanResult]:
        """Close every open attempt and return the results."""
        if self.catcher.active:
            self.ledger.expire_pending()

        results = []
        for attempt in self.ledger.attempts():
            results.append(ScanResult.from_attempt(attempt))
            if self.logger and attempt.state == UNCONFIRMED:
                self.logger.unconfirmed(attempt.target, attempt.point, attempt.variant.text,
                                        attempt.status_code)
        results.sort(key=lambda r: (r.state != CONFIRMED, r.target, str(r.point)))
        return results
